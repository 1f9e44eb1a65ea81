# Overview: Flask API routes for shipments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import shipment_service
from ..validation import DomainError
from ..decorators import require_caller, require_capability
from ..permissions import Capability


shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


@shipments_bp.post("")
@require_caller
@require_capability(Capability.MANAGE_SHIPMENTS)
def create_shipment_route():
    """
    Create the shipment for a ready order (order becomes shipped).

    Body: {"order_id": int, "carrier_id": int?, "vehicle": str?, "driver": str?,
           "estimated_at": ISO-8601?, "notes": str?}
    """
    data = request.get_json(silent=True) or {}
    if data.get("order_id") is None:
        return jsonify({"error": "validation_error", "message": "order_id required"}), 400
    try:
        shipment = shipment_service.create_shipment(g.caller, data["order_id"], data)
        return jsonify({"shipment": shipment.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create shipment")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.get("")
@require_caller
@require_capability(Capability.VIEW_SHIPMENTS)
def list_shipments_route():
    try:
        shipments = shipment_service.list_shipments(
            g.caller,
            state=request.args.get("state"),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"items": [s.to_dict() for s in shipments], "count": len(shipments)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list shipments")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.get("/active")
@require_caller
@require_capability(Capability.VIEW_SHIPMENTS)
def active_shipments_route():
    """Carrier's pending and in-transit shipments, oldest first."""
    try:
        shipments = shipment_service.active_shipments_for_carrier(g.caller)
        return jsonify({"items": [s.to_dict() for s in shipments], "count": len(shipments)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list active shipments")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.get("/<int:shipment_id>")
@require_caller
@require_capability(Capability.VIEW_SHIPMENTS)
def get_shipment_route(shipment_id: int):
    try:
        shipment = shipment_service.get_shipment(g.caller, shipment_id)
        return jsonify({"shipment": shipment.to_dict(), "order": shipment.order.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get shipment")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.post("/<int:shipment_id>/assign")
@require_caller
@require_capability(Capability.MANAGE_SHIPMENTS)
def assign_carrier_route(shipment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        shipment = shipment_service.assign_carrier(g.caller, shipment_id, data)
        return jsonify({"shipment": shipment.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign carrier")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.post("/<int:shipment_id>/state")
@require_caller
@require_capability(Capability.UPDATE_SHIPMENT)
def change_shipment_state_route(shipment_id: int):
    """Body: {"state": "in_transit" | "delivered" | "failed", "notes": str?}"""
    data = request.get_json(silent=True) or {}
    if not data.get("state"):
        return jsonify({"error": "validation_error", "message": "state required"}), 400
    try:
        shipment = shipment_service.change_shipment_state(g.caller, shipment_id, data["state"], data)
        return jsonify({"shipment": shipment.to_dict(), "order": shipment.order.to_dict(include_lines=False)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change shipment state")
        return jsonify({"error": "internal_error"}), 500


@shipments_bp.post("/<int:shipment_id>/location")
@require_caller
@require_capability(Capability.REPORT_LOCATION)
def update_location_route(shipment_id: int):
    """Body: {"lat": float, "lng": float, "address": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        shipment = shipment_service.update_location(g.caller, shipment_id, data)
        return jsonify({"shipment": shipment.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update shipment location")
        return jsonify({"error": "internal_error"}), 500
