# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/orderflow/routes/orders.py
"""
Order routes

SECURITY: All routes require a caller.
- Placing and editing orders requires PLACE_ORDER (buyer)
- Lifecycle moves require MANAGE_ORDERS (depot)
- Buyer cancellation requires CANCEL_ORDER
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import order_service, ledger_service
from ..validation import DomainError, ValidationError
from ..decorators import require_caller, require_capability
from ..permissions import Capability
from ..time_utils import parse_iso_datetime


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be ISO-8601")


@orders_bp.post("")
@require_caller
@require_capability(Capability.PLACE_ORDER)
def create_order_route():
    """
    Place an order.

    Body:
    {
      "depot_id": int,
      "delivery_mode": "ship" | "carrier" | "pickup",
      "address": str?, "priority": str?, "notes": str?,
      "lines": [{"product_id": int?, "name": str?, "quantity": int, "unit_price_cents": int?}]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(g.caller, data)
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.get("")
@require_caller
@require_capability(Capability.VIEW_ORDERS)
def list_orders_route():
    """
    List orders visible to the caller.

    Query params: state, delivery_mode, priority, from, to (ISO-8601), limit
    """
    try:
        orders = order_service.list_orders(
            g.caller,
            state=request.args.get("state"),
            delivery_mode=request.args.get("delivery_mode"),
            priority=request.args.get("priority"),
            start=_date_arg("from"),
            end=_date_arg("to"),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"items": [o.to_dict(include_lines=False) for o in orders], "count": len(orders)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.get("/<int:order_id>")
@require_caller
@require_capability(Capability.VIEW_ORDERS)
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.caller, order_id)
        data = order.to_dict()
        data["shipment"] = order.shipment.to_dict() if order.shipment is not None else None
        return jsonify({"order": data}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_caller
@require_capability(Capability.PLACE_ORDER)
def update_order_route(order_id: int):
    """Edit a pending order. A "lines" key replaces every line."""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order(g.caller, order_id, data)
        return jsonify({"order": order.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.post("/<int:order_id>/state")
@require_caller
@require_capability(Capability.MANAGE_ORDERS)
def change_order_state_route(order_id: int):
    """Body: {"state": str, "estimated_delivery_at": ISO-8601?}"""
    data = request.get_json(silent=True) or {}
    if not data.get("state"):
        return jsonify({"error": "validation_error", "message": "state required"}), 400
    try:
        order = order_service.change_order_state(g.caller, order_id, data["state"], data)
        return jsonify({"order": order.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change order state")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_caller
@require_capability(Capability.CANCEL_ORDER)
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(g.caller, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "internal_error"}), 500


@orders_bp.post("/<int:order_id>/ledger")
@require_caller
@require_capability(Capability.RECORD_LEDGER)
def record_order_ledger_route(order_id: int):
    """Book the order total on the caller's ledger (buyer: purchase, depot: sale)."""
    try:
        entry = ledger_service.record_order_ledger_entry(g.caller, order_id)
        return jsonify({"entry": entry.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record order ledger entry")
        return jsonify({"error": "internal_error"}), 500
