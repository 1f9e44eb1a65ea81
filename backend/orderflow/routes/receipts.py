# Overview: Flask API routes for delivery receipts; parses input and returns JSON responses.

# backend/orderflow/routes/receipts.py
"""
Delivery receipt routes

Issuing is idempotent per order and safe to retry. Confirming is not: a
client that lost the response must GET the receipt and check `confirmed`
before confirming again.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import receipt_service
from ..validation import DomainError
from ..decorators import require_caller, require_capability
from ..permissions import Capability


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.post("")
@require_caller
@require_capability(Capability.ISSUE_RECEIPT)
def create_receipt_route():
    """Body: {"order_id": int}"""
    data = request.get_json(silent=True) or {}
    if data.get("order_id") is None:
        return jsonify({"error": "validation_error", "message": "order_id required"}), 400
    try:
        receipt = receipt_service.create_receipt(g.caller, data["order_id"])
        return jsonify({"receipt": receipt.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create delivery receipt")
        return jsonify({"error": "internal_error"}), 500


@receipts_bp.get("/pending")
@require_caller
@require_capability(Capability.VIEW_RECEIPTS)
def pending_receipts_route():
    try:
        receipts = receipt_service.pending_receipts(g.caller)
        return jsonify({"items": [r.to_dict() for r in receipts], "count": len(receipts)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list pending receipts")
        return jsonify({"error": "internal_error"}), 500


@receipts_bp.get("/history")
@require_caller
@require_capability(Capability.VIEW_RECEIPTS)
def receipt_history_route():
    try:
        receipts = receipt_service.receipt_history(g.caller, limit=request.args.get("limit", 50, type=int))
        return jsonify({"items": [r.to_dict() for r in receipts], "count": len(receipts)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list receipt history")
        return jsonify({"error": "internal_error"}), 500


@receipts_bp.get("/<code>")
@require_caller
@require_capability(Capability.VIEW_RECEIPTS)
def get_receipt_route(code: str):
    try:
        receipt = receipt_service.get_receipt(g.caller, code)
        return jsonify({"receipt": receipt.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get delivery receipt")
        return jsonify({"error": "internal_error"}), 500


@receipts_bp.post("/<code>/confirm")
@require_caller
@require_capability(Capability.CONFIRM_RECEIPT)
def confirm_receipt_route(code: str):
    try:
        receipt = receipt_service.confirm_receipt(g.caller, code)
        return jsonify({"receipt": receipt.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to confirm delivery receipt")
        return jsonify({"error": "internal_error"}), 500
