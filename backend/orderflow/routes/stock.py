# Overview: Flask API routes for the caller's personal stock; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import personal_stock_service
from ..validation import DomainError
from ..decorators import require_caller, require_capability
from ..permissions import Capability


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def list_stock_route():
    """Query params: q (name substring), category, owner_id (elevated only)"""
    try:
        entries = personal_stock_service.list_stock(
            g.caller,
            request.args.get("owner_id", type=int),
            search=request.args.get("q"),
            category=request.args.get("category"),
        )
        return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.get("/totals")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def stock_totals_route():
    try:
        totals = personal_stock_service.stock_totals(g.caller, request.args.get("owner_id", type=int))
        return jsonify(totals), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute stock totals")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.post("")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def credit_stock_route():
    """
    Add a batch by hand.

    Body: {"name": str, "quantity": int, "unit_price_cents": int?, "barcode": str?,
           "category": str?, "image_url": str?, "record_purchase": bool?}
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = personal_stock_service.credit_stock(g.caller, data)
        return jsonify({"entry": entry.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to credit stock")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.post("/deplete")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def deplete_stock_route():
    """Body: {"name": str, "quantity": int, "unit_price_override": int?, "reason": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = personal_stock_service.deplete_stock(
            g.caller,
            data.get("name"),
            data.get("quantity"),
            unit_price_override=data.get("unit_price_override"),
            reason=data.get("reason"),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deplete stock")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.post("/deplete-by-barcode")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def deplete_by_barcode_route():
    """Body: {"code": str, "quantity": int = 1, "unit_price_override": int?, "reason": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = personal_stock_service.deplete_by_barcode(
            g.caller,
            data.get("code"),
            data.get("quantity", 1),
            unit_price_override=data.get("unit_price_override"),
            reason=data.get("reason"),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deplete stock by barcode")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.get("/by-code/<code>")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def find_by_code_route(code: str):
    """Resolve a scanned code (barcode, STK<id> or alternate code) to a stock name."""
    try:
        return jsonify(personal_stock_service.find_by_code(g.caller, code)), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to look up stock by code")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.post("/by-code/<code>/add")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def add_stock_by_code_route(code: str):
    """Body: {"quantity": int, "unit_cost_cents": int?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = personal_stock_service.add_stock_by_code(
            g.caller,
            code,
            data.get("quantity"),
            unit_cost_cents=data.get("unit_cost_cents"),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add stock by code")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.get("/alternate-codes")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def list_alternate_codes_route():
    try:
        codes = personal_stock_service.list_alternate_codes(
            g.caller,
            request.args.get("owner_id", type=int),
            include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        )
        return jsonify({"items": [c.to_dict() for c in codes], "count": len(codes)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list alternate codes")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.post("/alternate-codes")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def associate_alternate_code_route():
    """Body: {"name": str, "code": str, "quantity": int?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = personal_stock_service.associate_alternate_code(g.caller, data)
        return jsonify(result), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to associate alternate code")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.delete("/alternate-codes/<int:code_id>")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def remove_alternate_code_route(code_id: int):
    try:
        alt = personal_stock_service.remove_alternate_code(g.caller, code_id)
        return jsonify({"alternate_code": alt.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove alternate code")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.patch("/<int:entry_id>")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def adjust_entry_route(entry_id: int):
    data = request.get_json(silent=True) or {}
    try:
        entry = personal_stock_service.adjust_entry(g.caller, entry_id, data)
        return jsonify({"entry": entry.to_dict() if entry is not None else None}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock entry")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.delete("/<int:entry_id>")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def remove_entry_route(entry_id: int):
    try:
        removed = personal_stock_service.remove_entries(g.caller, entry_id=entry_id)
        return jsonify({"removed": removed}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove stock entry")
        return jsonify({"error": "internal_error"}), 500


@stock_bp.delete("/by-name/<path:name>")
@require_caller
@require_capability(Capability.MANAGE_PERSONAL_STOCK)
def remove_entries_by_name_route(name: str):
    try:
        removed = personal_stock_service.remove_entries(g.caller, name=name)
        return jsonify({"removed": removed}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove stock entries")
        return jsonify({"error": "internal_error"}), 500
