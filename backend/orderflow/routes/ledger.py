# Overview: Flask API routes for the financial ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import ledger_service
from ..validation import DomainError, ValidationError
from ..decorators import require_caller, require_capability
from ..permissions import Capability
from ..time_utils import parse_iso_datetime


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be ISO-8601")


@ledger_bp.get("")
@require_caller
@require_capability(Capability.VIEW_LEDGER)
def list_entries_route():
    """
    List ledger entries, newest first.

    Query params: kind, category, from, to (ISO-8601), limit, owner_id (elevated only)
    """
    try:
        entries = ledger_service.list_entries(
            g.caller,
            request.args.get("owner_id", type=int),
            kind=request.args.get("kind"),
            category=request.args.get("category"),
            start=_date_arg("from"),
            end=_date_arg("to"),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list ledger entries")
        return jsonify({"error": "internal_error"}), 500


@ledger_bp.get("/totals")
@require_caller
@require_capability(Capability.VIEW_LEDGER)
def ledger_totals_route():
    try:
        totals = ledger_service.ledger_totals(
            g.caller,
            request.args.get("owner_id", type=int),
            start=_date_arg("from"),
            end=_date_arg("to"),
        )
        return jsonify(totals), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute ledger totals")
        return jsonify({"error": "internal_error"}), 500


@ledger_bp.post("")
@require_caller
@require_capability(Capability.RECORD_LEDGER)
def create_entry_route():
    """
    Record a manual movement.

    Body: {"kind": "credit" | "debit", "description": str, "amount_cents": int,
           "category": str?, "related_order_id": int?, "notes": str?}
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = ledger_service.create_manual_entry(g.caller, data)
        return jsonify({"entry": entry.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create ledger entry")
        return jsonify({"error": "internal_error"}), 500
