# Overview: Flask API routes for the depot catalog; parses input and returns JSON responses.

# backend/orderflow/routes/products.py
"""
Catalog routes (products, barcode resolution, alternate barcodes)

SECURITY: All routes require a caller.
- Read operations require VIEW_CATALOG
- Product writes and stock movements require MANAGE_CATALOG
- Alternate barcode writes require MANAGE_BARCODES
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import catalog_service, identifier_service
from ..validation import DomainError
from ..decorators import require_caller, require_capability
from ..permissions import Capability


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


@products_bp.get("")
@require_caller
@require_capability(Capability.VIEW_CATALOG)
def list_products_route():
    """
    List one depot's products.

    Query params:
    - depot_id: int (defaults to the caller)
    - include_inactive: bool (owning depot only)
    - q: substring of name or barcode
    """
    depot_id = request.args.get("depot_id", type=int) or g.caller.id
    try:
        products = catalog_service.list_products(
            g.caller,
            depot_id,
            include_inactive=_flag("include_inactive"),
            search=request.args.get("q"),
        )
        return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("")
@require_caller
@require_capability(Capability.MANAGE_CATALOG)
def create_product_route():
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(g.caller, data)
        return jsonify({"product": product.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "internal_error"}), 500


@products_bp.get("/<int:product_id>")
@require_caller
@require_capability(Capability.VIEW_CATALOG)
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(g.caller, product_id)
        return jsonify({"product": product.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "internal_error"}), 500


@products_bp.patch("/<int:product_id>")
@require_caller
@require_capability(Capability.MANAGE_CATALOG)
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(g.caller, product_id, data)
        return jsonify({"product": product.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("/<int:product_id>/deactivate")
@require_caller
@require_capability(Capability.MANAGE_CATALOG)
def deactivate_product_route(product_id: int):
    """Soft delete: the row stays for order history but disappears from lookups."""
    try:
        product = catalog_service.deactivate_product(g.caller, product_id)
        return jsonify({"product": product.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("/<int:product_id>/reactivate")
@require_caller
@require_capability(Capability.MANAGE_CATALOG)
def reactivate_product_route(product_id: int):
    try:
        product = catalog_service.reactivate_product(g.caller, product_id)
        return jsonify({"product": product.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reactivate product")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("/<int:product_id>/stock")
@require_caller
@require_capability(Capability.MANAGE_CATALOG)
def stock_movement_route(product_id: int):
    """
    Record a stock movement.

    Body: {"direction": "in" | "out", "quantity": int, "reason": str?}
    """
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.record_stock_movement(
            g.caller,
            product_id,
            data.get("direction"),
            data.get("quantity"),
            reason=data.get("reason"),
        )
        return jsonify({"product": product.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "internal_error"}), 500


@products_bp.get("/resolve/<path:code>")
@require_caller
@require_capability(Capability.VIEW_CATALOG)
def resolve_barcode_route(code: str):
    """Resolve a scanned code (primary, case-insensitive, then alternate)."""
    depot_id = request.args.get("depot_id", type=int) or g.caller.id
    try:
        product, via_alternate = identifier_service.resolve_barcode(g.caller, depot_id, code)
        return jsonify({"product": product.to_dict(), "via_alternate": via_alternate}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to resolve barcode")
        return jsonify({"error": "internal_error"}), 500


@products_bp.get("/<int:product_id>/barcodes")
@require_caller
@require_capability(Capability.VIEW_CATALOG)
def list_barcodes_route(product_id: int):
    try:
        codes = identifier_service.list_alternate_barcodes(
            g.caller, product_id, include_inactive=_flag("include_inactive")
        )
        return jsonify({"items": [c.to_dict() for c in codes], "count": len(codes)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list alternate barcodes")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("/<int:product_id>/barcodes")
@require_caller
@require_capability(Capability.MANAGE_BARCODES)
def add_barcode_route(product_id: int):
    """
    Map an alternate barcode onto a product.

    Body: {"code": str, "credit_quantity": int?}
    """
    data = request.get_json(silent=True) or {}
    try:
        alt = identifier_service.add_alternate_barcode(
            g.caller, product_id, data.get("code"), credit_quantity=data.get("credit_quantity")
        )
        return jsonify({"barcode": alt.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add alternate barcode")
        return jsonify({"error": "internal_error"}), 500


@products_bp.post("/<int:product_id>/barcodes/<int:barcode_id>/deactivate")
@require_caller
@require_capability(Capability.MANAGE_BARCODES)
def remove_barcode_route(product_id: int, barcode_id: int):
    try:
        alt = identifier_service.remove_alternate_barcode(g.caller, product_id, barcode_id)
        return jsonify({"barcode": alt.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove alternate barcode")
        return jsonify({"error": "internal_error"}), 500
