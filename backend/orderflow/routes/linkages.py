# Overview: Flask API routes for product linkage and stock consolidation.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import catalog_service, linkage_service
from ..validation import DomainError
from ..decorators import require_caller, require_capability
from ..permissions import Capability


linkages_bp = Blueprint("linkages", __name__, url_prefix="/api/linkages")


@linkages_bp.post("")
@require_caller
@require_capability(Capability.CONSOLIDATE_STOCK)
def link_products_route():
    """
    Link two products of a depot.

    Body: {"product_a": id | barcode, "product_b": id | barcode, "depot_id": int?}
    """
    data = request.get_json(silent=True) or {}
    try:
        link = linkage_service.link_products(
            g.caller, data.get("product_a"), data.get("product_b"), depot_id=data.get("depot_id")
        )
        return jsonify({"linkage": link.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to link products")
        return jsonify({"error": "internal_error"}), 500


@linkages_bp.get("")
@require_caller
@require_capability(Capability.CONSOLIDATE_STOCK)
def list_linkages_route():
    try:
        items = linkage_service.list_linkages(g.caller, depot_id=request.args.get("depot_id", type=int))
        return jsonify({"items": items, "count": len(items)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list linkages")
        return jsonify({"error": "internal_error"}), 500


@linkages_bp.delete("/<int:linkage_id>")
@require_caller
@require_capability(Capability.CONSOLIDATE_STOCK)
def unlink_products_route(linkage_id: int):
    try:
        link = linkage_service.unlink_products(g.caller, linkage_id)
        return jsonify({"linkage": link.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to unlink products")
        return jsonify({"error": "internal_error"}), 500


@linkages_bp.get("/products/<int:product_id>")
@require_caller
@require_capability(Capability.VIEW_CATALOG)
def consolidated_product_route(product_id: int):
    """Product with its direct neighbours and one-hop consolidated quantity."""
    try:
        product = catalog_service.get_product(g.caller, product_id)
        linked = linkage_service.linked_products(g.caller, product_id)
        total = linkage_service.consolidated_quantity(g.caller, product_id)
        return jsonify({
            "product": product.to_dict(),
            "linked_products": [p.summary() for p in linked],
            "consolidated_quantity": total,
        }), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load consolidated product")
        return jsonify({"error": "internal_error"}), 500


@linkages_bp.post("/merge")
@require_caller
@require_capability(Capability.CONSOLIDATE_STOCK)
def merge_stock_route():
    """
    Move linked stock onto one product.

    Body: {"product_id": int, "absorb_all": bool?}

    Neighbour stock is MOVED, not copied: every directly linked product is
    left at 0 and the target gains the sum, so the consolidated quantity is
    unchanged. absorb_all also deactivates the emptied products and their
    links.
    """
    data = request.get_json(silent=True) or {}
    if data.get("product_id") is None:
        return jsonify({"error": "validation_error", "message": "product_id required"}), 400
    try:
        result = linkage_service.merge_stock(g.caller, data["product_id"], absorb_all=bool(data.get("absorb_all")))
        return jsonify(result), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to merge stock")
        return jsonify({"error": "internal_error"}), 500


@linkages_bp.post("/add-stock")
@require_caller
@require_capability(Capability.CONSOLIDATE_STOCK)
def add_stock_under_new_barcode_route():
    """Body: {"existing": id | barcode, "new_barcode": str, "quantity": int, "depot_id": int?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = linkage_service.add_stock_under_new_barcode(
            g.caller,
            data.get("existing"),
            data.get("new_barcode"),
            data.get("quantity"),
            depot_id=data.get("depot_id"),
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add stock under new barcode")
        return jsonify({"error": "internal_error"}), 500
