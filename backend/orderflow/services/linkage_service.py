# Overview: Service-layer operations for product linkage and stock consolidation.

"""
Product Linkage Invariants (authoritative)

- A linkage is an undirected edge between two products of the same depot.
- No self-links; at most one ACTIVE edge per unordered pair.
- Consolidation is ONE HOP: a product's consolidated quantity is its own
  quantity plus that of its direct active neighbours. Edges are never
  followed transitively (A-B, B-C does not put C in A's total).
- merge_stock moves neighbour quantities onto the target, so the
  consolidated quantity of the target is unchanged by a merge.
"""

from __future__ import annotations

from ..extensions import db
from ..models import AlternateBarcode, Product, ProductLinkage
from ..permissions import Caller, Capability, require_capability, require_owner_or_elevated
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, clean_code, positive_quantity
from .catalog_service import adjust_quantity, load_owned_product, load_product, resolve_depot_id
from .concurrency import lock_for_update, run_in_transaction


def _resolve_side(depot_id: int, ref, label: str) -> Product:
    """A side is a product id (int) or an exact barcode (str)."""
    if ref is None or ref == "":
        raise ValidationError(f"{label} required")

    q = db.session.query(Product).filter(Product.depot_id == depot_id, Product.is_active.is_(True))
    if isinstance(ref, int) and not isinstance(ref, bool):
        product = q.filter(Product.id == ref).first()
    else:
        product = q.filter(Product.barcode == clean_code(ref, label)).first()

    if product is None:
        raise NotFoundError(f"{label} not found in depot", details={label: ref})
    return product


def find_active_link(product_a_id: int, product_b_id: int) -> ProductLinkage | None:
    """Active edge between two products, checked in both directions."""
    return (
        db.session.query(ProductLinkage)
        .filter(
            ProductLinkage.is_active.is_(True),
            db.or_(
                db.and_(ProductLinkage.product_a_id == product_a_id, ProductLinkage.product_b_id == product_b_id),
                db.and_(ProductLinkage.product_a_id == product_b_id, ProductLinkage.product_b_id == product_a_id),
            ),
        )
        .first()
    )


def _active_links(product_id: int) -> list[ProductLinkage]:
    return (
        db.session.query(ProductLinkage)
        .filter(
            ProductLinkage.is_active.is_(True),
            db.or_(ProductLinkage.product_a_id == product_id, ProductLinkage.product_b_id == product_id),
        )
        .order_by(ProductLinkage.id.asc())
        .all()
    )


def _neighbours(product: Product, *, lock: bool = False) -> list[tuple[ProductLinkage, Product]]:
    pairs = []
    for link in _active_links(product.id):
        q = db.session.query(Product).filter(
            Product.id == link.other_side(product.id),
            Product.depot_id == product.depot_id,
            Product.is_active.is_(True),
        )
        if lock:
            q = lock_for_update(q)
        other = q.first()
        if other is not None:
            pairs.append((link, other))
    return pairs


def link_products(caller: Caller, side_a, side_b, depot_id: int | None = None) -> ProductLinkage:
    """Declare two catalog rows the same physical good."""
    require_capability(caller, Capability.CONSOLIDATE_STOCK)
    depot_id = resolve_depot_id(caller, depot_id)

    def _op():
        product_a = _resolve_side(depot_id, side_a, "product_a")
        product_b = _resolve_side(depot_id, side_b, "product_b")

        if product_a.id == product_b.id:
            raise ConflictError("Cannot link a product to itself")

        existing = find_active_link(product_a.id, product_b.id)
        if existing is not None:
            raise ConflictError("Products are already linked", details={"linkage_id": existing.id})

        link = ProductLinkage(product_a_id=product_a.id, product_b_id=product_b.id, depot_id=depot_id)
        db.session.add(link)
        db.session.flush()
        return link

    return run_in_transaction(_op)


def consolidated_quantity(caller: Caller, product_id: int) -> int:
    """Own quantity plus direct active neighbours' quantities (one hop)."""
    require_capability(caller, Capability.VIEW_CATALOG)
    product = load_product(product_id)
    return product.quantity_on_hand + sum(other.quantity_on_hand for _, other in _neighbours(product))


def linked_products(caller: Caller, product_id: int) -> list[Product]:
    require_capability(caller, Capability.VIEW_CATALOG)
    product = load_product(product_id)
    return [other for _, other in _neighbours(product)]


def merge_stock(caller: Caller, product_id: int, absorb_all: bool = False) -> dict:
    """
    Move every direct neighbour's quantity onto product_id. Neighbours are
    left at 0 (moved, not copied), so the consolidated total is preserved.

    With absorb_all the absorbed products and their edges are deactivated
    (one-way, destructive). Returns a summary of what moved.
    """
    require_capability(caller, Capability.CONSOLIDATE_STOCK)

    def _op():
        product = load_owned_product(caller, product_id, lock=True)
        if not product.is_active:
            raise ConflictError("Product is inactive")

        previous = product.quantity_on_hand
        moved = []
        for link, other in _neighbours(product, lock=True):
            qty = other.quantity_on_hand
            if qty > 0:
                adjust_quantity(product, qty)
                adjust_quantity(other, -qty)
                moved.append({**other.summary(), "moved_quantity": qty})
            if absorb_all:
                other.is_active = False
                link.is_active = False
                link.deactivated_at = utcnow()

        return {
            "product": product.summary(),
            "previous_quantity": previous,
            "new_quantity": product.quantity_on_hand,
            "total_moved": sum(m["moved_quantity"] for m in moved),
            "absorbed": moved,
        }

    return run_in_transaction(_op)


def list_linkages(caller: Caller, depot_id: int | None = None) -> list[dict]:
    """Active edges of a depot, each with its pairwise consolidated quantity."""
    require_capability(caller, Capability.CONSOLIDATE_STOCK)
    depot_id = resolve_depot_id(caller, depot_id)

    links = (
        db.session.query(ProductLinkage)
        .filter(ProductLinkage.depot_id == depot_id, ProductLinkage.is_active.is_(True))
        .order_by(ProductLinkage.created_at.desc(), ProductLinkage.id.desc())
        .all()
    )
    out = []
    for link in links:
        a, b = link.product_a, link.product_b
        out.append({
            **link.to_dict(),
            "product_a": a.summary(),
            "product_b": b.summary(),
            "consolidated_quantity": a.quantity_on_hand + b.quantity_on_hand,
        })
    return out


def unlink_products(caller: Caller, linkage_id: int) -> ProductLinkage:
    require_capability(caller, Capability.CONSOLIDATE_STOCK)

    def _op():
        link = db.session.get(ProductLinkage, linkage_id)
        if link is None or not link.is_active:
            raise NotFoundError("Linkage not found")
        require_owner_or_elevated(caller, link.depot_id, message="Linkage belongs to another depot")

        link.is_active = False
        link.deactivated_at = utcnow()
        return link

    return run_in_transaction(_op)


def _barcode_holder(depot_id: int, code: str) -> Product | None:
    """
    Locked product that answers to `code`, in scan order: active primary
    barcode, then active alternate barcode, then an inactive primary barcode.
    """
    lowered = code.lower()
    by_barcode = db.session.query(Product).filter(
        Product.depot_id == depot_id,
        db.func.lower(Product.barcode) == lowered,
    )
    product = lock_for_update(by_barcode.filter(Product.is_active.is_(True))).first()
    if product is not None:
        return product

    alt = (
        db.session.query(AlternateBarcode)
        .join(Product, Product.id == AlternateBarcode.product_id)
        .filter(
            AlternateBarcode.depot_id == depot_id,
            AlternateBarcode.is_active.is_(True),
            db.func.lower(AlternateBarcode.code) == lowered,
            Product.is_active.is_(True),
        )
        .order_by(AlternateBarcode.id.asc())
        .first()
    )
    if alt is not None:
        return lock_for_update(db.session.query(Product).filter(Product.id == alt.product_id)).one()

    return lock_for_update(by_barcode).first()


def add_stock_under_new_barcode(
    caller: Caller,
    existing_ref,
    new_barcode,
    quantity,
    depot_id: int | None = None,
) -> dict:
    """
    Receive goods that arrived under a different barcode than the catalog row.

    Finds (or clones from the existing product) the row for new_barcode,
    credits the quantity onto it and links the two rows if not already linked.
    A new_barcode registered as an alternate code credits the product that
    code belongs to. When new_barcode resolves to the existing product itself,
    only stock is added.
    """
    require_capability(caller, Capability.CONSOLIDATE_STOCK)
    depot_id = resolve_depot_id(caller, depot_id)
    new_barcode = clean_code(new_barcode, "new_barcode")
    quantity = positive_quantity(quantity)

    def _op():
        existing = _resolve_side(depot_id, existing_ref, "existing")
        existing = lock_for_update(db.session.query(Product).filter(Product.id == existing.id)).one()

        target = _barcode_holder(depot_id, new_barcode)

        if target is None:
            target = Product(
                depot_id=depot_id,
                barcode=new_barcode,
                name=existing.name,
                description=existing.description,
                category=existing.category,
                image_url=existing.image_url,
                unit_price_cents=existing.unit_price_cents,
                unit_cost_cents=existing.unit_cost_cents,
                quantity_on_hand=0,
            )
            db.session.add(target)
            db.session.flush()
        elif not target.is_active:
            target.is_active = True

        adjust_quantity(target, quantity)

        link = None
        if target.id != existing.id:
            link = find_active_link(existing.id, target.id)
            if link is None:
                link = ProductLinkage(product_a_id=existing.id, product_b_id=target.id, depot_id=depot_id)
                db.session.add(link)
        db.session.flush()

        return {
            "existing": existing.summary(),
            "target": target.summary(),
            "linkage_id": link.id if link is not None else None,
            "consolidated_quantity": existing.quantity_on_hand
            + (target.quantity_on_hand if target.id != existing.id else 0),
        }

    return run_in_transaction(_op)
