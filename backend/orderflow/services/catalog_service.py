# backend/orderflow/services/catalog_service.py
"""
Catalog Service (per-depot product rows)

OWNERSHIP: every product belongs to exactly one depot. Depots manage their
own rows; the elevated role may act for any depot by passing depot_id.

Catalog Invariants (authoritative)
- quantity_on_hand >= 0 after every operation; decrements check first and
  raise InsufficientStockError.
- Barcode is unique among a depot's products (active or not).
- Products are soft-deleted (is_active=False), never destroyed.
- Stock movements that move money append a LedgerEntry for the depot in the
  same DB transaction.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, AlternateBarcode
from ..permissions import Caller, Capability, require_capability, require_owner_or_elevated
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    InsufficientStockError,
    clean_code,
    money_cents,
    positive_quantity,
    coerce_int,
)
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_entry

PRODUCT_MUTABLE_FIELDS = {"name", "description", "category", "image_url", "unit_price_cents", "unit_cost_cents"}
STOCK_DIRECTIONS = ("in", "out")


def resolve_depot_id(caller: Caller, depot_id: int | None = None) -> int:
    """The depot a catalog call acts on: the caller itself unless elevated and explicit."""
    if depot_id is None:
        if caller.is_elevated:
            raise ValidationError("depot_id required")
        return caller.id
    depot_id = coerce_int(depot_id, "depot_id")
    require_owner_or_elevated(caller, depot_id, message="Not authorized for this depot")
    return depot_id


def load_product(product_id: int, *, lock: bool = False) -> Product:
    q = db.session.query(Product).filter(Product.id == product_id)
    if lock:
        q = lock_for_update(q)
    product = q.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def load_owned_product(caller: Caller, product_id: int, *, lock: bool = False) -> Product:
    product = load_product(product_id, lock=lock)
    require_owner_or_elevated(caller, product.depot_id, message="Product belongs to another depot")
    return product


def barcode_in_use(depot_id: int, code: str, exclude_product_id: int | None = None) -> str | None:
    """
    Describe what already owns `code` in this depot, or None when it is free.

    Checks active products and active alternate barcodes, case-insensitively.
    exclude_product_id skips that product's own primary barcode (renames).
    """
    lowered = code.lower()
    q = db.session.query(Product).filter(
        Product.depot_id == depot_id,
        Product.is_active.is_(True),
        func.lower(Product.barcode) == lowered,
    )
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    product = q.first()
    if product is not None:
        return f"product {product.id} ({product.name})"

    alt = (
        db.session.query(AlternateBarcode)
        .filter(
            AlternateBarcode.depot_id == depot_id,
            AlternateBarcode.is_active.is_(True),
            func.lower(AlternateBarcode.code) == lowered,
        )
        .first()
    )
    if alt is not None:
        return f"alternate barcode of product {alt.product_id}"
    return None


def adjust_quantity(product: Product, delta: int) -> None:
    """Apply a signed delta to a product's counter. Caller holds the row lock."""
    new_qty = product.quantity_on_hand + delta
    if new_qty < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}: have {product.quantity_on_hand}, need {-delta}",
            details={"product_id": product.id, "available": product.quantity_on_hand, "requested": -delta},
        )
    product.quantity_on_hand = new_qty


def _validated_patch(data: dict) -> dict:
    patch = {}
    for key in PRODUCT_MUTABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key == "name":
            value = (value or "").strip()
            if not value:
                raise ValidationError("name cannot be empty")
        elif key == "unit_price_cents":
            value = money_cents(value, key)
        elif key == "unit_cost_cents":
            value = money_cents(value, key, allow_none=True)
        patch[key] = value
    return patch


def create_product(caller: Caller, data: dict, depot_id: int | None = None) -> Product:
    require_capability(caller, Capability.MANAGE_CATALOG)
    depot_id = resolve_depot_id(caller, depot_id if depot_id is not None else data.get("depot_id"))

    barcode = clean_code(data.get("barcode"), "barcode")
    if not (data.get("name") or "").strip():
        raise ValidationError("name required")
    patch = _validated_patch(data)
    quantity = coerce_int(data.get("quantity_on_hand", 0), "quantity_on_hand")
    if quantity < 0:
        raise ValidationError("quantity_on_hand cannot be negative")

    def _op():
        existing = db.session.query(Product).filter_by(depot_id=depot_id, barcode=barcode).first()
        if existing is not None:
            raise ConflictError(f"Barcode '{barcode}' already exists in this depot", details={"product_id": existing.id})
        holder = barcode_in_use(depot_id, barcode)
        if holder is not None:
            raise ConflictError(f"Barcode '{barcode}' is already used by {holder}", details={"barcode": barcode})

        product = Product(depot_id=depot_id, barcode=barcode, quantity_on_hand=quantity, **patch)
        db.session.add(product)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def update_product(caller: Caller, product_id: int, data: dict) -> Product:
    require_capability(caller, Capability.MANAGE_CATALOG)
    patch = _validated_patch(data)

    def _op():
        product = load_owned_product(caller, product_id, lock=True)

        if "barcode" in data:
            barcode = clean_code(data.get("barcode"), "barcode")
            if barcode != product.barcode:
                clash = db.session.query(Product).filter(
                    Product.depot_id == product.depot_id,
                    Product.barcode == barcode,
                    Product.id != product.id,
                ).first()
                if clash is not None:
                    raise ConflictError(f"Barcode '{barcode}' already exists in this depot")
                holder = barcode_in_use(product.depot_id, barcode, exclude_product_id=product.id)
                if holder is not None:
                    raise ConflictError(f"Barcode '{barcode}' is already used by {holder}", details={"barcode": barcode})
                product.barcode = barcode

        for k, v in patch.items():
            setattr(product, k, v)
        return product

    return run_in_transaction(_op)


def get_product(caller: Caller, product_id: int) -> Product:
    require_capability(caller, Capability.VIEW_CATALOG)
    return load_product(product_id)


def list_products(
    caller: Caller,
    depot_id: int,
    *,
    include_inactive: bool = False,
    search: str | None = None,
) -> list[Product]:
    """Browse one depot's catalog. Inactive rows are visible to the owning depot only."""
    require_capability(caller, Capability.VIEW_CATALOG)

    q = db.session.query(Product).filter(Product.depot_id == depot_id)
    if include_inactive:
        require_owner_or_elevated(caller, depot_id, message="Not authorized for this depot")
    else:
        q = q.filter(Product.is_active.is_(True))

    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(db.or_(func.lower(Product.name).like(pattern), func.lower(Product.barcode).like(pattern)))

    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def _set_active(caller: Caller, product_id: int, active: bool) -> Product:
    require_capability(caller, Capability.MANAGE_CATALOG)

    def _op():
        product = load_owned_product(caller, product_id, lock=True)
        if product.is_active == active:
            raise ConflictError("Product is already " + ("active" if active else "inactive"))
        product.is_active = active
        return product

    return run_in_transaction(_op)


def deactivate_product(caller: Caller, product_id: int) -> Product:
    """Soft delete: hides the product from lookups and new orders."""
    return _set_active(caller, product_id, False)


def reactivate_product(caller: Caller, product_id: int) -> Product:
    return _set_active(caller, product_id, True)


def record_stock_movement(
    caller: Caller,
    product_id: int,
    direction: str,
    quantity,
    reason: str | None = None,
) -> Product:
    """
    Restock ("in") or sell/remove ("out") units of a depot product.

    Inbound appends a purchases debit when a cost (or price) is known;
    outbound appends a sales credit when a price is known.
    """
    require_capability(caller, Capability.MANAGE_CATALOG)
    if direction not in STOCK_DIRECTIONS:
        raise ValidationError("direction must be 'in' or 'out'")
    quantity = positive_quantity(quantity)

    def _op():
        product = load_owned_product(caller, product_id, lock=True)
        if not product.is_active:
            raise ConflictError("Product is inactive")

        if direction == "in":
            adjust_quantity(product, quantity)
            unit = product.unit_cost_cents or product.unit_price_cents
            if unit:
                append_ledger_entry(
                    owner_id=product.depot_id,
                    kind="debit",
                    description=f"Restock {quantity} x {product.name}",
                    amount_cents=unit * quantity,
                    category="purchases",
                    notes=reason,
                )
        else:
            adjust_quantity(product, -quantity)
            if product.unit_price_cents:
                append_ledger_entry(
                    owner_id=product.depot_id,
                    kind="credit",
                    description=f"Sale {quantity} x {product.name}",
                    amount_cents=product.unit_price_cents * quantity,
                    category="sales",
                    notes=reason,
                )
        return product

    return run_in_transaction(_op)
