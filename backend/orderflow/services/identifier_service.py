# Overview: Service-layer operations for barcode resolution and alternate barcodes.

"""
Identifier Service - barcode lookup

WHY: Prevents silent mis-scans and barcode conflicts. Lookup is deterministic:
exact primary barcode, then case-insensitive primary barcode, then active
alternate barcode. First hit wins.

UNIQUENESS RULES:
- Within a depot, a code may be held by at most one active product barcode or
  active alternate barcode.

SOFT DELETE: Deactivated alternate barcodes are excluded from lookups but
preserved for audit history.
"""

from sqlalchemy import func

from ..extensions import db
from ..models import AlternateBarcode, Product
from ..permissions import Caller, Capability, require_capability
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, clean_code, positive_quantity
from .catalog_service import adjust_quantity, barcode_in_use, load_owned_product
from .concurrency import run_in_transaction
from .ledger_service import append_ledger_entry


def lookup_product(depot_id: int, code: str) -> tuple[Product, bool] | None:
    """Return (product, via_alternate) or None. Only active rows are considered."""
    base = db.session.query(Product).filter(
        Product.depot_id == depot_id,
        Product.is_active.is_(True),
    )

    product = base.filter(Product.barcode == code).first()
    if product is None:
        product = base.filter(func.lower(Product.barcode) == code.lower()).first()
    if product is not None:
        return product, False

    alt = (
        db.session.query(AlternateBarcode)
        .join(Product, Product.id == AlternateBarcode.product_id)
        .filter(
            AlternateBarcode.depot_id == depot_id,
            AlternateBarcode.is_active.is_(True),
            func.lower(AlternateBarcode.code) == code.lower(),
            Product.is_active.is_(True),
        )
        .order_by(AlternateBarcode.id.asc())
        .first()
    )
    if alt is not None:
        return alt.product, True
    return None


def resolve_barcode(caller: Caller, depot_id: int, code) -> tuple[Product, bool]:
    """Resolve a scanned code to its canonical product. NotFoundError on total miss."""
    require_capability(caller, Capability.VIEW_CATALOG)
    code = clean_code(code, "barcode")

    found = lookup_product(depot_id, code)
    if found is None:
        raise NotFoundError(f"No product with barcode '{code}'", details={"barcode": code})
    return found


def add_alternate_barcode(
    caller: Caller,
    product_id: int,
    code,
    credit_quantity=None,
) -> AlternateBarcode:
    """
    Map an extra code onto a canonical product.

    With credit_quantity, also adds that many units to the product and records
    a purchases debit when a cost (or price) is known. A conflicting code
    credits nothing.
    """
    require_capability(caller, Capability.MANAGE_BARCODES)
    code = clean_code(code, "barcode")
    if credit_quantity is not None:
        credit_quantity = positive_quantity(credit_quantity, "credit_quantity")

    def _op():
        product = load_owned_product(caller, product_id, lock=credit_quantity is not None)
        if not product.is_active:
            raise ConflictError("Product is inactive")

        owner = barcode_in_use(product.depot_id, code)
        if owner is not None:
            raise ConflictError(f"Barcode '{code}' is already used by {owner}", details={"barcode": code})

        alt = AlternateBarcode(product_id=product.id, depot_id=product.depot_id, code=code)
        db.session.add(alt)

        if credit_quantity:
            adjust_quantity(product, credit_quantity)
            unit = product.unit_cost_cents or product.unit_price_cents
            if unit:
                append_ledger_entry(
                    owner_id=product.depot_id,
                    kind="debit",
                    description=f"Restock {credit_quantity} x {product.name} (barcode {code})",
                    amount_cents=unit * credit_quantity,
                    category="purchases",
                )

        db.session.flush()
        return alt

    return run_in_transaction(_op)


def list_alternate_barcodes(caller: Caller, product_id: int, include_inactive: bool = False) -> list[AlternateBarcode]:
    require_capability(caller, Capability.VIEW_CATALOG)
    load_owned_product(caller, product_id)

    q = db.session.query(AlternateBarcode).filter(AlternateBarcode.product_id == product_id)
    if not include_inactive:
        q = q.filter(AlternateBarcode.is_active.is_(True))
    return q.order_by(AlternateBarcode.id.asc()).all()


def remove_alternate_barcode(caller: Caller, product_id: int, barcode_id: int) -> AlternateBarcode:
    """
    Deactivate an alternate barcode (soft delete).

    WHY: Soft delete preserves audit history while removing the code from
    lookups; the code becomes free for reuse.
    """
    require_capability(caller, Capability.MANAGE_BARCODES)

    def _op():
        load_owned_product(caller, product_id)
        alt = db.session.query(AlternateBarcode).filter_by(id=barcode_id, product_id=product_id).first()
        if alt is None:
            raise NotFoundError("Alternate barcode not found")
        if not alt.is_active:
            raise ConflictError("Alternate barcode is already deactivated")

        alt.is_active = False
        alt.deactivated_at = utcnow()
        return alt

    return run_in_transaction(_op)
