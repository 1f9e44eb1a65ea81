# Overview: Service-layer operations for personal stock; credits on delivery, FIFO depletion on resale.

"""
Personal Stock Invariants (authoritative)

- Entries are batches keyed by (owner_id, name); several batches may share a name.
- quantity >= 0 always; an entry reaching 0 is deleted.
- FIFO: depletion consumes batches ordered by (created_at, id) ascending.
- Depletion is all-or-nothing: if the batches for a name hold fewer units
  than requested, nothing is touched and InsufficientStockError is raised.
- A depletion worth more than zero appends one sales credit in the same
  transaction.

Scanning a code resolves, first hit wins: the entry's own barcode, the
entry's internal STK<id> code, one of the owner's active alternate codes
(mapped onto a name), then an active depot alternate barcode whose product
name the owner holds. Within one owner a code has at most one holder.
"""

from __future__ import annotations

import re

from sqlalchemy import func

from ..extensions import db
from ..models import AlternateBarcode, PersonalAlternateCode, PersonalStockEntry, Product
from ..permissions import Caller, Capability, require_capability, require_owner_or_elevated
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    InsufficientStockError,
    money_cents,
    positive_quantity,
    coerce_int,
    clean_code,
    require_fields,
)
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_entry

DEFAULT_CATEGORY = "General"
INTERNAL_CODE_RE = re.compile(r"^STK0*(\d+)$", re.IGNORECASE)


def normalize_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name required")
    return name.strip()


def _owner_id(caller: Caller, owner_id: int | None) -> int:
    if owner_id is None:
        return caller.id
    owner_id = coerce_int(owner_id, "owner_id")
    require_owner_or_elevated(caller, owner_id, message="Not authorized for this stock")
    return owner_id


def _batches(owner_id: int, name: str, *, lock: bool = False) -> list[PersonalStockEntry]:
    q = db.session.query(PersonalStockEntry).filter(
        PersonalStockEntry.owner_id == owner_id,
        PersonalStockEntry.name == name,
    )
    if lock:
        q = lock_for_update(q)
    return q.order_by(PersonalStockEntry.created_at.asc(), PersonalStockEntry.id.asc()).all()


def _oldest_batch(owner_id: int, name: str, *, lock: bool = False) -> PersonalStockEntry | None:
    batches = _batches(owner_id, name, lock=lock)
    return batches[0] if batches else None


def _code_holder(owner_id: int, code: str) -> str | None:
    """Describe what already answers to `code` for this owner, or None when free."""
    if INTERNAL_CODE_RE.match(code):
        return "the internal STK<id> code format"

    entry = (
        db.session.query(PersonalStockEntry)
        .filter(
            PersonalStockEntry.owner_id == owner_id,
            func.lower(PersonalStockEntry.barcode) == code.lower(),
        )
        .first()
    )
    if entry is not None:
        return f"{entry.name} (barcode)"

    alt = _active_alternate(owner_id, code)
    if alt is not None:
        return f"{alt.name} (alternate code)"
    return None


def _active_alternate(owner_id: int, code: str) -> PersonalAlternateCode | None:
    return (
        db.session.query(PersonalAlternateCode)
        .filter(
            PersonalAlternateCode.owner_id == owner_id,
            PersonalAlternateCode.is_active.is_(True),
            func.lower(PersonalAlternateCode.code) == code.lower(),
        )
        .order_by(PersonalAlternateCode.id.asc())
        .first()
    )


def _find_by_code(owner_id: int, code: str, *, lock: bool = False) -> tuple[PersonalStockEntry, bool] | None:
    """Return (entry, via_alternate) for a scanned code, or None."""
    q = db.session.query(PersonalStockEntry).filter(
        PersonalStockEntry.owner_id == owner_id,
        func.lower(PersonalStockEntry.barcode) == code.lower(),
    )
    if lock:
        q = lock_for_update(q)
    entry = q.order_by(PersonalStockEntry.created_at.asc(), PersonalStockEntry.id.asc()).first()
    if entry is not None:
        return entry, False

    match = INTERNAL_CODE_RE.match(code)
    if match:
        q = db.session.query(PersonalStockEntry).filter(
            PersonalStockEntry.owner_id == owner_id,
            PersonalStockEntry.id == int(match.group(1)),
        )
        if lock:
            q = lock_for_update(q)
        entry = q.first()
        if entry is not None:
            return entry, False

    alt = _active_alternate(owner_id, code)
    if alt is not None:
        entry = _oldest_batch(owner_id, alt.name, lock=lock)
        if entry is not None:
            return entry, True

    # Goods received from a depot answer to that depot's alternate barcodes
    depot_alt = (
        db.session.query(AlternateBarcode)
        .join(Product, Product.id == AlternateBarcode.product_id)
        .filter(
            AlternateBarcode.is_active.is_(True),
            func.lower(AlternateBarcode.code) == code.lower(),
            Product.is_active.is_(True),
        )
        .order_by(AlternateBarcode.id.asc())
        .first()
    )
    if depot_alt is not None:
        entry = _oldest_batch(owner_id, depot_alt.product.name, lock=lock)
        if entry is not None:
            return entry, True
    return None


def credit_delivered_line(owner_id: int, line: dict, *, receipt_id: int | None, order_id: int | None) -> PersonalStockEntry:
    """
    Credit one delivered line inside the caller's transaction.

    Grouping is by name: the oldest existing batch with the same name absorbs
    the quantity; otherwise a new batch is created carrying the line metadata.
    """
    name = normalize_name(line["name"])
    batches = _batches(owner_id, name, lock=True)
    if batches:
        entry = batches[0]
        entry.quantity += line["quantity"]
        return entry

    entry = PersonalStockEntry(
        owner_id=owner_id,
        name=name,
        quantity=line["quantity"],
        unit_price_cents=line.get("unit_price_cents"),
        barcode=line.get("barcode"),
        category=line.get("category") or DEFAULT_CATEGORY,
        image_url=line.get("image_url"),
        source_receipt_id=receipt_id,
        source_order_id=order_id,
    )
    db.session.add(entry)
    return entry


def credit_stock(caller: Caller, data: dict) -> PersonalStockEntry:
    """
    Manually add a batch (goods bought outside the platform).

    A barcode that already answers for the owner (another entry's barcode or
    an active alternate code) is a conflict.
    With record_purchase, a purchases debit for quantity x price is appended.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, data.get("owner_id"))

    name = normalize_name(data.get("name"))
    quantity = positive_quantity(data.get("quantity"))
    unit_price = money_cents(data.get("unit_price_cents"), "unit_price_cents", allow_none=True)
    barcode = clean_code(data["barcode"], "barcode") if data.get("barcode") else None

    def _op():
        if barcode is not None:
            holder = _code_holder(owner_id, barcode)
            if holder is not None:
                raise ConflictError(f"Barcode '{barcode}' already used by {holder}", details={"barcode": barcode})

        entry = PersonalStockEntry(
            owner_id=owner_id,
            name=name,
            quantity=quantity,
            unit_price_cents=unit_price,
            barcode=barcode,
            category=data.get("category") or DEFAULT_CATEGORY,
            image_url=data.get("image_url"),
        )
        db.session.add(entry)

        if data.get("record_purchase") and unit_price:
            append_ledger_entry(
                owner_id=owner_id,
                kind="debit",
                description=f"Purchase: {quantity} x {name}",
                amount_cents=unit_price * quantity,
                category="purchases",
                notes="Manual stock entry",
            )

        db.session.flush()
        return entry

    return run_in_transaction(_op)


def _deplete(owner_id: int, name: str, quantity: int, unit_price_override: int | None, reason: str | None) -> dict:
    batches = _batches(owner_id, name, lock=True)
    available = sum(b.quantity for b in batches)
    if available < quantity:
        raise InsufficientStockError(
            f"Insufficient stock of {name}: have {available}, need {quantity}",
            details={"name": name, "available": available, "requested": quantity},
        )

    # Price comes from the oldest batch, read before it can be consumed
    unit_price = unit_price_override if unit_price_override is not None else (batches[0].unit_price_cents or 0)

    remaining = quantity
    for batch in batches:
        if remaining == 0:
            break
        take = min(remaining, batch.quantity)
        remaining -= take
        if take == batch.quantity:
            db.session.delete(batch)
        else:
            batch.quantity -= take

    amount = unit_price * quantity
    entry = None
    if amount > 0:
        entry = append_ledger_entry(
            owner_id=owner_id,
            kind="credit",
            description=f"Sale: {quantity} x {name}",
            amount_cents=amount,
            category="sales",
            notes=reason,
        )
    db.session.flush()

    return {
        "name": name,
        "depleted": quantity,
        "remaining": available - quantity,
        "unit_price_cents": unit_price,
        "amount_cents": amount,
        "ledger_entry_id": entry.id if entry is not None else None,
    }


def deplete_stock(
    caller: Caller,
    name,
    quantity,
    unit_price_override=None,
    reason: str | None = None,
    owner_id: int | None = None,
) -> dict:
    """FIFO resale of `quantity` units of `name` (oldest batches first)."""
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)
    name = normalize_name(name)
    quantity = positive_quantity(quantity)
    override = money_cents(unit_price_override, "unit_price_override", allow_none=True)

    return run_in_transaction(lambda: _deplete(owner_id, name, quantity, override, reason))


def deplete_by_barcode(
    caller: Caller,
    code,
    quantity=1,
    unit_price_override=None,
    reason: str | None = None,
    owner_id: int | None = None,
) -> dict:
    """
    Resolve a scanned code to a stock name, then FIFO-deplete across all
    batches of that name. Alternate and internal codes resolve the same way
    as in find_by_code.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)
    code = clean_code(code, "barcode")
    quantity = positive_quantity(quantity)
    override = money_cents(unit_price_override, "unit_price_override", allow_none=True)

    def _op():
        found = _find_by_code(owner_id, code)
        if found is None:
            raise NotFoundError(f"No stock entry with barcode '{code}'", details={"code": code})
        result = _deplete(owner_id, found[0].name, quantity, override, reason)
        return {**result, "code": code, "via_alternate": found[1]}

    return run_in_transaction(_op)


def find_by_code(caller: Caller, code, owner_id: int | None = None) -> dict:
    """
    Look up a scanned code in the owner's stock.

    Returns the matched entry, the units available under its name across all
    batches, and whether the hit came through an alternate code.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)
    code = clean_code(code, "code")

    found = _find_by_code(owner_id, code)
    if found is None:
        raise NotFoundError(f"No stock entry with barcode '{code}'", details={"code": code})
    entry, via_alternate = found
    return {
        "entry": entry.to_dict(),
        "code": entry.barcode or code,
        "name": entry.name,
        "available": sum(b.quantity for b in _batches(owner_id, entry.name)),
        "via_alternate": via_alternate,
    }


def add_stock_by_code(
    caller: Caller,
    code,
    quantity,
    unit_cost_cents=None,
    owner_id: int | None = None,
) -> dict:
    """
    Add units to the entry a code resolves to.

    With a unit cost above zero, a purchases debit for quantity x cost is
    appended in the same transaction.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)
    code = clean_code(code, "code")
    quantity = positive_quantity(quantity)
    unit_cost = money_cents(unit_cost_cents, "unit_cost_cents", allow_none=True)

    def _op():
        found = _find_by_code(owner_id, code, lock=True)
        if found is None:
            raise NotFoundError(f"No stock entry with barcode '{code}'", details={"code": code})
        entry = found[0]

        previous = entry.quantity
        entry.quantity += quantity

        ledger_entry = None
        if unit_cost:
            ledger_entry = append_ledger_entry(
                owner_id=owner_id,
                kind="debit",
                description=f"Restock: {quantity} x {entry.name}",
                amount_cents=unit_cost * quantity,
                category="purchases",
                notes=f"Added by code {code}",
            )
        db.session.flush()

        return {
            "entry": entry.to_dict(),
            "name": entry.name,
            "previous_quantity": previous,
            "added": quantity,
            "quantity": entry.quantity,
            "ledger_entry_id": ledger_entry.id if ledger_entry is not None else None,
        }

    return run_in_transaction(_op)


def associate_alternate_code(caller: Caller, data: dict) -> dict:
    """
    Map an extra code onto one of the owner's stock names.

    Body fields: name, code, quantity (optional units credited to the oldest
    batch of the name). A code that already answers for the owner is a
    conflict and credits nothing.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    require_fields(data, "name", "code")
    owner_id = _owner_id(caller, data.get("owner_id"))
    name = normalize_name(data.get("name"))
    code = clean_code(data.get("code"), "code")
    quantity = positive_quantity(data["quantity"]) if data.get("quantity") is not None else None

    def _op():
        entry = _oldest_batch(owner_id, name, lock=True)
        if entry is None:
            raise NotFoundError(f"No stock of '{name}'", details={"name": name})

        holder = _code_holder(owner_id, code)
        if holder is not None:
            raise ConflictError(f"Code '{code}' already used by {holder}", details={"code": code})

        alt = PersonalAlternateCode(owner_id=owner_id, name=name, code=code)
        db.session.add(alt)
        if quantity:
            entry.quantity += quantity
        db.session.flush()

        return {
            "alternate_code": alt.to_dict(),
            "added": quantity or 0,
            "available": sum(b.quantity for b in _batches(owner_id, name)),
        }

    return run_in_transaction(_op)


def list_alternate_codes(caller: Caller, owner_id: int | None = None, include_inactive: bool = False) -> list[PersonalAlternateCode]:
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)

    q = db.session.query(PersonalAlternateCode).filter(PersonalAlternateCode.owner_id == owner_id)
    if not include_inactive:
        q = q.filter(PersonalAlternateCode.is_active.is_(True))
    return q.order_by(PersonalAlternateCode.name.asc(), PersonalAlternateCode.id.asc()).all()


def remove_alternate_code(caller: Caller, code_id: int) -> PersonalAlternateCode:
    """Deactivate an owner alternate code; the code becomes free for reuse."""
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)

    def _op():
        alt = db.session.get(PersonalAlternateCode, code_id)
        if alt is None:
            raise NotFoundError("Alternate code not found")
        require_owner_or_elevated(caller, alt.owner_id, message="Not authorized for this stock")
        if not alt.is_active:
            raise ConflictError("Alternate code is already deactivated")

        alt.is_active = False
        alt.deactivated_at = utcnow()
        return alt

    return run_in_transaction(_op)


def list_stock(
    caller: Caller,
    owner_id: int | None = None,
    *,
    search: str | None = None,
    category: str | None = None,
) -> list[PersonalStockEntry]:
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)

    q = db.session.query(PersonalStockEntry).filter(PersonalStockEntry.owner_id == owner_id)
    if search:
        q = q.filter(func.lower(PersonalStockEntry.name).like(f"%{search.strip().lower()}%"))
    if category:
        q = q.filter(PersonalStockEntry.category == category)
    return q.order_by(
        PersonalStockEntry.name.asc(),
        PersonalStockEntry.created_at.asc(),
        PersonalStockEntry.id.asc(),
    ).all()


def stock_totals(caller: Caller, owner_id: int | None = None) -> dict:
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    owner_id = _owner_id(caller, owner_id)

    entries = db.session.query(PersonalStockEntry).filter(PersonalStockEntry.owner_id == owner_id).all()
    return {
        "owner_id": owner_id,
        "total_units": sum(e.quantity for e in entries),
        "valuation_cents": sum(e.quantity * (e.unit_price_cents or 0) for e in entries),
        "distinct_names": len({e.name for e in entries}),
        "entry_count": len(entries),
    }


def _load_entry(caller: Caller, entry_id: int) -> PersonalStockEntry:
    entry = lock_for_update(
        db.session.query(PersonalStockEntry).filter(PersonalStockEntry.id == entry_id)
    ).first()
    if entry is None:
        raise NotFoundError("Stock entry not found")
    require_owner_or_elevated(caller, entry.owner_id, message="Not authorized for this stock")
    return entry


def adjust_entry(caller: Caller, entry_id: int, data: dict) -> PersonalStockEntry | None:
    """
    Correct a batch by hand. Setting quantity to 0 deletes the entry and
    returns None.
    """
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)

    quantity = None
    if "quantity" in data:
        quantity = coerce_int(data["quantity"], "quantity")
        if quantity < 0:
            raise ValidationError("quantity cannot be negative")
    unit_price = money_cents(data.get("unit_price_cents"), "unit_price_cents", allow_none=True)
    name = normalize_name(data["name"]) if "name" in data else None

    def _op():
        entry = _load_entry(caller, entry_id)
        if quantity == 0:
            db.session.delete(entry)
            return None
        if quantity is not None:
            entry.quantity = quantity
        if unit_price is not None:
            entry.unit_price_cents = unit_price
        if name is not None:
            entry.name = name
        if "category" in data:
            entry.category = data.get("category") or DEFAULT_CATEGORY
        return entry

    return run_in_transaction(_op)


def remove_entries(caller: Caller, *, entry_id: int | None = None, name: str | None = None) -> int:
    """Delete one entry by id, or every batch of a name. Returns rows removed."""
    require_capability(caller, Capability.MANAGE_PERSONAL_STOCK)
    if (entry_id is None) == (name is None):
        raise ValidationError("Provide exactly one of entry_id or name")

    def _op():
        if entry_id is not None:
            db.session.delete(_load_entry(caller, entry_id))
            return 1

        batches = _batches(caller.id, normalize_name(name), lock=True)
        if not batches:
            raise NotFoundError("Stock entry not found")
        for batch in batches:
            db.session.delete(batch)
        return len(batches)

    return run_in_transaction(_op)
