# Overview: Service-layer operations for the financial ledger; append-only money movements per owner.

"""
Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- amount_cents is strictly positive; direction is carried by kind
  (credit = money in, debit = money out).
- Entries produced by catalog/stock/order operations are written inside the
  same DB transaction as the movement they record.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import LedgerEntry, Order
from ..models.ledger import LEDGER_KINDS, LEDGER_CATEGORIES
from ..permissions import Caller, Capability, require_capability, require_owner_or_elevated
from ..validation import ValidationError, ConflictError, NotFoundError, money_cents
from .concurrency import run_in_transaction


def append_ledger_entry(
    *,
    owner_id: int,
    kind: str,
    description: str,
    amount_cents: int,
    category: str = "other",
    related_order_id: int | None = None,
    notes: str | None = None,
) -> LedgerEntry:
    """
    Append-only ledger entry. Flushes, never commits.

    Callers own the transaction; this only validates and stages the row.
    """
    if kind not in LEDGER_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(LEDGER_KINDS)}")
    if category not in LEDGER_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(LEDGER_CATEGORIES)}")
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("amount must be greater than 0")

    entry = LedgerEntry(
        owner_id=owner_id,
        kind=kind,
        description=description[:255],
        amount_cents=amount_cents,
        category=category,
        related_order_id=related_order_id,
        notes=notes,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def create_manual_entry(caller: Caller, data: dict) -> LedgerEntry:
    """Record a caller-entered movement (collections, services, logistics...)."""
    require_capability(caller, Capability.RECORD_LEDGER)

    kind = data.get("kind")
    description = (data.get("description") or "").strip()
    if not kind or not description or data.get("amount_cents") is None:
        raise ValidationError("kind, description and amount_cents required")

    amount = money_cents(data.get("amount_cents"), "amount_cents")
    if amount <= 0:
        raise ValidationError("amount_cents must be greater than 0")

    related_order_id = data.get("related_order_id")

    def _op():
        if related_order_id is not None and db.session.get(Order, related_order_id) is None:
            raise NotFoundError("Order not found")
        return append_ledger_entry(
            owner_id=caller.id,
            kind=kind,
            description=description,
            amount_cents=amount,
            category=data.get("category") or "other",
            related_order_id=related_order_id,
            notes=data.get("notes"),
        )

    return run_in_transaction(_op)


def record_order_ledger_entry(caller: Caller, order_id: int) -> LedgerEntry:
    """
    Book an order total on the caller's ledger.

    The buyer records a purchase (debit), the depot records a sale (credit).
    Each party may book a given order once.
    """
    require_capability(caller, Capability.RECORD_LEDGER)

    def _op():
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")

        if caller.id == order.buyer_id:
            kind, category = "debit", "purchases"
        elif caller.id == order.depot_id:
            kind, category = "credit", "sales"
        else:
            raise ValidationError("Only the buyer or the depot of the order can record it")

        existing = db.session.query(LedgerEntry).filter_by(
            owner_id=caller.id, related_order_id=order.id, category=category,
        ).first()
        if existing:
            raise ConflictError(f"Order #{order.sequence_number} already recorded", details={"entry_id": existing.id})

        if order.total_cents <= 0:
            raise ValidationError("Order total is zero")

        return append_ledger_entry(
            owner_id=caller.id,
            kind=kind,
            description=f"Order #{order.sequence_number}",
            amount_cents=order.total_cents,
            category=category,
            related_order_id=order.id,
        )

    return run_in_transaction(_op)


def _scoped_query(
    owner_id: int,
    *,
    kind: str | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    q = db.session.query(LedgerEntry).filter(LedgerEntry.owner_id == owner_id)
    if kind:
        q = q.filter(LedgerEntry.kind == kind)
    if category:
        q = q.filter(LedgerEntry.category == category)
    if start is not None:
        q = q.filter(LedgerEntry.created_at >= start)
    if end is not None:
        q = q.filter(LedgerEntry.created_at <= end)
    return q


def list_entries(
    caller: Caller,
    owner_id: int | None = None,
    *,
    kind: str | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[LedgerEntry]:
    require_capability(caller, Capability.VIEW_LEDGER)
    owner_id = owner_id or caller.id
    require_owner_or_elevated(caller, owner_id)

    limit = max(1, min(limit, 500))
    return (
        _scoped_query(owner_id, kind=kind, category=category, start=start, end=end)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


def ledger_totals(caller: Caller, owner_id: int | None = None, *, start=None, end=None) -> dict:
    """Credits, debits, balance and a per-category breakdown for one owner."""
    require_capability(caller, Capability.VIEW_LEDGER)
    owner_id = owner_id or caller.id
    require_owner_or_elevated(caller, owner_id)

    rows = (
        _scoped_query(owner_id, start=start, end=end)
        .with_entities(
            LedgerEntry.category,
            LedgerEntry.kind,
            func.coalesce(func.sum(LedgerEntry.amount_cents), 0),
            func.count(LedgerEntry.id),
        )
        .group_by(LedgerEntry.category, LedgerEntry.kind)
        .all()
    )

    credits = debits = count = 0
    categories: dict[str, dict[str, int]] = {}
    for category, kind, amount, n in rows:
        bucket = categories.setdefault(category, {"credits_cents": 0, "debits_cents": 0})
        if kind == "credit":
            credits += int(amount)
            bucket["credits_cents"] += int(amount)
        else:
            debits += int(amount)
            bucket["debits_cents"] += int(amount)
        count += int(n)

    return {
        "owner_id": owner_id,
        "credits_cents": credits,
        "debits_cents": debits,
        "balance_cents": credits - debits,
        "categories": categories,
        "entry_count": count,
    }
