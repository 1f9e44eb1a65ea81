# Overview: Service-layer operations for delivery receipts; the exactly-once stock credit path.

"""
Delivery Receipt Invariants (authoritative)

Creation:
- Only for orders in 'ready' or 'shipped'.
- Idempotent per order: a second create returns the existing receipt.
- line_snapshot is captured once (name, quantity, price plus the product's
  barcode/category/image at that instant) and never rewritten, so later
  catalog edits cannot change what gets credited.

Confirmation (single DB transaction):
1. load by code (NotFoundError)
2. already confirmed -> ConflictError (exactly-once)
3. confirmer must be the receipt's buyer or hold the elevated role
4. mark confirmed, credit personal stock per snapshot line (grouped by name)
5. order -> delivered unless already delivered by the shipment path
6. commit, THEN publish stock.delivered to the buyer

Confirmation is NOT retried: after an ambiguous failure the caller re-reads
the receipt and checks `confirmed` before trying again.
"""

from __future__ import annotations

import secrets
import string
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DeliveryReceipt, Product
from ..permissions import Caller, Capability, Role, require_capability, require_owner_or_elevated
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, clean_code
from . import notification_service
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_in_transaction
from .order_service import close_active_shipment, load_order
from .personal_stock_service import credit_delivered_line

RECEIPTABLE_ORDER_STATES = ("ready", "shipped")
CONFIRMABLE_ORDER_STATES = ("ready", "shipped", "delivered")
CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(sequence_number: int) -> str:
    """PREFIX-<order #>-<epoch ms>-<6 random chars>. The unique index is the real guarantee."""
    prefix = current_app.config.get("RECEIPT_CODE_PREFIX", "DLV")
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(6))
    return f"{prefix}-{sequence_number}-{int(time.time() * 1000)}-{suffix}"


def _snapshot_lines(order) -> list[dict]:
    products = {}
    ids = [line.product_id for line in order.lines if line.product_id is not None]
    if ids:
        products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}

    snapshot = []
    for line in order.lines:
        product = products.get(line.product_id)
        snapshot.append({
            "product_id": line.product_id,
            "name": line.name,
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "barcode": product.barcode if product is not None else None,
            "category": product.category if product is not None else None,
            "image_url": product.image_url if product is not None else None,
        })
    return snapshot


def create_receipt(caller: Caller, order_id: int) -> DeliveryReceipt:
    """Issue (or return the already-issued) delivery receipt for an order."""
    require_capability(caller, Capability.ISSUE_RECEIPT)

    def _op():
        order = load_order(order_id, lock=True)
        require_owner_or_elevated(caller, order.depot_id, message="Order belongs to another depot")

        existing = db.session.query(DeliveryReceipt).filter_by(order_id=order.id).first()
        if existing is not None:
            return existing

        if order.state not in RECEIPTABLE_ORDER_STATES:
            raise ConflictError(
                f"Order must be ready or shipped to issue a receipt (is {order.state})",
                details={"order_state": order.state},
            )

        receipt = DeliveryReceipt(
            code=generate_code(order.sequence_number),
            order_id=order.id,
            buyer_id=order.buyer_id,
            depot_id=order.depot_id,
            line_snapshot=_snapshot_lines(order),
            total_cents=order.total_cents,
            confirmed=False,
        )
        db.session.add(receipt)
        db.session.flush()
        return receipt

    # Safe to retry: a lost race on order_id resolves to the winner's receipt
    return run_in_transaction(_op, attempts=3, retry_on=RETRYABLE_ERRORS + (IntegrityError,))


def confirm_receipt(caller: Caller, code) -> DeliveryReceipt:
    require_capability(caller, Capability.CONFIRM_RECEIPT)
    code = clean_code(code, "code")

    def _op():
        receipt = lock_for_update(db.session.query(DeliveryReceipt).filter_by(code=code)).first()
        if receipt is None:
            raise NotFoundError("Delivery receipt not found")
        if receipt.confirmed:
            raise ConflictError(
                "Delivery receipt already confirmed",
                details={"confirmed_at": receipt.to_dict()["confirmed_at"]},
            )
        require_owner_or_elevated(caller, receipt.buyer_id, message="Only the buyer can confirm this delivery")

        order = load_order(receipt.order_id, lock=True)
        if order.state not in CONFIRMABLE_ORDER_STATES:
            raise ConflictError(
                f"Cannot confirm delivery of an order that is {order.state}",
                details={"order_state": order.state},
            )

        now = utcnow()
        receipt.confirmed = True
        receipt.confirmed_at = now
        receipt.confirmed_by_id = caller.id

        for line in receipt.line_snapshot or []:
            credit_delivered_line(receipt.buyer_id, line, receipt_id=receipt.id, order_id=order.id)

        # Delivers from ready or shipped regardless of delivery mode
        if order.state != "delivered":
            order.state = "delivered"
            order.delivered_at = now

        close_active_shipment(order)

        db.session.flush()
        return receipt

    receipt = run_in_transaction(_op)
    notification_service.publish(receipt.buyer_id, "stock.delivered", {
        "receipt_code": receipt.code,
        "order_id": receipt.order_id,
        "lines": len(receipt.line_snapshot or []),
    })
    return receipt


def get_receipt(caller: Caller, code) -> DeliveryReceipt:
    require_capability(caller, Capability.VIEW_RECEIPTS)
    receipt = db.session.query(DeliveryReceipt).filter_by(code=clean_code(code, "code")).first()
    if receipt is None:
        raise NotFoundError("Delivery receipt not found")
    require_owner_or_elevated(caller, receipt.buyer_id, receipt.depot_id, message="Not a party to this delivery")
    return receipt


def _receipts_for(caller: Caller, confirmed: bool):
    require_capability(caller, Capability.VIEW_RECEIPTS)
    q = db.session.query(DeliveryReceipt).filter(DeliveryReceipt.confirmed.is_(confirmed))
    if caller.role == Role.DEPOT:
        q = q.filter(DeliveryReceipt.depot_id == caller.id)
    elif not caller.is_elevated:
        q = q.filter(DeliveryReceipt.buyer_id == caller.id)
    return q


def pending_receipts(caller: Caller) -> list[DeliveryReceipt]:
    """Receipts awaiting the buyer's confirmation, newest first."""
    return (
        _receipts_for(caller, False)
        .order_by(DeliveryReceipt.created_at.desc(), DeliveryReceipt.id.desc())
        .all()
    )


def receipt_history(caller: Caller, limit: int = 50) -> list[DeliveryReceipt]:
    limit = max(1, min(limit, 500))
    return (
        _receipts_for(caller, True)
        .order_by(DeliveryReceipt.confirmed_at.desc(), DeliveryReceipt.id.desc())
        .limit(limit)
        .all()
    )
