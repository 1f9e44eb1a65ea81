# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Lifecycle Invariants (authoritative)

State machine (initial 'pending'; terminal 'delivered', 'cancelled'):
    pending   -> preparing, cancelled
    preparing -> ready, cancelled
    ready     -> shipped, delivered, cancelled   (delivered only for pickup)
    shipped   -> delivered

Business invariants:
- total_cents == SUM(line.quantity * line.unit_price_cents) after creation and
  after every line replacement.
- Lines carrying a product_id hold stock: creating them decrements the
  product's quantity_on_hand, replacing or cancelling them gives it back.
- Line edits are buyer-only while 'pending' and replace the whole line set.
- Every entry into 'delivered' stamps delivered_at.
- Entering 'delivered' also closes the order's pending or in-transit
  shipment, so order and shipment never disagree.

Notifications are published only after the transaction commits.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Order, OrderLine, Product, Shipment
from ..models.orders import ORDER_STATES, DELIVERY_MODES, PRIORITIES
from ..permissions import Caller, Capability, Role, require_capability, require_owner_or_elevated
from ..time_utils import utcnow, parse_iso_datetime
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    money_cents,
    positive_quantity,
    coerce_int,
)
from . import notification_service
from .auth_service import require_party_role
from .catalog_service import adjust_quantity
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_sequence_number

PICKUP_ADDRESS = "Pickup at depot"

ORDER_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("preparing", "cancelled"),
    "preparing": ("ready", "cancelled"),
    "ready": ("shipped", "delivered", "cancelled"),
    "shipped": ("delivered",),
    "delivered": (),
    "cancelled": (),
}

BUYER_CANCELLABLE_STATES = ("pending", "preparing")


def can_transition(order: Order, new_state: str) -> bool:
    if new_state not in ORDER_TRANSITIONS.get(order.state, ()):
        return False
    if order.state == "ready" and new_state == "delivered":
        return order.delivery_mode == "pickup"
    return True


def transition_order(order: Order, new_state: str) -> None:
    """
    Move a locked order along the state machine inside the caller's transaction.

    Raises ConflictError naming the illegal pair. Stock release on
    cancellation is the caller's job (see _release_line_stock).
    """
    if new_state not in ORDER_STATES:
        raise ValidationError(f"state must be one of: {', '.join(ORDER_STATES)}")
    if not can_transition(order, new_state):
        raise ConflictError(
            f"Cannot change order from {order.state} to {new_state}",
            details={"from": order.state, "to": new_state},
        )
    order.state = new_state
    if new_state == "delivered":
        order.delivered_at = utcnow()


def close_active_shipment(order: Order) -> Shipment | None:
    """Mark the order's pending or in-transit shipment delivered alongside it."""
    shipment = lock_for_update(db.session.query(Shipment).filter_by(order_id=order.id)).first()
    if shipment is None or shipment.state not in ("pending", "in_transit"):
        return None
    shipment.state = "delivered"
    shipment.delivered_at = order.delivered_at or utcnow()
    return shipment


def load_order(order_id: int, *, lock: bool = False) -> Order:
    q = db.session.query(Order).filter(Order.id == order_id)
    if lock:
        q = lock_for_update(q)
    order = q.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _lock_products(product_ids) -> dict[int, Product]:
    """Lock product rows in id order so concurrent orders never deadlock."""
    ids = sorted({pid for pid in product_ids if pid is not None})
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
    ).all()
    return {p.id: p for p in rows}


def _parse_lines(raw_lines) -> list[dict]:
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("Order must have at least one line")

    parsed = []
    for i, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{i}] must be an object")
        product_id = raw.get("product_id")
        line = {
            "product_id": coerce_int(product_id, f"lines[{i}].product_id") if product_id is not None else None,
            "name": (raw.get("name") or "").strip() or None,
            "quantity": positive_quantity(raw.get("quantity"), f"lines[{i}].quantity"),
            "unit_price_cents": money_cents(raw.get("unit_price_cents"), f"lines[{i}].unit_price_cents", allow_none=True),
        }
        if line["product_id"] is None and (line["name"] is None or line["unit_price_cents"] is None):
            raise ValidationError(f"lines[{i}] needs a product_id or both name and unit_price_cents")
        parsed.append(line)
    return parsed


def _build_lines(order: Order, parsed: list[dict], products: dict[int, Product]) -> None:
    """Attach new lines to the order, taking stock for product-backed lines."""
    total = 0
    for line in parsed:
        product = None
        if line["product_id"] is not None:
            product = products.get(line["product_id"])
            if product is None or not product.is_active:
                raise NotFoundError(f"Product {line['product_id']} not found")
            if product.depot_id != order.depot_id:
                raise ValidationError(f"Product {product.id} does not belong to depot {order.depot_id}")
            adjust_quantity(product, -line["quantity"])

        name = line["name"] or product.name
        unit_price = line["unit_price_cents"] if line["unit_price_cents"] is not None else product.unit_price_cents
        subtotal = line["quantity"] * unit_price
        total += subtotal

        order.lines.append(OrderLine(
            product_id=product.id if product is not None else None,
            name=name,
            quantity=line["quantity"],
            unit_price_cents=unit_price,
            subtotal_cents=subtotal,
        ))
    order.total_cents = total


def _release_line_stock(order: Order, products: dict[int, Product]) -> None:
    for line in order.lines:
        product = products.get(line.product_id) if line.product_id is not None else None
        if product is not None:
            adjust_quantity(product, line.quantity)


def _delivery_fields(data: dict, current_mode: str | None = None) -> dict:
    fields = {}
    mode = data.get("delivery_mode", current_mode or "ship")
    if mode not in DELIVERY_MODES:
        raise ValidationError(f"delivery_mode must be one of: {', '.join(DELIVERY_MODES)}")
    fields["delivery_mode"] = mode
    if mode == "pickup":
        fields["address"] = PICKUP_ADDRESS
    elif "address" in data:
        fields["address"] = (data.get("address") or "").strip() or None

    if "priority" in data:
        if data["priority"] not in PRIORITIES:
            raise ValidationError(f"priority must be one of: {', '.join(PRIORITIES)}")
        fields["priority"] = data["priority"]
    if "notes" in data:
        fields["notes"] = data.get("notes")
    if data.get("estimated_delivery_at"):
        try:
            fields["estimated_delivery_at"] = parse_iso_datetime(data["estimated_delivery_at"])
        except ValueError:
            raise ValidationError("estimated_delivery_at must be ISO-8601")
    return fields


def create_order(caller: Caller, data: dict) -> Order:
    """
    Place an order against one depot.

    Lines, totals and stock decrements are written in one transaction; any
    failing line (unknown product, insufficient stock) aborts the whole order.
    """
    require_capability(caller, Capability.PLACE_ORDER)

    if data.get("depot_id") is None:
        raise ValidationError("depot_id required")
    depot_id = coerce_int(data["depot_id"], "depot_id")
    buyer_id = caller.id
    if caller.is_elevated and data.get("buyer_id") is not None:
        buyer_id = coerce_int(data["buyer_id"], "buyer_id")

    parsed = _parse_lines(data.get("lines"))
    fields = _delivery_fields(data)

    def _op():
        require_party_role(depot_id, Role.DEPOT)
        products = _lock_products(line["product_id"] for line in parsed)

        order = Order(
            sequence_number=next_sequence_number("order"),
            buyer_id=buyer_id,
            depot_id=depot_id,
            state="pending",
            **fields,
        )
        _build_lines(order, parsed, products)
        db.session.add(order)
        db.session.flush()
        return order

    order = run_in_transaction(_op)
    notification_service.publish(order.depot_id, "order.created", {
        "order_id": order.id,
        "sequence_number": order.sequence_number,
        "total_cents": order.total_cents,
    })
    return order


def update_order(caller: Caller, order_id: int, data: dict) -> Order:
    """
    Buyer edit while pending. A "lines" key replaces the full line set
    (old lines deleted, stock given back, new lines written, total recomputed).
    """
    require_capability(caller, Capability.PLACE_ORDER)
    parsed = _parse_lines(data["lines"]) if "lines" in data else None

    def _op():
        order = load_order(order_id, lock=True)
        require_owner_or_elevated(caller, order.buyer_id, message="Only the buyer can edit this order")
        if order.state != "pending":
            raise ConflictError("Only pending orders can be edited", details={"state": order.state})

        for k, v in _delivery_fields(data, order.delivery_mode).items():
            setattr(order, k, v)

        if parsed is not None:
            products = _lock_products(
                [line.product_id for line in order.lines] + [line["product_id"] for line in parsed]
            )
            _release_line_stock(order, products)
            order.lines.clear()
            db.session.flush()
            _build_lines(order, parsed, products)

        db.session.flush()
        return order

    return run_in_transaction(_op)


def change_order_state(caller: Caller, order_id: int, new_state: str, data: dict | None = None) -> Order:
    """Depot-side lifecycle move (prepare, ready, ship, pickup delivery, cancel)."""
    require_capability(caller, Capability.MANAGE_ORDERS)
    data = data or {}

    def _op():
        order = load_order(order_id, lock=True)
        require_owner_or_elevated(caller, order.depot_id, message="Order belongs to another depot")

        transition_order(order, new_state)
        if new_state == "cancelled":
            _release_line_stock(order, _lock_products(line.product_id for line in order.lines))
        elif new_state == "delivered":
            close_active_shipment(order)
        if data.get("estimated_delivery_at"):
            order.estimated_delivery_at = _delivery_fields(
                {"estimated_delivery_at": data["estimated_delivery_at"]}, order.delivery_mode
            )["estimated_delivery_at"]
        return order

    order = run_in_transaction(_op)
    notification_service.publish(order.buyer_id, "order.updated", {
        "order_id": order.id,
        "sequence_number": order.sequence_number,
        "state": order.state,
    })
    return order


def cancel_order(caller: Caller, order_id: int) -> Order:
    """Buyer cancellation, allowed only while pending or preparing."""
    require_capability(caller, Capability.CANCEL_ORDER)

    def _op():
        order = load_order(order_id, lock=True)
        require_owner_or_elevated(caller, order.buyer_id, message="Only the buyer can cancel this order")
        if order.state not in BUYER_CANCELLABLE_STATES:
            raise ConflictError(
                f"Cannot cancel an order that is {order.state}",
                details={"from": order.state, "to": "cancelled"},
            )
        transition_order(order, "cancelled")
        _release_line_stock(order, _lock_products(line.product_id for line in order.lines))
        return order

    order = run_in_transaction(_op)
    notification_service.publish(order.depot_id, "order.cancelled", {
        "order_id": order.id,
        "sequence_number": order.sequence_number,
    })
    return order


def get_order(caller: Caller, order_id: int) -> Order:
    require_capability(caller, Capability.VIEW_ORDERS)
    order = load_order(order_id)
    require_owner_or_elevated(caller, order.buyer_id, order.depot_id, message="Not a party to this order")
    return order


def list_orders(
    caller: Caller,
    *,
    state: str | None = None,
    delivery_mode: str | None = None,
    priority: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[Order]:
    """Buyers see their own orders, depots the orders placed with them, admins everything."""
    require_capability(caller, Capability.VIEW_ORDERS)

    q = db.session.query(Order)
    if caller.role == Role.BUYER:
        q = q.filter(Order.buyer_id == caller.id)
    elif caller.role == Role.DEPOT:
        q = q.filter(Order.depot_id == caller.id)

    if state:
        q = q.filter(Order.state == state)
    if delivery_mode:
        q = q.filter(Order.delivery_mode == delivery_mode)
    if priority:
        q = q.filter(Order.priority == priority)
    if start is not None:
        q = q.filter(Order.created_at >= start)
    if end is not None:
        q = q.filter(Order.created_at <= end)

    limit = max(1, min(limit, 500))
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
