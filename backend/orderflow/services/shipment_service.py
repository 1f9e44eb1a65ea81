# Overview: Service-layer operations for shipments; tracks carrier, location and completion.

"""
Shipment Invariants (authoritative)

- Exactly one shipment per order; a second create is a ConflictError.
- A shipment can only be created for an order in 'ready'; creating it moves
  the order to 'shipped' in the same transaction.
- State machine: pending -> in_transit -> delivered, and 'failed' from any
  non-terminal state.
- Delivering a shipment marks its order delivered and stamps delivered_at on
  both rows in ONE transaction.
- current_location is overwritten wholesale, only by the assigned carrier.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, Shipment
from ..permissions import Caller, Capability, Role, require_capability, require_owner_or_elevated
from ..time_utils import utcnow, to_utc_z, parse_iso_datetime, minutes_from_now
from ..validation import ValidationError, ConflictError, NotFoundError, AuthorizationError, coerce_int
from . import notification_service
from .auth_service import require_party_role
from .concurrency import lock_for_update, run_in_transaction
from .order_service import load_order, transition_order

SHIPMENT_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("in_transit", "failed"),
    "in_transit": ("delivered", "failed"),
    "delivered": (),
    "failed": (),
}

ACTIVE_SHIPMENT_STATES = ("pending", "in_transit")

SHIPMENT_STATE_EVENTS = {
    "in_transit": "shipment.in_transit",
    "delivered": "shipment.delivered",
    "failed": "shipment.failed",
}


def load_shipment(shipment_id: int, *, lock: bool = False) -> Shipment:
    q = db.session.query(Shipment).filter(Shipment.id == shipment_id)
    if lock:
        q = lock_for_update(q)
    shipment = q.first()
    if shipment is None:
        raise NotFoundError("Shipment not found")
    return shipment


def _default_eta():
    minutes = current_app.config.get("SHIPMENT_DEFAULT_ETA_MINUTES", 120)
    return minutes_from_now(minutes)


def _parse_optional_datetime(value, field: str):
    if not value:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be ISO-8601")


def _carrier_id(value) -> int | None:
    if value is None:
        return None
    carrier_id = coerce_int(value, "carrier_id")
    require_party_role(carrier_id, Role.CARRIER)
    return carrier_id


def create_shipment(caller: Caller, order_id: int, data: dict | None = None) -> Shipment:
    require_capability(caller, Capability.MANAGE_SHIPMENTS)
    data = data or {}
    estimated_at = _parse_optional_datetime(data.get("estimated_at"), "estimated_at")

    def _op():
        order = load_order(order_id, lock=True)
        require_owner_or_elevated(caller, order.depot_id, message="Order belongs to another depot")

        existing = db.session.query(Shipment).filter_by(order_id=order.id).first()
        if existing is not None:
            raise ConflictError("A shipment already exists for this order", details={"shipment_id": existing.id})
        if order.state != "ready":
            raise ConflictError(
                f"Order must be ready to ship (is {order.state})",
                details={"order_state": order.state},
            )

        shipment = Shipment(
            order_id=order.id,
            carrier_id=_carrier_id(data.get("carrier_id")),
            vehicle=data.get("vehicle"),
            driver=data.get("driver"),
            state="pending",
            estimated_at=estimated_at or _default_eta(),
            notes=data.get("notes"),
        )
        db.session.add(shipment)
        transition_order(order, "shipped")
        order.estimated_delivery_at = shipment.estimated_at
        db.session.flush()
        return shipment

    shipment = run_in_transaction(_op)
    order = shipment.order
    notification_service.publish(order.buyer_id, "order.updated", {
        "order_id": order.id,
        "sequence_number": order.sequence_number,
        "state": order.state,
    })
    if shipment.carrier_id is not None:
        notification_service.publish(shipment.carrier_id, "shipment.assigned", {
            "shipment_id": shipment.id,
            "order_id": order.id,
            "address": order.address,
        })
    return shipment


def assign_carrier(caller: Caller, shipment_id: int, data: dict) -> Shipment:
    """(Re)assign carrier, vehicle and driver while the shipment is still pending."""
    require_capability(caller, Capability.MANAGE_SHIPMENTS)
    if data.get("carrier_id") is None:
        raise ValidationError("carrier_id required")

    def _op():
        shipment = load_shipment(shipment_id, lock=True)
        require_owner_or_elevated(caller, shipment.order.depot_id, message="Shipment belongs to another depot")
        if shipment.state != "pending":
            raise ConflictError("Carrier can only be assigned while pending", details={"state": shipment.state})

        shipment.carrier_id = _carrier_id(data.get("carrier_id"))
        if "vehicle" in data:
            shipment.vehicle = data.get("vehicle")
        if "driver" in data:
            shipment.driver = data.get("driver")
        return shipment

    shipment = run_in_transaction(_op)
    notification_service.publish(shipment.carrier_id, "shipment.assigned", {
        "shipment_id": shipment.id,
        "order_id": shipment.order_id,
        "address": shipment.order.address,
    })
    return shipment


def change_shipment_state(caller: Caller, shipment_id: int, new_state: str, data: dict | None = None) -> Shipment:
    """
    Advance a shipment. Allowed for the depot of the order, the assigned
    carrier, or the elevated role.
    """
    require_capability(caller, Capability.UPDATE_SHIPMENT)
    data = data or {}
    if new_state not in SHIPMENT_TRANSITIONS:
        raise ValidationError(f"state must be one of: {', '.join(SHIPMENT_TRANSITIONS)}")

    def _op():
        shipment = load_shipment(shipment_id, lock=True)
        order = load_order(shipment.order_id, lock=True)
        require_owner_or_elevated(
            caller, order.depot_id, shipment.carrier_id, message="Not the depot or carrier of this shipment"
        )

        if new_state not in SHIPMENT_TRANSITIONS[shipment.state]:
            raise ConflictError(
                f"Cannot change shipment from {shipment.state} to {new_state}",
                details={"from": shipment.state, "to": new_state},
            )

        now = utcnow()
        shipment.state = new_state
        if new_state == "in_transit":
            shipment.departed_at = now
        elif new_state == "delivered":
            shipment.delivered_at = now
            # Receipt confirmation may already have delivered the order
            if order.state != "delivered":
                transition_order(order, "delivered")
                order.delivered_at = now
        if "notes" in data:
            shipment.notes = data.get("notes")
        return shipment

    shipment = run_in_transaction(_op)

    event = SHIPMENT_STATE_EVENTS[shipment.state]
    order = shipment.order
    payload = {"shipment_id": shipment.id, "order_id": order.id, "state": shipment.state}
    if shipment.state == "failed":
        notification_service.publish(order.depot_id, event, payload)
    else:
        notification_service.publish(order.buyer_id, event, payload)
        if shipment.state == "delivered":
            notification_service.publish(order.depot_id, event, payload)
    return shipment


def update_location(caller: Caller, shipment_id: int, data: dict) -> Shipment:
    """Overwrite the live location. Assigned carrier (or elevated role) only."""
    require_capability(caller, Capability.REPORT_LOCATION)

    try:
        lat = float(data["lat"])
        lng = float(data["lng"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("lat and lng required as numbers")
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise ValidationError("lat/lng out of range")

    def _op():
        shipment = load_shipment(shipment_id, lock=True)
        if not caller.is_elevated and shipment.carrier_id != caller.id:
            raise AuthorizationError("Only the assigned carrier can report location")
        if shipment.state not in ACTIVE_SHIPMENT_STATES:
            raise ConflictError("Shipment is no longer active", details={"state": shipment.state})

        shipment.current_location = {
            "lat": lat,
            "lng": lng,
            "address": data.get("address"),
            "timestamp": to_utc_z(utcnow()),
        }
        return shipment

    return run_in_transaction(_op)


def get_shipment(caller: Caller, shipment_id: int) -> Shipment:
    require_capability(caller, Capability.VIEW_SHIPMENTS)
    shipment = load_shipment(shipment_id)
    order = shipment.order
    require_owner_or_elevated(
        caller, order.buyer_id, order.depot_id, shipment.carrier_id, message="Not a party to this shipment"
    )
    return shipment


def list_shipments(caller: Caller, state: str | None = None, limit: int = 100) -> list[Shipment]:
    """Scoped like orders: buyer -> own orders, depot -> own depot, carrier -> assigned."""
    require_capability(caller, Capability.VIEW_SHIPMENTS)

    q = db.session.query(Shipment).join(Order, Order.id == Shipment.order_id)
    if caller.role == Role.BUYER:
        q = q.filter(Order.buyer_id == caller.id)
    elif caller.role == Role.DEPOT:
        q = q.filter(Order.depot_id == caller.id)
    elif caller.role == Role.CARRIER:
        q = q.filter(Shipment.carrier_id == caller.id)

    if state:
        q = q.filter(Shipment.state == state)

    limit = max(1, min(limit, 500))
    return q.order_by(Shipment.created_at.desc(), Shipment.id.desc()).limit(limit).all()


def active_shipments_for_carrier(caller: Caller) -> list[Shipment]:
    if caller.role != Role.CARRIER:
        raise AuthorizationError("Only available to carriers")
    require_capability(caller, Capability.VIEW_SHIPMENTS)

    return (
        db.session.query(Shipment)
        .filter(Shipment.carrier_id == caller.id, Shipment.state.in_(ACTIVE_SHIPMENT_STATES))
        .order_by(Shipment.created_at.asc(), Shipment.id.asc())
        .all()
    )
