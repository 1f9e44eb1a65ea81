# Overview: Tests for shipment creation, carrier progress and live location.

import pytest

from orderflow.models import Order, Shipment
from orderflow.services import order_service, shipment_service
from orderflow.validation import AuthorizationError, ConflictError, ValidationError

from conftest import caller_for


@pytest.fixture
def ready_order(db_session, buyer, depot, widget):
    order = order_service.create_order(caller_for(buyer), {
        "depot_id": depot.id,
        "address": "9 Elm St",
        "lines": [{"product_id": widget.id, "quantity": 2}],
    })
    for state in ("preparing", "ready"):
        order = order_service.change_order_state(caller_for(depot), order.id, state)
    return order


def _ship(depot, order, carrier=None, **data):
    if carrier is not None:
        data["carrier_id"] = carrier.id
    return shipment_service.create_shipment(caller_for(depot), order.id, data)


def test_full_delivery_run(db_session, buyer, depot, carrier, ready_order, notifier):
    notifier.clear()
    shipment = _ship(depot, ready_order, carrier, vehicle="Van 7", driver="Sam")

    assert shipment.state == "pending"
    assert shipment.order.state == "shipped"
    assert shipment.estimated_at is not None
    assert shipment.order.estimated_delivery_at is not None
    assert notifier.events_for(buyer.id) == ["order.updated"]
    assert notifier.events_for(carrier.id) == ["shipment.assigned"]

    shipment = shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
    assert shipment.departed_at is not None

    shipment = shipment_service.update_location(caller_for(carrier), shipment.id, {
        "lat": 40.4168, "lng": -3.7038, "address": "Gran Via",
    })
    assert shipment.current_location["lat"] == 40.4168
    assert shipment.current_location["address"] == "Gran Via"
    assert shipment.current_location["timestamp"].endswith("Z")

    shipment = shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "delivered")
    order = db_session.get(Order, ready_order.id)
    assert shipment.delivered_at is not None
    assert order.state == "delivered"
    assert order.delivered_at is not None
    assert "shipment.delivered" in notifier.events_for(buyer.id)
    assert "shipment.delivered" in notifier.events_for(depot.id)


def test_order_must_be_ready(db_session, buyer, depot):
    order = order_service.create_order(caller_for(buyer), {
        "depot_id": depot.id,
        "lines": [{"name": "x", "quantity": 1, "unit_price_cents": 1}],
    })
    with pytest.raises(ConflictError):
        _ship(depot, order)
    assert db_session.query(Shipment).count() == 0


def test_one_shipment_per_order(db_session, depot, ready_order):
    first = _ship(depot, ready_order)
    with pytest.raises(ConflictError) as exc:
        _ship(depot, ready_order)
    assert exc.value.details["shipment_id"] == first.id


def test_default_eta_uses_config(app, db_session, depot, ready_order):
    previous = app.config.get("SHIPMENT_DEFAULT_ETA_MINUTES")
    app.config["SHIPMENT_DEFAULT_ETA_MINUTES"] = 30
    try:
        shipment = _ship(depot, ready_order)
    finally:
        app.config["SHIPMENT_DEFAULT_ETA_MINUTES"] = previous
    delta = shipment.estimated_at - shipment.created_at
    assert 29 * 60 <= delta.total_seconds() <= 31 * 60


def test_carrier_must_have_carrier_role(db_session, depot, buyer, ready_order):
    with pytest.raises(ValidationError):
        _ship(depot, ready_order, buyer)
    assert db_session.get(Order, ready_order.id).state == "ready"


def test_other_depot_cannot_ship(db_session, other_depot, ready_order):
    with pytest.raises(AuthorizationError):
        _ship(other_depot, ready_order)


def test_assign_carrier_only_while_pending(db_session, depot, carrier, ready_order, notifier):
    shipment = _ship(depot, ready_order)
    shipment = shipment_service.assign_carrier(caller_for(depot), shipment.id, {
        "carrier_id": carrier.id, "vehicle": "Bike",
    })
    assert shipment.carrier_id == carrier.id
    assert shipment.vehicle == "Bike"
    assert notifier.events_for(carrier.id) == ["shipment.assigned"]

    shipment_service.change_shipment_state(caller_for(depot), shipment.id, "in_transit")
    with pytest.raises(ConflictError):
        shipment_service.assign_carrier(caller_for(depot), shipment.id, {"carrier_id": carrier.id})


def test_failure_leaves_order_shipped(db_session, depot, carrier, ready_order, notifier):
    shipment = _ship(depot, ready_order, carrier)
    notifier.clear()

    shipment = shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "failed", {"notes": "No access"})
    assert shipment.state == "failed"
    assert shipment.notes == "No access"
    assert db_session.get(Order, ready_order.id).state == "shipped"
    assert notifier.events_for(depot.id) == ["shipment.failed"]

    with pytest.raises(ConflictError):
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")


def test_cannot_deliver_before_departure(db_session, depot, ready_order):
    shipment = _ship(depot, ready_order)
    with pytest.raises(ConflictError) as exc:
        shipment_service.change_shipment_state(caller_for(depot), shipment.id, "delivered")
    assert exc.value.details == {"from": "pending", "to": "delivered"}


def test_unassigned_carrier_is_rejected(db_session, depot, carrier, ready_order):
    shipment = _ship(depot, ready_order)
    with pytest.raises(AuthorizationError):
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
    with pytest.raises(AuthorizationError):
        shipment_service.update_location(caller_for(carrier), shipment.id, {"lat": 1, "lng": 1})


def test_location_validation(db_session, depot, carrier, ready_order):
    shipment = _ship(depot, ready_order, carrier)
    with pytest.raises(ValidationError):
        shipment_service.update_location(caller_for(carrier), shipment.id, {"lat": 91, "lng": 0})
    with pytest.raises(ValidationError):
        shipment_service.update_location(caller_for(carrier), shipment.id, {"lat": "north"})


def test_location_rejected_after_delivery(db_session, depot, carrier, ready_order):
    shipment = _ship(depot, ready_order, carrier)
    shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
    shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "delivered")
    with pytest.raises(ConflictError):
        shipment_service.update_location(caller_for(carrier), shipment.id, {"lat": 1, "lng": 1})


def test_queries_are_scoped(db_session, buyer, other_buyer, depot, carrier, ready_order):
    shipment = _ship(depot, ready_order, carrier)

    assert [s.id for s in shipment_service.list_shipments(caller_for(buyer))] == [shipment.id]
    assert [s.id for s in shipment_service.list_shipments(caller_for(carrier))] == [shipment.id]
    assert shipment_service.list_shipments(caller_for(other_buyer)) == []
    assert [s.id for s in shipment_service.active_shipments_for_carrier(caller_for(carrier))] == [shipment.id]

    with pytest.raises(AuthorizationError):
        shipment_service.get_shipment(caller_for(other_buyer), shipment.id)
    with pytest.raises(AuthorizationError):
        shipment_service.active_shipments_for_carrier(caller_for(depot))


def test_delivered_order_cannot_be_shipped_again(db_session, depot, carrier, ready_order):
    shipment = _ship(depot, ready_order, carrier)
    shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
    shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "delivered")

    with pytest.raises(ConflictError):
        _ship(depot, ready_order, carrier)


@pytest.mark.parametrize("departed", [False, True])
def test_manual_order_delivery_closes_shipment(db_session, depot, carrier, ready_order, departed):
    shipment = _ship(depot, ready_order, carrier)
    if departed:
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")

    order = order_service.change_order_state(caller_for(depot), ready_order.id, "delivered")

    shipment = db_session.get(Shipment, shipment.id)
    assert order.state == "delivered"
    assert shipment.state == "delivered"
    assert shipment.delivered_at == order.delivered_at
    with pytest.raises(ConflictError):
        shipment_service.update_location(caller_for(carrier), shipment.id, {"lat": 1, "lng": 2})
