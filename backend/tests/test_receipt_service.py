# Overview: Tests for delivery receipts and the exactly-once stock credit on confirmation.

import re

import pytest

from orderflow.extensions import db
from orderflow.models import DeliveryReceipt, Order, PersonalStockEntry, Shipment
from orderflow.services import order_service, personal_stock_service, receipt_service, shipment_service
from orderflow.validation import AuthorizationError, ConflictError, NotFoundError

from conftest import caller_for


@pytest.fixture
def ready_order(db_session, buyer, depot, widget, gadget):
    order = order_service.create_order(caller_for(buyer), {
        "depot_id": depot.id,
        "address": "9 Elm St",
        "lines": [
            {"product_id": widget.id, "quantity": 2},
            {"product_id": gadget.id, "quantity": 1},
        ],
    })
    for state in ("preparing", "ready"):
        order = order_service.change_order_state(caller_for(depot), order.id, state)
    return order


def _stock(owner):
    return {
        e.name: e.quantity
        for e in db.session.query(PersonalStockEntry).filter_by(owner_id=owner.id).all()
    }


class TestCreateReceipt:
    def test_code_and_snapshot(self, db_session, depot, ready_order, widget):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)

        assert re.fullmatch(rf"DLV-{ready_order.sequence_number}-\d{{13}}-[A-Z0-9]{{6}}", receipt.code)
        assert receipt.confirmed is False
        assert receipt.total_cents == 250
        assert receipt.buyer_id == ready_order.buyer_id
        assert receipt.line_snapshot[0] == {
            "product_id": widget.id,
            "name": "Widget",
            "quantity": 2,
            "unit_price_cents": 100,
            "barcode": "W-001",
            "category": "Hardware",
            "image_url": "https://img.test/widget.png",
        }

    def test_create_is_idempotent(self, db_session, depot, ready_order):
        first = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        second = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        assert first.id == second.id
        assert db.session.query(DeliveryReceipt).count() == 1

    def test_order_must_be_ready_or_shipped(self, db_session, buyer, depot):
        order = order_service.create_order(caller_for(buyer), {
            "depot_id": depot.id,
            "lines": [{"name": "x", "quantity": 1, "unit_price_cents": 1}],
        })
        with pytest.raises(ConflictError):
            receipt_service.create_receipt(caller_for(depot), order.id)

    def test_only_owning_depot_issues(self, db_session, other_depot, buyer, ready_order):
        with pytest.raises(AuthorizationError):
            receipt_service.create_receipt(caller_for(other_depot), ready_order.id)
        with pytest.raises(AuthorizationError):
            receipt_service.create_receipt(caller_for(buyer), ready_order.id)


class TestConfirmReceipt:
    def test_confirm_credits_stock_once(self, db_session, buyer, depot, ready_order, notifier):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        notifier.clear()

        receipt = receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        assert receipt.confirmed is True
        assert receipt.confirmed_at is not None
        assert receipt.confirmed_by_id == buyer.id
        assert _stock(buyer) == {"Widget": 2, "Gadget": 1}
        assert notifier.events_for(buyer.id) == ["stock.delivered"]

        order = db_session.get(Order, ready_order.id)
        assert order.state == "delivered"
        assert order.delivered_at is not None

        with pytest.raises(ConflictError):
            receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        assert _stock(buyer) == {"Widget": 2, "Gadget": 1}
        assert notifier.events_for(buyer.id) == ["stock.delivered"]

    def test_snapshot_wins_over_later_catalog_edits(self, db_session, buyer, depot, ready_order, widget):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        widget.barcode = "W-NEW"
        widget.category = "Changed"
        db_session.commit()

        receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        entry = db.session.query(PersonalStockEntry).filter_by(owner_id=buyer.id, name="Widget").one()
        assert entry.barcode == "W-001"
        assert entry.category == "Hardware"
        assert entry.unit_price_cents == 100
        assert entry.source_receipt_id == receipt.id
        assert entry.source_order_id == ready_order.id

    def test_credit_groups_into_existing_batch(self, db_session, buyer, depot, ready_order):
        personal_stock_service.credit_stock(caller_for(buyer), {"name": "Widget", "quantity": 3, "unit_price_cents": 90})
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        receipt_service.confirm_receipt(caller_for(buyer), receipt.code)

        widgets = db.session.query(PersonalStockEntry).filter_by(owner_id=buyer.id, name="Widget").all()
        assert [(w.quantity, w.unit_price_cents) for w in widgets] == [(5, 90)]

    def test_only_the_buyer_confirms(self, db_session, other_buyer, buyer, depot, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        with pytest.raises(AuthorizationError):
            receipt_service.confirm_receipt(caller_for(other_buyer), receipt.code)
        with pytest.raises(AuthorizationError):
            receipt_service.confirm_receipt(caller_for(depot), receipt.code)

        assert db_session.get(DeliveryReceipt, receipt.id).confirmed is False
        assert _stock(buyer) == {}
        assert _stock(other_buyer) == {}

    def test_admin_confirms_on_behalf_of_buyer(self, db_session, admin, buyer, depot, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        receipt = receipt_service.confirm_receipt(caller_for(admin), receipt.code)
        assert receipt.confirmed_by_id == admin.id
        assert _stock(buyer) == {"Widget": 2, "Gadget": 1}
        assert _stock(admin) == {}

    def test_unknown_code(self, db_session, buyer):
        with pytest.raises(NotFoundError):
            receipt_service.confirm_receipt(caller_for(buyer), "DLV-0-0-NOPE00")

    def test_cancelled_order_cannot_be_confirmed(self, db_session, buyer, depot, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        order_service.change_order_state(caller_for(depot), ready_order.id, "cancelled")

        with pytest.raises(ConflictError):
            receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        assert db_session.get(DeliveryReceipt, receipt.id).confirmed is False
        assert _stock(buyer) == {}

    def test_confirm_completes_active_shipment(self, db_session, buyer, depot, carrier, ready_order):
        shipment = shipment_service.create_shipment(caller_for(depot), ready_order.id, {"carrier_id": carrier.id})
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)

        receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        shipment = db_session.get(Shipment, shipment.id)
        assert shipment.state == "delivered"
        assert shipment.delivered_at is not None

    def test_confirm_after_shipment_delivery_still_credits(self, db_session, buyer, depot, carrier, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        shipment = shipment_service.create_shipment(caller_for(depot), ready_order.id, {"carrier_id": carrier.id})
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "in_transit")
        shipment_service.change_shipment_state(caller_for(carrier), shipment.id, "delivered")
        assert _stock(buyer) == {}

        receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        assert _stock(buyer) == {"Widget": 2, "Gadget": 1}

    def test_failing_notifier_does_not_undo_confirmation(self, app, db_session, buyer, depot, ready_order):
        class BrokenNotifier:
            def send(self, message):
                raise RuntimeError("transport down")

        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        previous = app.extensions["notifier"]
        app.extensions["notifier"] = BrokenNotifier()
        try:
            receipt = receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        finally:
            app.extensions["notifier"] = previous

        assert receipt.confirmed is True
        assert _stock(buyer) == {"Widget": 2, "Gadget": 1}


class TestReceiptQueries:
    def test_pending_and_history(self, db_session, buyer, other_buyer, depot, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)

        assert [r.id for r in receipt_service.pending_receipts(caller_for(buyer))] == [receipt.id]
        assert [r.id for r in receipt_service.pending_receipts(caller_for(depot))] == [receipt.id]
        assert receipt_service.pending_receipts(caller_for(other_buyer)) == []
        assert receipt_service.receipt_history(caller_for(buyer)) == []

        receipt_service.confirm_receipt(caller_for(buyer), receipt.code)
        assert receipt_service.pending_receipts(caller_for(buyer)) == []
        assert [r.id for r in receipt_service.receipt_history(caller_for(buyer))] == [receipt.id]

    def test_get_receipt_requires_party(self, db_session, buyer, other_buyer, depot, ready_order):
        receipt = receipt_service.create_receipt(caller_for(depot), ready_order.id)
        assert receipt_service.get_receipt(caller_for(buyer), receipt.code).id == receipt.id
        with pytest.raises(AuthorizationError):
            receipt_service.get_receipt(caller_for(other_buyer), receipt.code)
