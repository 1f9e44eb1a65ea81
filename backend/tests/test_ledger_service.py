# Overview: Tests for the per-party ledger: manual entries, order bookings and totals.

import pytest

from orderflow.services import ledger_service, order_service
from orderflow.validation import AuthorizationError, ConflictError, NotFoundError, ValidationError

from conftest import caller_for


@pytest.fixture
def order(db_session, buyer, depot):
    return order_service.create_order(caller_for(buyer), {
        "depot_id": depot.id,
        "lines": [{"name": "Pallet", "quantity": 2, "unit_price_cents": 1250}],
    })


def test_manual_entries_and_totals(db_session, carrier):
    caller = caller_for(carrier)
    ledger_service.create_manual_entry(caller, {
        "kind": "credit", "description": "Delivery fee", "amount_cents": 1500, "category": "logistics",
    })
    ledger_service.create_manual_entry(caller, {
        "kind": "debit", "description": "Fuel", "amount_cents": 400, "category": "logistics",
    })
    ledger_service.create_manual_entry(caller, {"kind": "debit", "description": "Phone", "amount_cents": 100})

    totals = ledger_service.ledger_totals(caller)
    assert totals["credits_cents"] == 1500
    assert totals["debits_cents"] == 500
    assert totals["balance_cents"] == 1000
    assert totals["entry_count"] == 3
    assert totals["categories"] == {
        "logistics": {"credits_cents": 1500, "debits_cents": 400},
        "other": {"credits_cents": 0, "debits_cents": 100},
    }

    debits = ledger_service.list_entries(caller, kind="debit")
    assert [e.description for e in debits] == ["Phone", "Fuel"]
    assert [e.description for e in ledger_service.list_entries(caller, category="logistics")] == ["Fuel", "Delivery fee"]


@pytest.mark.parametrize("data", [
    {"kind": "credit", "description": "x", "amount_cents": 0},
    {"kind": "credit", "description": "x", "amount_cents": -5},
    {"kind": "refund", "description": "x", "amount_cents": 5},
    {"kind": "credit", "description": "x", "amount_cents": 5, "category": "gifts"},
    {"kind": "credit", "description": "  ", "amount_cents": 5},
])
def test_manual_entry_validation(db_session, buyer, data):
    with pytest.raises(ValidationError):
        ledger_service.create_manual_entry(caller_for(buyer), data)
    assert ledger_service.list_entries(caller_for(buyer)) == []


def test_manual_entry_unknown_order(db_session, buyer):
    with pytest.raises(NotFoundError):
        ledger_service.create_manual_entry(caller_for(buyer), {
            "kind": "debit", "description": "x", "amount_cents": 5, "related_order_id": 999999,
        })


def test_order_booking_by_each_side(db_session, buyer, depot, order):
    purchase = ledger_service.record_order_ledger_entry(caller_for(buyer), order.id)
    sale = ledger_service.record_order_ledger_entry(caller_for(depot), order.id)

    assert (purchase.owner_id, purchase.kind, purchase.category, purchase.amount_cents) == (buyer.id, "debit", "purchases", 2500)
    assert (sale.owner_id, sale.kind, sale.category, sale.amount_cents) == (depot.id, "credit", "sales", 2500)
    assert purchase.related_order_id == order.id

    with pytest.raises(ConflictError):
        ledger_service.record_order_ledger_entry(caller_for(buyer), order.id)


def test_order_booking_by_stranger(db_session, other_buyer, order):
    with pytest.raises(ValidationError):
        ledger_service.record_order_ledger_entry(caller_for(other_buyer), order.id)


def test_ledgers_are_private(db_session, buyer, other_buyer, admin):
    ledger_service.create_manual_entry(caller_for(buyer), {"kind": "credit", "description": "Tip", "amount_cents": 50})

    with pytest.raises(AuthorizationError):
        ledger_service.list_entries(caller_for(other_buyer), buyer.id)
    with pytest.raises(AuthorizationError):
        ledger_service.ledger_totals(caller_for(other_buyer), buyer.id)

    assert ledger_service.ledger_totals(caller_for(admin), buyer.id)["balance_cents"] == 50
    assert ledger_service.ledger_totals(caller_for(other_buyer))["entry_count"] == 0
