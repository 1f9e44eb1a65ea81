# Overview: Tests for buyer-held stock batches and FIFO resale.

from datetime import datetime, timedelta, timezone

import pytest

from orderflow.extensions import db
from orderflow.models import LedgerEntry, PersonalStockEntry
from orderflow.services import identifier_service
from orderflow.services import personal_stock_service as stock
from orderflow.validation import (
    AuthorizationError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

from conftest import caller_for

T1 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _batch(owner, name, quantity, price=None, created_at=T1, **extra):
    entry = PersonalStockEntry(
        owner_id=owner.id,
        name=name,
        quantity=quantity,
        unit_price_cents=price,
        created_at=created_at,
        **extra,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def _batches(owner, name):
    rows = (
        db.session.query(PersonalStockEntry)
        .filter_by(owner_id=owner.id, name=name)
        .order_by(PersonalStockEntry.created_at, PersonalStockEntry.id)
        .all()
    )
    return [(r.quantity, r.created_at.replace(tzinfo=None)) for r in rows]


class TestDeplete:
    def test_fifo_consumes_oldest_batch_first(self, db_session, buyer):
        t2 = T1 + timedelta(days=1)
        _batch(buyer, "Rice", 3, 200, created_at=T1)
        _batch(buyer, "Rice", 5, 250, created_at=t2)

        result = stock.deplete_stock(caller_for(buyer), "Rice", 4)

        assert _batches(buyer, "Rice") == [(4, t2.replace(tzinfo=None))]
        assert result["depleted"] == 4
        assert result["remaining"] == 4
        # Price of the oldest batch applies to the whole sale
        assert result["unit_price_cents"] == 200
        assert result["amount_cents"] == 800

        entry = db.session.get(LedgerEntry, result["ledger_entry_id"])
        assert (entry.kind, entry.category, entry.amount_cents) == ("credit", "sales", 800)

    def test_insufficient_stock_touches_nothing(self, db_session, buyer):
        _batch(buyer, "Rice", 3, 200)
        _batch(buyer, "Rice", 5, 250, created_at=T1 + timedelta(hours=1))

        with pytest.raises(InsufficientStockError) as exc:
            stock.deplete_stock(caller_for(buyer), "Rice", 9)

        assert exc.value.details["available"] == 8
        assert [q for q, _ in _batches(buyer, "Rice")] == [3, 5]
        assert db.session.query(LedgerEntry).count() == 0

    def test_exact_depletion_removes_entries(self, db_session, buyer):
        _batch(buyer, "Beans", 2, 100)
        result = stock.deplete_stock(caller_for(buyer), "Beans", 2)
        assert result["remaining"] == 0
        assert _batches(buyer, "Beans") == []

    def test_price_override_and_free_goods(self, db_session, buyer):
        _batch(buyer, "Oil", 5, None)

        free = stock.deplete_stock(caller_for(buyer), "Oil", 1)
        assert free["amount_cents"] == 0
        assert free["ledger_entry_id"] is None

        priced = stock.deplete_stock(caller_for(buyer), "Oil", 2, unit_price_override=350, reason="market")
        assert priced["amount_cents"] == 700
        entry = db.session.get(LedgerEntry, priced["ledger_entry_id"])
        assert entry.notes == "market"

    def test_name_is_trimmed_but_case_sensitive(self, db_session, buyer):
        _batch(buyer, "Salt", 2, 10)
        stock.deplete_stock(caller_for(buyer), "  Salt ", 1)
        with pytest.raises(InsufficientStockError):
            stock.deplete_stock(caller_for(buyer), "salt", 1)

    def test_rejects_non_positive_quantity(self, db_session, buyer):
        _batch(buyer, "Salt", 2, 10)
        with pytest.raises(ValidationError):
            stock.deplete_stock(caller_for(buyer), "Salt", 0)

    def test_deplete_by_barcode_spans_batches_of_the_name(self, db_session, buyer):
        _batch(buyer, "Tea", 1, 300, barcode="TEA-1")
        _batch(buyer, "Tea", 4, 320, created_at=T1 + timedelta(hours=2))

        result = stock.deplete_by_barcode(caller_for(buyer), "TEA-1", 3)
        assert result["name"] == "Tea"
        assert result["amount_cents"] == 900
        assert [q for q, _ in _batches(buyer, "Tea")] == [2]

        with pytest.raises(NotFoundError):
            stock.deplete_by_barcode(caller_for(buyer), "NOPE")

    def test_other_owner_is_off_limits(self, db_session, buyer, other_buyer, admin):
        _batch(buyer, "Rice", 3, 200)
        with pytest.raises(AuthorizationError):
            stock.deplete_stock(caller_for(other_buyer), "Rice", 1, owner_id=buyer.id)

        stock.deplete_stock(caller_for(admin), "Rice", 1, owner_id=buyer.id)
        assert [q for q, _ in _batches(buyer, "Rice")] == [2]


class TestCreditAndEdit:
    def test_manual_credit_with_purchase(self, db_session, buyer):
        entry = stock.credit_stock(caller_for(buyer), {
            "name": " Coffee ",
            "quantity": 4,
            "unit_price_cents": 450,
            "barcode": "CF-9",
            "record_purchase": True,
        })
        assert entry.name == "Coffee"
        assert entry.category == "General"

        debit = db.session.query(LedgerEntry).filter_by(owner_id=buyer.id).one()
        assert (debit.kind, debit.category, debit.amount_cents) == ("debit", "purchases", 1800)

    def test_barcode_conflict_credits_nothing(self, db_session, buyer):
        stock.credit_stock(caller_for(buyer), {"name": "Coffee", "quantity": 1, "barcode": "CF-9"})
        with pytest.raises(ConflictError):
            stock.credit_stock(caller_for(buyer), {
                "name": "Decaf", "quantity": 2, "barcode": "CF-9",
                "unit_price_cents": 100, "record_purchase": True,
            })
        assert _batches(buyer, "Decaf") == []
        assert db.session.query(LedgerEntry).count() == 0

    def test_same_name_credit_opens_a_new_batch(self, db_session, buyer):
        stock.credit_stock(caller_for(buyer), {"name": "Coffee", "quantity": 1})
        stock.credit_stock(caller_for(buyer), {"name": "Coffee", "quantity": 2})
        assert sorted(q for q, _ in _batches(buyer, "Coffee")) == [1, 2]

    def test_totals(self, db_session, buyer):
        _batch(buyer, "Rice", 3, 200)
        _batch(buyer, "Rice", 2, 100)
        _batch(buyer, "Beans", 1, None)

        totals = stock.stock_totals(caller_for(buyer))
        assert totals == {
            "owner_id": buyer.id,
            "total_units": 6,
            "valuation_cents": 800,
            "distinct_names": 2,
            "entry_count": 3,
        }

    def test_list_search_and_category(self, db_session, buyer):
        _batch(buyer, "Brown Rice", 1, category="Grains")
        _batch(buyer, "Beans", 1, category="Legumes")

        caller = caller_for(buyer)
        assert [e.name for e in stock.list_stock(caller, search="rice")] == ["Brown Rice"]
        assert [e.name for e in stock.list_stock(caller, category="Legumes")] == ["Beans"]

    def test_adjust_to_zero_deletes(self, db_session, buyer):
        entry = _batch(buyer, "Rice", 3, 200)
        updated = stock.adjust_entry(caller_for(buyer), entry.id, {"quantity": 7, "unit_price_cents": 210})
        assert (updated.quantity, updated.unit_price_cents) == (7, 210)

        assert stock.adjust_entry(caller_for(buyer), entry.id, {"quantity": 0}) is None
        assert _batches(buyer, "Rice") == []

    def test_adjust_rejects_negative(self, db_session, buyer):
        entry = _batch(buyer, "Rice", 3, 200)
        with pytest.raises(ValidationError):
            stock.adjust_entry(caller_for(buyer), entry.id, {"quantity": -1})

    def test_remove_by_name_or_id(self, db_session, buyer, other_buyer):
        first = _batch(buyer, "Rice", 3)
        _batch(buyer, "Rice", 4)
        _batch(buyer, "Beans", 1)

        with pytest.raises(ValidationError):
            stock.remove_entries(caller_for(buyer))
        with pytest.raises(AuthorizationError):
            stock.remove_entries(caller_for(other_buyer), entry_id=first.id)

        assert stock.remove_entries(caller_for(buyer), name="Rice") == 2
        assert _batches(buyer, "Rice") == []
        with pytest.raises(NotFoundError):
            stock.remove_entries(caller_for(buyer), name="Rice")


class TestScannedCodes:
    def test_internal_code_fallback(self, db_session, buyer):
        entry = _batch(buyer, "Soap", 3, 150)

        found = stock.find_by_code(caller_for(buyer), f"STK{entry.id:06d}")
        assert (found["entry"]["id"], found["available"], found["via_alternate"]) == (entry.id, 3, False)

        result = stock.deplete_by_barcode(caller_for(buyer), f"stk{entry.id}", 2)
        assert (result["name"], result["remaining"], result["amount_cents"]) == ("Soap", 1, 300)

    def test_internal_code_is_scoped_to_owner(self, db_session, buyer, other_buyer):
        entry = _batch(buyer, "Soap", 3, 150)
        with pytest.raises(NotFoundError):
            stock.deplete_by_barcode(caller_for(other_buyer), entry.internal_code)

    def test_alternate_code_resolves_to_name(self, db_session, buyer):
        _batch(buyer, "Rice", 3, 200, created_at=T1)
        _batch(buyer, "Rice", 2, 220, created_at=T1 + timedelta(days=1))

        result = stock.associate_alternate_code(caller_for(buyer), {"name": "Rice", "code": "RICE-ALT", "quantity": 4})
        assert (result["added"], result["available"]) == (4, 9)
        assert [q for q, _ in _batches(buyer, "Rice")] == [7, 2]

        found = stock.find_by_code(caller_for(buyer), "rice-alt")
        assert (found["name"], found["available"], found["via_alternate"]) == ("Rice", 9, True)

        sold = stock.deplete_by_barcode(caller_for(buyer), "RICE-ALT", 8)
        assert (sold["remaining"], sold["unit_price_cents"], sold["via_alternate"]) == (1, 200, True)
        assert [q for q, _ in _batches(buyer, "Rice")] == [1]

    def test_alternate_code_conflicts_credit_nothing(self, db_session, buyer):
        _batch(buyer, "Tea", 1, 300, barcode="TEA-1")
        _batch(buyer, "Rice", 3, 200)
        stock.associate_alternate_code(caller_for(buyer), {"name": "Rice", "code": "R-1"})

        for code in ("tea-1", "r-1", "STK000042"):
            with pytest.raises(ConflictError):
                stock.associate_alternate_code(caller_for(buyer), {"name": "Rice", "code": code, "quantity": 5})
        assert [q for q, _ in _batches(buyer, "Rice")] == [3]

        with pytest.raises(NotFoundError):
            stock.associate_alternate_code(caller_for(buyer), {"name": "Beans", "code": "B-1"})
        with pytest.raises(ValidationError):
            stock.associate_alternate_code(caller_for(buyer), {"name": "Rice"})

        # A new batch cannot take a code that already answers for the owner
        with pytest.raises(ConflictError):
            stock.credit_stock(caller_for(buyer), {"name": "Brown Rice", "quantity": 1, "barcode": "R-1"})

    def test_removed_alternate_code_stops_resolving(self, db_session, buyer, other_buyer):
        _batch(buyer, "Rice", 3, 200)
        alt = stock.associate_alternate_code(caller_for(buyer), {"name": "Rice", "code": "R-1"})["alternate_code"]

        with pytest.raises(AuthorizationError):
            stock.remove_alternate_code(caller_for(other_buyer), alt["id"])

        removed = stock.remove_alternate_code(caller_for(buyer), alt["id"])
        assert removed.is_active is False
        assert stock.list_alternate_codes(caller_for(buyer)) == []
        assert len(stock.list_alternate_codes(caller_for(buyer), include_inactive=True)) == 1
        with pytest.raises(NotFoundError):
            stock.find_by_code(caller_for(buyer), "R-1")
        with pytest.raises(ConflictError):
            stock.remove_alternate_code(caller_for(buyer), alt["id"])

        # Code is free again
        stock.associate_alternate_code(caller_for(buyer), {"name": "Rice", "code": "R-1"})

    def test_add_stock_by_code(self, db_session, buyer):
        _batch(buyer, "Tea", 1, 300, barcode="TEA-1")

        result = stock.add_stock_by_code(caller_for(buyer), "tea-1", 5, unit_cost_cents=120)
        assert (result["previous_quantity"], result["added"], result["quantity"]) == (1, 5, 6)

        debit = db.session.get(LedgerEntry, result["ledger_entry_id"])
        assert (debit.kind, debit.category, debit.amount_cents) == ("debit", "purchases", 600)

        again = stock.add_stock_by_code(caller_for(buyer), "TEA-1", 2)
        assert again["quantity"] == 8
        assert again["ledger_entry_id"] is None

        with pytest.raises(NotFoundError):
            stock.add_stock_by_code(caller_for(buyer), "NOPE", 1)
        with pytest.raises(ValidationError):
            stock.add_stock_by_code(caller_for(buyer), "TEA-1", 0)

    def test_depot_alternate_barcode_finds_received_goods(self, db_session, buyer, depot, widget):
        identifier_service.add_alternate_barcode(caller_for(depot), widget.id, "W-ALT")
        _batch(buyer, "Widget", 2, 100, barcode="W-001")

        found = stock.find_by_code(caller_for(buyer), "W-ALT")
        assert (found["name"], found["available"], found["via_alternate"]) == ("Widget", 2, True)
