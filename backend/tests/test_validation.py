# Overview: Tests for request value coercion and the error taxonomy.

import pytest

from orderflow.validation import (
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    ConflictError,
    InsufficientStockError,
    ValidationError,
    clean_code,
    coerce_int,
    money_cents,
    positive_quantity,
    require_fields,
)


@pytest.mark.parametrize("value,expected", [(5, 5), ("7", 7), (" -3 ", -3), (0, 0)])
def test_coerce_int_accepts(value, expected):
    assert coerce_int(value, "n") == expected


@pytest.mark.parametrize("value", [True, 1.0, "1.5", "1e3", "", None, "abc"])
def test_coerce_int_rejects(value):
    with pytest.raises(ValidationError):
        coerce_int(value, "n")


def test_positive_quantity_bounds():
    assert positive_quantity("3") == 3
    assert positive_quantity(MAX_QUANTITY) == MAX_QUANTITY
    for bad in (0, -1, MAX_QUANTITY + 1):
        with pytest.raises(ValidationError):
            positive_quantity(bad)


def test_money_cents():
    assert money_cents(0, "price") == 0
    assert money_cents(None, "cost", allow_none=True) is None
    with pytest.raises(ValidationError):
        money_cents(None, "price")
    with pytest.raises(ValidationError):
        money_cents(-1, "price")
    with pytest.raises(ValidationError):
        money_cents(MAX_PRICE_CENTS + 1, "price")


def test_clean_code_and_required_fields():
    assert clean_code("  ABC-1 ") == "ABC-1"
    with pytest.raises(ValidationError):
        clean_code("   ")
    with pytest.raises(ValidationError):
        clean_code(42)

    with pytest.raises(ValidationError) as exc:
        require_fields({"a": 1, "b": ""}, "a", "b", "c")
    assert exc.value.details == {"missing": ["b", "c"]}


def test_error_bodies():
    body = ConflictError("Already linked", details={"linkage_id": 4}).to_dict()
    assert body == {"error": "conflict", "message": "Already linked", "details": {"linkage_id": 4}}
    assert InsufficientStockError("short").to_dict() == {"error": "insufficient_stock", "message": "short"}
    assert InsufficientStockError.status_code == 409
