# Overview: Error taxonomy and request value coercion shared by services and routes.

from __future__ import annotations

from typing import Any


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single quantity field (per line, per movement)
MAX_QUANTITY = 1_000_000


class DomainError(ValueError):
    """
    Base class for business-rule failures.

    Every multi-step mutation raises one of these from inside its transaction
    so the enclosing unit of work rolls back before the error reaches the caller.
    """
    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """400-level input problem."""
    kind = "validation_error"
    status_code = 400


class AuthorizationError(DomainError):
    """403: caller lacks the capability or does not own the resource."""
    kind = "authorization_error"
    status_code = 403


class NotFoundError(DomainError):
    """404: unknown id or code."""
    kind = "not_found"
    status_code = 404


class ConflictError(DomainError):
    """409-level business rule conflict (illegal transition, duplicate, already confirmed)."""
    kind = "conflict"
    status_code = 409


class InsufficientStockError(DomainError):
    """409: a decrement or depletion would take a quantity below zero."""
    kind = "insufficient_stock"
    status_code = 409


class InternalError(DomainError):
    """500: unexpected store failure surfaced as a typed error."""
    kind = "internal_error"
    status_code = 500


def require_fields(data: dict, *names: str) -> None:
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required", details={"missing": missing})


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Accepts ints (not bools) and plain digit strings with an optional leading
    minus. Floats, scientific notation and blanks are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        body = stripped[1:] if stripped.startswith("-") else stripped
        if body.isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer")


def positive_quantity(value: Any, field: str = "quantity") -> int:
    qty = coerce_int(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return qty


def money_cents(value: Any, field: str, *, allow_none: bool = False) -> int | None:
    if value is None:
        if allow_none:
            return None
        raise ValidationError(f"{field} required")
    cents = coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")
    return cents


def clean_code(value: Any, field: str = "code") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} required")
    return value.strip()
