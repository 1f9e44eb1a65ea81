# Overview: Closed role enum, the caller value object, and the role -> capability table.

from __future__ import annotations

import enum
from dataclasses import dataclass

from .definitions import Capability


class Role(str, enum.Enum):
    BUYER = "buyer"
    DEPOT = "depot"
    CARRIER = "carrier"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    """The authenticated party on whose behalf an operation runs."""
    id: int
    role: Role

    @property
    def is_elevated(self) -> bool:
        return has_capability(self.role, Capability.OVERRIDE_OWNERSHIP)


_BUYER = frozenset({
    Capability.VIEW_CATALOG,
    Capability.PLACE_ORDER,
    Capability.VIEW_ORDERS,
    Capability.CANCEL_ORDER,
    Capability.VIEW_SHIPMENTS,
    Capability.CONFIRM_RECEIPT,
    Capability.VIEW_RECEIPTS,
    Capability.MANAGE_PERSONAL_STOCK,
    Capability.VIEW_LEDGER,
    Capability.RECORD_LEDGER,
})

_DEPOT = frozenset({
    Capability.VIEW_CATALOG,
    Capability.MANAGE_CATALOG,
    Capability.MANAGE_BARCODES,
    Capability.CONSOLIDATE_STOCK,
    Capability.VIEW_ORDERS,
    Capability.MANAGE_ORDERS,
    Capability.MANAGE_SHIPMENTS,
    Capability.UPDATE_SHIPMENT,
    Capability.VIEW_SHIPMENTS,
    Capability.ISSUE_RECEIPT,
    Capability.VIEW_RECEIPTS,
    Capability.VIEW_LEDGER,
    Capability.RECORD_LEDGER,
})

_CARRIER = frozenset({
    Capability.VIEW_SHIPMENTS,
    Capability.UPDATE_SHIPMENT,
    Capability.REPORT_LOCATION,
    Capability.VIEW_LEDGER,
    Capability.RECORD_LEDGER,
})

DEFAULT_ROLE_CAPABILITIES: dict[Role, frozenset[str]] = {
    Role.BUYER: _BUYER,
    Role.DEPOT: _DEPOT,
    Role.CARRIER: _CARRIER,
    # Admin has everything, including ownership override
    Role.ADMIN: _BUYER | _DEPOT | _CARRIER | {Capability.OVERRIDE_OWNERSHIP},
}


def has_capability(role: Role | str, capability: str) -> bool:
    """Pure lookup: does this role carry this capability?"""
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in DEFAULT_ROLE_CAPABILITIES[role]
