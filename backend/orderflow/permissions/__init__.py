# Overview: Capability system package.
# Re-exports all public APIs so callers import from orderflow.permissions.

from .categories import CapabilityCategory
from .definitions import (
    Capability,
    CAPABILITY_DEFINITIONS,
    CATALOG_CAPABILITIES,
    ORDER_CAPABILITIES,
    SHIPPING_CAPABILITIES,
    RECEIPT_CAPABILITIES,
    STOCK_CAPABILITIES,
    LEDGER_CAPABILITIES,
    SYSTEM_CAPABILITIES,
)
from .roles import Role, Caller, DEFAULT_ROLE_CAPABILITIES, has_capability
from .helpers import (
    get_all_capability_codes,
    get_capabilities_by_category,
    get_capability_definition,
    require_capability,
    require_owner_or_elevated,
)

__all__ = [
    "CapabilityCategory",
    "Capability",
    "CAPABILITY_DEFINITIONS",
    "CATALOG_CAPABILITIES",
    "ORDER_CAPABILITIES",
    "SHIPPING_CAPABILITIES",
    "RECEIPT_CAPABILITIES",
    "STOCK_CAPABILITIES",
    "LEDGER_CAPABILITIES",
    "SYSTEM_CAPABILITIES",
    "Role",
    "Caller",
    "DEFAULT_ROLE_CAPABILITIES",
    "has_capability",
    "get_all_capability_codes",
    "get_capabilities_by_category",
    "get_capability_definition",
    "require_capability",
    "require_owner_or_elevated",
]
