# Overview: Utility functions for capability lookups and enforcement.

from .definitions import CAPABILITY_DEFINITIONS
from .roles import Caller, has_capability
from ..validation import AuthorizationError


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap[0] for cap in CAPABILITY_DEFINITIONS]


def get_capabilities_by_category(category):
    """Get all capabilities in a category."""
    return [cap for cap in CAPABILITY_DEFINITIONS if cap[3] == category]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap in CAPABILITY_DEFINITIONS:
        if cap[0] == code:
            return {
                "code": cap[0],
                "name": cap[1],
                "description": cap[2],
                "category": cap[3],
            }
    return None


def require_capability(caller: Caller, capability: str) -> None:
    """Raise AuthorizationError unless the caller's role carries the capability."""
    if not has_capability(caller.role, capability):
        raise AuthorizationError(
            f"Role '{caller.role.value}' lacks {capability}",
            details={"required_capability": capability},
        )


def require_owner_or_elevated(caller: Caller, *owner_ids: int | None, message: str = "Not authorized") -> None:
    """Raise AuthorizationError unless the caller is one of owner_ids or holds the elevated role."""
    if caller.is_elevated:
        return
    if caller.id not in {oid for oid in owner_ids if oid is not None}:
        raise AuthorizationError(message)
