# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and listing."""
    CATALOG = "CATALOG"
    ORDERS = "ORDERS"
    SHIPPING = "SHIPPING"
    RECEIPTS = "RECEIPTS"
    STOCK = "STOCK"
    LEDGER = "LEDGER"
    SYSTEM = "SYSTEM"
