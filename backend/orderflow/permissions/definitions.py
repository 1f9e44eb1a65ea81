# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


class Capability:
    """Capability codes checked at the start of each service operation."""
    VIEW_CATALOG = "VIEW_CATALOG"
    MANAGE_CATALOG = "MANAGE_CATALOG"
    MANAGE_BARCODES = "MANAGE_BARCODES"
    CONSOLIDATE_STOCK = "CONSOLIDATE_STOCK"

    PLACE_ORDER = "PLACE_ORDER"
    VIEW_ORDERS = "VIEW_ORDERS"
    MANAGE_ORDERS = "MANAGE_ORDERS"
    CANCEL_ORDER = "CANCEL_ORDER"

    MANAGE_SHIPMENTS = "MANAGE_SHIPMENTS"
    UPDATE_SHIPMENT = "UPDATE_SHIPMENT"
    REPORT_LOCATION = "REPORT_LOCATION"
    VIEW_SHIPMENTS = "VIEW_SHIPMENTS"

    ISSUE_RECEIPT = "ISSUE_RECEIPT"
    CONFIRM_RECEIPT = "CONFIRM_RECEIPT"
    VIEW_RECEIPTS = "VIEW_RECEIPTS"

    MANAGE_PERSONAL_STOCK = "MANAGE_PERSONAL_STOCK"

    VIEW_LEDGER = "VIEW_LEDGER"
    RECORD_LEDGER = "RECORD_LEDGER"

    OVERRIDE_OWNERSHIP = "OVERRIDE_OWNERSHIP"


# -- CATALOG --

CATALOG_CAPABILITIES = [
    (
        Capability.VIEW_CATALOG,
        "View Catalog",
        "Browse depot products and resolve barcodes",
        CapabilityCategory.CATALOG,
    ),
    (
        Capability.MANAGE_CATALOG,
        "Manage Catalog",
        "Create, edit, deactivate products and record stock movements",
        CapabilityCategory.CATALOG,
    ),
    (
        Capability.MANAGE_BARCODES,
        "Manage Barcodes",
        "Add and remove alternate barcodes",
        CapabilityCategory.CATALOG,
    ),
    (
        Capability.CONSOLIDATE_STOCK,
        "Consolidate Stock",
        "Link duplicate products and merge their quantities",
        CapabilityCategory.CATALOG,
    ),
]


# -- ORDERS --

ORDER_CAPABILITIES = [
    (
        Capability.PLACE_ORDER,
        "Place Order",
        "Create orders and edit pending line items",
        CapabilityCategory.ORDERS,
    ),
    (
        Capability.VIEW_ORDERS,
        "View Orders",
        "List and read orders the caller is party to",
        CapabilityCategory.ORDERS,
    ),
    (
        Capability.MANAGE_ORDERS,
        "Manage Orders",
        "Move depot orders through the preparation lifecycle",
        CapabilityCategory.ORDERS,
    ),
    (
        Capability.CANCEL_ORDER,
        "Cancel Order",
        "Cancel own orders while pending or preparing",
        CapabilityCategory.ORDERS,
    ),
]


# -- SHIPPING --

SHIPPING_CAPABILITIES = [
    (
        Capability.MANAGE_SHIPMENTS,
        "Manage Shipments",
        "Create shipments for ready orders and assign carriers",
        CapabilityCategory.SHIPPING,
    ),
    (
        Capability.UPDATE_SHIPMENT,
        "Update Shipment",
        "Advance shipment state (in transit, delivered, failed)",
        CapabilityCategory.SHIPPING,
    ),
    (
        Capability.REPORT_LOCATION,
        "Report Location",
        "Overwrite the live location of an assigned shipment",
        CapabilityCategory.SHIPPING,
    ),
    (
        Capability.VIEW_SHIPMENTS,
        "View Shipments",
        "List and read shipments",
        CapabilityCategory.SHIPPING,
    ),
]


# -- RECEIPTS --

RECEIPT_CAPABILITIES = [
    (
        Capability.ISSUE_RECEIPT,
        "Issue Delivery Receipt",
        "Generate the single-use delivery code for a ready or shipped order",
        CapabilityCategory.RECEIPTS,
    ),
    (
        Capability.CONFIRM_RECEIPT,
        "Confirm Delivery Receipt",
        "Confirm handoff and credit the personal stock ledger",
        CapabilityCategory.RECEIPTS,
    ),
    (
        Capability.VIEW_RECEIPTS,
        "View Delivery Receipts",
        "Look up receipts by code and list pending/confirmed receipts",
        CapabilityCategory.RECEIPTS,
    ),
]


# -- STOCK --

STOCK_CAPABILITIES = [
    (
        Capability.MANAGE_PERSONAL_STOCK,
        "Manage Personal Stock",
        "Credit, deplete and inspect the caller's own stock ledger",
        CapabilityCategory.STOCK,
    ),
]


# -- LEDGER --

LEDGER_CAPABILITIES = [
    (
        Capability.VIEW_LEDGER,
        "View Ledger",
        "List own ledger entries and totals",
        CapabilityCategory.LEDGER,
    ),
    (
        Capability.RECORD_LEDGER,
        "Record Ledger Entry",
        "Append manual or order-derived ledger entries",
        CapabilityCategory.LEDGER,
    ),
]


# -- SYSTEM --

SYSTEM_CAPABILITIES = [
    (
        Capability.OVERRIDE_OWNERSHIP,
        "Override Ownership",
        "Act on resources owned by other parties",
        CapabilityCategory.SYSTEM,
    ),
]


# Combined list of all capabilities (preserves original ordering)
CAPABILITY_DEFINITIONS = (
    CATALOG_CAPABILITIES
    + ORDER_CAPABILITIES
    + SHIPPING_CAPABILITIES
    + RECEIPT_CAPABILITIES
    + STOCK_CAPABILITIES
    + LEDGER_CAPABILITIES
    + SYSTEM_CAPABILITIES
)
