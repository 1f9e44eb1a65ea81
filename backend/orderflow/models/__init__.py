from .parties import Party
from .catalog import Product, ProductLinkage, AlternateBarcode
from .orders import Order, OrderLine, DocumentSequence
from .shipments import Shipment
from .receipts import DeliveryReceipt
from .stock import PersonalStockEntry, PersonalAlternateCode
from .ledger import LedgerEntry

__all__ = [
    'Party',
    'Product', 'ProductLinkage', 'AlternateBarcode',
    'Order', 'OrderLine', 'DocumentSequence',
    'Shipment',
    'DeliveryReceipt',
    'PersonalStockEntry', 'PersonalAlternateCode',
    'LedgerEntry',
]
