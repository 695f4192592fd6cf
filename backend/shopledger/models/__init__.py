from .auth import User
from .inventory import Supplier, Product, StockRecord, StockMovement, MovementType
from .sales import Sale, SaleLine
from .documents import Purchase, PurchaseLine, DocumentSequence

__all__ = [
    'User',
    'Supplier', 'Product', 'StockRecord', 'StockMovement', 'MovementType',
    'Sale', 'SaleLine',
    'Purchase', 'PurchaseLine', 'DocumentSequence',
]
