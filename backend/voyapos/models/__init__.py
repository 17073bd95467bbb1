from .catalog import Store, Product
from .inventory import Inventory, InvoiceSequence
from .customers import Customer
from .sales import Sale, SaleItem
from .auth import User, SessionToken

__all__ = [
    'Store', 'Product',
    'Inventory', 'InvoiceSequence',
    'Customer',
    'Sale', 'SaleItem',
    'User', 'SessionToken',
]
