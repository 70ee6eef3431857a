from .catalog import Category, Product
from .inventory import Inventory, ProductTransaction, LedgerImmutableError
from .orders import Order, OrderItem, Payment, OrderSequence
from .order_state import OrderState

__all__ = [
    'Category', 'Product',
    'Inventory', 'ProductTransaction', 'LedgerImmutableError',
    'Order', 'OrderItem', 'Payment', 'OrderSequence',
    'OrderState',
]
