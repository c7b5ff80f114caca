from .catalog import Product, Customer
from .orders import Order, OrderItem
from .returns import Return, ReturnItem
from .sequences import SequenceCounter
from .settings import POSSettings
from .auth import User, SessionToken

__all__ = [
    'Product', 'Customer',
    'Order', 'OrderItem',
    'Return', 'ReturnItem',
    'SequenceCounter',
    'POSSettings',
    'User', 'SessionToken',
]
