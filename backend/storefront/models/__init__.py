from .auth import User, SessionToken
from .catalog import Category, Product
from .inventory import InventoryTransaction
from .shipping import ShippingRate
from .marketing import Coupon

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'InventoryTransaction',
    'ShippingRate',
    'Coupon',
]
