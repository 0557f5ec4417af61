# ------ flora/model/__init__.py ------

from .user import User
from .product import Product
from .cart import StoredCart
from .order import Order, OrderItem
from .payment import PaymentIntent
from .subscription import Subscription

__all__ = [
    "User",
    "Product",
    "StoredCart",
    "Order",
    "OrderItem",
    "PaymentIntent",
    "Subscription",
]
