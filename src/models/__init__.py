"""Database model type definitions."""

from src.models.cart import Cart, CartItem, PricedCartItem
from src.models.order import Order, OrderCreate, OrderStatus, WebhookEventRecord
from src.models.profile import Profile, ProfileCreate

__all__ = [
    "Cart",
    "CartItem",
    "PricedCartItem",
    "Order",
    "OrderCreate",
    "OrderStatus",
    "Profile",
    "ProfileCreate",
    "WebhookEventRecord",
]
