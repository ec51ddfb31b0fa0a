"""Cart model type definitions for database operations.

Carts and their items are written by the storefront. This service only
reads them and clears them once an order has been materialized.
"""

from datetime import datetime
from decimal import Decimal
from typing import TypedDict


class Cart(TypedDict):
    """Cart table row representation. One cart per user."""

    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class CartItem(TypedDict):
    """Cart item row representation."""

    id: str
    cart_id: str
    product_id: str
    quantity: int


class PricedCartItem(TypedDict):
    """Cart item joined with the product's current name and price."""

    id: str
    cart_id: str
    product_id: str
    product_name: str
    quantity: int
    price: Decimal
