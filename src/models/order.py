"""Order model type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, TypedDict


# Order status enum values matching database enum
OrderStatus = Literal["pending", "processing", "completed"]


class Order(TypedDict):
    """Order table row representation.

    Represents an order stored in the orders table.
    Maps directly to the database schema.
    """

    id: str
    user_id: str
    status: OrderStatus
    total: Decimal
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    stripe_session_id: str
    payment_status: str | None
    customer_email: str | None
    shipping_details: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime
    # embedded order_items rows, present on reads
    items: list[dict[str, Any]]


class OrderCreate(TypedDict, total=False):
    """Data required to create a new order.

    Amounts are serialized as strings so numeric columns keep exact cents.
    """

    user_id: str
    status: OrderStatus
    total: str
    subtotal: str
    tax: str
    shipping_cost: str
    stripe_session_id: str
    payment_status: str | None
    customer_email: str | None
    shipping_details: dict[str, Any] | None


class WebhookEventRecord(TypedDict):
    """Row in the webhook_events idempotency ledger."""

    id: str
    type: str
    processed_at: str
