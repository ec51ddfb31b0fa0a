"""Checkout and order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.order import OrderStatus


class ProductData(BaseModel):
    """Product description shown on the hosted checkout page."""

    name: str = Field(min_length=1, max_length=250, description="Product name")
    description: str | None = Field(default=None, max_length=1000, description="Product description")
    images: list[str] | None = Field(default=None, max_length=8, description="Product image URLs")
    metadata: dict[str, str] | None = Field(default=None, description="Product metadata, e.g. product_id")


class PriceData(BaseModel):
    """Inline price for a single line item."""

    currency: str = Field(default="usd", min_length=3, max_length=3, description="ISO currency code")
    unit_amount: int = Field(ge=0, description="Unit price in the smallest currency unit (cents)")
    product_data: ProductData


class CheckoutLineItem(BaseModel):
    """A single cart line as sent by the storefront."""

    price_data: PriceData
    quantity: int = Field(ge=1, le=999, description="Quantity ordered")


class CheckoutSessionCreate(BaseModel):
    """Schema for creating a checkout session via POST /api/create-checkout-session."""

    line_items: list[CheckoutLineItem] = Field(default_factory=list, description="Cart lines to charge")
    success_url: str | None = Field(default=None, description="URL to redirect after successful checkout")
    cancel_url: str | None = Field(default=None, description="URL to redirect if checkout is cancelled")


class CheckoutSessionResponse(BaseModel):
    """Schema for checkout session creation response."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(serialization_alias="sessionId", description="Stripe Checkout Session ID")
    url: str | None = Field(default=None, description="Stripe-hosted checkout URL")


class WebhookAck(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True


class OrderItemResponse(BaseModel):
    """Schema for a single order line."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    quantity: int
    price: Decimal = Field(description="Unit price at time of purchase")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order unique identifier")
    user_id: str = Field(description="Owning user ID")
    status: OrderStatus = Field(description="Order status")
    total: Decimal
    subtotal: Decimal
    tax: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    stripe_session_id: str
    payment_status: str | None = None
    customer_email: str | None = None
    shipping_details: dict[str, Any] | None = None
    items: list[OrderItemResponse] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders")
