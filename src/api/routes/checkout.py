"""Checkout API routes for Stripe integration."""

from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import CheckoutServiceDep, CurrentUser, OrderServiceDep
from src.schemas.checkout import (
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    OrderListResponse,
    OrderResponse,
)

router = APIRouter(tags=["checkout"])


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Create Stripe Checkout Session",
    description="Creates a card-only Stripe Checkout Session for the authenticated shopper's cart.",
)
async def create_checkout_session(
    data: CheckoutSessionCreate,
    user: CurrentUser,
    service: CheckoutServiceDep,
) -> CheckoutSessionResponse:
    """Create a Stripe Checkout Session.

    The frontend should redirect to the returned url (or use the session id
    with Stripe.js). No order is written here; the order is created when
    Stripe reports the session as completed.

    Args:
        data: Cart lines and redirect URLs.
        user: The authenticated shopper.
        service: Checkout service.

    Returns:
        CheckoutSessionResponse: Session id and hosted checkout URL.
    """
    result = await service.create_checkout_session(
        line_items=data.line_items,
        success_url=data.success_url,
        cancel_url=data.cancel_url,
        user=user,
    )
    return CheckoutSessionResponse(session_id=result["session_id"], url=result["url"])


# Orders router - mounted separately at /orders
orders_router = APIRouter(prefix="/orders", tags=["orders"])


@orders_router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns all orders for the authenticated user.",
)
async def list_orders(user: CurrentUser, service: OrderServiceDep) -> OrderListResponse:
    """List all orders for the current user."""
    orders = await service.list_orders(user.id)
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@orders_router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order with its items. Only accessible by the order owner.",
)
async def get_order(order_id: UUID, user: CurrentUser, service: OrderServiceDep) -> OrderResponse:
    """Get a single order by ID.

    Raises:
        NotFoundError: 404 if the order does not exist or is not the caller's.
    """
    order = await service.get_order(str(order_id), user.id)
    return OrderResponse(**order)
