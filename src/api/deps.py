"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, Request

from src.core.clients import Clients
from src.schemas.auth import AuthenticatedUser
from src.services.checkout_service import CheckoutService
from src.services.identity_service import IdentityService
from src.services.order_service import OrderService
from src.services.profile_service import ProfileService
from src.services.webhook_service import WebhookService


def get_clients(request: Request) -> Clients:
    """Return the clients built during application startup."""
    return request.app.state.clients


ClientsDep = Annotated[Clients, Depends(get_clients)]


def get_identity_service(clients: ClientsDep) -> IdentityService:
    """Build the identity resolver for this request."""
    return IdentityService(
        auth_client=clients.supabase_auth,
        profile_service=ProfileService(clients.supabase),
        settings=clients.settings,
    )


def get_checkout_service(clients: ClientsDep) -> CheckoutService:
    """Build the checkout session builder for this request."""
    return CheckoutService(stripe_client=clients.stripe, settings=clients.settings)


def get_order_service(clients: ClientsDep) -> OrderService:
    """Build the order service for this request."""
    return OrderService(clients.supabase)


def get_webhook_service(
    clients: ClientsDep,
    order_service: Annotated[OrderService, Depends(get_order_service)],
) -> WebhookService:
    """Build the webhook verifier/dispatcher for this request."""
    return WebhookService(
        stripe_client=clients.stripe,
        client=clients.supabase,
        order_service=order_service,
        settings=clients.settings,
    )


async def get_current_user(
    identity: Annotated[IdentityService, Depends(get_identity_service)],
    authorization: Annotated[str | None, Header(description="Bearer token")] = None,
) -> AuthenticatedUser:
    """Extract and validate the current user from the Authorization header.

    Provisions the user's profile on first sight.

    Args:
        identity: Identity resolver.
        authorization: The Authorization header value (Bearer token).

    Returns:
        AuthenticatedUser: The authenticated user with their profile.

    Raises:
        UnauthenticatedError: 401 if token is missing, invalid, or expired.
        ProfileProvisioningError: 500 if the profile cannot be created.
    """
    return await identity.resolve(authorization)


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
WebhookServiceDep = Annotated[WebhookService, Depends(get_webhook_service)]
