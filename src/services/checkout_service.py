"""Stripe Checkout Session construction."""

import logging
from types import ModuleType
from typing import Any

import stripe

from src.api.middleware.error_handler import InvalidRequestError
from src.core.config import Settings
from src.core.redaction import mask_identifier
from src.schemas.auth import AuthenticatedUser
from src.schemas.checkout import CheckoutLineItem
from src.services.upstream import translate_stripe_error

logger = logging.getLogger(__name__)

FREE_SHIPPING_DISPLAY_NAME = "Free shipping"
DELIVERY_ESTIMATE_BUSINESS_DAYS = (5, 7)


class CheckoutService:
    """Service for creating Stripe checkout sessions from a cart."""

    def __init__(self, stripe_client: ModuleType, settings: Settings) -> None:
        """Initialize checkout service with the configured Stripe SDK."""
        self.stripe = stripe_client
        self.settings = settings

    def _validate(
        self,
        line_items: list[CheckoutLineItem],
        success_url: str | None,
        cancel_url: str | None,
    ) -> None:
        if not line_items:
            raise InvalidRequestError("No items in cart")

        if not success_url or not success_url.strip() or not cancel_url or not cancel_url.strip():
            raise InvalidRequestError("success_url and cancel_url are required")

        currency = self.settings.checkout_currency
        for index, item in enumerate(line_items):
            if item.price_data.currency.lower() != currency:
                raise InvalidRequestError(
                    f"Unsupported currency on line item {index}; only '{currency}' is accepted",
                    details=[
                        {
                            "loc": ["line_items", str(index), "price_data", "currency"],
                            "msg": f"Expected '{currency}'",
                            "type": "currency_error",
                        }
                    ],
                )

    def _shipping_options(self) -> list[dict[str, Any]]:
        minimum, maximum = DELIVERY_ESTIMATE_BUSINESS_DAYS
        return [
            {
                "shipping_rate_data": {
                    "type": "fixed_amount",
                    "fixed_amount": {"amount": 0, "currency": self.settings.checkout_currency},
                    "display_name": FREE_SHIPPING_DISPLAY_NAME,
                    "delivery_estimate": {
                        "minimum": {"unit": "business_day", "value": minimum},
                        "maximum": {"unit": "business_day", "value": maximum},
                    },
                },
            }
        ]

    def build_session_params(
        self,
        line_items: list[CheckoutLineItem],
        success_url: str,
        cancel_url: str,
        user: AuthenticatedUser,
    ) -> dict[str, Any]:
        """Build the keyword arguments for ``stripe.checkout.Session.create``.

        The user id in ``metadata`` is the only link between the eventual
        ``checkout.session.completed`` webhook and the shopper.
        """
        currency = self.settings.checkout_currency
        stripe_line_items = []
        for item in line_items:
            price_data = item.price_data.model_dump(exclude_none=True)
            price_data["currency"] = currency
            stripe_line_items.append({"price_data": price_data, "quantity": item.quantity})

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": stripe_line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"user_id": user.id},
            "shipping_address_collection": {
                "allowed_countries": self.settings.shipping_countries_list,
            },
            "shipping_options": self._shipping_options(),
            "billing_address_collection": "required",
            "allow_promotion_codes": True,
        }
        if user.email:
            params["customer_email"] = user.email
        return params

    async def create_checkout_session(
        self,
        line_items: list[CheckoutLineItem],
        success_url: str | None,
        cancel_url: str | None,
        user: AuthenticatedUser,
    ) -> dict[str, Any]:
        """Create a Stripe Checkout Session for the user's cart.

        Args:
            line_items: Cart lines with inline price data.
            success_url: URL to redirect after successful checkout.
            cancel_url: URL to redirect if checkout is cancelled.
            user: The verified caller.

        Returns:
            dict: Contains session_id and url.

        Raises:
            InvalidRequestError: Empty cart, missing URLs, or wrong currency.
            UpstreamUnavailableError: Stripe rejected or failed the call.
            UpstreamTimeoutError: Stripe did not answer in time.
        """
        self._validate(line_items, success_url, cancel_url)
        params = self.build_session_params(line_items, success_url, cancel_url, user)

        try:
            session = self.stripe.checkout.Session.create(**params)
        except stripe.InvalidRequestError as e:
            logger.warning("Stripe refused checkout params: %s", e.user_message or type(e).__name__)
            raise InvalidRequestError("Payment processor rejected the checkout request") from e
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "create checkout session") from e

        logger.info(
            "Created checkout session %s for user %s (%d line items)",
            mask_identifier(session.id, visible=12),
            mask_identifier(user.id),
            len(line_items),
        )
        return {"session_id": session.id, "url": getattr(session, "url", None)}
