"""Unit tests for CheckoutService."""

from unittest.mock import MagicMock

import pytest
import requests
import stripe

from src.api.middleware.error_handler import (
    InvalidRequestError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from src.core.config import Settings
from src.schemas.auth import AuthenticatedUser
from src.schemas.checkout import CheckoutLineItem
from src.services.checkout_service import CheckoutService
from tests.fakes import TEST_EMAIL, TEST_USER_ID, stripe_network_error

SUCCESS_URL = "http://localhost:5173/checkout/success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_URL = "http://localhost:5173/cart"


@pytest.fixture
def checkout_service(mock_stripe: MagicMock, test_settings: Settings) -> CheckoutService:
    """Create CheckoutService with a mocked Stripe SDK."""
    mock_stripe.checkout.Session.create.return_value = MagicMock(
        id="cs_test_abc123",
        url="https://checkout.stripe.com/c/pay/cs_test_abc123",
    )
    return CheckoutService(mock_stripe, test_settings)


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id=TEST_USER_ID, email=TEST_EMAIL, profile={"id": TEST_USER_ID})


@pytest.fixture
def line_items() -> list[CheckoutLineItem]:
    return [
        CheckoutLineItem.model_validate(
            {
                "price_data": {
                    "currency": "usd",
                    "unit_amount": 1000,
                    "product_data": {"name": "Habanero Sauce", "metadata": {"product_id": "prod-p1"}},
                },
                "quantity": 2,
            }
        ),
        CheckoutLineItem.model_validate(
            {
                "price_data": {
                    "currency": "USD",
                    "unit_amount": 500,
                    "product_data": {"name": "Ghost Pepper Sauce"},
                },
                "quantity": 1,
            }
        ),
    ]


class TestCreateCheckoutSession:
    """Tests for create_checkout_session method."""

    @pytest.mark.asyncio
    async def test_returns_session_id_and_url(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        result = await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        assert result == {
            "session_id": "cs_test_abc123",
            "url": "https://checkout.stripe.com/c/pay/cs_test_abc123",
        }
        mock_stripe.checkout.Session.create.assert_called_once()

    @pytest.mark.asyncio
    async def test_session_params_follow_checkout_policy(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        """Test card-only payment mode with shipping collection and the user id in metadata."""
        await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        params = mock_stripe.checkout.Session.create.call_args.kwargs
        assert params["mode"] == "payment"
        assert params["payment_method_types"] == ["card"]
        assert params["metadata"] == {"user_id": TEST_USER_ID}
        assert params["customer_email"] == TEST_EMAIL
        assert params["success_url"] == SUCCESS_URL
        assert params["cancel_url"] == CANCEL_URL
        assert params["shipping_address_collection"] == {"allowed_countries": ["US", "CA", "GB"]}
        assert params["billing_address_collection"] == "required"
        assert params["allow_promotion_codes"] is True

        (shipping_option,) = params["shipping_options"]
        rate = shipping_option["shipping_rate_data"]
        assert rate["fixed_amount"] == {"amount": 0, "currency": "usd"}
        assert rate["delivery_estimate"]["minimum"] == {"unit": "business_day", "value": 5}
        assert rate["delivery_estimate"]["maximum"] == {"unit": "business_day", "value": 7}

    @pytest.mark.asyncio
    async def test_line_items_are_normalized_to_checkout_currency(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        stripe_items = mock_stripe.checkout.Session.create.call_args.kwargs["line_items"]
        assert [item["quantity"] for item in stripe_items] == [2, 1]
        assert all(item["price_data"]["currency"] == "usd" for item in stripe_items)
        assert stripe_items[0]["price_data"]["unit_amount"] == 1000
        assert stripe_items[0]["price_data"]["product_data"]["metadata"] == {"product_id": "prod-p1"}
        assert "description" not in stripe_items[0]["price_data"]["product_data"]

    @pytest.mark.asyncio
    async def test_omits_customer_email_when_unknown(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
    ) -> None:
        anonymous_email_user = AuthenticatedUser(id=TEST_USER_ID, email=None, profile={})

        await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, anonymous_email_user)

        assert "customer_email" not in mock_stripe.checkout.Session.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_cart_never_calls_stripe(
        self, checkout_service: CheckoutService, mock_stripe: MagicMock, user: AuthenticatedUser
    ) -> None:
        with pytest.raises(InvalidRequestError) as exc_info:
            await checkout_service.create_checkout_session([], SUCCESS_URL, CANCEL_URL, user)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "No items in cart"
        mock_stripe.checkout.Session.create.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "success_url,cancel_url",
        [(None, CANCEL_URL), (SUCCESS_URL, None), ("  ", CANCEL_URL), (SUCCESS_URL, "")],
    )
    async def test_missing_redirect_urls_are_rejected(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
        success_url: str | None,
        cancel_url: str | None,
    ) -> None:
        with pytest.raises(InvalidRequestError):
            await checkout_service.create_checkout_session(line_items, success_url, cancel_url, user)

        mock_stripe.checkout.Session.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_foreign_currency_is_rejected(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        line_items[1].price_data.currency = "eur"

        with pytest.raises(InvalidRequestError) as exc_info:
            await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        assert exc_info.value.details[0]["loc"] == ["line_items", "1", "price_data", "currency"]
        mock_stripe.checkout.Session.create.assert_not_called()


class TestStripeFailures:
    """Tests for mapping Stripe SDK errors."""

    @pytest.mark.asyncio
    async def test_invalid_request_maps_to_400(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        mock_stripe.checkout.Session.create.side_effect = stripe.InvalidRequestError(
            "Invalid URL", "success_url"
        )

        with pytest.raises(InvalidRequestError):
            await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

    @pytest.mark.asyncio
    async def test_api_error_maps_to_upstream_unavailable(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        mock_stripe.checkout.Session.create.side_effect = stripe.APIError("Internal error")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_timeout_maps_to_timeout(
        self,
        checkout_service: CheckoutService,
        mock_stripe: MagicMock,
        line_items: list[CheckoutLineItem],
        user: AuthenticatedUser,
    ) -> None:
        mock_stripe.checkout.Session.create.side_effect = stripe_network_error(
            requests.exceptions.ReadTimeout("Read timed out. (read timeout=15)")
        )

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await checkout_service.create_checkout_session(line_items, SUCCESS_URL, CANCEL_URL, user)

        assert exc_info.value.status_code == 504
