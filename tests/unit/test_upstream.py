"""Unit tests for upstream error translation and log redaction."""

import httpx
import requests
import stripe

from src.api.middleware.error_handler import UpstreamTimeoutError, UpstreamUnavailableError
from src.core.redaction import mask_email, mask_identifier
from src.services.upstream import is_unique_violation, translate_stripe_error, translate_supabase_error
from tests.fakes import stripe_network_error, unique_violation


class TestIsUniqueViolation:
    """Tests for is_unique_violation."""

    def test_detects_postgres_unique_violation(self) -> None:
        assert is_unique_violation(unique_violation("orders", "stripe_session_id")) is True

    def test_ignores_other_errors(self) -> None:
        assert is_unique_violation(RuntimeError("23505")) is False


class TestTranslateSupabaseError:
    """Tests for translate_supabase_error."""

    def test_timeout(self) -> None:
        error = translate_supabase_error(httpx.ConnectTimeout("timed out"), "load cart")

        assert isinstance(error, UpstreamTimeoutError)
        assert error.status_code == 504
        assert "load cart" in error.message

    def test_connection_failure(self) -> None:
        error = translate_supabase_error(httpx.ConnectError("refused"), "load cart")

        assert isinstance(error, UpstreamUnavailableError)
        assert error.status_code == 502

    def test_postgrest_error(self) -> None:
        error = translate_supabase_error(unique_violation("orders", "id"), "insert order")

        assert isinstance(error, UpstreamUnavailableError)


class TestTranslateStripeError:
    """Tests for translate_stripe_error."""

    def test_read_timeout(self) -> None:
        cause = requests.exceptions.ReadTimeout("Read timed out. (read timeout=15)")

        error = translate_stripe_error(stripe_network_error(cause), "create session")

        assert isinstance(error, UpstreamTimeoutError)
        assert error.status_code == 504

    def test_connect_timeout(self) -> None:
        cause = requests.exceptions.ConnectTimeout("Connection to api.stripe.com timed out")

        error = translate_stripe_error(stripe_network_error(cause), "create session")

        assert isinstance(error, UpstreamTimeoutError)

    def test_connection_refused(self) -> None:
        cause = requests.exceptions.ConnectionError("Connection refused")

        error = translate_stripe_error(stripe_network_error(cause), "create session")

        assert isinstance(error, UpstreamUnavailableError)

    def test_timeout_wording_without_timeout_cause_is_not_a_timeout(self) -> None:
        """Test that only the chained exception type decides, not the message text."""
        error = translate_stripe_error(stripe.APIConnectionError("Request timed out"), "create session")

        assert isinstance(error, UpstreamUnavailableError)
        assert error.status_code == 502

    def test_authentication_error(self) -> None:
        error = translate_stripe_error(stripe.AuthenticationError("Invalid API key"), "create session")

        assert isinstance(error, UpstreamUnavailableError)
        assert "Invalid API key" not in error.message


class TestRedaction:
    """Tests for the log redaction helpers."""

    def test_mask_email(self) -> None:
        assert mask_email("jane.doe@example.com") == "j***@example.com"
        assert mask_email(None) == "<none>"

    def test_mask_email_without_domain(self) -> None:
        assert mask_email("not-an-email-address") == "not-an-e..."

    def test_mask_identifier(self) -> None:
        assert mask_identifier("550e8400-e29b-41d4-a716-446655440000") == "550e8400..."
        assert mask_identifier("short") == "s***"
        assert mask_identifier("cs_test_abcdefghijkl", visible=12) == "cs_test_abcd..."
        assert mask_identifier(None) == "<none>"
