"""Translation of Stripe and Supabase client failures into API errors."""

import logging

import httpx
import requests
import stripe
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    APIError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: Exception) -> bool:
    """Check whether a PostgREST error is a unique constraint violation."""
    return isinstance(exc, PostgrestAPIError) and str(exc.code) == UNIQUE_VIOLATION


def translate_supabase_error(exc: Exception, action: str) -> APIError:
    """Map a Supabase/PostgREST/httpx failure to an API error.

    Args:
        exc: The exception raised by the Supabase client.
        action: Short description of what was attempted, used in the message.

    Returns:
        APIError: Timeout or upstream-unavailable error.
    """
    if isinstance(exc, httpx.TimeoutException):
        logger.error("Supabase timed out while trying to %s", action)
        return UpstreamTimeoutError(f"Datastore timed out while trying to {action}")

    if isinstance(exc, PostgrestAPIError):
        logger.error("Supabase rejected %s: code=%s message=%s", action, exc.code, exc.message)
    else:
        logger.error("Supabase call failed while trying to %s: %s", action, type(exc).__name__)
    return UpstreamUnavailableError(f"Datastore unavailable while trying to {action}")


def _caused_by_timeout(exc: BaseException) -> bool:
    """Walk the exception chain looking for the HTTP library's timeout."""
    cause = exc.__cause__
    while cause is not None:
        if isinstance(cause, (requests.exceptions.Timeout, httpx.TimeoutException)):
            return True
        cause = cause.__cause__
    return False


def translate_stripe_error(exc: stripe.StripeError, action: str) -> APIError:
    """Map a Stripe SDK error to an API error.

    Args:
        exc: The Stripe error.
        action: Short description of what was attempted, used in the message.

    Returns:
        APIError: Timeout or upstream-unavailable error.
    """
    if isinstance(exc, stripe.APIConnectionError) and _caused_by_timeout(exc):
        logger.error("Stripe timed out while trying to %s", action)
        return UpstreamTimeoutError(f"Payment processor timed out while trying to {action}")

    logger.error(
        "Stripe error while trying to %s: %s (request_id=%s)",
        action,
        type(exc).__name__,
        getattr(exc, "request_id", None),
    )
    return UpstreamUnavailableError(f"Payment processor error while trying to {action}")
