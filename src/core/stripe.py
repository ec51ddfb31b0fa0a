"""Stripe SDK configuration."""

import logging
from types import ModuleType

import stripe

from src.core.config import Settings

logger = logging.getLogger(__name__)


def configure_stripe(settings: Settings) -> ModuleType:
    """Configure the Stripe SDK from settings and return it.

    Stripe uses module-level configuration, so the returned value is the
    ``stripe`` module itself. It is built once at startup and handed to the
    services that need it.

    Args:
        settings: Application settings.

    Returns:
        ModuleType: The configured ``stripe`` module.
    """
    stripe.api_key = settings.stripe_secret_key
    stripe.api_version = settings.stripe_api_version
    stripe.max_network_retries = settings.stripe_max_network_retries
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.outbound_timeout_seconds)

    logger.info(
        "Stripe SDK configured (api_version=%s, test_mode=%s, timeout=%ss)",
        settings.stripe_api_version,
        settings.is_stripe_test_mode,
        settings.outbound_timeout_seconds,
    )
    return stripe
