"""Stripe webhook verification, idempotency ledger, and dispatch."""

import json
import logging
from datetime import datetime, timezone
from types import ModuleType
from typing import Any

import stripe
from pydantic import BaseModel, Field, ValidationError
from supabase import Client

from src.api.middleware.error_handler import InvalidSignatureError
from src.core.config import Settings
from src.models.order import WebhookEventRecord
from src.services.order_service import OrderService
from src.services.upstream import is_unique_violation, translate_supabase_error

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class WebhookEventData(BaseModel):
    """The ``data`` envelope of a Stripe event."""

    object: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    """A verified Stripe event; ``type`` is the kind discriminator."""

    id: str
    type: str
    created: int | None = None
    livemode: bool = False
    data: WebhookEventData = Field(default_factory=WebhookEventData)

    @property
    def object(self) -> dict[str, Any]:
        """The event's payload object (e.g. the checkout session)."""
        return self.data.object


class WebhookService:
    """Authenticates Stripe notifications and routes them to handlers."""

    def __init__(
        self,
        stripe_client: ModuleType,
        client: Client,
        order_service: OrderService,
        settings: Settings,
    ) -> None:
        """Initialize webhook service.

        Args:
            stripe_client: Configured Stripe SDK module.
            client: Supabase datastore client (for the event ledger).
            order_service: Order materializer.
            settings: Application settings.
        """
        self.stripe = stripe_client
        self.client = client
        self.order_service = order_service
        self.settings = settings

    def verify(self, payload: bytes, sig_header: str | None) -> WebhookEvent:
        """Verify a webhook's signature and decode it.

        The signature covers the exact raw bytes, so ``payload`` must be the
        unparsed request body.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            WebhookEvent: The verified event.

        Raises:
            InvalidSignatureError: Missing header, bad signature, stale
                timestamp, missing secret, or undecodable body.
        """
        if not sig_header:
            raise InvalidSignatureError("Missing Stripe-Signature header")

        secret = self.settings.stripe_webhook_secret
        if not secret:
            logger.error("Stripe webhook secret is not configured")
            raise InvalidSignatureError("Webhook signature cannot be verified")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignatureError("Webhook payload is not valid UTF-8") from e

        try:
            self.stripe.WebhookSignature.verify_header(
                body,
                sig_header,
                secret,
                tolerance=self.settings.webhook_tolerance_seconds,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", e.user_message or "verification failed")
            raise InvalidSignatureError("Invalid signature") from e

        try:
            return WebhookEvent.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Signed webhook payload could not be decoded: %s", type(e).__name__)
            raise InvalidSignatureError("Webhook payload is not a valid event") from e

    async def is_processed(self, event_id: str) -> bool:
        """Check the ledger for an already-handled event id."""
        try:
            response = (
                self.client.table("webhook_events")
                .select("id")
                .eq("id", event_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "check webhook ledger") from e
        return bool(response and response.data)

    async def mark_processed(self, event: WebhookEvent) -> None:
        """Record an event id in the ledger.

        Losing this write is tolerated: the order's unique session id still
        prevents duplicate materialization on redelivery.
        """
        record: WebhookEventRecord = {
            "id": event.id,
            "type": event.type,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table("webhook_events").insert(record).execute()
        except Exception as e:
            if is_unique_violation(e):
                return
            logger.warning("Could not record webhook event %s: %s", event.id, type(e).__name__)

    async def handle(self, event: WebhookEvent) -> dict[str, Any]:
        """Dispatch a verified event exactly once.

        Args:
            event: Verified Stripe event.

        Returns:
            dict: Processing summary with ``duplicate`` and ``handled`` flags.
        """
        if await self.is_processed(event.id):
            logger.info("Skipping already processed webhook event %s (%s)", event.id, event.type)
            return {"duplicate": True, "handled": False}

        handled = False
        if event.type == CHECKOUT_SESSION_COMPLETED:
            result = await self.order_service.materialize_from_session(event.object)
            logger.info(
                "Processed %s for session %s: %s",
                event.type,
                event.object.get("id"),
                result.outcome,
            )
            handled = True
        else:
            # Acknowledge receipt so Stripe stops retrying
            logger.debug("Unhandled webhook event type: %s", event.type)

        await self.mark_processed(event)
        return {"duplicate": False, "handled": handled}
