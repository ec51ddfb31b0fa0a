"""Webhook API routes for Stripe notifications."""

import logging

from fastapi import APIRouter, Request, status

from src.api.deps import WebhookServiceDep
from src.schemas.checkout import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhook",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe webhook events. Requires valid signature.",
)
async def stripe_webhook(request: Request, service: WebhookServiceDep) -> WebhookAck:
    """Handle Stripe webhook events.

    The body is read as raw bytes and is not parsed until the signature has
    been verified against exactly those bytes.

    Handles:
    - checkout.session.completed: materializes the order and clears the cart

    Any other event type is acknowledged without action. Redelivered events
    are acknowledged as no-ops.

    Args:
        request: FastAPI request object for reading raw body and headers.
        service: Webhook service.

    Returns:
        WebhookAck: ``{"received": true}``.

    Raises:
        InvalidSignatureError: 400 if signature is missing or invalid.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    logger.debug("Webhook payload size: %d bytes", len(payload))

    event = service.verify(payload, sig_header)
    logger.info("Processing Stripe webhook event %s (%s, livemode=%s)", event.id, event.type, event.livemode)

    await service.handle(event)

    return WebhookAck(received=True)
