"""Webhook API routes for Stripe payment events."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.api.deps import CompletionServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/acp/webhooks", tags=["webhooks"])


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe PaymentIntent events. Requires valid signature.",
)
async def stripe_webhook(request: Request, service: CompletionServiceDep) -> dict[str, str]:
    """Handle Stripe webhook events.

    The Stripe signature is verified before processing.

    Handles:
    - payment_intent.succeeded: Marks the checkout completed
    - payment_intent.payment_failed: Marks the checkout failed
    - charge.dispute.created: Logged for follow-up

    Args:
        request: FastAPI request object for reading raw body and headers.
        service: Completion orchestrator.

    Returns:
        dict: Acknowledgment.

    Raises:
        HTTPException: 400 if signature is missing or invalid.
    """
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    try:
        event = service.payment.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.error("Webhook signature verification failed: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook signature verification failed",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing Stripe webhook event: %s", event_type)

    if event_type == "payment_intent.succeeded":
        await service.handle_payment_succeeded(event)

    elif event_type == "payment_intent.payment_failed":
        await service.handle_payment_failed(event)

    elif event_type == "charge.dispute.created":
        dispute = event["data"]["object"]
        logger.warning("Dispute created: %s", dispute.get("id"))

    else:
        # Acknowledge unhandled events so Stripe stops retrying
        logger.debug("Unhandled webhook event type: %s", event_type)

    return {"status": "received"}
