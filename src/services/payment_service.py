"""Stripe PaymentIntent gateway adapter."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import stripe

from src.core.config import get_settings
from src.core.exceptions import PaymentError
from src.core.stripe import get_stripe

logger = logging.getLogger(__name__)


@dataclass
class PaymentIntentResult:
    """Outcome of creating a PaymentIntent."""

    id: str
    status: str


class PaymentService:
    """Service wrapping the Stripe PaymentIntent API.

    The checkout core never calls this directly; the completion layer drives
    it between mark_processing and mark_completed / mark_failed.
    """

    def __init__(self) -> None:
        """Initialize payment service with clients."""
        self.stripe = get_stripe()
        self.settings = get_settings()

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str | None = None,
    ) -> PaymentIntentResult:
        """Create a PaymentIntent for a checkout total.

        Args:
            amount: Amount in minor units.
            currency: Lowercase ISO 4217 code.
            metadata: Metadata attached to the intent (checkout id, reference).
            description: Optional statement description.

        Returns:
            PaymentIntentResult: Intent id and status.

        Raises:
            PaymentError: If Stripe is not configured or rejects the request.
        """
        if not self.settings.stripe_secret_key:
            raise PaymentError("Stripe is not configured. Please set STRIPE_SECRET_KEY environment variable.")

        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
            "metadata": metadata,
        }
        if description:
            params["description"] = description

        try:
            intent = self.stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            logger.error("Stripe error creating PaymentIntent: %s", str(e))
            raise PaymentError(e.user_message or str(e)) from e

        logger.info("PaymentIntent created: %s (%s)", intent.id, intent.status)
        return PaymentIntentResult(id=intent.id, status=intent.status)

    def get_payment_intent_status(self, payment_intent_id: str) -> dict[str, Any]:
        """Retrieve the current state of a PaymentIntent.

        Raises:
            PaymentError: If Stripe rejects the request.
        """
        try:
            intent = self.stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            logger.error("Stripe error retrieving PaymentIntent %s: %s", payment_intent_id, str(e))
            raise PaymentError(e.user_message or str(e)) from e

        return {
            "id": intent.id,
            "status": intent.status,
            "amount": intent.amount,
            "currency": intent.currency,
        }

    def cancel_payment_intent(self, payment_intent_id: str) -> bool:
        """Cancel a PaymentIntent, best effort.

        Failures are logged and reported as False, never raised.

        Returns:
            bool: True if Stripe accepted the cancellation.
        """
        try:
            self.stripe.PaymentIntent.cancel(payment_intent_id)
        except stripe.StripeError as e:
            logger.error("Error cancelling PaymentIntent %s: %s", payment_intent_id, str(e))
            return False

        logger.info("Cancelled PaymentIntent: %s", payment_intent_id)
        return True

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and return event.

        The SDK's ``Event`` object is not a dict, so once the signature checks
        out the raw payload is decoded and returned instead.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event as plain JSON data.

        Raises:
            ValueError: If signature is invalid, the payload is malformed, or Stripe not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise ValueError("Stripe webhook secret is not configured. Please set STRIPE_WEBHOOK_SECRET environment variable.")

        try:
            self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e

        # construct_event already rejected payloads that are not JSON
        return json.loads(payload)
