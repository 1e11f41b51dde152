"""Checkout completion orchestration.

Drives a ready checkout through payment: mark_processing, create the
PaymentIntent, then mark_completed or mark_failed. The checkout service
never talks to the gateway itself.
"""

import logging
from typing import Any
from uuid import uuid4

from src.core.exceptions import (
    AlreadyTerminalError,
    CheckoutError,
    CheckoutIncompleteError,
    CheckoutNotFoundError,
    PaymentError,
)
from src.schemas.checkout import CheckoutSession, CompleteCheckoutResponse
from src.services.checkout_service import CheckoutService
from src.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

PENDING_PAYMENT_REFERENCE = "pending"


def generate_order_id() -> str:
    """Generate an order id (ord_ + 16 hex chars)."""
    return f"ord_{uuid4().hex[:16]}"


class CompletionService:
    """Service completing checkouts against the payment gateway."""

    def __init__(
        self,
        checkout_service: CheckoutService | None = None,
        payment_service: PaymentService | None = None,
    ) -> None:
        """Initialize completion service.

        Args:
            checkout_service: Optional checkout service for testing.
            payment_service: Optional payment gateway for testing.
        """
        self.checkout = checkout_service or CheckoutService()
        self.payment = payment_service or PaymentService()

    async def complete_checkout(self, checkout_id: str, payment_token: str) -> CompleteCheckoutResponse:
        """Charge a ready checkout and record the outcome.

        A gateway failure is not raised: it is recorded with mark_failed and
        returned as a failed completion. Retrying is left to the caller.

        Args:
            checkout_id: Checkout to complete.
            payment_token: Shared payment token from the agent.

        Returns:
            CompleteCheckoutResponse: completed with an order id, or failed with a reason.

        Raises:
            CheckoutNotFoundError: If the checkout does not exist.
            AlreadyTerminalError: If the checkout is already completed or failed.
            CheckoutIncompleteError: If required fields are outstanding.
            StorageError: If the store fails.
        """
        session = await self.checkout.get_checkout(checkout_id)
        if session is None:
            raise CheckoutNotFoundError(checkout_id)
        if session.is_terminal:
            raise AlreadyTerminalError(checkout_id, session.status.value)
        if session.required_fields:
            raise CheckoutIncompleteError(checkout_id, [f.value for f in session.required_fields])

        logger.info("Completing checkout %s (token %s...)", checkout_id, payment_token[:12])
        await self.checkout.mark_processing(checkout_id, PENDING_PAYMENT_REFERENCE)

        try:
            intent = self.payment.create_payment_intent(
                amount=session.total.amount,
                currency=session.total.currency,
                metadata={
                    "acp_checkout_id": session.checkout_id,
                    "acp_checkout_reference": session.checkout_reference_id,
                },
                description=self._describe(session),
            )
        except PaymentError as e:
            failed = await self.checkout.mark_failed(checkout_id, e.message)
            return CompleteCheckoutResponse(
                checkout_id=checkout_id,
                status="failed",
                failure_reason=failed.failure_reason,
            )

        try:
            await self.checkout.mark_processing(checkout_id, intent.id)
            order_id = generate_order_id()
            await self.checkout.mark_completed(checkout_id, order_id)
        except CheckoutError:
            # Release the intent; cancel failures are logged by the gateway
            self.payment.cancel_payment_intent(intent.id)
            raise

        return CompleteCheckoutResponse(
            checkout_id=checkout_id,
            status="completed",
            order_id=order_id,
        )

    async def handle_payment_succeeded(self, event: dict[str, Any]) -> CheckoutSession | None:
        """Process payment_intent.succeeded webhook event.

        Args:
            event: Stripe webhook event data.

        Returns:
            CheckoutSession | None: The completed session, or None if the event
            is not for a checkout or the checkout is already terminal.
        """
        intent = event["data"]["object"]
        checkout_id = (intent.get("metadata") or {}).get("acp_checkout_id")
        if not checkout_id:
            logger.warning("Webhook missing acp_checkout_id in metadata: %s", intent.get("id"))
            return None

        order_id = f"ord_{intent['id'][-16:]}"
        try:
            return await self.checkout.mark_completed(checkout_id, order_id)
        except AlreadyTerminalError as e:
            logger.info("Ignoring payment success for %s checkout %s", e.status, checkout_id)
            return None
        except CheckoutNotFoundError:
            logger.warning("Payment success for unknown or expired checkout %s", checkout_id)
            return None

    async def handle_payment_failed(self, event: dict[str, Any]) -> CheckoutSession | None:
        """Process payment_intent.payment_failed webhook event.

        Args:
            event: Stripe webhook event data.

        Returns:
            CheckoutSession | None: The failed session, or None if the event
            is not for a checkout or the checkout is already terminal.
        """
        intent = event["data"]["object"]
        checkout_id = (intent.get("metadata") or {}).get("acp_checkout_id")
        if not checkout_id:
            logger.warning("Webhook missing acp_checkout_id in metadata: %s", intent.get("id"))
            return None

        last_error = intent.get("last_payment_error") or {}
        reason = last_error.get("message") or "Payment failed"
        try:
            return await self.checkout.mark_failed(checkout_id, reason)
        except AlreadyTerminalError as e:
            logger.info("Ignoring payment failure for %s checkout %s", e.status, checkout_id)
            return None
        except CheckoutNotFoundError:
            logger.warning("Payment failure for unknown or expired checkout %s", checkout_id)
            return None

    @staticmethod
    def _describe(session: CheckoutSession) -> str:
        return "ACP Order - " + ", ".join(item.name for item in session.line_items)
