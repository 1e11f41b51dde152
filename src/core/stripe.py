"""Stripe client configuration and singleton."""

import logging

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    """Configure Stripe SDK with API key from settings.

    This should be called once at application startup.
    If Stripe keys are not configured, payment attempts fail with clear errors.
    """
    settings = get_settings()
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
        if settings.is_stripe_test_mode:
            logger.info("Stripe configured in test mode")
    else:
        logger.warning("Stripe secret key not configured. Checkout completion will fail.")


def get_stripe() -> stripe:
    """Get the Stripe module used by the payment gateway.

    The SDK is configured at module level by configure_stripe() during
    startup. Tests patch this function to swap in a mock.

    Returns:
        stripe: The configured Stripe module.
    """
    return stripe
