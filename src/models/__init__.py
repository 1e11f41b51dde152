"""Checkout type definitions shared by the store and services."""

from src.models.checkout import (
    GATING_FIELDS,
    TERMINAL_STATUSES,
    CheckoutSessionRow,
    CheckoutSessionUpdate,
    CheckoutStatus,
    RequiredField,
)

__all__ = [
    "CheckoutStatus",
    "RequiredField",
    "CheckoutSessionUpdate",
    "CheckoutSessionRow",
    "GATING_FIELDS",
    "TERMINAL_STATUSES",
]
