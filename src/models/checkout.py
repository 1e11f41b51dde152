"""Checkout session type definitions for store operations."""

from datetime import datetime
from enum import Enum
from typing import Any, TypedDict


class CheckoutStatus(str, Enum):
    """Checkout session lifecycle states."""

    CREATED = "created"
    PENDING = "pending"
    READY_FOR_PAYMENT = "ready_for_payment"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed sessions accept no further transitions."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({CheckoutStatus.COMPLETED, CheckoutStatus.FAILED})


class RequiredField(str, Enum):
    """Buyer information a checkout may still be missing.

    Only shipping_address, email and shipping_option gate payment; the
    billing address and phone are accepted but never required.
    """

    SHIPPING_ADDRESS = "shipping_address"
    BILLING_ADDRESS = "billing_address"
    EMAIL = "email"
    PHONE = "phone"
    SHIPPING_OPTION = "shipping_option"


# Order matters: this is the order required_fields are reported in.
GATING_FIELDS: tuple[RequiredField, ...] = (
    RequiredField.SHIPPING_ADDRESS,
    RequiredField.EMAIL,
    RequiredField.SHIPPING_OPTION,
)


class CheckoutSessionUpdate(TypedDict, total=False):
    """Fields that can be merged over a stored checkout session.

    Values may be plain JSON data or schema model instances; the store
    re-validates the merged result.
    """

    status: CheckoutStatus
    line_items: list[Any]
    subtotal: Any
    shipping_cost: Any
    tax: Any
    total: Any
    selected_shipping_option: str
    shipping_address: Any
    billing_address: Any
    buyer_email: str
    buyer_phone: str
    required_fields: list[RequiredField]
    payment_intent_id: str
    order_id: str
    failure_reason: str
    metadata: dict[str, str]
    updated_at: datetime


class CheckoutSessionRow(TypedDict):
    """checkout_sessions table row representation (supabase backend)."""

    id: str
    data: dict[str, Any]
    expires_at: str
