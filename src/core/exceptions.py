"""Checkout domain exceptions.

Every error raised by the checkout core carries a machine-readable ``code``
and a human-readable ``message``. The HTTP layer maps codes to status codes;
nothing in the core retries on failure.
"""

from typing import Any


class CheckoutError(Exception):
    """Base exception for checkout core failures."""

    code: str = "checkout_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize checkout error.

        Args:
            message: Human-readable error message.
            details: Optional structured context for the client.
        """
        self.message = message
        self.details = details
        super().__init__(message)


class CheckoutNotFoundError(CheckoutError):
    """Checkout session does not exist (or has expired)."""

    code = "not_found"

    def __init__(self, checkout_id: str) -> None:
        super().__init__(f"Checkout not found: {checkout_id}", {"checkout_id": checkout_id})
        self.checkout_id = checkout_id


class ProductNotFoundError(CheckoutError):
    """Product id is not in the catalog."""

    code = "product_not_found"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: {product_id}", {"product_id": product_id})


class OutOfStockError(CheckoutError):
    """Product exists but is flagged out of stock."""

    code = "out_of_stock"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product out of stock: {product_id}", {"product_id": product_id})


class VariantNotFoundError(CheckoutError):
    """Variant id does not belong to the product."""

    code = "variant_not_found"

    def __init__(self, product_id: str, variant_id: str) -> None:
        super().__init__(
            f"Variant not found: {variant_id}",
            {"product_id": product_id, "variant_id": variant_id},
        )


class VariantOutOfStockError(CheckoutError):
    """Variant exists but is flagged out of stock."""

    code = "variant_out_of_stock"

    def __init__(self, product_id: str, variant_id: str) -> None:
        super().__init__(
            f"Variant out of stock: {variant_id}",
            {"product_id": product_id, "variant_id": variant_id},
        )


class InvalidShippingOptionError(CheckoutError):
    """Shipping option id is not offered."""

    code = "invalid_shipping_option"

    def __init__(self, shipping_option_id: str) -> None:
        super().__init__(
            f"Invalid shipping option: {shipping_option_id}",
            {"shipping_option_id": shipping_option_id},
        )


class MixedCurrencyError(CheckoutError):
    """Cart contains items priced in more than one currency."""

    code = "mixed_currency"

    def __init__(self, currencies: list[str]) -> None:
        super().__init__(
            "Line items must share a single currency",
            {"currencies": currencies},
        )


class CheckoutValidationError(CheckoutError):
    """Input rejected before any catalog or store access."""

    code = "validation_error"


class AlreadyTerminalError(CheckoutError):
    """Operation attempted on a completed or failed checkout."""

    code = "already_terminal"

    def __init__(self, checkout_id: str, status: str) -> None:
        super().__init__(
            f"Checkout {checkout_id} is already {status}",
            {"checkout_id": checkout_id, "status": status},
        )
        self.checkout_id = checkout_id
        self.status = status


class CheckoutProcessingError(CheckoutError):
    """Buyer input cannot change while a payment is in flight."""

    code = "checkout_processing"

    def __init__(self, checkout_id: str) -> None:
        super().__init__(
            f"Checkout {checkout_id} is processing a payment",
            {"checkout_id": checkout_id},
        )


class CheckoutIncompleteError(CheckoutError):
    """Completion attempted while required fields are outstanding."""

    code = "checkout_incomplete"

    def __init__(self, checkout_id: str, required_fields: list[str]) -> None:
        super().__init__(
            "Checkout is missing required fields",
            {"checkout_id": checkout_id, "required_fields": required_fields},
        )
        self.required_fields = required_fields


class StorageError(CheckoutError):
    """Session store backend failed."""

    code = "storage_error"


class PaymentError(CheckoutError):
    """Payment gateway rejected or failed the charge attempt."""

    code = "payment_error"
