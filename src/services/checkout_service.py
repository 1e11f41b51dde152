"""Checkout session business logic service."""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from src.core.exceptions import (
    AlreadyTerminalError,
    CheckoutNotFoundError,
    CheckoutProcessingError,
    CheckoutValidationError,
    MixedCurrencyError,
    OutOfStockError,
)
from src.models.checkout import (
    GATING_FIELDS,
    CheckoutSessionUpdate,
    CheckoutStatus,
    RequiredField,
)
from src.schemas.checkout import (
    Address,
    CheckoutSession,
    CreateCheckoutResponse,
    LineItem,
    Money,
    ResolvedLineItem,
    UpdateCheckoutResponse,
)
from src.services.catalog_service import CatalogService, get_catalog_service
from src.services.checkout_store import CheckoutStore, get_checkout_store

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "usd"
MAX_LINE_ITEMS = 50
MIN_QUANTITY = 1
MAX_QUANTITY = 99


def generate_checkout_id() -> str:
    """Generate a globally unique checkout id (chk_ + 24 hex chars)."""
    return f"chk_{uuid4().hex[:24]}"


class CheckoutService:
    """Service owning the checkout session state machine.

    Status moves created -> pending <-> ready_for_payment -> processing ->
    completed | failed. The generic update path only ever produces pending or
    ready_for_payment; processing and the terminal states are reached through
    the mark_* transitions.
    """

    def __init__(
        self,
        store: CheckoutStore | None = None,
        catalog: CatalogService | None = None,
    ) -> None:
        """Initialize checkout service.

        Args:
            store: Optional session store for testing.
            catalog: Optional catalog for testing.
        """
        self.store = store if store is not None else get_checkout_store()
        self.catalog = catalog if catalog is not None else get_catalog_service()

    async def create_checkout(
        self,
        checkout_reference_id: str,
        line_items: Sequence[LineItem],
        metadata: dict[str, str] | None = None,
    ) -> CreateCheckoutResponse:
        """Create a checkout session from cart line items.

        Args:
            checkout_reference_id: Caller-supplied reference, non-empty.
            line_items: 1 to 50 items, each with quantity 1 to 99.
            metadata: Optional opaque caller metadata.

        Returns:
            CreateCheckoutResponse: The new session projection.

        Raises:
            CheckoutValidationError: If the reference or items are malformed.
            ProductNotFoundError, OutOfStockError: If a product cannot be sold.
            VariantNotFoundError, VariantOutOfStockError: If a variant cannot be sold.
            MixedCurrencyError: If items are priced in different currencies.
            StorageError: If the session cannot be persisted.
        """
        if not checkout_reference_id:
            raise CheckoutValidationError("checkout_reference_id must not be empty")

        # Resolve before touching the store so a bad cart persists nothing
        resolved_items = self.resolve_line_items(line_items)
        subtotal = self.calculate_subtotal(resolved_items)

        now = datetime.now(timezone.utc)
        session = CheckoutSession(
            checkout_id=generate_checkout_id(),
            checkout_reference_id=checkout_reference_id,
            status=CheckoutStatus.CREATED,
            created_at=now,
            updated_at=now,
            line_items=resolved_items,
            subtotal=subtotal,
            total=subtotal,
            available_shipping_options=self.catalog.list_shipping_options(),
            required_fields=list(GATING_FIELDS),
            metadata=dict(metadata or {}),
        )

        await self.store.create(session)
        logger.info(
            "Checkout %s created for reference %s (%d items, subtotal %d %s)",
            session.checkout_id,
            checkout_reference_id,
            len(resolved_items),
            subtotal.amount,
            subtotal.currency,
        )

        return CreateCheckoutResponse(
            checkout_id=session.checkout_id,
            checkout_reference_id=session.checkout_reference_id,
            status=session.status,
            line_items=session.line_items,
            subtotal=session.subtotal,
            total=session.total,
            shipping_options=session.available_shipping_options,
            required_fields=session.required_fields,
        )

    async def update_checkout(
        self,
        checkout_id: str,
        shipping_option_id: str | None = None,
        shipping_address: Address | None = None,
        billing_address: Address | None = None,
        buyer_email: str | None = None,
        buyer_phone: str | None = None,
        metadata: dict[str, str] | None = None,
        line_items: Sequence[LineItem] | None = None,
    ) -> UpdateCheckoutResponse:
        """Apply buyer input to a checkout and re-evaluate payment readiness.

        Only the arguments that are given change the session; metadata is
        merged into the existing map. Passing line_items replaces the cart
        (used for quantity changes) and recomputes the subtotal.

        Field updates, total, required fields and status are computed in
        memory and written to the store in one update, so no partially
        recomputed session is ever persisted.

        Returns:
            UpdateCheckoutResponse: Pricing and readiness after the update.

        Raises:
            CheckoutNotFoundError: If the session does not exist.
            AlreadyTerminalError: If the session is completed or failed.
            CheckoutProcessingError: If a payment is in flight.
            InvalidShippingOptionError: If the shipping option is unknown.
            StorageError: If the store read or write fails.
        """
        session = await self.store.get(checkout_id)
        if session is None:
            raise CheckoutNotFoundError(checkout_id)
        if session.is_terminal:
            raise AlreadyTerminalError(checkout_id, session.status.value)
        if session.status == CheckoutStatus.PROCESSING:
            raise CheckoutProcessingError(checkout_id)

        updates: dict[str, Any] = {}

        if line_items is not None:
            resolved_items = self.resolve_line_items(line_items)
            updates["line_items"] = resolved_items
            updates["subtotal"] = self.calculate_subtotal(resolved_items)

        if shipping_option_id is not None:
            option = self.catalog.get_shipping_option(shipping_option_id)
            updates["selected_shipping_option"] = option.id
            updates["shipping_cost"] = option.price

        if shipping_address is not None:
            updates["shipping_address"] = shipping_address
        if billing_address is not None:
            updates["billing_address"] = billing_address
        if buyer_email is not None:
            updates["buyer_email"] = buyer_email
        if buyer_phone is not None:
            updates["buyer_phone"] = buyer_phone
        if metadata is not None:
            updates["metadata"] = {**session.metadata, **metadata}

        subtotal = updates.get("subtotal", session.subtotal)
        updates["total"] = self.calculate_total(
            subtotal, updates.get("shipping_cost", session.shipping_cost), session.tax
        )

        required = self.get_remaining_required_fields(
            shipping_address=updates.get("shipping_address", session.shipping_address),
            buyer_email=updates.get("buyer_email", session.buyer_email),
            selected_shipping_option=updates.get(
                "selected_shipping_option", session.selected_shipping_option
            ),
        )
        updates["required_fields"] = required
        updates["status"] = CheckoutStatus.READY_FOR_PAYMENT if not required else CheckoutStatus.PENDING

        updated = await self.store.update(checkout_id, CheckoutSessionUpdate(**updates))
        logger.info(
            "Checkout %s updated -> %s (total %d %s, %d required fields)",
            checkout_id,
            updated.status.value,
            updated.total.amount,
            updated.total.currency,
            len(updated.required_fields),
        )

        return UpdateCheckoutResponse(
            checkout_id=updated.checkout_id,
            status=updated.status,
            subtotal=updated.subtotal,
            shipping_cost=updated.shipping_cost,
            tax=updated.tax,
            total=updated.total,
            required_fields=updated.required_fields,
            ready_for_payment=len(updated.required_fields) == 0,
        )

    async def get_checkout(self, checkout_id: str) -> CheckoutSession | None:
        """Get a checkout session by id.

        Returns:
            CheckoutSession | None: The session, or None if absent or expired.
        """
        return await self.store.get(checkout_id)

    async def mark_processing(self, checkout_id: str, payment_reference: str) -> CheckoutSession:
        """Record that a payment attempt is in flight.

        May be called again while processing to replace a placeholder
        reference with the gateway's payment intent id.

        Raises:
            CheckoutNotFoundError: If the session does not exist.
            AlreadyTerminalError: If the session is completed or failed.
        """
        await self._require_non_terminal(checkout_id)
        return await self.store.update(
            checkout_id,
            CheckoutSessionUpdate(
                status=CheckoutStatus.PROCESSING,
                payment_intent_id=payment_reference,
            ),
        )

    async def mark_completed(self, checkout_id: str, order_id: str) -> CheckoutSession:
        """Move a checkout to completed with the given order id. Terminal.

        Raises:
            CheckoutNotFoundError: If the session does not exist.
            AlreadyTerminalError: If the session is completed or failed.
        """
        await self._require_non_terminal(checkout_id)
        session = await self.store.update(
            checkout_id,
            CheckoutSessionUpdate(status=CheckoutStatus.COMPLETED, order_id=order_id),
        )
        logger.info("Checkout %s completed -> order %s", checkout_id, order_id)
        return session

    async def mark_failed(self, checkout_id: str, reason: str) -> CheckoutSession:
        """Move a checkout to failed with the given reason. Terminal.

        Raises:
            CheckoutNotFoundError: If the session does not exist.
            AlreadyTerminalError: If the session is completed or failed.
        """
        await self._require_non_terminal(checkout_id)
        session = await self.store.update(
            checkout_id,
            CheckoutSessionUpdate(status=CheckoutStatus.FAILED, failure_reason=reason),
        )
        logger.warning("Checkout %s failed: %s", checkout_id, reason)
        return session

    async def _require_non_terminal(self, checkout_id: str) -> CheckoutSession:
        session = await self.store.get(checkout_id)
        if session is None:
            raise CheckoutNotFoundError(checkout_id)
        if session.is_terminal:
            logger.warning(
                "Rejected transition on terminal checkout %s (%s)",
                checkout_id,
                session.status.value,
            )
            raise AlreadyTerminalError(checkout_id, session.status.value)
        return session

    def resolve_line_items(self, items: Sequence[LineItem]) -> list[ResolvedLineItem]:
        """Resolve cart lines against the catalog.

        Raises:
            CheckoutValidationError: If the cart is empty, too large, or a quantity is out of range.
            ProductNotFoundError: If a product does not exist.
            OutOfStockError: If a product is out of stock.
            VariantNotFoundError, VariantOutOfStockError: If a variant cannot be sold.
            MixedCurrencyError: If prices span more than one currency.
        """
        if not items:
            raise CheckoutValidationError("line_items must not be empty")
        if len(items) > MAX_LINE_ITEMS:
            raise CheckoutValidationError(f"line_items must not exceed {MAX_LINE_ITEMS} entries")

        resolved: list[ResolvedLineItem] = []
        for item in items:
            if not MIN_QUANTITY <= item.quantity <= MAX_QUANTITY:
                raise CheckoutValidationError(
                    f"quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}",
                    {"product_id": item.product_id, "quantity": item.quantity},
                )

            product = self.catalog.get_product(item.product_id)
            if not product.in_stock:
                raise OutOfStockError(item.product_id)

            name = product.name
            unit_amount = product.price.amount
            currencies = {product.price.currency}
            if item.variant_id:
                variant = self.catalog.get_variant(product, item.variant_id)
                name = f"{product.name} - {variant.name}"
                if variant.price_adjustment is not None:
                    unit_amount += variant.price_adjustment.amount
                    currencies.add(variant.price_adjustment.currency)

            if len(currencies) > 1:
                raise MixedCurrencyError(sorted(currencies))
            if unit_amount < 0:
                raise CheckoutValidationError(
                    f"Adjusted unit price for {item.product_id} is negative",
                    {"product_id": item.product_id, "variant_id": item.variant_id},
                )

            unit_price = Money(amount=unit_amount, currency=product.price.currency)
            resolved.append(
                ResolvedLineItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    variant_id=item.variant_id,
                    name=name,
                    unit_price=unit_price,
                    total_price=Money(amount=unit_amount * item.quantity, currency=unit_price.currency),
                    image_url=product.images[0] if product.images else None,
                )
            )

        currencies = sorted({item.unit_price.currency for item in resolved})
        if len(currencies) > 1:
            raise MixedCurrencyError(currencies)

        return resolved

    @staticmethod
    def calculate_subtotal(items: Sequence[ResolvedLineItem]) -> Money:
        """Sum line totals in the currency of the first item."""
        currency = items[0].total_price.currency if items else DEFAULT_CURRENCY
        return Money(amount=sum(item.total_price.amount for item in items), currency=currency)

    @staticmethod
    def calculate_total(subtotal: Money, shipping_cost: Money | None, tax: Money | None) -> Money:
        """total = subtotal + shipping + tax, absent parts counting as zero."""
        amount = subtotal.amount
        if shipping_cost is not None:
            amount += shipping_cost.amount
        if tax is not None:
            amount += tax.amount
        return Money(amount=amount, currency=subtotal.currency)

    @staticmethod
    def get_remaining_required_fields(
        shipping_address: Address | None,
        buyer_email: str | None,
        selected_shipping_option: str | None,
    ) -> list[RequiredField]:
        """Derive the gating fields still missing, in reporting order."""
        present = {
            RequiredField.SHIPPING_ADDRESS: shipping_address is not None,
            RequiredField.EMAIL: bool(buyer_email),
            RequiredField.SHIPPING_OPTION: bool(selected_shipping_option),
        }
        return [field for field in GATING_FIELDS if not present[field]]
