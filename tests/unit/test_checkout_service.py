"""Unit tests for CheckoutService."""

import pytest

from src.core.checkout_stats import CheckoutStats
from src.core.exceptions import (
    AlreadyTerminalError,
    CheckoutNotFoundError,
    CheckoutProcessingError,
    CheckoutValidationError,
    InvalidShippingOptionError,
    MixedCurrencyError,
    OutOfStockError,
    ProductNotFoundError,
    VariantNotFoundError,
    VariantOutOfStockError,
)
from src.models.checkout import CheckoutStatus, RequiredField
from src.schemas.checkout import Address, LineItem, Money, PriceDelta, Product, ProductVariant
from src.services.catalog_service import DEMO_SHIPPING_OPTIONS, CatalogService
from src.services.checkout_service import CheckoutService, generate_checkout_id
from src.services.checkout_store import InMemoryCheckoutStore


@pytest.fixture
def shipping_address() -> Address:
    """Create a sample shipping address."""
    return Address(
        line1="123 Main St",
        city="San Francisco",
        state="CA",
        postal_code="94102",
        country="us",
    )


async def create_shoe_checkout(service: CheckoutService) -> str:
    """Create a checkout for one size 10 running shoe and return its id."""
    response = await service.create_checkout(
        checkout_reference_id="ref_001",
        line_items=[LineItem(product_id="prod_running_shoe", quantity=1, variant_id="var_size_10")],
    )
    return response.checkout_id


async def make_ready(service: CheckoutService, checkout_id: str, address: Address) -> None:
    """Fill every gating field of a checkout."""
    await service.update_checkout(
        checkout_id,
        shipping_option_id="ship_standard",
        shipping_address=address,
        buyer_email="buyer@example.com",
    )


class TestGenerateCheckoutId:
    """Tests for generate_checkout_id function."""

    def test_has_prefix_and_length(self) -> None:
        """Test that ids are chk_ followed by 24 hex characters."""
        checkout_id = generate_checkout_id()

        assert checkout_id.startswith("chk_")
        assert len(checkout_id) == 28
        int(checkout_id[4:], 16)

    def test_ids_are_unique(self) -> None:
        """Test that consecutive ids differ."""
        assert len({generate_checkout_id() for _ in range(100)}) == 100


class TestCreateCheckout:
    """Tests for create_checkout method."""

    @pytest.mark.asyncio
    async def test_resolves_variant_line_item(self, checkout_service: CheckoutService) -> None:
        """Test that a variant line is priced and named from the catalog."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_running_shoe", quantity=1, variant_id="var_size_10")],
        )

        assert response.status == CheckoutStatus.CREATED
        assert response.checkout_reference_id == "ref_001"
        assert response.subtotal == Money(amount=12999, currency="usd")
        assert response.total == Money(amount=12999, currency="usd")
        item = response.line_items[0]
        assert item.name == "Performance Running Shoe - Size 10"
        assert item.unit_price.amount == 12999
        assert item.total_price.amount == 12999
        assert item.image_url is not None

    @pytest.mark.asyncio
    async def test_reports_gating_fields_in_order(self, checkout_service: CheckoutService) -> None:
        """Test that a new checkout requires address, email and shipping option."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_laptop_stand", quantity=1)],
        )

        assert response.required_fields == [
            RequiredField.SHIPPING_ADDRESS,
            RequiredField.EMAIL,
            RequiredField.SHIPPING_OPTION,
        ]

    @pytest.mark.asyncio
    async def test_snapshots_shipping_options(self, checkout_service: CheckoutService) -> None:
        """Test that every catalog shipping option is offered."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_laptop_stand", quantity=1)],
        )

        assert [o.id for o in response.shipping_options] == [o.id for o in DEMO_SHIPPING_OPTIONS]

    @pytest.mark.asyncio
    async def test_subtotal_sums_quantities(self, checkout_service: CheckoutService) -> None:
        """Test that subtotal is the sum of unit price times quantity."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[
                LineItem(product_id="prod_laptop_stand", quantity=2),
                LineItem(product_id="prod_water_bottle", quantity=3, variant_id="var_color_blue"),
            ],
        )

        assert response.subtotal.amount == 2 * 7999 + 3 * 3499

    @pytest.mark.asyncio
    async def test_persists_session_and_counts_it(
        self,
        checkout_service: CheckoutService,
        checkout_store: InMemoryCheckoutStore,
        checkout_stats: CheckoutStats,
    ) -> None:
        """Test that the session is stored and the created counter increments."""
        checkout_id = await create_shoe_checkout(checkout_service)

        stored = await checkout_store.get(checkout_id)
        assert stored is not None
        assert stored.status == CheckoutStatus.CREATED
        assert checkout_stats.snapshot().total_created == 1

    @pytest.mark.asyncio
    async def test_stores_metadata(self, checkout_service: CheckoutService) -> None:
        """Test that caller metadata is kept on the session."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_laptop_stand", quantity=1)],
            metadata={"agent": "shopping-assistant"},
        )

        session = await checkout_service.get_checkout(response.checkout_id)
        assert session is not None
        assert session.metadata == {"agent": "shopping-assistant"}

    @pytest.mark.asyncio
    async def test_unknown_product_persists_nothing(
        self,
        checkout_service: CheckoutService,
        checkout_store: InMemoryCheckoutStore,
        checkout_stats: CheckoutStats,
    ) -> None:
        """Test that a bad cart is rejected before touching the store."""
        with pytest.raises(ProductNotFoundError):
            await checkout_service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_missing", quantity=1)],
            )

        assert await checkout_store.count() == 0
        assert checkout_stats.snapshot().total_created == 0

    @pytest.mark.asyncio
    async def test_rejects_out_of_stock_variant(self, checkout_service: CheckoutService) -> None:
        """Test that an out-of-stock variant cannot be bought."""
        with pytest.raises(VariantOutOfStockError):
            await checkout_service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_running_shoe", quantity=1, variant_id="var_size_11")],
            )

    @pytest.mark.asyncio
    async def test_rejects_unknown_variant(self, checkout_service: CheckoutService) -> None:
        """Test that a variant id not on the product is rejected."""
        with pytest.raises(VariantNotFoundError):
            await checkout_service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_running_shoe", quantity=1, variant_id="var_size_99")],
            )

    @pytest.mark.asyncio
    async def test_rejects_variant_on_product_without_variants(
        self, checkout_service: CheckoutService
    ) -> None:
        """Test that a variant id on a variantless product is rejected."""
        with pytest.raises(VariantNotFoundError):
            await checkout_service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_laptop_stand", quantity=1, variant_id="var_size_8")],
            )

    @pytest.mark.asyncio
    async def test_rejects_empty_reference(self, checkout_service: CheckoutService) -> None:
        """Test that an empty checkout reference is rejected."""
        with pytest.raises(CheckoutValidationError):
            await checkout_service.create_checkout(
                checkout_reference_id="",
                line_items=[LineItem(product_id="prod_laptop_stand", quantity=1)],
            )

    @pytest.mark.asyncio
    async def test_rejects_empty_cart(self, checkout_service: CheckoutService) -> None:
        """Test that at least one line item is required."""
        with pytest.raises(CheckoutValidationError):
            await checkout_service.create_checkout(checkout_reference_id="ref_001", line_items=[])

    @pytest.mark.asyncio
    async def test_rejects_too_many_line_items(self, checkout_service: CheckoutService) -> None:
        """Test that more than 50 line items are rejected."""
        items = [LineItem(product_id="prod_laptop_stand", quantity=1)] * 51

        with pytest.raises(CheckoutValidationError):
            await checkout_service.create_checkout(checkout_reference_id="ref_001", line_items=items)

    @pytest.mark.asyncio
    async def test_rejects_out_of_range_quantity(self, checkout_service: CheckoutService) -> None:
        """Test that quantities outside 1..99 are rejected by the service itself."""
        item = LineItem.model_construct(product_id="prod_laptop_stand", quantity=100, variant_id=None)

        with pytest.raises(CheckoutValidationError):
            await checkout_service.create_checkout(checkout_reference_id="ref_001", line_items=[item])

    @pytest.mark.asyncio
    async def test_rejects_out_of_stock_product(self, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a product flagged out of stock cannot be bought."""
        catalog = CatalogService(
            products=(
                Product(id="prod_gone", name="Gone", price=Money(amount=100, currency="usd"), in_stock=False),
            )
        )
        service = CheckoutService(store=checkout_store, catalog=catalog)

        with pytest.raises(OutOfStockError):
            await service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_gone", quantity=1)],
            )

    @pytest.mark.asyncio
    async def test_rejects_mixed_currency(self, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a cart priced in two currencies is rejected."""
        catalog = CatalogService(
            products=(
                Product(id="prod_usd", name="USD item", price=Money(amount=100, currency="usd")),
                Product(id="prod_eur", name="EUR item", price=Money(amount=100, currency="eur")),
            )
        )
        service = CheckoutService(store=checkout_store, catalog=catalog)

        with pytest.raises(MixedCurrencyError):
            await service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[
                    LineItem(product_id="prod_usd", quantity=1),
                    LineItem(product_id="prod_eur", quantity=1),
                ],
            )

        assert await checkout_store.count() == 0

    @pytest.mark.asyncio
    async def test_applies_variant_price_adjustment(self, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a variant price adjustment is added to the unit price."""
        catalog = CatalogService(
            products=(
                Product(
                    id="prod_jacket",
                    name="Jacket",
                    price=Money(amount=5000, currency="usd"),
                    variants=(
                        ProductVariant(
                            id="var_xl",
                            name="XL",
                            price_adjustment=PriceDelta(amount=500, currency="usd"),
                        ),
                    ),
                ),
            )
        )
        service = CheckoutService(store=checkout_store, catalog=catalog)

        response = await service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_jacket", quantity=2, variant_id="var_xl")],
        )

        assert response.line_items[0].unit_price.amount == 5500
        assert response.subtotal.amount == 11000

    @pytest.mark.asyncio
    async def test_applies_variant_discount(self, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a negative price adjustment lowers the unit price."""
        catalog = CatalogService(
            products=(
                Product(
                    id="prod_jacket",
                    name="Jacket",
                    price=Money(amount=5000, currency="usd"),
                    variants=(
                        ProductVariant(
                            id="var_clearance",
                            name="Clearance",
                            price_adjustment=PriceDelta(amount=-500, currency="usd"),
                        ),
                    ),
                ),
            )
        )
        service = CheckoutService(store=checkout_store, catalog=catalog)

        response = await service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_jacket", quantity=2, variant_id="var_clearance")],
        )

        assert response.line_items[0].unit_price.amount == 4500
        assert response.subtotal.amount == 9000

    @pytest.mark.asyncio
    async def test_rejects_discount_below_zero(self, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a discount larger than the base price is rejected."""
        catalog = CatalogService(
            products=(
                Product(
                    id="prod_sticker",
                    name="Sticker",
                    price=Money(amount=300, currency="usd"),
                    variants=(
                        ProductVariant(
                            id="var_free",
                            name="Free",
                            price_adjustment=PriceDelta(amount=-500, currency="usd"),
                        ),
                    ),
                ),
            )
        )
        service = CheckoutService(store=checkout_store, catalog=catalog)

        with pytest.raises(CheckoutValidationError):
            await service.create_checkout(
                checkout_reference_id="ref_001",
                line_items=[LineItem(product_id="prod_sticker", quantity=1, variant_id="var_free")],
            )

        assert await checkout_store.count() == 0


class TestUpdateCheckout:
    """Tests for update_checkout method."""

    @pytest.mark.asyncio
    async def test_all_fields_make_checkout_ready(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that shipping option, address and email together make a checkout payable."""
        checkout_id = await create_shoe_checkout(checkout_service)

        response = await checkout_service.update_checkout(
            checkout_id,
            shipping_option_id="ship_standard",
            shipping_address=shipping_address,
            buyer_email="buyer@example.com",
        )

        assert response.status == CheckoutStatus.READY_FOR_PAYMENT
        assert response.ready_for_payment is True
        assert response.required_fields == []
        assert response.shipping_cost == Money(amount=599, currency="usd")
        assert response.total == Money(amount=13598, currency="usd")

    @pytest.mark.asyncio
    async def test_partial_update_is_pending(self, checkout_service: CheckoutService) -> None:
        """Test that a checkout with outstanding fields is pending."""
        checkout_id = await create_shoe_checkout(checkout_service)

        response = await checkout_service.update_checkout(checkout_id, buyer_email="buyer@example.com")

        assert response.status == CheckoutStatus.PENDING
        assert response.ready_for_payment is False
        assert response.required_fields == [RequiredField.SHIPPING_ADDRESS, RequiredField.SHIPPING_OPTION]
        assert response.total.amount == 12999

    @pytest.mark.asyncio
    async def test_fields_accumulate_across_updates(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that earlier updates are kept when later ones omit them."""
        checkout_id = await create_shoe_checkout(checkout_service)

        await checkout_service.update_checkout(checkout_id, shipping_address=shipping_address)
        await checkout_service.update_checkout(checkout_id, buyer_email="buyer@example.com")
        response = await checkout_service.update_checkout(checkout_id, shipping_option_id="ship_express")

        assert response.ready_for_payment is True
        assert response.total.amount == 12999 + 1299

    @pytest.mark.asyncio
    async def test_changing_shipping_option_recomputes_total(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that switching shipping option replaces the shipping cost."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)

        response = await checkout_service.update_checkout(checkout_id, shipping_option_id="ship_overnight")

        assert response.shipping_cost is not None
        assert response.shipping_cost.amount == 2499
        assert response.total.amount == 12999 + 2499

    @pytest.mark.asyncio
    async def test_line_items_replace_cart(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that new line items recompute subtotal and total."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)

        response = await checkout_service.update_checkout(
            checkout_id,
            line_items=[LineItem(product_id="prod_running_shoe", quantity=2, variant_id="var_size_10")],
        )

        assert response.subtotal.amount == 25998
        assert response.total.amount == 25998 + 599
        assert response.status == CheckoutStatus.READY_FOR_PAYMENT

    @pytest.mark.asyncio
    async def test_merges_metadata(self, checkout_service: CheckoutService) -> None:
        """Test that metadata is merged into the existing map."""
        response = await checkout_service.create_checkout(
            checkout_reference_id="ref_001",
            line_items=[LineItem(product_id="prod_laptop_stand", quantity=1)],
            metadata={"agent": "assistant", "channel": "chat"},
        )

        await checkout_service.update_checkout(response.checkout_id, metadata={"channel": "voice"})

        session = await checkout_service.get_checkout(response.checkout_id)
        assert session is not None
        assert session.metadata == {"agent": "assistant", "channel": "voice"}

    @pytest.mark.asyncio
    async def test_missing_checkout_changes_nothing(
        self,
        checkout_service: CheckoutService,
        checkout_store: InMemoryCheckoutStore,
    ) -> None:
        """Test that updating an unknown checkout raises and stores nothing."""
        await create_shoe_checkout(checkout_service)

        with pytest.raises(CheckoutNotFoundError):
            await checkout_service.update_checkout("chk_missing", buyer_email="buyer@example.com")

        assert await checkout_store.count() == 1

    @pytest.mark.asyncio
    async def test_rejects_unknown_shipping_option(self, checkout_service: CheckoutService) -> None:
        """Test that an unknown shipping option is rejected and nothing changes."""
        checkout_id = await create_shoe_checkout(checkout_service)

        with pytest.raises(InvalidShippingOptionError):
            await checkout_service.update_checkout(
                checkout_id, shipping_option_id="ship_teleport", buyer_email="buyer@example.com"
            )

        session = await checkout_service.get_checkout(checkout_id)
        assert session is not None
        assert session.buyer_email is None
        assert session.status == CheckoutStatus.CREATED

    @pytest.mark.asyncio
    async def test_rejects_terminal_checkout(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that a completed checkout cannot be updated."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)
        await checkout_service.mark_completed(checkout_id, "ord_0123456789abcdef")

        with pytest.raises(AlreadyTerminalError) as exc_info:
            await checkout_service.update_checkout(checkout_id, buyer_email="other@example.com")

        assert exc_info.value.status == "completed"
        session = await checkout_service.get_checkout(checkout_id)
        assert session is not None
        assert session.buyer_email == "buyer@example.com"

    @pytest.mark.asyncio
    async def test_rejects_processing_checkout(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that buyer input cannot change while a payment is in flight."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)
        await checkout_service.mark_processing(checkout_id, "pi_123")

        with pytest.raises(CheckoutProcessingError):
            await checkout_service.update_checkout(checkout_id, shipping_option_id="ship_express")


class TestStateTransitions:
    """Tests for mark_processing, mark_completed and mark_failed."""

    @pytest.mark.asyncio
    async def test_mark_processing_records_reference(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that mark_processing stores the payment reference."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)

        session = await checkout_service.mark_processing(checkout_id, "pi_123")

        assert session.status == CheckoutStatus.PROCESSING
        assert session.payment_intent_id == "pi_123"

    @pytest.mark.asyncio
    async def test_mark_processing_can_replace_reference(
        self, checkout_service: CheckoutService, shipping_address: Address
    ) -> None:
        """Test that a processing checkout accepts a new payment reference."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)
        await checkout_service.mark_processing(checkout_id, "pending")

        session = await checkout_service.mark_processing(checkout_id, "pi_456")

        assert session.payment_intent_id == "pi_456"

    @pytest.mark.asyncio
    async def test_mark_completed_sets_order_and_counts(
        self,
        checkout_service: CheckoutService,
        checkout_stats: CheckoutStats,
        shipping_address: Address,
    ) -> None:
        """Test that completion stores the order id and bumps the completed counter."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await make_ready(checkout_service, checkout_id, shipping_address)
        await checkout_service.mark_processing(checkout_id, "pi_123")

        session = await checkout_service.mark_completed(checkout_id, "ord_0123456789abcdef")

        assert session.status == CheckoutStatus.COMPLETED
        assert session.order_id == "ord_0123456789abcdef"
        assert session.payment_intent_id == "pi_123"
        assert checkout_stats.snapshot().total_completed == 1

    @pytest.mark.asyncio
    async def test_mark_failed_sets_reason_and_counts(
        self, checkout_service: CheckoutService, checkout_stats: CheckoutStats
    ) -> None:
        """Test that failure stores the reason and bumps the failed counter."""
        checkout_id = await create_shoe_checkout(checkout_service)

        session = await checkout_service.mark_failed(checkout_id, "Card declined")

        assert session.status == CheckoutStatus.FAILED
        assert session.failure_reason == "Card declined"
        assert checkout_stats.snapshot().total_failed == 1

    @pytest.mark.asyncio
    async def test_terminal_checkout_rejects_every_transition(
        self, checkout_service: CheckoutService, checkout_stats: CheckoutStats
    ) -> None:
        """Test that no transition is accepted after a terminal state."""
        checkout_id = await create_shoe_checkout(checkout_service)
        await checkout_service.mark_failed(checkout_id, "Card declined")

        with pytest.raises(AlreadyTerminalError):
            await checkout_service.mark_completed(checkout_id, "ord_0123456789abcdef")
        with pytest.raises(AlreadyTerminalError):
            await checkout_service.mark_failed(checkout_id, "again")
        with pytest.raises(AlreadyTerminalError):
            await checkout_service.mark_processing(checkout_id, "pi_123")

        session = await checkout_service.get_checkout(checkout_id)
        assert session is not None
        assert session.status == CheckoutStatus.FAILED
        assert session.failure_reason == "Card declined"
        snapshot = checkout_stats.snapshot()
        assert snapshot.total_failed == 1
        assert snapshot.total_completed == 0

    @pytest.mark.asyncio
    async def test_transitions_on_missing_checkout(self, checkout_service: CheckoutService) -> None:
        """Test that transitions on an unknown checkout raise not found."""
        with pytest.raises(CheckoutNotFoundError):
            await checkout_service.mark_completed("chk_missing", "ord_0123456789abcdef")
        with pytest.raises(CheckoutNotFoundError):
            await checkout_service.mark_failed("chk_missing", "reason")
        with pytest.raises(CheckoutNotFoundError):
            await checkout_service.mark_processing("chk_missing", "pi_123")


class TestPricingHelpers:
    """Tests for the static pricing and readiness helpers."""

    def test_calculate_total_treats_absent_parts_as_zero(self) -> None:
        """Test that total equals subtotal when shipping and tax are absent."""
        subtotal = Money(amount=1000, currency="usd")

        assert CheckoutService.calculate_total(subtotal, None, None) == subtotal

    def test_calculate_total_adds_shipping_and_tax(self) -> None:
        """Test that total is subtotal plus shipping plus tax."""
        total = CheckoutService.calculate_total(
            Money(amount=1000, currency="usd"),
            Money(amount=599, currency="usd"),
            Money(amount=80, currency="usd"),
        )

        assert total == Money(amount=1679, currency="usd")

    def test_calculate_subtotal_of_empty_cart(self) -> None:
        """Test that an empty cart is zero in the default currency."""
        assert CheckoutService.calculate_subtotal([]) == Money(amount=0, currency="usd")

    def test_remaining_fields_ignore_billing_and_phone(self, shipping_address: Address) -> None:
        """Test that only the gating fields are ever reported."""
        remaining = CheckoutService.get_remaining_required_fields(
            shipping_address=shipping_address,
            buyer_email="buyer@example.com",
            selected_shipping_option="ship_standard",
        )

        assert remaining == []

    def test_empty_email_counts_as_missing(self) -> None:
        """Test that an empty email string does not satisfy the email field."""
        remaining = CheckoutService.get_remaining_required_fields(
            shipping_address=None,
            buyer_email="",
            selected_shipping_option=None,
        )

        assert remaining == [
            RequiredField.SHIPPING_ADDRESS,
            RequiredField.EMAIL,
            RequiredField.SHIPPING_OPTION,
        ]
