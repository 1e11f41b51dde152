"""Product catalog lookups for checkout."""

from src.core.exceptions import (
    InvalidShippingOptionError,
    ProductNotFoundError,
    VariantNotFoundError,
    VariantOutOfStockError,
)
from src.schemas.checkout import (
    DeliveryEstimate,
    Money,
    Product,
    ProductVariant,
    ShippingOption,
)

# Demo catalog. Loaded once at import and never mutated.
DEMO_PRODUCTS: tuple[Product, ...] = (
    Product(
        id="prod_running_shoe",
        name="Performance Running Shoe",
        description="Lightweight running shoe with responsive cushioning for daily training.",
        price=Money(amount=12999, currency="usd"),
        images=("https://images.unsplash.com/photo-1542291026-7eec264c27ff?w=400",),
        in_stock=True,
        variants=(
            ProductVariant(id="var_size_8", name="Size 8", in_stock=True),
            ProductVariant(id="var_size_9", name="Size 9", in_stock=True),
            ProductVariant(id="var_size_10", name="Size 10", in_stock=True),
            ProductVariant(id="var_size_11", name="Size 11", in_stock=False),
        ),
    ),
    Product(
        id="prod_wireless_earbuds",
        name="Pro Wireless Earbuds",
        description="Active noise cancellation with 24-hour battery life.",
        price=Money(amount=19999, currency="usd"),
        images=("https://images.unsplash.com/photo-1590658268037-6bf12165a8df?w=400",),
        in_stock=True,
        variants=(
            ProductVariant(id="var_color_black", name="Midnight Black", in_stock=True),
            ProductVariant(id="var_color_white", name="Pearl White", in_stock=True),
        ),
    ),
    Product(
        id="prod_laptop_stand",
        name="Ergonomic Laptop Stand",
        description="Aluminum laptop stand with adjustable height for better posture.",
        price=Money(amount=7999, currency="usd"),
        images=("https://images.unsplash.com/photo-1527864550417-7fd91fc51a46?w=400",),
        in_stock=True,
    ),
    Product(
        id="prod_water_bottle",
        name="Insulated Water Bottle",
        description="32oz stainless steel bottle, keeps drinks cold for 24 hours.",
        price=Money(amount=3499, currency="usd"),
        images=("https://images.unsplash.com/photo-1602143407151-7111542de6e8?w=400",),
        in_stock=True,
        variants=(
            ProductVariant(id="var_color_blue", name="Ocean Blue", in_stock=True),
            ProductVariant(id="var_color_green", name="Forest Green", in_stock=True),
            ProductVariant(id="var_color_black", name="Matte Black", in_stock=True),
        ),
    ),
)

DEMO_SHIPPING_OPTIONS: tuple[ShippingOption, ...] = (
    ShippingOption(
        id="ship_standard",
        name="Standard Shipping",
        description="Delivered in 5-7 business days",
        price=Money(amount=599, currency="usd"),
        estimated_days=DeliveryEstimate(min=5, max=7),
    ),
    ShippingOption(
        id="ship_express",
        name="Express Shipping",
        description="Delivered in 2-3 business days",
        price=Money(amount=1299, currency="usd"),
        estimated_days=DeliveryEstimate(min=2, max=3),
    ),
    ShippingOption(
        id="ship_overnight",
        name="Overnight Shipping",
        description="Delivered next business day",
        price=Money(amount=2499, currency="usd"),
        estimated_days=DeliveryEstimate(min=1, max=1),
    ),
)


class CatalogService:
    """Read-only product and shipping catalog.

    All data is immutable, so instances are safe to share across requests
    without locking.
    """

    def __init__(
        self,
        products: tuple[Product, ...] | None = None,
        shipping_options: tuple[ShippingOption, ...] | None = None,
    ) -> None:
        """Initialize catalog service.

        Args:
            products: Optional product list for testing. Defaults to the demo catalog.
            shipping_options: Optional shipping options for testing.
        """
        self._products = {p.id: p for p in (products if products is not None else DEMO_PRODUCTS)}
        self._shipping_options = {
            o.id: o
            for o in (shipping_options if shipping_options is not None else DEMO_SHIPPING_OPTIONS)
        }

    def list_products(self) -> list[Product]:
        """List all catalog products."""
        return list(self._products.values())

    def get_product(self, product_id: str) -> Product:
        """Get a product by id.

        Args:
            product_id: Catalog product id.

        Returns:
            Product: The catalog entry.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def get_variant(self, product: Product, variant_id: str) -> ProductVariant:
        """Get an in-stock variant of a product.

        Args:
            product: The product the variant belongs to.
            variant_id: Variant id within that product.

        Returns:
            ProductVariant: The variant.

        Raises:
            VariantNotFoundError: If the product has no such variant.
            VariantOutOfStockError: If the variant is flagged out of stock.
        """
        for variant in product.variants or ():
            if variant.id == variant_id:
                if not variant.in_stock:
                    raise VariantOutOfStockError(product.id, variant_id)
                return variant
        raise VariantNotFoundError(product.id, variant_id)

    def list_shipping_options(self) -> list[ShippingOption]:
        """List every shipping option offered at checkout."""
        return list(self._shipping_options.values())

    def get_shipping_option(self, option_id: str) -> ShippingOption:
        """Get a shipping option by id.

        Raises:
            InvalidShippingOptionError: If the option is not offered.
        """
        option = self._shipping_options.get(option_id)
        if option is None:
            raise InvalidShippingOptionError(option_id)
        return option


# Global singleton instance
_catalog_service: CatalogService | None = None


def get_catalog_service() -> CatalogService:
    """Get or create the global catalog service instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
