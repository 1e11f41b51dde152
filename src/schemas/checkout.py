"""Checkout Pydantic schemas for the ACP checkout flow."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.models.checkout import CheckoutStatus, RequiredField


class Money(BaseModel):
    """Amount in the currency's smallest unit (cents for USD)."""

    model_config = ConfigDict(from_attributes=True)

    amount: int = Field(ge=0, description="Amount in minor units")
    currency: str = Field(min_length=3, max_length=3, description="ISO 4217 currency code (lowercase)")

    @field_validator("currency")
    @classmethod
    def lowercase_currency(cls, value: str) -> str:
        return value.lower()


class PriceDelta(BaseModel):
    """Signed amount in minor units: positive for a surcharge, negative for a discount."""

    model_config = ConfigDict(from_attributes=True)

    amount: int = Field(description="Signed amount in minor units")
    currency: str = Field(min_length=3, max_length=3, description="ISO 4217 currency code (lowercase)")

    @field_validator("currency")
    @classmethod
    def lowercase_currency(cls, value: str) -> str:
        return value.lower()


class Address(BaseModel):
    """Postal address for shipping or billing."""

    model_config = ConfigDict(from_attributes=True)

    line1: str = Field(min_length=1, description="Street address")
    line2: str | None = Field(default=None, description="Apartment, suite, etc.")
    city: str = Field(min_length=1, description="City")
    state: str | None = Field(default=None, description="State or region")
    postal_code: str = Field(min_length=1, description="Postal code")
    country: str = Field(min_length=2, max_length=2, description="ISO 3166-1 alpha-2 country code")

    @field_validator("country")
    @classmethod
    def uppercase_country(cls, value: str) -> str:
        return value.upper()


# -----------------------------------------------------------------------------
# Catalog
# -----------------------------------------------------------------------------


class ProductVariant(BaseModel):
    """A purchasable variation of a product (size, color)."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    price_adjustment: PriceDelta | None = Field(default=None, description="Added to the base price, may be negative")
    in_stock: bool = True


class Product(BaseModel):
    """Immutable catalog entry."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    price: Money
    images: tuple[str, ...] = ()
    in_stock: bool = True
    variants: tuple[ProductVariant, ...] | None = None


class DeliveryEstimate(BaseModel):
    """Estimated delivery window in business days."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    min: int = Field(ge=0)
    max: int = Field(ge=0)


class ShippingOption(BaseModel):
    """Immutable shipping method offered at checkout."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    price: Money
    estimated_days: DeliveryEstimate


class ProductListResponse(BaseModel):
    """Schema for product list API responses."""

    items: list[Product] = Field(description="Catalog products")


class ShippingOptionListResponse(BaseModel):
    """Schema for shipping option list API responses."""

    items: list[ShippingOption] = Field(description="Available shipping options")


# -----------------------------------------------------------------------------
# Line items
# -----------------------------------------------------------------------------


class LineItem(BaseModel):
    """Cart line as submitted by the agent."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(min_length=1, description="Catalog product id")
    quantity: int = Field(ge=1, le=99, description="Quantity ordered")
    variant_id: str | None = Field(default=None, description="Optional variant id")


class ResolvedLineItem(LineItem):
    """Line item enriched with catalog pricing and display data."""

    name: str = Field(description="Display name, including the variant name")
    unit_price: Money = Field(description="Base price plus variant adjustment")
    total_price: Money = Field(description="unit_price.amount * quantity")
    image_url: str | None = Field(default=None, description="First product image")


# -----------------------------------------------------------------------------
# Checkout session
# -----------------------------------------------------------------------------


class CheckoutSession(BaseModel):
    """Stored checkout session.

    Every field survives a store round trip through ``model_dump(mode="json")``
    and ``model_validate``.
    """

    model_config = ConfigDict(from_attributes=True)

    checkout_id: str
    checkout_reference_id: str
    status: CheckoutStatus
    created_at: datetime
    updated_at: datetime
    line_items: list[ResolvedLineItem]
    subtotal: Money
    shipping_cost: Money | None = None
    tax: Money | None = None
    total: Money
    selected_shipping_option: str | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    buyer_email: str | None = None
    buyer_phone: str | None = None
    available_shipping_options: list[ShippingOption] = Field(default_factory=list)
    required_fields: list[RequiredField] = Field(default_factory=list)
    payment_intent_id: str | None = None
    order_id: str | None = None
    failure_reason: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# -----------------------------------------------------------------------------
# API requests / responses
# -----------------------------------------------------------------------------


class BuyerContext(BaseModel):
    """Optional hints from the agent about the buyer."""

    locale: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    shipping_country: str | None = Field(default=None, min_length=2, max_length=2)


class CreateCheckoutRequest(BaseModel):
    """Schema for POST /acp/checkout."""

    checkout_reference_id: str = Field(min_length=1, max_length=255, description="Agent-side reference")
    line_items: list[LineItem] = Field(min_length=1, max_length=50, description="Items to purchase")
    buyer_context: BuyerContext | None = Field(default=None, description="Buyer hints")
    metadata: dict[str, str] | None = Field(default=None, description="Opaque caller metadata")


class CreateCheckoutResponse(BaseModel):
    """Schema for checkout creation response."""

    model_config = ConfigDict(from_attributes=True)

    checkout_id: str
    checkout_reference_id: str
    status: CheckoutStatus
    line_items: list[ResolvedLineItem]
    subtotal: Money
    total: Money
    shipping_options: list[ShippingOption]
    required_fields: list[RequiredField]


class UpdateCheckoutRequest(BaseModel):
    """Schema for POST /acp/checkout/update.

    Absent fields leave the session untouched; metadata is merged.
    """

    checkout_id: str = Field(min_length=1)
    shipping_option_id: str | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    buyer_email: EmailStr | None = None
    buyer_phone: str | None = None
    metadata: dict[str, str] | None = None
    line_items: list[LineItem] | None = Field(
        default=None,
        min_length=1,
        max_length=50,
        description="Replaces the cart, e.g. after a quantity change",
    )


class UpdateCheckoutResponse(BaseModel):
    """Schema for checkout update response."""

    model_config = ConfigDict(from_attributes=True)

    checkout_id: str
    status: CheckoutStatus
    subtotal: Money
    shipping_cost: Money | None = None
    tax: Money | None = None
    total: Money
    required_fields: list[RequiredField]
    ready_for_payment: bool


class CompleteCheckoutRequest(BaseModel):
    """Schema for POST /acp/checkout/complete."""

    checkout_id: str = Field(min_length=1)
    payment_token: str = Field(min_length=1, description="Shared payment token from the agent")


class CompleteCheckoutResponse(BaseModel):
    """Schema for checkout completion response."""

    checkout_id: str
    status: Literal["completed", "failed"]
    order_id: str | None = None
    failure_reason: str | None = None
