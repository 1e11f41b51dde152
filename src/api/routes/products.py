"""Catalog API routes."""

from fastapi import APIRouter

from src.api.deps import CatalogDep
from src.api.middleware.error_handler import NotFoundError
from src.core.exceptions import ProductNotFoundError
from src.schemas.checkout import Product, ProductListResponse, ShippingOptionListResponse

router = APIRouter(tags=["catalog"])


@router.get(
    "/products",
    response_model=ProductListResponse,
    summary="List products",
    description="Returns every product in the catalog, including out-of-stock ones.",
)
async def list_products(catalog: CatalogDep) -> ProductListResponse:
    """List catalog products."""
    return ProductListResponse(items=catalog.list_products())


@router.get(
    "/products/{product_id}",
    response_model=Product,
    summary="Get product by ID",
)
async def get_product(product_id: str, catalog: CatalogDep) -> Product:
    """Get a single product.

    Raises:
        NotFoundError: 404 if the product does not exist.
    """
    try:
        return catalog.get_product(product_id)
    except ProductNotFoundError as e:
        raise NotFoundError(e.message) from e


@router.get(
    "/shipping-options",
    response_model=ShippingOptionListResponse,
    summary="List shipping options",
)
async def list_shipping_options(catalog: CatalogDep) -> ShippingOptionListResponse:
    """List shipping options offered at checkout."""
    return ShippingOptionListResponse(items=catalog.list_shipping_options())
