"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, validate_acp_token
from src.api.middleware.error_handler import AuthenticationError
from src.services.catalog_service import CatalogService, get_catalog_service
from src.services.checkout_service import CheckoutService
from src.services.checkout_store import CheckoutStore, get_checkout_store
from src.services.completion_service import CompletionService
from src.services.payment_service import PaymentService


async def require_acp_auth(
    authorization: Annotated[str | None, Header(description="Bearer token")] = None,
) -> None:
    """Reject ACP requests that do not carry the configured bearer token.

    Args:
        authorization: The Authorization header value.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid.
    """
    try:
        validate_acp_token(authorization)
    except AuthError as e:
        raise AuthenticationError(e.message, details=[{"msg": e.message, "type": e.code.value}]) from e


def get_store() -> CheckoutStore:
    """Get the process-wide checkout store."""
    return get_checkout_store()


def get_catalog() -> CatalogService:
    """Get the product catalog."""
    return get_catalog_service()


def get_checkout_service(
    store: Annotated[CheckoutStore, Depends(get_store)],
    catalog: Annotated[CatalogService, Depends(get_catalog)],
) -> CheckoutService:
    """Build a checkout service over the shared store and catalog."""
    return CheckoutService(store=store, catalog=catalog)


def get_payment_service() -> PaymentService:
    """Build the Stripe payment gateway adapter."""
    return PaymentService()


def get_completion_service(
    checkout_service: Annotated[CheckoutService, Depends(get_checkout_service)],
    payment_service: Annotated[PaymentService, Depends(get_payment_service)],
) -> CompletionService:
    """Build the completion orchestrator."""
    return CompletionService(checkout_service=checkout_service, payment_service=payment_service)


ACPAuth = Annotated[None, Depends(require_acp_auth)]
StoreDep = Annotated[CheckoutStore, Depends(get_store)]
CatalogDep = Annotated[CatalogService, Depends(get_catalog)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
CompletionServiceDep = Annotated[CompletionService, Depends(get_completion_service)]
