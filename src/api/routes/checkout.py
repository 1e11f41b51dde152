"""ACP checkout API routes."""

import logging

from fastapi import APIRouter, status

from src.api.deps import ACPAuth, CheckoutServiceDep, CompletionServiceDep
from src.api.middleware.error_handler import NotFoundError
from src.schemas.checkout import (
    CheckoutSession,
    CompleteCheckoutRequest,
    CompleteCheckoutResponse,
    CreateCheckoutRequest,
    CreateCheckoutResponse,
    UpdateCheckoutRequest,
    UpdateCheckoutResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/acp/checkout", tags=["checkout"])


@router.post(
    "",
    response_model=CreateCheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create checkout",
    description="Resolves line items against the catalog and opens a checkout session.",
)
async def create_checkout(
    data: CreateCheckoutRequest,
    _auth: ACPAuth,
    service: CheckoutServiceDep,
) -> CreateCheckoutResponse:
    """Create a checkout session.

    Args:
        data: Checkout creation request.
        service: Checkout service.

    Returns:
        CreateCheckoutResponse: The new session with pricing and required fields.
    """
    return await service.create_checkout(
        checkout_reference_id=data.checkout_reference_id,
        line_items=data.line_items,
        metadata=data.metadata,
    )


@router.post(
    "/update",
    response_model=UpdateCheckoutResponse,
    summary="Update checkout",
    description="Applies shipping, address, contact or cart changes and re-evaluates payment readiness.",
)
async def update_checkout(
    data: UpdateCheckoutRequest,
    _auth: ACPAuth,
    service: CheckoutServiceDep,
) -> UpdateCheckoutResponse:
    """Update a checkout session with partial buyer input.

    Args:
        data: Checkout update request. Absent fields are left unchanged.
        service: Checkout service.

    Returns:
        UpdateCheckoutResponse: Totals, required fields and readiness.
    """
    return await service.update_checkout(
        checkout_id=data.checkout_id,
        shipping_option_id=data.shipping_option_id,
        shipping_address=data.shipping_address,
        billing_address=data.billing_address,
        buyer_email=data.buyer_email,
        buyer_phone=data.buyer_phone,
        metadata=data.metadata,
        line_items=data.line_items,
    )


@router.post(
    "/complete",
    response_model=CompleteCheckoutResponse,
    summary="Complete checkout",
    description="Charges a ready checkout. Payment failures return status=failed with a reason.",
)
async def complete_checkout(
    data: CompleteCheckoutRequest,
    _auth: ACPAuth,
    service: CompletionServiceDep,
) -> CompleteCheckoutResponse:
    """Complete a checkout with the agent's payment token.

    Args:
        data: Completion request.
        service: Completion orchestrator.

    Returns:
        CompleteCheckoutResponse: Order id on success, failure reason otherwise.
    """
    result = await service.complete_checkout(data.checkout_id, data.payment_token)
    logger.info("Checkout %s completion -> %s", data.checkout_id, result.status)
    return result


@router.get(
    "/{checkout_id}",
    response_model=CheckoutSession,
    summary="Get checkout",
    description="Returns the full checkout session.",
)
async def get_checkout(
    checkout_id: str,
    _auth: ACPAuth,
    service: CheckoutServiceDep,
) -> CheckoutSession:
    """Get a checkout session by id.

    Raises:
        NotFoundError: 404 if the checkout does not exist or has expired.
    """
    session = await service.get_checkout(checkout_id)
    if session is None:
        raise NotFoundError(f"Checkout not found: {checkout_id}")
    return session
