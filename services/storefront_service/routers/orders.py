"""Storefront orders router: checkout, order history, and cancellation."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.storefront_service.models import PurchaseStatus
from services.storefront_service.routers._helpers import (
    DEFAULT_PAGE_SIZE,
    total_pages,
    transition_response,
)
from services.storefront_service.schemas import (
    CancelRequest,
    CheckoutRequest,
    PurchaseListResponse,
    PurchaseResponse,
    TransitionResponse,
)
from services.storefront_service.services import order_state_machine, purchase_store
from services.storefront_service.services.checkout import CartLine, checkout
from services.storefront_service.services.order_state_machine import (
    CANCELLATION_REASONS,
    Actor,
    ActorRole,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/checkout", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED
)
async def place_order(
    request: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Place an order; stock is reserved immediately, approval comes later."""
    return await checkout(
        db,
        current_user.user_id,
        [CartLine(item.product_id, item.quantity) for item in request.items],
        address_id=request.address_id,
    )


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("/purchases", response_model=PurchaseListResponse)
async def list_my_purchases(
    status_filter: Optional[PurchaseStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current user's purchases, newest first."""
    purchases, total = await purchase_store.list_purchases(
        db,
        user_id=current_user.user_id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return PurchaseListResponse(
        items=[PurchaseResponse.model_validate(p) for p in purchases],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/purchases/cancellation-reasons", response_model=list[str])
async def list_cancellation_reasons():
    return CANCELLATION_REASONS


@router.get("/purchases/{purchase_id}", response_model=PurchaseResponse)
async def get_my_purchase(
    purchase_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await purchase_store.get_purchase(
        db, purchase_id, user_id=current_user.user_id
    )


@router.post("/purchases/{purchase_id}/cancel", response_model=TransitionResponse)
async def cancel_my_purchase(
    purchase_id: int,
    request: CancelRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel one of the current user's pending purchases."""
    actor = Actor(id=current_user.user_id, role=ActorRole.CUSTOMER)
    result = await order_state_machine.cancel(
        db, purchase_id, actor, reason=request.reason, details=request.details
    )
    return transition_response(result)
