"""Admin order queue router: review, search and move purchases through fulfilment."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.storefront_service.models import PurchaseStatus
from services.storefront_service.routers._helpers import (
    DEFAULT_PAGE_SIZE,
    total_pages,
    transition_response,
)
from services.storefront_service.schemas import (
    AdminPurchaseListResponse,
    AdvanceRequest,
    InventoryMovementResponse,
    PurchaseMovementsResponse,
    PurchaseResponse,
    RejectRequest,
    TransitionResponse,
)
from services.storefront_service.services import (
    inventory_ledger,
    order_state_machine,
    purchase_store,
)
from services.storefront_service.services.order_state_machine import Actor
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


# ============================================================================
# QUEUES
# ============================================================================


@router.get("/purchases", response_model=AdminPurchaseListResponse)
async def list_purchases(
    status_filter: Optional[PurchaseStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, description="Purchase id, customer or product"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List purchases in a status queue (admin)."""
    purchases, total = await purchase_store.list_purchases(
        db, status=status_filter, search=q, page=page, page_size=page_size
    )
    return AdminPurchaseListResponse(
        items=[PurchaseResponse.model_validate(p) for p in purchases],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
        queue_counts=await purchase_store.queue_counts(db),
    )


@router.get("/purchases/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(
    purchase_id: int,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await purchase_store.get_purchase(db, purchase_id)


@router.get(
    "/purchases/{purchase_id}/movements", response_model=PurchaseMovementsResponse
)
async def get_purchase_movements(
    purchase_id: int,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Stock reserved and released for one purchase."""
    await purchase_store.get_purchase(db, purchase_id)
    return PurchaseMovementsResponse(
        purchase_id=purchase_id,
        outstanding_reservation=await inventory_ledger.outstanding_reservation(
            db, purchase_id
        ),
        movements=[
            InventoryMovementResponse.model_validate(m)
            for m in await inventory_ledger.list_movements(db, purchase_id=purchase_id)
        ],
    )


# ============================================================================
# TRANSITIONS
# ============================================================================


@router.post("/purchases/{purchase_id}/approve", response_model=TransitionResponse)
async def approve_purchase(
    purchase_id: int,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Approve a pending purchase; an incomplete profile cancels it instead."""
    result = await order_state_machine.approve(
        db, purchase_id, Actor.from_auth_user(current_user)
    )
    return transition_response(result)


@router.post("/purchases/{purchase_id}/reject", response_model=TransitionResponse)
async def reject_purchase(
    purchase_id: int,
    request: Optional[RejectRequest] = None,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    request = request or RejectRequest()
    result = await order_state_machine.reject(
        db,
        purchase_id,
        Actor.from_auth_user(current_user),
        reason=request.reason,
        message=request.message,
    )
    return transition_response(result)


@router.post("/purchases/{purchase_id}/advance", response_model=TransitionResponse)
async def ship_purchase(
    purchase_id: int,
    request: AdvanceRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Hand a processing purchase to the carrier."""
    result = await order_state_machine.advance(
        db,
        purchase_id,
        Actor.from_auth_user(current_user),
        tracking_number=request.tracking_number,
        expected_delivery_date=request.expected_delivery_date,
        message=request.message,
    )
    return transition_response(result)


@router.post("/purchases/{purchase_id}/complete", response_model=TransitionResponse)
async def complete_purchase(
    purchase_id: int,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await order_state_machine.complete(
        db, purchase_id, Actor.from_auth_user(current_user)
    )
    return transition_response(result)
