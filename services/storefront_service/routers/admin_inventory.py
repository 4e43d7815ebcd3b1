"""Admin inventory router: stock levels, adjustments and restore drift."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.storefront_service.models import InventoryRecord
from services.storefront_service.schemas import (
    AuditLogResponse,
    InventoryAdjustment,
    InventoryRecordResponse,
)
from services.storefront_service.services import inventory_ledger
from services.storefront_service.services.audit import list_compensation_failures
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


def _record_response(
    record: InventoryRecord, product_name: Optional[str] = None
) -> InventoryRecordResponse:
    return InventoryRecordResponse(
        product_id=record.product_id,
        product_name=product_name,
        quantity=record.quantity,
        low_stock_threshold=record.low_stock_threshold,
        is_low_stock=record.is_low_stock,
        last_restock_at=record.last_restock_at,
        updated_at=record.updated_at,
    )


@router.get("/inventory", response_model=list[InventoryRecordResponse])
async def list_inventory(
    low_stock_only: bool = False,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List stock per product."""
    records = await inventory_ledger.list_inventory(db, low_stock_only=low_stock_only)
    return [
        _record_response(
            record, record.product.product_name if record.product else None
        )
        for record in records
    ]


@router.patch("/inventory/{product_id}", response_model=InventoryRecordResponse)
async def adjust_inventory(
    product_id: int,
    adjustment: InventoryAdjustment,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Adjust inventory (restock or correction)."""
    if (adjustment.delta is None) == (adjustment.quantity is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of delta or quantity",
        )

    if adjustment.delta is not None:
        record = await inventory_ledger.adjust_stock(
            db,
            product_id,
            adjustment.delta,
            performed_by=current_user.user_id,
            notes=adjustment.notes,
        )
    else:
        record = await inventory_ledger.set_stock(
            db,
            product_id,
            adjustment.quantity,
            performed_by=current_user.user_id,
            notes=adjustment.notes,
        )

    logger.info(
        "Inventory for product %s set to %d by %s",
        product_id,
        record.quantity,
        current_user.user_id,
    )
    return _record_response(record)


@router.get("/compensation-failures", response_model=list[AuditLogResponse])
async def get_compensation_failures(
    purchase_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Stock restores that failed on cancellation and need manual correction."""
    return await list_compensation_failures(db, purchase_id=purchase_id, limit=limit)
