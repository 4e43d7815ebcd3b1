"""Audit trail helpers for order transitions and inventory drift."""

from typing import Optional, Sequence

from libs.common.logging import get_logger
from services.storefront_service.errors import CompensationFailure
from services.storefront_service.models import AuditEntityType, StoreAuditLog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

COMPENSATION_FAILED = "compensation_failed"


async def log_audit(
    db: AsyncSession,
    entity_type: AuditEntityType,
    entity_id: int,
    action: str,
    performed_by: str,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    notes: Optional[str] = None,
) -> StoreAuditLog:
    """Stage an audit event in the caller's unit of work."""
    audit_log = StoreAuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_value=old_value,
        new_value=new_value,
        performed_by=performed_by,
        notes=notes,
    )
    db.add(audit_log)
    return audit_log


async def record_compensation_failures(
    db: AsyncSession,
    failures: Sequence[CompensationFailure],
    performed_by: str,
) -> bool:
    """Flag failed restores for operator reconciliation.

    Best effort: returns False if the flags themselves could not be stored,
    in which case the error log is the only record.
    """
    for failure in failures:
        await log_audit(
            db,
            AuditEntityType.INVENTORY,
            failure.product_id,
            COMPENSATION_FAILED,
            performed_by,
            new_value=failure.payload(),
            notes=f"Restore for purchase #{failure.purchase_id} needs manual correction",
        )
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "Could not flag %d compensation failure(s) for reconciliation",
            len(failures),
        )
        return False
    return True


async def list_compensation_failures(
    db: AsyncSession, *, purchase_id: Optional[int] = None, limit: int = 100
) -> list[StoreAuditLog]:
    """Restores that failed and still need an operator to correct stock."""
    query = select(StoreAuditLog).where(StoreAuditLog.action == COMPENSATION_FAILED)
    if purchase_id is not None:
        query = query.where(
            StoreAuditLog.new_value["purchase_id"].as_integer() == purchase_id
        )
    query = query.order_by(
        StoreAuditLog.performed_at.desc(), StoreAuditLog.id.desc()
    ).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_purchase_history(
    db: AsyncSession, purchase_id: int
) -> list[StoreAuditLog]:
    """Every recorded status change for one purchase, oldest first."""
    query = (
        select(StoreAuditLog)
        .where(
            StoreAuditLog.entity_type == AuditEntityType.PURCHASE,
            StoreAuditLog.entity_id == purchase_id,
        )
        .order_by(StoreAuditLog.performed_at, StoreAuditLog.id)
    )
    result = await db.execute(query)
    return list(result.scalars().all())
