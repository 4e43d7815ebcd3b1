"""Inventory ledger: reservation at checkout and restoration on cancellation.

Quantities are changed with conditional ``UPDATE`` statements so that the
store re-validates stock at write time; a read-then-write in Python would let
two checkouts both take the last unit.
"""

from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.storefront_service.errors import (
    InsufficientStock,
    InvalidCartItem,
    InvalidStockAdjustment,
    InventoryRecordNotFound,
)
from services.storefront_service.models import (
    AuditEntityType,
    InventoryMovement,
    InventoryMovementType,
    InventoryRecord,
)
from services.storefront_service.services.audit import log_audit
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


async def get_record(db: AsyncSession, product_id: int) -> InventoryRecord:
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.product_id == product_id)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise InventoryRecordNotFound(product_id)
    return record


async def available_quantities(
    db: AsyncSession, product_ids: list[int]
) -> dict[int, int]:
    """Current quantity per product; products without a record are absent."""
    if not product_ids:
        return {}
    result = await db.execute(
        select(InventoryRecord.product_id, InventoryRecord.quantity).where(
            InventoryRecord.product_id.in_(product_ids)
        )
    )
    return {product_id: quantity for product_id, quantity in result.all()}


# ---------------------------------------------------------------------------
# Reserve / restore
# ---------------------------------------------------------------------------


async def reserve(
    db: AsyncSession,
    product_id: int,
    quantity: int,
    *,
    purchase_id: Optional[int] = None,
    performed_by: Optional[str] = None,
    commit: bool = True,
) -> int:
    """Decrement stock for one product, refusing to go below zero.

    Returns the remaining quantity. With ``commit=False`` the decrement joins
    the caller's unit of work (checkout reserves every line before committing).
    """
    if quantity <= 0:
        raise InvalidCartItem(product_id, quantity)

    result = await db.execute(
        update(InventoryRecord)
        .where(
            InventoryRecord.product_id == product_id,
            InventoryRecord.quantity >= quantity,
        )
        .values(quantity=InventoryRecord.quantity - quantity, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = (await available_quantities(db, [product_id])).get(product_id)
        if available is None:
            raise InventoryRecordNotFound(product_id)
        logger.warning(
            "Reservation refused for product %s: requested=%d available=%d",
            product_id,
            quantity,
            available,
        )
        raise InsufficientStock(product_id, quantity, available)

    db.add(
        InventoryMovement(
            product_id=product_id,
            movement_type=InventoryMovementType.RESERVATION,
            quantity=-quantity,
            purchase_id=purchase_id,
            performed_by=performed_by,
        )
    )
    if commit:
        await db.commit()

    record = await get_record(db, product_id)
    return record.quantity


async def restore(
    db: AsyncSession,
    product_id: int,
    quantity: int,
    *,
    purchase_id: Optional[int] = None,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    """Increment stock unconditionally and commit. Returns the new quantity."""
    if quantity <= 0:
        raise InvalidCartItem(product_id, quantity)

    result = await db.execute(
        update(InventoryRecord)
        .where(InventoryRecord.product_id == product_id)
        .values(quantity=InventoryRecord.quantity + quantity, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InventoryRecordNotFound(product_id)

    db.add(
        InventoryMovement(
            product_id=product_id,
            movement_type=InventoryMovementType.RELEASE,
            quantity=quantity,
            purchase_id=purchase_id,
            performed_by=performed_by,
            notes=notes,
        )
    )
    await db.commit()

    record = await get_record(db, product_id)
    logger.info(
        "Restored %d unit(s) of product %s (purchase=%s), quantity now %d",
        quantity,
        product_id,
        purchase_id,
        record.quantity,
    )
    return record.quantity


# ---------------------------------------------------------------------------
# Operator stock management
# ---------------------------------------------------------------------------


async def adjust_stock(
    db: AsyncSession,
    product_id: int,
    delta: int,
    *,
    performed_by: str,
    notes: Optional[str] = None,
) -> InventoryRecord:
    """Restock (positive delta) or correct (negative delta) a product's stock."""
    record = await get_record(db, product_id)
    old_quantity = record.quantity

    stmt = update(InventoryRecord).where(InventoryRecord.product_id == product_id)
    if delta < 0:
        stmt = stmt.where(InventoryRecord.quantity >= -delta)
    values = {"quantity": InventoryRecord.quantity + delta, "updated_at": utc_now()}
    if delta > 0:
        values["last_restock_at"] = utc_now()

    result = await db.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidStockAdjustment(product_id, old_quantity, delta)

    db.add(
        InventoryMovement(
            product_id=product_id,
            movement_type=(
                InventoryMovementType.RESTOCK
                if delta > 0
                else InventoryMovementType.ADJUSTMENT
            ),
            quantity=delta,
            notes=notes,
            performed_by=performed_by,
        )
    )
    await log_audit(
        db,
        AuditEntityType.INVENTORY,
        product_id,
        "stock_adjusted",
        performed_by,
        old_value={"quantity": old_quantity},
        new_value={"quantity": old_quantity + delta},
        notes=notes,
    )
    await db.commit()

    return await get_record(db, product_id)


async def set_stock(
    db: AsyncSession,
    product_id: int,
    quantity: int,
    *,
    performed_by: str,
    notes: Optional[str] = None,
) -> InventoryRecord:
    """Overwrite a product's stock count, recorded as an adjustment."""
    record = await get_record(db, product_id)
    delta = quantity - record.quantity
    if quantity < 0:
        raise InvalidStockAdjustment(product_id, record.quantity, delta)
    if delta == 0:
        return record
    return await adjust_stock(
        db, product_id, delta, performed_by=performed_by, notes=notes
    )


async def list_inventory(
    db: AsyncSession, *, low_stock_only: bool = False
) -> list[InventoryRecord]:
    query = select(InventoryRecord).options(selectinload(InventoryRecord.product))
    if low_stock_only:
        query = query.where(
            InventoryRecord.quantity <= InventoryRecord.low_stock_threshold
        )
    result = await db.execute(query.order_by(InventoryRecord.product_id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


async def list_movements(
    db: AsyncSession,
    *,
    purchase_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> list[InventoryMovement]:
    query = select(InventoryMovement)
    if purchase_id is not None:
        query = query.where(InventoryMovement.purchase_id == purchase_id)
    if product_id is not None:
        query = query.where(InventoryMovement.product_id == product_id)
    result = await db.execute(query.order_by(InventoryMovement.id))
    return list(result.scalars().all())


async def outstanding_reservation(db: AsyncSession, purchase_id: int) -> int:
    """Units still held for a purchase (reserved minus released).

    Zero once a cancelled purchase has been fully compensated.
    """
    result = await db.execute(
        select(func.coalesce(func.sum(InventoryMovement.quantity), 0)).where(
            InventoryMovement.purchase_id == purchase_id,
            InventoryMovement.movement_type.in_(
                [InventoryMovementType.RESERVATION, InventoryMovementType.RELEASE]
            ),
        )
    )
    return -int(result.scalar_one())
