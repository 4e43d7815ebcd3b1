"""Purchase aggregate persistence: header, line items and recipient snapshot.

Status is only ever written through ``compare_and_set_status``, a conditional
UPDATE keyed on the expected current status. Concurrent actors racing on the
same purchase therefore cannot both win a transition.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from services.storefront_service.errors import DataIntegrityError, PurchaseNotFound
from services.storefront_service.models import (
    Address,
    Product,
    Profile,
    Purchase,
    PurchaseItem,
    PurchaseStatus,
    TransactionDetails,
)
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

CENT = Decimal("0.01")


@dataclass(frozen=True)
class ReservedLine:
    """Plain copy of a line item, safe to use after the session rolls back."""

    product_id: int
    product_name: str
    quantity: int


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def reserved_lines(purchase: Purchase) -> list[ReservedLine]:
    return [
        ReservedLine(item.product_id, item.product_name, item.quantity)
        for item in purchase.items
    ]


def _with_details(query):
    return query.options(
        selectinload(Purchase.items), selectinload(Purchase.transaction_details)
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_purchase(
    db: AsyncSession,
    *,
    profile: Profile,
    lines: Sequence[tuple[Product, int]],
    address: Optional[Address],
) -> Purchase:
    """Stage a pending purchase with its items and snapshot, then flush.

    Does not commit: checkout commits the purchase together with the
    inventory reservations.
    """
    items = [
        PurchaseItem(
            product_id=product.id,
            product_name=product.product_name,
            quantity=quantity,
            price_at_time=money(product.product_price),
        )
        for product, quantity in lines
    ]
    total = money(sum((item.line_total for item in items), Decimal("0")))

    if address is not None:
        shipping_address = address.formatted()
        address_fields = address.snapshot()
    else:
        shipping_address = profile.location
        address_fields = None

    purchase = Purchase(
        user_id=profile.id,
        email=profile.email,
        total_amount=total,
        status=PurchaseStatus.PENDING,
        user_address_id=address.id if address is not None else None,
        items=items,
        transaction_details=TransactionDetails(
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=profile.email,
            phone_number=profile.phone_number,
            address=shipping_address,
            address_fields=address_fields,
        ),
    )
    db.add(purchase)
    await db.flush()
    return purchase


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


async def get_purchase(
    db: AsyncSession, purchase_id: int, *, user_id: Optional[str] = None
) -> Purchase:
    """Load a purchase fresh from storage.

    With ``user_id`` the lookup is scoped to that customer's own purchases.
    """
    query = _with_details(select(Purchase).where(Purchase.id == purchase_id))
    if user_id is not None:
        query = query.where(Purchase.user_id == user_id)
    try:
        result = await db.execute(query.execution_options(populate_existing=True))
        purchase = result.scalar_one_or_none()
    except LookupError as exc:
        raise DataIntegrityError("purchase", purchase_id, str(exc)) from exc

    if not purchase:
        raise PurchaseNotFound(purchase_id)
    return purchase


async def current_status(db: AsyncSession, purchase_id: int) -> PurchaseStatus:
    try:
        result = await db.execute(
            select(Purchase.status).where(Purchase.id == purchase_id)
        )
        status = result.scalar_one_or_none()
    except LookupError as exc:
        raise DataIntegrityError("purchase", purchase_id, str(exc)) from exc
    if status is None:
        raise PurchaseNotFound(purchase_id)
    return status


async def list_purchases(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[PurchaseStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Purchase], int]:
    """Newest-first page of purchases plus the total match count.

    ``search`` matches the purchase id, the recipient's name or email, or a
    purchased product's name.
    """
    query = select(Purchase)
    if user_id is not None:
        query = query.where(Purchase.user_id == user_id)
    if status is not None:
        query = query.where(Purchase.status == status)
    if search:
        term = search.strip()
        pattern = f"%{term.lower()}%"
        full_name = func.lower(
            TransactionDetails.first_name + " " + TransactionDetails.last_name
        )
        conditions = [
            func.lower(Purchase.email).like(pattern),
            Purchase.transaction_details.has(
                or_(
                    full_name.like(pattern),
                    func.lower(TransactionDetails.email).like(pattern),
                )
            ),
            Purchase.items.any(func.lower(PurchaseItem.product_name).like(pattern)),
        ]
        if term.lstrip("#").isdigit():
            conditions.append(Purchase.id == int(term.lstrip("#")))
        query = query.where(or_(*conditions))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        _with_details(query)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    try:
        result = await db.execute(query)
        purchases = list(result.scalars().all())
    except LookupError as exc:
        raise DataIntegrityError("purchase", "list", str(exc)) from exc
    return purchases, total


async def queue_counts(db: AsyncSession) -> dict[PurchaseStatus, int]:
    """Number of purchases in each status queue (zero for empty queues)."""
    try:
        result = await db.execute(
            select(Purchase.status, func.count()).group_by(Purchase.status)
        )
        counts = {status: count for status, count in result.all()}
    except LookupError as exc:
        raise DataIntegrityError("purchase", "queue", str(exc)) from exc
    return {status: counts.get(status, 0) for status in PurchaseStatus}


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


async def compare_and_set_status(
    db: AsyncSession,
    purchase_id: int,
    expected: PurchaseStatus,
    new: PurchaseStatus,
) -> bool:
    """Move the purchase to ``new`` only if it is still ``expected``.

    Returns False when another actor changed the status first. The caller
    owns the commit.
    """
    result = await db.execute(
        update(Purchase)
        .where(Purchase.id == purchase_id, Purchase.status == expected)
        .values(status=new, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
