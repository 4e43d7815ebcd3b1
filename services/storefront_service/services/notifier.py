"""In-store notification inbox.

``emit`` is fire-and-forget: a notification that cannot be stored is logged
and dropped, never allowed to undo the transition that triggered it.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_today
from libs.common.logging import get_logger
from services.storefront_service.errors import NotificationFailure, NotificationNotFound
from services.storefront_service.models import (
    Notification,
    NotificationType,
    Profile,
    Purchase,
    PurchaseStatus,
)
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def emit(
    db: AsyncSession,
    user_id: str,
    notification_type: NotificationType | str,
    message: str,
    *,
    purchase_id: Optional[int] = None,
    tracking_number: Optional[str] = None,
    expected_delivery_date: Optional[date] = None,
) -> Optional[Notification]:
    """Store one unread notification. Returns None if it could not be stored."""
    type_value = (
        notification_type.value
        if isinstance(notification_type, NotificationType)
        else notification_type
    )
    notification = Notification(
        user_id=user_id,
        type=type_value,
        message=message,
        purchase_id=purchase_id,
        tracking_number=tracking_number,
        expected_delivery_date=expected_delivery_date,
        is_read=False,
    )
    try:
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
    except SQLAlchemyError as exc:
        await db.rollback()
        failure = NotificationFailure(user_id, type_value, exc)
        logger.error("%s", failure, exc_info=exc)
        return None
    return notification


async def emit_many(
    db: AsyncSession,
    user_ids: Iterable[str],
    notification_type: NotificationType | str,
    message: str,
) -> tuple[list[Notification], list[str]]:
    """Send the same message to several users, one notification each.

    Each recipient is attempted on its own; returns the stored notifications
    and the user ids whose notification could not be stored.
    """
    message = message.strip()
    sent: list[Notification] = []
    failed: list[str] = []
    for user_id in dict.fromkeys(user_ids):
        notification = await emit(db, user_id, notification_type, message)
        if notification is None:
            failed.append(user_id)
        else:
            sent.append(notification)

    logger.info(
        "Bulk notification sent to %d user(s), %d failed", len(sent), len(failed)
    )
    return sent, failed


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


async def list_notifications(
    db: AsyncSession,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    result = await db.execute(query.limit(limit))
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar() or 0


async def mark_read(
    db: AsyncSession, user_id: str, notification_id: int
) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        raise NotificationNotFound(notification_id)
    if not notification.is_read:
        notification.is_read = True
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return result.rowcount


async def list_for_purchase(
    db: AsyncSession,
    purchase_id: int,
    notification_type: Optional[NotificationType] = None,
) -> list[Notification]:
    query = select(Notification).where(Notification.purchase_id == purchase_id)
    if notification_type is not None:
        query = query.where(Notification.type == notification_type.value)
    result = await db.execute(query.order_by(Notification.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Sent history
# ---------------------------------------------------------------------------


async def notification_history(
    db: AsyncSession,
    *,
    notification_type: Optional[NotificationType] = None,
    user_id: Optional[str] = None,
    limit: int = 200,
) -> list[tuple[Notification, Optional[Profile]]]:
    """Most recent notifications across all users, newest first, each paired
    with the recipient's profile (None when the user has no profile)."""
    query = select(Notification, Profile).outerjoin(
        Profile, Profile.id == Notification.user_id
    )
    if notification_type is not None:
        query = query.where(Notification.type == notification_type.value)
    if user_id is not None:
        query = query.where(Notification.user_id == user_id)
    query = query.order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).limit(limit)
    result = await db.execute(query)
    return [(notification, profile) for notification, profile in result.all()]


async def delete_notification(db: AsyncSession, notification_id: int) -> None:
    result = await db.execute(
        delete(Notification).where(Notification.id == notification_id)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotificationNotFound(notification_id)
    await db.commit()
    logger.info("Deleted notification %s", notification_id)


# ---------------------------------------------------------------------------
# Delivery reminders
# ---------------------------------------------------------------------------


def _arrival_phrase(lead_days: int) -> str:
    if lead_days == 0:
        return "today"
    if lead_days == 1:
        return "tomorrow"
    return f"in {lead_days} days"


async def send_delivery_reminders(
    db: AsyncSession, today: Optional[date] = None
) -> list[Notification]:
    """Remind customers whose shipment is expected on the next delivery day.

    Only purchases still out for delivery are reminded, and each purchase at
    most once, so the job can run repeatedly.
    """
    today = today or utc_today()
    lead_days = get_settings().DELIVERY_REMINDER_LEAD_DAYS
    due_date = today + timedelta(days=lead_days)
    arrival = _arrival_phrase(lead_days)

    already_reminded = select(Notification.purchase_id).where(
        Notification.type == NotificationType.DELIVERY_REMINDER.value,
        Notification.purchase_id.is_not(None),
    )
    query = (
        select(Notification)
        .join(Purchase, Purchase.id == Notification.purchase_id)
        .where(
            Notification.type == NotificationType.TRACKING_UPDATE.value,
            Notification.expected_delivery_date == due_date,
            Purchase.status == PurchaseStatus.DELIVERING,
            Notification.purchase_id.not_in(already_reminded),
        )
        .order_by(Notification.id)
    )
    result = await db.execute(query)
    due = [
        (n.user_id, n.purchase_id, n.tracking_number, n.expected_delivery_date)
        for n in result.scalars().all()
    ]

    sent: list[Notification] = []
    seen: set[int] = set()
    for user_id, purchase_id, tracking_number, expected in due:
        if purchase_id in seen:
            continue
        seen.add(purchase_id)
        reminder = await emit(
            db,
            user_id,
            NotificationType.DELIVERY_REMINDER,
            f"Your order is expected to arrive {arrival}! Tracking: {tracking_number}",
            purchase_id=purchase_id,
            tracking_number=tracking_number,
            expected_delivery_date=expected,
        )
        if reminder is not None:
            sent.append(reminder)

    logger.info("Sent %d delivery reminder(s) for %s", len(sent), due_date)
    return sent
