"""Admin notification router: direct and bulk messages, sent history and
delivery reminders."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.storefront_service.models import NotificationType
from services.storefront_service.schemas import (
    AdminMessageRequest,
    BulkNotificationRequest,
    BulkNotificationResponse,
    DeliveryReminderRequest,
    DeliveryReminderResponse,
    NotificationHistoryEntry,
    NotificationResponse,
)
from services.storefront_service.services import notifier, purchase_store
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.post(
    "/notifications",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    request: AdminMessageRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Send a free-text order message to a customer."""
    if request.purchase_id is not None:
        await purchase_store.get_purchase(
            db, request.purchase_id, user_id=request.user_id
        )

    notification = await notifier.emit(
        db,
        request.user_id,
        NotificationType.ORDER,
        request.message,
        purchase_id=request.purchase_id,
    )
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification could not be stored",
        )
    return notification


@router.post("/notifications/delivery-reminders", response_model=DeliveryReminderResponse)
async def run_delivery_reminders(
    request: Optional[DeliveryReminderRequest] = None,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Remind customers whose order arrives on the next delivery day."""
    today = request.today if request else None
    sent = await notifier.send_delivery_reminders(db, today=today)
    return DeliveryReminderResponse(
        sent=len(sent),
        notifications=[NotificationResponse.model_validate(n) for n in sent],
    )


@router.post(
    "/notifications/bulk",
    response_model=BulkNotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_bulk_message(
    request: BulkNotificationRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Send one general announcement to every selected user."""
    message = request.message.strip()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Message must not be blank",
        )
    sent, failed = await notifier.emit_many(
        db, request.user_ids, NotificationType.GENERAL, message
    )
    return BulkNotificationResponse(
        sent=len(sent),
        failed=failed,
        notifications=[NotificationResponse.model_validate(n) for n in sent],
    )


@router.get("/notifications/history", response_model=list[NotificationHistoryEntry])
async def list_sent_notifications(
    type: Optional[NotificationType] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=500),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Recently sent notifications across all customers, newest first."""
    rows = await notifier.notification_history(
        db, notification_type=type, user_id=user_id, limit=limit
    )
    return [
        NotificationHistoryEntry(
            **NotificationResponse.model_validate(notification).model_dump(),
            user_id=notification.user_id,
            recipient_name=(profile.full_name or None) if profile else None,
            recipient_email=profile.email if profile else None,
        )
        for notification, profile in rows
    ]


@router.delete(
    "/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_notification(
    notification_id: int,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a notification from the recipient's inbox."""
    await notifier.delete_notification(db, notification_id)
