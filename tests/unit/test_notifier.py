"""Unit tests for the notification inbox and delivery reminders."""

from datetime import date, timedelta

import pytest
from services.storefront_service.errors import NotificationNotFound
from services.storefront_service.models import NotificationType
from libs.common.config import get_settings
from services.storefront_service.services import notifier, order_state_machine
from services.storefront_service.services.checkout import CartLine, checkout
from services.storefront_service.services.order_state_machine import (
    Actor,
    ActorRole,
)
from tests.factories import seed_customer, seed_product

ADMIN = Actor(id="admin-1", role=ActorRole.ADMIN)
TODAY = date(2026, 3, 10)


async def _shipped(db, *, expected: date, tracking: str = "JT100"):
    profile = await seed_customer(db)
    product = await seed_product(db)
    purchase = await checkout(db, profile.id, [CartLine(product.id, 1)])
    await order_state_machine.approve(db, purchase.id, ADMIN)
    await order_state_machine.advance(
        db,
        purchase.id,
        ADMIN,
        tracking_number=tracking,
        expected_delivery_date=expected,
    )
    return profile, purchase.id


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_emit_stores_unread_notification(db_session):
    notification = await notifier.emit(
        db_session, "user-1", NotificationType.ORDER, "Hello"
    )

    assert notification.id is not None
    assert notification.is_read is False
    assert notification.type == "order"
    assert await notifier.unread_count(db_session, "user-1") == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_notifications_newest_first(db_session):
    for text in ("first", "second", "third"):
        await notifier.emit(db_session, "user-1", NotificationType.ORDER, text)
    await notifier.emit(db_session, "user-2", NotificationType.ORDER, "not mine")

    inbox = await notifier.list_notifications(db_session, "user-1")

    assert [n.message for n in inbox] == ["third", "second", "first"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_read_only_for_owner(db_session):
    notification = await notifier.emit(
        db_session, "user-1", NotificationType.ORDER, "Order placed"
    )

    with pytest.raises(NotificationNotFound):
        await notifier.mark_read(db_session, "user-2", notification.id)

    updated = await notifier.mark_read(db_session, "user-1", notification.id)
    assert updated.is_read is True
    assert await notifier.unread_count(db_session, "user-1") == 0
    assert await notifier.list_notifications(db_session, "user-1", unread_only=True) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_all_read(db_session):
    for text in ("a", "b"):
        await notifier.emit(db_session, "user-1", NotificationType.ORDER, text)
    await notifier.emit(db_session, "user-2", NotificationType.ORDER, "c")

    assert await notifier.mark_all_read(db_session, "user-1") == 2
    assert await notifier.unread_count(db_session, "user-1") == 0
    assert await notifier.unread_count(db_session, "user-2") == 1


# ---------------------------------------------------------------------------
# Bulk messages and sent history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_emit_many_sends_one_general_notice_per_user(db_session):
    sent, failed = await notifier.emit_many(
        db_session,
        ["user-1", "user-2", "user-1"],
        NotificationType.GENERAL,
        "  Store closed on Friday  ",
    )

    assert failed == []
    assert [n.user_id for n in sent] == ["user-1", "user-2"]
    assert {n.type for n in sent} == {"general"}
    assert {n.message for n in sent} == {"Store closed on Friday"}
    assert await notifier.unread_count(db_session, "user-1") == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_emit_many_continues_past_a_failed_recipient(db_session, monkeypatch):
    real_notification = notifier.Notification

    def notification_for(**kwargs):
        if kwargs["user_id"] == "user-2":
            kwargs["message"] = None
        return real_notification(**kwargs)

    monkeypatch.setattr(notifier, "Notification", notification_for)

    sent, failed = await notifier.emit_many(
        db_session, ["user-1", "user-2", "user-3"], NotificationType.GENERAL, "Sale"
    )

    monkeypatch.undo()

    assert failed == ["user-2"]
    assert len(sent) == 2
    assert await notifier.unread_count(db_session, "user-1") == 1
    assert await notifier.unread_count(db_session, "user-2") == 0
    assert await notifier.unread_count(db_session, "user-3") == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_history_is_newest_first_with_recipient_profile(db_session):
    customer_id = (
        await seed_customer(
            db_session, first_name="Ana", last_name="Reyes", email="ana@test.com"
        )
    ).id
    await notifier.emit(db_session, customer_id, NotificationType.ORDER, "older")
    await notifier.emit(db_session, "no-profile", NotificationType.GENERAL, "newer")

    rows = await notifier.notification_history(db_session)

    assert [n.message for n, _ in rows] == ["newer", "older"]
    assert rows[0][1] is None
    assert rows[1][1].full_name == "Ana Reyes"
    assert rows[1][1].email == "ana@test.com"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_history_filters_and_limit(db_session):
    for text in ("a", "b", "c"):
        await notifier.emit(db_session, "user-1", NotificationType.GENERAL, text)
    await notifier.emit(db_session, "user-1", NotificationType.ORDER, "order")
    await notifier.emit(db_session, "user-2", NotificationType.GENERAL, "other")

    general = await notifier.notification_history(
        db_session, notification_type=NotificationType.GENERAL, user_id="user-1"
    )
    latest = await notifier.notification_history(db_session, limit=2)

    assert [n.message for n, _ in general] == ["c", "b", "a"]
    assert [n.message for n, _ in latest] == ["other", "order"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_notification(db_session):
    notification_id = (
        await notifier.emit(db_session, "user-1", NotificationType.GENERAL, "Hi")
    ).id

    await notifier.delete_notification(db_session, notification_id)

    assert await notifier.list_notifications(db_session, "user-1") == []
    with pytest.raises(NotificationNotFound):
        await notifier.delete_notification(db_session, notification_id)


# ---------------------------------------------------------------------------
# Delivery reminders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reminder_sent_once_for_shipment_due_tomorrow(db_session):
    profile, purchase_id = await _shipped(
        db_session, expected=TODAY + timedelta(days=1), tracking="JT777"
    )

    sent = await notifier.send_delivery_reminders(db_session, today=TODAY)
    repeat = await notifier.send_delivery_reminders(db_session, today=TODAY)

    assert len(sent) == 1
    assert sent[0].user_id == profile.id
    assert sent[0].purchase_id == purchase_id
    assert sent[0].message == "Your order is expected to arrive tomorrow! Tracking: JT777"
    assert repeat == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_reminder_for_other_dates(db_session):
    await _shipped(db_session, expected=TODAY + timedelta(days=3))

    assert await notifier.send_delivery_reminders(db_session, today=TODAY) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_reminder_once_completed(db_session):
    _, purchase_id = await _shipped(db_session, expected=TODAY + timedelta(days=1))
    await order_state_machine.complete(db_session, purchase_id, ADMIN)

    assert await notifier.send_delivery_reminders(db_session, today=TODAY) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reminder_wording_follows_lead_days(db_session, monkeypatch):
    monkeypatch.setattr(get_settings(), "DELIVERY_REMINDER_LEAD_DAYS", 3)
    await _shipped(db_session, expected=TODAY + timedelta(days=3), tracking="JT300")

    sent = await notifier.send_delivery_reminders(db_session, today=TODAY)

    assert [n.message for n in sent] == [
        "Your order is expected to arrive in 3 days! Tracking: JT300"
    ]
