"""Order lifecycle: transition rules and their side effects.

pending -> processing -> delivering -> completed, with cancellation from
pending (customer or operator) and from processing (operator only).

A transition is applied in this order:

1. authorize the actor and read the purchase,
2. check the event against the transition table and its guard,
3. compare-and-set the status and write the audit row in one commit,
4. restore inventory if the purchase was cancelled,
5. notify the customer,
6. re-read the purchase so callers see what storage holds.

Only the actor that wins step 3 performs steps 4 and 5, so a request that
loses a race never restores stock or notifies twice.
"""

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from services.storefront_service.errors import (
    InvalidCancellationReason,
    InvalidTransition,
    MissingTrackingNumber,
    PermissionDenied,
)
from services.storefront_service.models import (
    AuditEntityType,
    NotificationType,
    Purchase,
    PurchaseStatus,
)
from services.storefront_service.services import notifier, purchase_store
from services.storefront_service.services.address_resolver import (
    approval_missing_fields,
)
from services.storefront_service.services.audit import log_audit
from services.storefront_service.services.compensation import (
    CompensationReport,
    run_compensation,
)
from services.storefront_service.services.purchase_store import (
    ReservedLine,
    reserved_lines,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class OrderEvent(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ADVANCE = "advance"
    COMPLETE = "complete"
    CANCEL = "cancel"


class ActorRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Who is asking for a transition."""

    id: str
    role: ActorRole

    @property
    def is_operator(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.SYSTEM)

    @classmethod
    def from_auth_user(cls, user: AuthUser) -> "Actor":
        role = ActorRole.ADMIN if user.is_admin else ActorRole.CUSTOMER
        return cls(id=user.user_id, role=role)


CANCELLATION_REASONS = [
    "Changed my mind",
    "Found a better price elsewhere",
    "No longer need the item",
    "Ordered by mistake",
    "Product delivery time too long",
    "Payment issues",
    "Other",
]


@dataclass
class TransitionPayload:
    tracking_number: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    message: Optional[str] = None
    reason: Optional[str] = None
    details: Optional[str] = None


@dataclass
class TransitionResult:
    purchase: Purchase
    applied: bool
    from_status: PurchaseStatus
    to_status: PurchaseStatus
    compensation: Optional[CompensationReport] = None
    missing_fields: list[str] = field(default_factory=list)


TRANSITIONS: dict[tuple[PurchaseStatus, OrderEvent], PurchaseStatus] = {
    (PurchaseStatus.PENDING, OrderEvent.APPROVE): PurchaseStatus.PROCESSING,
    (PurchaseStatus.PENDING, OrderEvent.REJECT): PurchaseStatus.CANCELLED,
    (PurchaseStatus.PENDING, OrderEvent.CANCEL): PurchaseStatus.CANCELLED,
    (PurchaseStatus.PROCESSING, OrderEvent.ADVANCE): PurchaseStatus.DELIVERING,
    (PurchaseStatus.PROCESSING, OrderEvent.REJECT): PurchaseStatus.CANCELLED,
    (PurchaseStatus.DELIVERING, OrderEvent.COMPLETE): PurchaseStatus.COMPLETED,
}

# Statuses an event can leave a purchase in. Finding one of these after a
# lost race (or a terminal one on re-read) means the event already happened.
EVENT_OUTCOMES: dict[OrderEvent, frozenset[PurchaseStatus]] = {
    OrderEvent.APPROVE: frozenset(
        {PurchaseStatus.PROCESSING, PurchaseStatus.CANCELLED}
    ),
    OrderEvent.REJECT: frozenset({PurchaseStatus.CANCELLED}),
    OrderEvent.CANCEL: frozenset({PurchaseStatus.CANCELLED}),
    OrderEvent.ADVANCE: frozenset({PurchaseStatus.DELIVERING}),
    OrderEvent.COMPLETE: frozenset({PurchaseStatus.COMPLETED}),
}

OPERATOR_EVENTS = frozenset(
    {OrderEvent.APPROVE, OrderEvent.REJECT, OrderEvent.ADVANCE, OrderEvent.COMPLETE}
)

DEFAULT_SHIPPED_MESSAGE = (
    "Your order #{purchase_id} has been shipped! "
    "Track your package using the tracking number below."
)


def allowed_events(status: PurchaseStatus, actor: Actor) -> list[OrderEvent]:
    """Events this actor could trigger on a purchase in ``status``."""
    return [
        event
        for (from_status, event) in TRANSITIONS
        if from_status == status and _may_trigger(actor, event)
    ]


def _may_trigger(actor: Actor, event: OrderEvent) -> bool:
    if event in OPERATOR_EVENTS:
        return actor.is_operator
    return actor.role == ActorRole.CUSTOMER


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


# ---------------------------------------------------------------------------
# Transition
# ---------------------------------------------------------------------------


async def transition(
    db: AsyncSession,
    purchase_id: int,
    event: OrderEvent,
    actor: Actor,
    payload: Optional[TransitionPayload] = None,
) -> TransitionResult:
    """Apply ``event`` to a purchase on behalf of ``actor``.

    Returns ``applied=False`` when the event had already taken effect (a
    repeated request or a concurrent actor got there first). Raises
    InvalidTransition when the event is not legal from the current status.
    """
    payload = payload or TransitionPayload()
    if not _may_trigger(actor, event):
        raise PermissionDenied(actor.id, event.value)

    owner_scope = actor.id if event == OrderEvent.CANCEL else None
    purchase = await purchase_store.get_purchase(db, purchase_id, user_id=owner_scope)
    current = purchase.status
    user_id = purchase.user_id
    lines = reserved_lines(purchase)

    target = TRANSITIONS.get((current, event))
    if target is None:
        if current.is_terminal and current in EVENT_OUTCOMES[event]:
            return await _already_applied(db, purchase_id, event, current)
        raise InvalidTransition(purchase_id, current.value, event.value)

    missing_fields: list[str] = []
    if event == OrderEvent.ADVANCE and _blank(payload.tracking_number):
        raise MissingTrackingNumber(purchase_id)
    if event == OrderEvent.CANCEL and payload.reason is not None:
        if payload.reason not in CANCELLATION_REASONS:
            raise InvalidCancellationReason(payload.reason, CANCELLATION_REASONS)
    if event == OrderEvent.APPROVE:
        missing_fields = await approval_missing_fields(db, purchase)
        if missing_fields:
            target = PurchaseStatus.CANCELLED

    won = await purchase_store.compare_and_set_status(db, purchase_id, current, target)
    if not won:
        await db.rollback()
        observed = await purchase_store.current_status(db, purchase_id)
        if observed in EVENT_OUTCOMES[event]:
            return await _already_applied(db, purchase_id, event, observed)
        raise InvalidTransition(purchase_id, observed.value, event.value)

    await log_audit(
        db,
        AuditEntityType.PURCHASE,
        purchase_id,
        _audit_action(event, missing_fields),
        actor.id,
        old_value={"status": current.value},
        new_value=_audit_details(target, payload, missing_fields),
        notes=payload.reason,
    )
    await db.commit()
    logger.info(
        "Purchase #%s %s -> %s (%s by %s)",
        purchase_id,
        current.value,
        target.value,
        event.value,
        actor.id,
    )

    compensation = None
    if target == PurchaseStatus.CANCELLED:
        compensation = await run_compensation(
            db, purchase_id, lines, performed_by=actor.id
        )

    await _notify(
        db,
        user_id=user_id,
        purchase_id=purchase_id,
        event=event,
        target=target,
        lines=lines,
        payload=payload,
        missing_fields=missing_fields,
    )

    return TransitionResult(
        purchase=await purchase_store.get_purchase(db, purchase_id),
        applied=True,
        from_status=current,
        to_status=target,
        compensation=compensation,
        missing_fields=missing_fields,
    )


async def _already_applied(
    db: AsyncSession,
    purchase_id: int,
    event: OrderEvent,
    observed: PurchaseStatus,
) -> TransitionResult:
    logger.warning(
        "Ignoring %s on purchase #%s: already %s",
        event.value,
        purchase_id,
        observed.value,
    )
    purchase = await purchase_store.get_purchase(db, purchase_id)
    return TransitionResult(
        purchase=purchase,
        applied=False,
        from_status=observed,
        to_status=purchase.status,
    )


def _audit_action(event: OrderEvent, missing_fields: list[str]) -> str:
    if event == OrderEvent.APPROVE and missing_fields:
        return "auto_cancelled_incomplete_profile"
    return f"order_{event.value}"


def _audit_details(
    target: PurchaseStatus, payload: TransitionPayload, missing_fields: list[str]
) -> dict:
    details = {"status": target.value}
    if missing_fields:
        details["missing_fields"] = missing_fields
    if payload.tracking_number:
        details["tracking_number"] = payload.tracking_number
    if payload.expected_delivery_date:
        details["expected_delivery_date"] = payload.expected_delivery_date.isoformat()
    if payload.reason:
        details["reason"] = payload.reason
    if payload.details:
        details["details"] = payload.details
    return details


# ---------------------------------------------------------------------------
# Customer notices
# ---------------------------------------------------------------------------


async def _notify(
    db: AsyncSession,
    *,
    user_id: str,
    purchase_id: int,
    event: OrderEvent,
    target: PurchaseStatus,
    lines: list[ReservedLine],
    payload: TransitionPayload,
    missing_fields: list[str],
) -> None:
    if event == OrderEvent.APPROVE and missing_fields:
        message = (
            f"Your order #{purchase_id} has been cancelled due to incomplete "
            "profile information. Please complete your profile and place the "
            f"order again. Missing: {', '.join(missing_fields)}"
        )
        await notifier.emit(
            db, user_id, NotificationType.ORDER, message, purchase_id=purchase_id
        )
        return

    if event == OrderEvent.APPROVE:
        message = f"Your order #{purchase_id} has been approved and is being processed."
        await notifier.emit(
            db, user_id, NotificationType.ORDER, message, purchase_id=purchase_id
        )
    elif event == OrderEvent.ADVANCE:
        intro = payload.message or DEFAULT_SHIPPED_MESSAGE.format(
            purchase_id=purchase_id
        )
        tracking = payload.tracking_number.strip()
        await notifier.emit(
            db,
            user_id,
            NotificationType.TRACKING_UPDATE,
            f"{intro} - TRACKING NUMBER: {tracking}",
            purchase_id=purchase_id,
            tracking_number=tracking,
            expected_delivery_date=payload.expected_delivery_date,
        )
    elif event == OrderEvent.COMPLETE:
        await notifier.emit(
            db,
            user_id,
            NotificationType.ORDER,
            f"Your order #{purchase_id} has been marked as completed.",
            purchase_id=purchase_id,
        )
        reviewed: set[int] = set()
        for line in lines:
            if line.product_id in reviewed:
                continue
            reviewed.add(line.product_id)
            await notifier.emit(
                db,
                user_id,
                NotificationType.REVIEW_REQUEST,
                f"Please rate and review your purchase: {line.product_name}",
                purchase_id=purchase_id,
            )
    elif target == PurchaseStatus.CANCELLED:
        message = f"Your order #{purchase_id} has been cancelled."
        if payload.reason:
            message += f" Reason: {payload.reason}"
        if payload.message:
            message += f" {payload.message}"
        await notifier.emit(
            db, user_id, NotificationType.ORDER, message, purchase_id=purchase_id
        )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def approve(db: AsyncSession, purchase_id: int, actor: Actor) -> TransitionResult:
    return await transition(db, purchase_id, OrderEvent.APPROVE, actor)


async def reject(
    db: AsyncSession,
    purchase_id: int,
    actor: Actor,
    *,
    reason: Optional[str] = None,
    message: Optional[str] = None,
) -> TransitionResult:
    return await transition(
        db,
        purchase_id,
        OrderEvent.REJECT,
        actor,
        TransitionPayload(reason=reason, message=message),
    )


async def advance(
    db: AsyncSession,
    purchase_id: int,
    actor: Actor,
    *,
    tracking_number: Optional[str],
    expected_delivery_date: Optional[date] = None,
    message: Optional[str] = None,
) -> TransitionResult:
    return await transition(
        db,
        purchase_id,
        OrderEvent.ADVANCE,
        actor,
        TransitionPayload(
            tracking_number=tracking_number,
            expected_delivery_date=expected_delivery_date,
            message=message,
        ),
    )


async def complete(db: AsyncSession, purchase_id: int, actor: Actor) -> TransitionResult:
    return await transition(db, purchase_id, OrderEvent.COMPLETE, actor)


async def cancel(
    db: AsyncSession,
    purchase_id: int,
    actor: Actor,
    reason: Optional[str] = None,
    details: Optional[str] = None,
) -> TransitionResult:
    """Cancel a purchase on behalf of whoever asks.

    Operators cancel through ``reject`` (pending or processing); customers
    may only cancel their own purchases while they are still pending.
    """
    payload = TransitionPayload(reason=reason, details=details)
    event = OrderEvent.REJECT if actor.is_operator else OrderEvent.CANCEL
    return await transition(db, purchase_id, event, actor, payload)
