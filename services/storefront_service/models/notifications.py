"""In-store notification inbox."""

from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column


class Notification(Base):
    """Customer inbox item, optionally tied to a purchase.

    ``type`` holds a NotificationType value; the column stays a plain string
    so admin tooling can introduce new tags without a migration.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    purchase_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("purchases.id", ondelete="SET NULL"),
        nullable=True,
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )
    expected_delivery_date: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        Index("ix_notifications_user_id_is_read", "user_id", "is_read"),
        Index("ix_notifications_purchase_id_type", "purchase_id", "type"),
    )

    def __repr__(self):
        return f"<Notification {self.id} {self.type} user={self.user_id}>"
