"""Customer models: profiles and saved delivery addresses."""

from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# PROFILE MODEL
# ============================================================================


class Profile(Base):
    """Customer profile keyed by the auth user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True
    )  # Free-text address on the profile form

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    addresses = relationship(
        "Address", back_populates="profile", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name]
        return " ".join(p.strip() for p in parts if p and p.strip())

    def __repr__(self):
        return f"<Profile {self.id}>"


# ============================================================================
# ADDRESS MODEL
# ============================================================================


class Address(Base):
    """Saved delivery addresses.

    ``recipient_name`` mirrors the owning profile's name and is rewritten
    whenever the profile name changes.
    """

    __tablename__ = "user_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    address_name: Mapped[str] = mapped_column(
        String(100), nullable=False
    )  # e.g., "Home", "Office"
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    purok: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    barangay: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_province: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(50), nullable=False)

    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        # At most one default address per user
        Index(
            "uq_user_addresses_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    # Relationships
    profile = relationship("Profile", back_populates="addresses")

    def formatted(self) -> str:
        """Single-line postal address as printed on the order."""
        parts = [
            self.address_line1,
            self.address_line2,
            self.purok,
            self.barangay,
            self.city,
            self.state_province,
            self.postal_code,
            self.country,
        ]
        return ", ".join(p for p in parts if p)

    def snapshot(self) -> dict:
        """Structured copy of the postal fields for a purchase record."""
        return {
            "address_name": self.address_name,
            "recipient_name": self.recipient_name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "purok": self.purok,
            "barangay": self.barangay,
            "city": self.city,
            "state_province": self.state_province,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone_number": self.phone_number,
        }

    def __repr__(self):
        return f"<Address {self.id} user={self.user_id} default={self.is_default}>"
