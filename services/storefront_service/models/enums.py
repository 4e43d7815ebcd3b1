"""Enum definitions for storefront models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PurchaseStatus.COMPLETED, PurchaseStatus.CANCELLED)


class InventoryMovementType(str, enum.Enum):
    RESERVATION = "reservation"
    RELEASE = "release"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"


class NotificationType(str, enum.Enum):
    ORDER = "order"
    TRACKING_UPDATE = "tracking_update"
    REVIEW_REQUEST = "review_request"
    DELIVERY_REMINDER = "delivery_reminder"
    GENERAL = "general"


class AuditEntityType(str, enum.Enum):
    PURCHASE = "purchase"
    INVENTORY = "inventory"
    ADDRESS = "address"
