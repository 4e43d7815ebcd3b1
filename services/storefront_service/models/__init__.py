"""Storefront Service models package."""

from services.storefront_service.models.catalog import Product
from services.storefront_service.models.commerce import (
    Purchase,
    PurchaseItem,
    StoreAuditLog,
    TransactionDetails,
)
from services.storefront_service.models.customers import Address, Profile
from services.storefront_service.models.enums import (
    AuditEntityType,
    InventoryMovementType,
    NotificationType,
    PurchaseStatus,
)
from services.storefront_service.models.inventory import (
    InventoryMovement,
    InventoryRecord,
)
from services.storefront_service.models.notifications import Notification

__all__ = [
    "Address",
    "AuditEntityType",
    "InventoryMovement",
    "InventoryMovementType",
    "InventoryRecord",
    "Notification",
    "NotificationType",
    "Product",
    "Profile",
    "Purchase",
    "PurchaseItem",
    "PurchaseStatus",
    "StoreAuditLog",
    "TransactionDetails",
]
