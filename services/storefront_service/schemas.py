"""Pydantic schemas for storefront service."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.storefront_service.models import (
    InventoryMovementType,
    PurchaseStatus,
)

# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CartItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)


class CheckoutRequest(BaseModel):
    items: list[CartItemRequest]
    address_id: Optional[int] = None


# ============================================================================
# PURCHASE SCHEMAS
# ============================================================================


class PurchaseItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    quantity: int
    price_at_time: Decimal
    line_total: Decimal


class TransactionDetailsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    email: str
    phone_number: str
    address: str
    address_fields: Optional[dict] = None


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    email: Optional[str]
    total_amount: Decimal
    status: PurchaseStatus
    user_address_id: Optional[int]
    items: list[PurchaseItemResponse] = []
    transaction_details: Optional[TransactionDetailsResponse] = None
    created_at: datetime
    updated_at: datetime


class PurchaseListResponse(BaseModel):
    """Paginated purchase list."""

    items: list[PurchaseResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AdminPurchaseListResponse(PurchaseListResponse):
    queue_counts: dict[PurchaseStatus, int]


class CancelRequest(BaseModel):
    reason: Optional[str] = None
    details: Optional[str] = Field(None, max_length=1000)


class RejectRequest(BaseModel):
    reason: Optional[str] = None
    message: Optional[str] = None


class AdvanceRequest(BaseModel):
    tracking_number: str = Field(..., max_length=100)
    expected_delivery_date: Optional[date] = None
    message: Optional[str] = None


class CompensationFailureResponse(BaseModel):
    product_id: int
    quantity: int
    cause: Optional[str] = None


class CompensationReportResponse(BaseModel):
    restored_units: int
    complete: bool
    failures: list[CompensationFailureResponse] = []


class TransitionResponse(BaseModel):
    """Purchase as re-read after a transition attempt."""

    purchase: PurchaseResponse
    applied: bool
    from_status: PurchaseStatus
    to_status: PurchaseStatus
    missing_fields: list[str] = []
    compensation: Optional[CompensationReportResponse] = None


# ============================================================================
# PROFILE & ADDRESS SCHEMAS
# ============================================================================


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: Optional[str]
    middle_name: Optional[str]
    last_name: Optional[str]
    phone_number: Optional[str]
    location: Optional[str]


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=500)


class AddressBase(BaseModel):
    address_name: str = Field(..., max_length=100)
    address_line1: str = Field(..., max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    purok: Optional[str] = Field(None, max_length=100)
    barangay: str = Field(..., max_length=100)
    city: str = Field(..., max_length=100)
    state_province: str = Field(..., max_length=100)
    postal_code: str = Field(..., max_length=20)
    phone_number: str = Field(..., max_length=50)


class AddressCreate(AddressBase):
    country: Optional[str] = Field(None, max_length=100)
    is_default: bool = False


class AddressUpdate(BaseModel):
    address_name: Optional[str] = Field(None, max_length=100)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    purok: Optional[str] = Field(None, max_length=100)
    barangay: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    state_province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=50)
    is_default: Optional[bool] = None


class AddressResponse(AddressBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_name: str
    country: str
    is_default: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    message: str
    purchase_id: Optional[int]
    tracking_number: Optional[str]
    expected_delivery_date: Optional[date]
    is_read: bool
    created_at: datetime


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


class AdminMessageRequest(BaseModel):
    user_id: str
    message: str = Field(..., min_length=1)
    purchase_id: Optional[int] = None


class BulkNotificationRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class BulkNotificationResponse(BaseModel):
    sent: int
    failed: list[str]
    notifications: list[NotificationResponse]


class NotificationHistoryEntry(NotificationResponse):
    user_id: str
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None


class DeliveryReminderRequest(BaseModel):
    today: Optional[date] = None


class DeliveryReminderResponse(BaseModel):
    sent: int
    notifications: list[NotificationResponse]


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class InventoryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: Optional[str] = None
    quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    last_restock_at: Optional[datetime]
    updated_at: datetime


class InventoryAdjustment(BaseModel):
    """Either a relative change or an absolute count (admin)."""

    delta: Optional[int] = None
    quantity: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class InventoryMovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    movement_type: InventoryMovementType
    quantity: int
    purchase_id: Optional[int]
    notes: Optional[str]
    performed_by: Optional[str]
    created_at: datetime


class PurchaseMovementsResponse(BaseModel):
    purchase_id: int
    outstanding_reservation: int
    movements: list[InventoryMovementResponse]


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_id: int
    action: str
    new_value: Optional[dict]
    performed_by: str
    performed_at: datetime
    notes: Optional[str]
