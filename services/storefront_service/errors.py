"""Storefront exceptions.

Each error carries the HTTP status the API layer answers with; the core
raises them without knowing about HTTP.
"""

from typing import Any, Optional


class StoreError(Exception):
    """Base exception for all storefront errors."""

    status_code = 400

    def payload(self) -> dict[str, Any]:
        """Structured fields added to the API error body."""
        return {}


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class InsufficientStock(StoreError):
    """Raised when a reservation would drive a product's quantity negative."""

    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} left in stock for product {product_id} "
            f"(requested {requested})"
        )

    def payload(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


class IncompleteProfile(StoreError):
    """Raised when the profile lacks information required to ship an order."""

    status_code = 422

    def __init__(self, user_id: str, missing_fields: list[str]):
        self.user_id = user_id
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Please complete your profile before ordering. Missing: "
            + ", ".join(self.missing_fields)
        )

    def payload(self) -> dict[str, Any]:
        return {"missing_fields": self.missing_fields}


class EmptyCart(StoreError):
    """Raised when checkout is attempted with no items."""

    def __init__(self):
        super().__init__("No items to checkout")


class InvalidCartItem(StoreError):
    """Raised when a cart line has a non-positive quantity."""

    def __init__(self, product_id: int, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"Invalid quantity {quantity} for product {product_id}")


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------


class InvalidTransition(StoreError):
    """Raised when an event is not legal from the purchase's current status."""

    status_code = 409

    def __init__(self, purchase_id: int, current_status: str, event: str):
        self.purchase_id = purchase_id
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Cannot {event} purchase #{purchase_id} while it is {current_status}"
        )

    def payload(self) -> dict[str, Any]:
        return {
            "purchase_id": self.purchase_id,
            "current_status": self.current_status,
            "event": self.event,
        }


class PermissionDenied(StoreError):
    """Raised when the actor may not trigger the requested event."""

    status_code = 403

    def __init__(self, actor_id: str, event: str):
        self.actor_id = actor_id
        self.event = event
        super().__init__(f"Actor {actor_id} is not allowed to {event} this purchase")


class MissingTrackingNumber(StoreError):
    """Raised when a purchase is advanced to delivery without a tracking number."""

    def __init__(self, purchase_id: int):
        self.purchase_id = purchase_id
        super().__init__(f"A tracking number is required to ship purchase #{purchase_id}")


class InvalidCancellationReason(StoreError):
    """Raised when a customer cancels with a reason outside the fixed list."""

    def __init__(self, reason: str, allowed: list[str]):
        self.reason = reason
        self.allowed = list(allowed)
        super().__init__(f"Unknown cancellation reason: {reason}")

    def payload(self) -> dict[str, Any]:
        return {"reason": self.reason, "allowed": self.allowed}


class DataIntegrityError(StoreError):
    """Raised when storage holds a value outside the known domain."""

    status_code = 500

    def __init__(self, entity: str, entity_id: Any, detail: str):
        self.entity = entity
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Corrupt {entity} #{entity_id}: {detail}")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class NotFoundError(StoreError):
    status_code = 404
    entity = "record"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} {entity_id} not found")


class PurchaseNotFound(NotFoundError):
    entity = "purchase"


class ProductNotFound(NotFoundError):
    entity = "product"


class AddressNotFound(NotFoundError):
    entity = "address"


class ProfileNotFound(NotFoundError):
    entity = "profile"


class NotificationNotFound(NotFoundError):
    entity = "notification"


class InventoryRecordNotFound(NotFoundError):
    entity = "inventory record"


class InvalidStockAdjustment(StoreError):
    """Raised when an admin adjustment would drive stock below zero."""

    def __init__(self, product_id: int, current: int, delta: int):
        self.product_id = product_id
        self.current = current
        self.delta = delta
        super().__init__(
            f"Cannot reduce inventory for product {product_id} below 0 "
            f"(current {current}, change {delta})"
        )


# ---------------------------------------------------------------------------
# Degraded side effects (logged, never propagated out of a transition)
# ---------------------------------------------------------------------------


class CompensationFailure(StoreError):
    """An inventory restore for one line item of a cancelled purchase failed."""

    status_code = 500

    def __init__(
        self,
        purchase_id: int,
        product_id: int,
        quantity: int,
        cause: Optional[BaseException] = None,
    ):
        self.purchase_id = purchase_id
        self.product_id = product_id
        self.quantity = quantity
        self.cause = cause
        super().__init__(
            f"Failed to restore {quantity} unit(s) of product {product_id} "
            f"for purchase #{purchase_id}: {cause}"
        )

    def payload(self) -> dict[str, Any]:
        return {
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "cause": str(self.cause) if self.cause else None,
        }


class NotificationFailure(StoreError):
    """A notification could not be stored."""

    status_code = 500

    def __init__(self, user_id: str, notification_type: str, cause: BaseException):
        self.user_id = user_id
        self.notification_type = notification_type
        self.cause = cause
        super().__init__(
            f"Failed to notify {user_id} ({notification_type}): {cause}"
        )
