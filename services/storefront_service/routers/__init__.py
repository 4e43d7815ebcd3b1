"""Storefront service routers package."""

from services.storefront_service.routers.admin_inventory import (
    router as admin_inventory_router,
)
from services.storefront_service.routers.admin_notifications import (
    router as admin_notifications_router,
)
from services.storefront_service.routers.admin_orders import router as admin_orders_router
from services.storefront_service.routers.customers import router as customers_router
from services.storefront_service.routers.notifications import (
    router as notifications_router,
)
from services.storefront_service.routers.orders import router as orders_router

__all__ = [
    "admin_inventory_router",
    "admin_notifications_router",
    "admin_orders_router",
    "customers_router",
    "notifications_router",
    "orders_router",
]
