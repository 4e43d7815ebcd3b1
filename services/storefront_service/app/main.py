"""FastAPI application for the Storefront Service."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger, get_request_id
from libs.common.middleware import add_observability_middleware
from services.storefront_service.errors import StoreError
from services.storefront_service.routers import (
    admin_inventory_router,
    admin_notifications_router,
    admin_orders_router,
    customers_router,
    notifications_router,
    orders_router,
)

logger = get_logger(__name__)


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Map StoreError subclasses to their HTTP responses."""
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc)
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    content.update(exc.payload())
    request_id = get_request_id()
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure the Storefront Service FastAPI app."""
    app = FastAPI(
        title="Storefront Service",
        version="0.1.0",
        description="Checkout, order lifecycle, inventory and customer inbox.",
    )

    add_observability_middleware(app)
    app.add_exception_handler(StoreError, store_error_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "storefront"}

    # Customer routes (checkout, orders, profile, inbox)
    app.include_router(orders_router, prefix="/store")
    app.include_router(customers_router, prefix="/store")
    app.include_router(notifications_router, prefix="/store")

    # Admin routes (order queues, inventory, messaging)
    app.include_router(admin_orders_router, prefix="/admin/store")
    app.include_router(admin_inventory_router, prefix="/admin/store")
    app.include_router(admin_notifications_router, prefix="/admin/store")

    return app


app = create_app()
