"""Checkout: turn a cart into a pending purchase holding reserved stock."""

from dataclasses import dataclass
from typing import Iterable, Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.storefront_service.errors import (
    EmptyCart,
    InsufficientStock,
    InvalidCartItem,
    ProductNotFound,
)
from services.storefront_service.models import NotificationType, Product, Purchase
from services.storefront_service.services import (
    inventory_ledger,
    notifier,
    purchase_store,
)
from services.storefront_service.services.address_resolver import (
    require_shipping_details,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


def merge_cart_lines(cart_items: Iterable[CartLine]) -> dict[int, int]:
    """Quantity per product, in first-seen order. Rejects non-positive lines."""
    merged: dict[int, int] = {}
    for line in cart_items:
        if line.quantity <= 0:
            raise InvalidCartItem(line.product_id, line.quantity)
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    if not merged:
        raise EmptyCart()
    return merged


async def _load_products(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
    result = await db.execute(
        select(Product).where(Product.id.in_(product_ids), Product.is_active.is_(True))
    )
    products = {product.id: product for product in result.scalars().all()}
    for product_id in product_ids:
        if product_id not in products:
            raise ProductNotFound(product_id)
    return products


async def checkout(
    db: AsyncSession,
    user_id: str,
    cart_items: Iterable[CartLine],
    address_id: Optional[int] = None,
) -> Purchase:
    """Place an order for ``cart_items``.

    Every line is checked against stock before anything is written. The
    purchase, its items and every reservation then commit together; if a
    concurrent checkout took the stock in between, the conditional decrement
    fails and the whole order is rolled back with InsufficientStock.
    """
    quantities = merge_cart_lines(cart_items)

    profile, address = await require_shipping_details(db, user_id, address_id)

    product_ids = list(quantities)
    products = await _load_products(db, product_ids)

    available = await inventory_ledger.available_quantities(db, product_ids)
    for product_id, quantity in quantities.items():
        in_stock = available.get(product_id, 0)
        if quantity > in_stock:
            logger.warning(
                "Checkout refused for user %s: product %s requested=%d available=%d",
                user_id,
                product_id,
                quantity,
                in_stock,
            )
            raise InsufficientStock(product_id, quantity, in_stock)

    try:
        purchase = await purchase_store.create_purchase(
            db,
            profile=profile,
            lines=[(products[pid], quantity) for pid, quantity in quantities.items()],
            address=address,
        )
        purchase_id = purchase.id
        total = purchase.total_amount
        for product_id, quantity in quantities.items():
            await inventory_ledger.reserve(
                db,
                product_id,
                quantity,
                purchase_id=purchase_id,
                performed_by=user_id,
                commit=False,
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Checkout: purchase #%s for user %s, %d line(s), total %s",
        purchase_id,
        user_id,
        len(quantities),
        total,
    )

    symbol = get_settings().STORE_CURRENCY_SYMBOL
    await notifier.emit(
        db,
        user_id,
        NotificationType.ORDER,
        f"Your order #{purchase_id} has been placed and is awaiting approval. "
        f"Total: {symbol}{total:,.2f}",
        purchase_id=purchase_id,
    )
    return await purchase_store.get_purchase(db, purchase_id)
