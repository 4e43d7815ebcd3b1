"""Catalog reference model: the priced products that inventory is kept for."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Product(Base):
    """Products.

    Catalog CRUD lives in the admin console; checkout only reads the name and
    current price to capture ``price_at_time`` on each line item.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true()
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("product_price >= 0", name="non_negative_price"),
    )

    # Relationships
    inventory_record = relationship(
        "InventoryRecord", back_populates="product", uselist=False
    )

    def __repr__(self):
        return f"<Product {self.id} {self.product_name}>"
