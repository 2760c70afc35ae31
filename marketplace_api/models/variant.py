"""ProductVariant model.

Variants are matched by their own `sku`. `product_id` is indexed but not a
database-level foreign key: deleting a product leaves its variants in place.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, JsonType, generate_id


class ProductVariant(Base):
    """Purchasable variant of a product (size, color, pack...)."""

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    product_id: Mapped[str] = mapped_column(String(36), index=True)

    # Natural key
    sku: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    name: Mapped[str | None] = mapped_column(String(300))
    price: Mapped[float] = mapped_column()
    stock_quantity: Mapped[int] = mapped_column(default=0)

    # Free-form option values, e.g. {"size": "M", "color": "red"}
    attributes: Mapped[Any | None] = mapped_column(JsonType)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ProductVariant {self.sku} {self.price}>"
