"""Product model.

A Product is the canonical record a bundle reconciles into. It is matched by `sku`
and references its brand, category and seller by id. Tags are stored as a list of
Tag ids, the way a document store keeps an array of references.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, JsonType, generate_id


class ProductStatus(str, PyEnum):
    """Publication status of a product."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class Product(Base):
    """Catalog product."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Natural key
    sku: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    name: Mapped[str] = mapped_column(String(300))
    slug: Mapped[str | None] = mapped_column(String(300), index=True)
    description: Mapped[str | None] = mapped_column(Text)

    status: Mapped[ProductStatus] = mapped_column(
        Enum(
            ProductStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=ProductStatus.ACTIVE,
    )
    is_active: Mapped[bool] = mapped_column(default=True)

    # Physical properties
    weight: Mapped[float | None] = mapped_column()
    dimensions: Mapped[Any | None] = mapped_column(JsonType)  # {"length", "width", "height", "unit"}

    # Relations (nullable; unset when the bundle had no such sub-document)
    brand_id: Mapped[str | None] = mapped_column(ForeignKey("brands.id", ondelete="SET NULL"), index=True)
    category_id: Mapped[str | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"),
        index=True,
    )
    seller_id: Mapped[str | None] = mapped_column(ForeignKey("sellers.id", ondelete="SET NULL"), index=True)

    # Tag ids
    tags: Mapped[list[str]] = mapped_column(JsonType, default=list)

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
        return f"<Product {self.sku}>"
