"""Category model.

Categories form an optional tree through `parent_id` and are deduplicated by name.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, JsonType, generate_id


class Category(Base):
    """Product category."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Natural key
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True)

    slug: Mapped[str | None] = mapped_column(String(200))
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"),
        index=True,
    )

    # `metadata` is reserved on declarative classes, so the attribute is `meta`.
    meta: Mapped[Any | None] = mapped_column("metadata", JsonType)

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
        return f"<Category {self.name}>"
