"""Seller model."""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, generate_id


class Seller(Base):
    """Marketplace seller, deduplicated by name."""

    __tablename__ = "sellers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Natural key
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True)

    rating: Mapped[float | None] = mapped_column()  # 0-5
    is_active: Mapped[bool] = mapped_column(default=True)

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
        return f"<Seller {self.name}>"
