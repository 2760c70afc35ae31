"""Media model (append-only: every reconciled bundle adds new rows)."""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, generate_id


class MediaType(str, PyEnum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class Media(Base):
    __tablename__ = "media"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    product_id: Mapped[str] = mapped_column(String(36), index=True)

    url: Mapped[str] = mapped_column(Text)
    type: Mapped[MediaType] = mapped_column(
        Enum(MediaType, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=MediaType.IMAGE,
    )
    alt_text: Mapped[str | None] = mapped_column(String(500))
    position: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
