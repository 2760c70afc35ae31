"""Attribute model: free-form name/value facts about a product (append-only)."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.stores.postgres import Base, JsonType, generate_id


class AttributeType(str, PyEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class Attribute(Base):
    __tablename__ = "attributes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    product_id: Mapped[str] = mapped_column(String(36), index=True)

    name: Mapped[str] = mapped_column(String(200))
    value: Mapped[Any | None] = mapped_column(JsonType)
    type: Mapped[AttributeType] = mapped_column(
        Enum(AttributeType, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=AttributeType.STRING,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
