"""Schemas for catalog documents.

`*In` schemas validate loosely-structured documents (bundle sub-documents and
CRUD bodies). Unknown keys are dropped, and only the keys a caller actually sent
are written, so an update never clobbers fields that were left out.

`*Out` schemas serialize ORM rows.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue

from marketplace_api.models import AttributeType, MediaType, ProductStatus


class DocumentIn(BaseModel):
    """Base for submitted documents."""

    model_config = ConfigDict(extra="ignore")

    def column_values(self) -> dict[str, Any]:
        """Submitted fields keyed by ORM attribute name."""
        return self.model_dump(exclude_unset=True)


class BrandIn(DocumentIn):
    name: str | None = None
    slug: str | None = None
    logo_url: str | None = None
    description: str | None = None


class CategoryIn(DocumentIn):
    name: str | None = None
    slug: str | None = None
    parent_id: str | None = None
    metadata: JsonValue = None

    def column_values(self) -> dict[str, Any]:
        values = super().column_values()
        if "metadata" in values:
            values["meta"] = values.pop("metadata")
        return values


class SellerIn(DocumentIn):
    name: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    is_active: bool = True


class ProductIn(DocumentIn):
    """Product fields. Every field is optional so partial updates validate."""

    sku: str | None = None
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    status: ProductStatus = ProductStatus.ACTIVE
    is_active: bool = True
    weight: float | None = Field(default=None, ge=0)
    dimensions: dict[str, JsonValue] | None = None
    tags: list[str] = Field(default_factory=list)
    brand_id: str | None = None
    category_id: str | None = None
    seller_id: str | None = None


class ProductCreate(ProductIn):
    """Body of POST /api/products."""

    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)


class VariantIn(DocumentIn):
    sku: str | None = None
    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    attributes: dict[str, JsonValue] | None = None


class MediaIn(DocumentIn):
    url: str = Field(min_length=1)
    type: MediaType = MediaType.IMAGE
    alt_text: str | None = None
    position: int = 0


class AttributeIn(DocumentIn):
    name: str = Field(min_length=1)
    value: JsonValue = None
    type: AttributeType = AttributeType.STRING


# ============================================================
# Read models
# ============================================================


class RecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BrandOut(RecordOut):
    name: str
    slug: str | None = None
    logo_url: str | None = None
    description: str | None = None


class CategoryOut(RecordOut):
    name: str
    slug: str | None = None
    parent_id: str | None = None
    metadata: JsonValue = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))


class SellerOut(RecordOut):
    name: str
    rating: float | None = None
    is_active: bool = True


class TagOut(RecordOut):
    name: str


class ProductOut(RecordOut):
    sku: str
    name: str
    slug: str | None = None
    description: str | None = None
    status: ProductStatus
    is_active: bool
    weight: float | None = None
    dimensions: JsonValue = None
    tags: list[str] = Field(default_factory=list)
    brand_id: str | None = None
    category_id: str | None = None
    seller_id: str | None = None


class ExpandedProductOut(ProductOut):
    """Product with references replaced by the referenced records."""

    tags: list[TagOut] = Field(default_factory=list)  # type: ignore[assignment]
    brand_id: BrandOut | None = None  # type: ignore[assignment]
    category_id: CategoryOut | None = None  # type: ignore[assignment]
    seller_id: SellerOut | None = None  # type: ignore[assignment]


class VariantOut(RecordOut):
    product_id: str
    sku: str
    name: str | None = None
    price: float
    stock_quantity: int
    attributes: JsonValue = None


class MediaOut(RecordOut):
    product_id: str
    url: str
    type: MediaType
    alt_text: str | None = None
    position: int


class AttributeOut(RecordOut):
    product_id: str
    name: str
    value: JsonValue = None
    type: AttributeType


class ReviewOut(RecordOut):
    product_id: str
    rating: int
    title: str | None = None
    body: str | None = None
    author: str | None = None


class PricingOut(RecordOut):
    product_id: str
    variant_id: str | None = None
    currency: str
    amount: float
    compare_at_amount: float | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None


class ProductDetail(BaseModel):
    """Single product with every row that points at it."""

    product: ExpandedProductOut
    variants: list[VariantOut]
    media: list[MediaOut]
    attributes: list[AttributeOut]
    reviews: list[ReviewOut]
    pricing: list[PricingOut]
