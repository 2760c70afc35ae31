"""Response envelopes for the /api endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from marketplace_api.schemas.catalog import (
    AttributeOut,
    ExpandedProductOut,
    MediaOut,
    PricingOut,
    ProductOut,
    ReviewOut,
    VariantOut,
)


class ProductResponse(BaseModel):
    success: bool = True
    product: ProductOut


class ProductListResponse(BaseModel):
    success: bool = True
    products: list[ExpandedProductOut]


class ProductDetailResponse(BaseModel):
    success: bool = True
    product: ExpandedProductOut
    variants: list[VariantOut]
    media: list[MediaOut]
    attributes: list[AttributeOut]
    reviews: list[ReviewOut]
    pricing: list[PricingOut]


class BundleError(BaseModel):
    """A bundle that could not be reconciled."""

    index: int
    error: str
    details: Any = None


class StoredProductsResponse(BaseModel):
    """Result of relaying to the processing service and storing what came back."""

    success: bool
    message: str
    products: list[ProductOut]
    errors: list[BundleError] = Field(default_factory=list)


class RelayResponse(BaseModel):
    success: bool = True
    message: str
    response: Any = None


class TranscriptionResponse(BaseModel):
    success: bool = True
    transcription: str


class HealthResponse(BaseModel):
    status: str = "OK"
    timestamp: datetime
