"""Pydantic schemas for API request/response validation."""

from marketplace_api.schemas.catalog import (
    AttributeIn,
    AttributeOut,
    BrandIn,
    BrandOut,
    CategoryIn,
    CategoryOut,
    ExpandedProductOut,
    MediaIn,
    MediaOut,
    PricingOut,
    ProductCreate,
    ProductDetail,
    ProductIn,
    ProductOut,
    ReviewOut,
    SellerIn,
    SellerOut,
    TagOut,
    VariantIn,
    VariantOut,
)
from marketplace_api.schemas.common import ErrorResponse, MessageResponse
from marketplace_api.schemas.responses import (
    BundleError,
    HealthResponse,
    ProductDetailResponse,
    ProductListResponse,
    ProductResponse,
    RelayResponse,
    StoredProductsResponse,
    TranscriptionResponse,
)

__all__ = [
    "AttributeIn",
    "AttributeOut",
    "BrandIn",
    "BrandOut",
    "BundleError",
    "CategoryIn",
    "CategoryOut",
    "ErrorResponse",
    "ExpandedProductOut",
    "HealthResponse",
    "MediaIn",
    "MediaOut",
    "MessageResponse",
    "PricingOut",
    "ProductCreate",
    "ProductDetail",
    "ProductDetailResponse",
    "ProductIn",
    "ProductListResponse",
    "ProductOut",
    "ProductResponse",
    "RelayResponse",
    "ReviewOut",
    "SellerIn",
    "SellerOut",
    "StoredProductsResponse",
    "TagOut",
    "TranscriptionResponse",
    "VariantIn",
    "VariantOut",
]
