"""Product endpoints.

POST   /api/products/manual   - reconcile one bundle
GET    /api/products          - list (expanded)
GET    /api/products/{id}     - detail with owned rows
POST   /api/products          - create
PUT    /api/products/{id}     - partial update
DELETE /api/products/{id}     - delete (no cascade)

Routers are thin: call services for business logic.
"""

from typing import Any

from fastapi import APIRouter, Body

from marketplace_api.schemas import (
    MessageResponse,
    ProductCreate,
    ProductDetailResponse,
    ProductIn,
    ProductListResponse,
    ProductOut,
    ProductResponse,
)
from marketplace_api.services import catalog
from marketplace_api.services.reconciler import reconcile_bundle

router = APIRouter()


@router.post("/manual", response_model=ProductResponse)
async def store_manual_bundle(bundle: Any = Body(...)) -> ProductResponse:
    """Reconcile a product bundle into brand/category/seller/product/variants/media/attributes.

    Returns the canonical product, not everything that was written.
    """
    product = await reconcile_bundle(bundle)
    return ProductResponse(product=ProductOut.model_validate(product))


@router.get("", response_model=ProductListResponse)
async def list_products() -> ProductListResponse:
    """List all products with brand, category, seller and tags expanded."""
    return ProductListResponse(products=await catalog.list_products())


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(product_id: str) -> ProductDetailResponse:
    """Get a product with its variants, media, attributes, reviews and pricing."""
    detail = await catalog.get_product_detail(product_id)
    return ProductDetailResponse(**dict(detail))


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(payload: ProductCreate) -> ProductResponse:
    """Create a product from raw fields (reference ids are taken as given)."""
    fields = payload.model_dump()
    return ProductResponse(product=await catalog.create_product(fields))


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(product_id: str, payload: ProductIn) -> ProductResponse:
    """Overwrite the submitted fields of a product."""
    return ProductResponse(product=await catalog.update_product(product_id, payload.column_values()))


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(product_id: str) -> MessageResponse:
    await catalog.delete_product(product_id)
    return MessageResponse(success=True, message="Product deleted successfully")
