"""Catalog service: direct Product CRUD by id.

Writes here operate on the Product row only and never run the reconciler.
Reads expand references explicitly:
- brand_id / category_id / seller_id -> the referenced record (None if dangling)
- tags -> Tag records

Expansion is one batched lookup per referenced table, done only by the read
paths that ask for it.
"""

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.errors import NotFoundError, ValidationError
from marketplace_api.models import (
    Attribute,
    Audit,
    Brand,
    Category,
    Media,
    Pricing,
    Product,
    ProductVariant,
    Review,
    Seller,
    Tag,
)
from marketplace_api.schemas import (
    AttributeOut,
    BrandOut,
    CategoryOut,
    ExpandedProductOut,
    MediaOut,
    PricingOut,
    ProductDetail,
    ProductOut,
    ReviewOut,
    SellerOut,
    TagOut,
    VariantOut,
)
from marketplace_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


async def list_products() -> list[ExpandedProductOut]:
    """Get all products with references expanded."""
    async with get_session() as session:
        result = await session.execute(select(Product).order_by(Product.created_at, Product.id))
        products = result.scalars().all()
        return await expand_products(session, products)


async def get_product_detail(product_id: str) -> ProductDetail:
    """Get one expanded product plus every row that points at it.

    Raises:
        NotFoundError: No product with this id.
    """
    async with get_session() as session:
        product = await session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"id": product_id})

        (expanded,) = await expand_products(session, [product])

        return ProductDetail(
            product=expanded,
            variants=[VariantOut.model_validate(r) for r in await _owned_by(session, ProductVariant, product.id)],
            media=[MediaOut.model_validate(r) for r in await _owned_by(session, Media, product.id)],
            attributes=[AttributeOut.model_validate(r) for r in await _owned_by(session, Attribute, product.id)],
            reviews=[ReviewOut.model_validate(r) for r in await _owned_by(session, Review, product.id)],
            pricing=[PricingOut.model_validate(r) for r in await _owned_by(session, Pricing, product.id)],
        )


async def create_product(fields: dict[str, Any]) -> ProductOut:
    """Create a Product from an already-validated document.

    Raises:
        ValidationError: Duplicate sku or a reference to a missing row.
    """
    async with get_session() as session:
        product = Product(**fields)
        session.add(product)
        await _flush(session)
        _audit(session, product.id, "create", fields)
        logger.info(f"[catalog] created product sku={product.sku} id={product.id}")
        return ProductOut.model_validate(product)


async def update_product(product_id: str, fields: dict[str, Any]) -> ProductOut:
    """Overwrite the given fields of a Product.

    Raises:
        NotFoundError: No product with this id.
        ValidationError: Duplicate sku or a reference to a missing row.
    """
    async with get_session() as session:
        product = await session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"id": product_id})

        for name, value in fields.items():
            setattr(product, name, value)
        await _flush(session)
        _audit(session, product.id, "update", fields)
        return ProductOut.model_validate(product)


async def delete_product(product_id: str) -> None:
    """Delete a Product. Variants, media and other owned rows are left in place.

    Raises:
        NotFoundError: No product with this id.
    """
    async with get_session() as session:
        product = await session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"id": product_id})

        await session.delete(product)
        _audit(session, product_id, "delete", {"sku": product.sku})
        logger.info(f"[catalog] deleted product sku={product.sku} id={product_id}")


async def expand_products(session: AsyncSession, products: Sequence[Product]) -> list[ExpandedProductOut]:
    """Replace reference ids on each product with the referenced records."""
    brands = await _load_by_ids(session, Brand, {p.brand_id for p in products})
    categories = await _load_by_ids(session, Category, {p.category_id for p in products})
    sellers = await _load_by_ids(session, Seller, {p.seller_id for p in products})
    tags = await _load_by_ids(session, Tag, {t for p in products for t in (p.tags or [])})

    expanded: list[ExpandedProductOut] = []
    for product in products:
        base = ProductOut.model_validate(product).model_dump(
            exclude={"brand_id", "category_id", "seller_id", "tags"},
        )
        brand = brands.get(product.brand_id)
        category = categories.get(product.category_id)
        seller = sellers.get(product.seller_id)
        expanded.append(
            ExpandedProductOut(
                **base,
                brand_id=BrandOut.model_validate(brand) if brand else None,
                category_id=CategoryOut.model_validate(category) if category else None,
                seller_id=SellerOut.model_validate(seller) if seller else None,
                # Ids without a Tag row are dropped, like a dangling reference.
                tags=[TagOut.model_validate(tags[t]) for t in (product.tags or []) if t in tags],
            )
        )
    return expanded


async def _load_by_ids(session: AsyncSession, model: type, ids: set[str | None]) -> dict[str, Any]:
    wanted = [i for i in ids if i]
    if not wanted:
        return {}
    result = await session.execute(select(model).where(model.id.in_(wanted)))
    return {row.id: row for row in result.scalars().all()}


async def _owned_by(session: AsyncSession, model: type, product_id: str) -> Sequence[Any]:
    result = await session.execute(
        select(model).where(model.product_id == product_id).order_by(model.created_at, model.id)
    )
    return result.scalars().all()


async def _flush(session: AsyncSession) -> None:
    try:
        await session.flush()
    except IntegrityError as e:
        raise ValidationError(
            "Product violates a database constraint (duplicate sku or unknown reference)",
            details=str(e.orig) if e.orig is not None else str(e),
        ) from e


def _audit(session: AsyncSession, product_id: str, action: str, changes: dict[str, Any]) -> None:
    session.add(
        Audit(
            entity_type="product",
            entity_id=product_id,
            action=action,
            changes={k: (v.value if hasattr(v, "value") else v) for k, v in changes.items()},
        )
    )
