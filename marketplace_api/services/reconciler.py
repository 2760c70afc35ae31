"""Reconciliation service: product bundle -> normalized catalog rows.

A bundle is a loosely-structured document (from the processing service or a
manual POST) describing one product and the entities around it:

    {
        "product": {...},       matched by sku
        "brand": {...},         matched by name
        "category": {...},      matched by name
        "seller": {...},        matched by name
        "variants": [{...}],    each matched by sku
        "media": [{...}],       always inserted
        "attributes": [{...}],  always inserted
    }

Any key may be missing; a missing key leaves that relation alone.

Flow:
1. Upsert brand, category, seller (independently)
2. Upsert product with brand_id/category_id/seller_id wired in
3. Upsert variants, insert media and attributes, all with product_id forced

Notes:
- Every sub-document is validated at its own step, so a failure aborts only the
  steps after it. By default each step is committed as it completes: rows
  written before a failure are kept. `atomic=True` runs the bundle in a single
  transaction instead.
- Upserts overwrite only the fields that were submitted.
- Inserts use ON CONFLICT DO NOTHING on the natural key, so two concurrent
  bundles with the same key end up updating a single row.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.errors import ApiError, StorageError, ValidationError
from marketplace_api.models import (
    Attribute,
    Brand,
    Category,
    Media,
    Product,
    ProductVariant,
    Seller,
    Tag,
)
from marketplace_api.schemas.catalog import (
    AttributeIn,
    BrandIn,
    CategoryIn,
    DocumentIn,
    MediaIn,
    ProductIn,
    SellerIn,
    VariantIn,
)
from marketplace_api.settings import get_settings
from marketplace_api.stores.postgres import generate_id, get_session

logger = logging.getLogger("uvicorn.error")

ModelT = TypeVar("ModelT")
SchemaT = TypeVar("SchemaT", bound=DocumentIn)

# Fields that must be present when a row is created (not when it is updated).
REQUIRED_ON_CREATE: dict[type, tuple[str, ...]] = {
    Product: ("name",),
    ProductVariant: ("price",),
}


@dataclass
class ReconcileFailure:
    index: int
    error: str
    details: Any = None


@dataclass
class ReconcileManyResult:
    products: list[Product] = field(default_factory=list)
    failures: list[ReconcileFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# ============================================================
# Entry points
# ============================================================


async def save_product_data(
    session: AsyncSession,
    bundle: Any,
    *,
    atomic: bool = False,
) -> Product:
    """Reconcile one bundle into the catalog and return the canonical Product.

    Args:
        session: Open session. Committed after every step unless `atomic`.
        bundle: Bundle document (see module docstring).
        atomic: If True, only flush between steps and leave the commit
            (or rollback) to the caller.

    Raises:
        ValidationError: Bundle shape or a sub-document is invalid.
        StorageError: A row could not be written.
    """
    if not isinstance(bundle, Mapping):
        raise ValidationError("Bundle must be a JSON object", details={"type": type(bundle).__name__})

    variants = _document_list(bundle, "variants")
    media = _document_list(bundle, "media")
    attributes = _document_list(bundle, "attributes")

    async def checkpoint() -> None:
        if atomic:
            await session.flush()
        else:
            await session.commit()

    # 1-2. Reference entities
    refs: dict[str, str] = {}
    for key, model, schema, ref_field in (
        ("brand", Brand, BrandIn, "brand_id"),
        ("category", Category, CategoryIn, "category_id"),
        ("seller", Seller, SellerIn, "seller_id"),
    ):
        if bundle.get(key) is None:
            continue
        doc = _validate(schema, bundle[key], key)
        record = await upsert_by_natural_key(session, model, "name", doc.column_values())
        await checkpoint()
        refs[ref_field] = record.id

    # 3. Product
    product_doc = _validate(ProductIn, bundle.get("product") or {}, "product")
    product_fields = product_doc.column_values()
    # References come only from the brand/category/seller sub-documents.
    for ref_field in ("brand_id", "category_id", "seller_id"):
        product_fields.pop(ref_field, None)
    if "tags" in product_fields:
        product_fields["tags"] = await _upsert_tags(session, product_fields["tags"])
    product_fields.update(refs)

    product = await upsert_by_natural_key(session, Product, "sku", product_fields)
    await checkpoint()
    logger.info(f"[reconcile] product sku={product.sku} id={product.id} refs={sorted(refs)}")

    # 4. Variants (upsert by sku)
    for i, raw in enumerate(variants):
        doc = _validate(VariantIn, raw, f"variants[{i}]")
        await upsert_by_natural_key(
            session,
            ProductVariant,
            "sku",
            {**doc.column_values(), "product_id": product.id},
        )
        await checkpoint()

    # 5-6. Media and attributes (append-only)
    for key, model, schema, docs in (
        ("media", Media, MediaIn, media),
        ("attributes", Attribute, AttributeIn, attributes),
    ):
        for i, raw in enumerate(docs):
            doc = _validate(schema, raw, f"{key}[{i}]")
            session.add(model(**doc.column_values(), product_id=product.id))
            await _flush(session, model)
            await checkpoint()

    if variants or media or attributes:
        logger.info(
            f"[reconcile] product id={product.id} variants={len(variants)} "
            f"media={len(media)} attributes={len(attributes)}"
        )
    return product


async def reconcile_many(bundles: Iterable[Any]) -> ReconcileManyResult:
    """Reconcile several bundles independently.

    Each bundle gets its own session; a failing bundle is recorded and the
    remaining bundles are still processed.
    """
    atomic = get_settings().reconcile_atomic
    result = ReconcileManyResult()

    for index, bundle in enumerate(bundles):
        try:
            async with get_session() as session:
                product = await save_product_data(session, bundle, atomic=atomic)
            result.products.append(product)
        except ApiError as e:
            logger.warning(f"[reconcile] bundle index={index} rejected: {e.message}")
            result.failures.append(ReconcileFailure(index=index, error=e.message, details=e.details))
        except SQLAlchemyError as e:
            logger.exception(f"[reconcile] bundle index={index} failed in storage")
            result.failures.append(ReconcileFailure(index=index, error="Storage operation failed", details=str(e)))

    logger.info(f"[reconcile] batch done stored={len(result.products)} failed={len(result.failures)}")
    return result


# ============================================================
# Upsert primitives
# ============================================================


async def upsert_by_natural_key(
    session: AsyncSession,
    model: type[ModelT],
    key: str,
    values: dict[str, Any],
) -> ModelT:
    """Find `model` by `values[key]`; overwrite submitted fields or insert a new row.

    Raises:
        ValidationError: The natural key is missing, or a create-required field is.
        StorageError: The row could not be written.
    """
    natural_key = values.get(key)
    if natural_key is None or natural_key == "":
        raise ValidationError(
            f"{model.__name__} requires '{key}' for matching",
            details={"missing": [key]},
        )

    record = await _find_by(session, model, key, natural_key)
    if record is None:
        missing = [f for f in REQUIRED_ON_CREATE.get(model, ()) if values.get(f) is None]
        if missing:
            raise ValidationError(
                f"{model.__name__} '{natural_key}' does not exist and is missing required fields",
                details={"missing": missing},
            )

        new_id = generate_id()
        await _insert_ignoring_conflict(session, model, key, {**values, "id": new_id})
        record = await _find_by(session, model, key, natural_key)
        if record is None:
            raise StorageError(f"{model.__name__} '{natural_key}' vanished after insert")
        if record.id == new_id:
            return record
        logger.warning(f"[reconcile] lost insert race for {model.__name__} {key}={natural_key}; updating")

    for name, value in values.items():
        setattr(record, name, value)
    await _flush(session, model)
    return record


async def _insert_ignoring_conflict(
    session: AsyncSession,
    model: type,
    key: str,
    values: dict[str, Any],
) -> None:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:
        dialect_insert = None

    row = {getattr(model, name): value for name, value in values.items()}
    if dialect_insert is None:
        stmt = insert(model).values(row)
    else:
        stmt = dialect_insert(model).values(row).on_conflict_do_nothing(index_elements=[key])

    try:
        await session.execute(stmt)
    except IntegrityError as e:
        raise _integrity_error(model, e) from e


async def _find_by(session: AsyncSession, model: type[ModelT], key: str, value: Any) -> ModelT | None:
    result = await session.execute(select(model).where(getattr(model, key) == value))
    return result.scalar_one_or_none()


async def _flush(session: AsyncSession, model: type) -> None:
    try:
        await session.flush()
    except IntegrityError as e:
        raise _integrity_error(model, e) from e


def _integrity_error(model: type, e: IntegrityError) -> ValidationError:
    return ValidationError(
        f"{model.__name__} violates a database constraint",
        details=str(e.orig) if e.orig is not None else str(e),
    )


async def _upsert_tags(session: AsyncSession, names: Sequence[str]) -> list[str]:
    """Upsert tags by name and return their ids in submission order."""
    ids: list[str] = []
    for name in dict.fromkeys(n.strip() for n in names if n and n.strip()):
        tag = await upsert_by_natural_key(session, Tag, "name", {"name": name})
        ids.append(tag.id)
    return ids


# ============================================================
# Validation helpers
# ============================================================


def _validate(schema: type[SchemaT], raw: Any, where: str) -> SchemaT:
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {where}",
            details=e.errors(include_url=False, include_context=False),
        ) from e


def _document_list(bundle: Mapping[str, Any], key: str) -> list[Any]:
    value = bundle.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"'{key}' must be a list", details={"type": type(value).__name__})
    return value


def summarize(result: ReconcileManyResult) -> str:
    """One-line outcome used as the relay response message."""
    if result.ok:
        return f"Stored {len(result.products)} product(s)"
    return f"Stored {len(result.products)} product(s), {len(result.failures)} bundle(s) failed"


async def reconcile_bundle(bundle: Any) -> Product:
    """Reconcile a single bundle in its own session (used by POST /api/products/manual)."""
    atomic = get_settings().reconcile_atomic
    async with get_session() as session:
        return await save_product_data(session, bundle, atomic=atomic)
