"""Tests for bundle reconciliation (natural-key upserts and append-only rows)."""

import pytest
from sqlalchemy import select

from marketplace_api.errors import ValidationError
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
from marketplace_api.services import reconciler
from marketplace_api.services.reconciler import reconcile_many, save_product_data, upsert_by_natural_key
from marketplace_api.stores.postgres import get_session


def full_bundle() -> dict:
    return {
        "product": {"sku": "P1", "name": "Trail Shoe", "slug": "trail-shoe", "weight": 0.8},
        "brand": {"name": "Acme", "slug": "acme"},
        "category": {"name": "Shoes", "metadata": {"season": ["spring", "fall"]}},
        "seller": {"name": "Shop One", "rating": 4.5},
        "variants": [
            {"sku": "P1-42", "price": 99.0, "attributes": {"size": 42}},
            {"sku": "P1-43", "price": 99.0, "stock_quantity": 3},
        ],
        "media": [{"url": "https://cdn.example.com/p1.jpg", "alt_text": "front"}],
        "attributes": [{"name": "waterproof", "value": True, "type": "boolean"}],
    }


async def reconcile(bundle, *, atomic: bool = False) -> Product:
    async with get_session() as session:
        return await save_product_data(session, bundle, atomic=atomic)


async def load(model, **where):
    async with get_session() as session:
        stmt = select(model)
        for name, value in where.items():
            stmt = stmt.where(getattr(model, name) == value)
        return (await session.execute(stmt)).scalars().all()


class TestIdempotence:
    """Re-submitting a bundle updates in place, except append-only rows."""

    @pytest.mark.asyncio
    async def test_same_bundle_twice(self, db, count_rows):
        first = await reconcile(full_bundle())
        second = await reconcile(full_bundle())

        assert first.id == second.id
        assert await count_rows(Brand) == 1
        assert await count_rows(Category) == 1
        assert await count_rows(Seller) == 1
        assert await count_rows(Product) == 1
        assert await count_rows(ProductVariant) == 2
        # Append-only asymmetry
        assert await count_rows(Media) == 2
        assert await count_rows(Attribute) == 2

    @pytest.mark.asyncio
    async def test_update_overwrites_only_submitted_fields(self, db):
        await reconcile({"product": {"sku": "P1", "name": "X", "slug": "x"}, "brand": {"name": "B", "slug": "b"}})
        await reconcile({"product": {"sku": "P1", "description": "new"}, "brand": {"name": "B", "description": "d"}})

        (brand,) = await load(Brand)
        assert brand.slug == "b"
        assert brand.description == "d"

        (product,) = await load(Product)
        assert product.name == "X"
        assert product.slug == "x"
        assert product.description == "new"

    @pytest.mark.asyncio
    async def test_tags_upserted_by_name(self, db, count_rows):
        product = await reconcile({"product": {"sku": "P1", "name": "X", "tags": ["sale", "new", "sale"]}})
        assert len(product.tags) == 2

        again = await reconcile({"product": {"sku": "P1", "tags": ["sale"]}})
        assert await count_rows(Tag) == 2
        (sale,) = await load(Tag, name="sale")
        assert again.tags == [sale.id]


class TestWiring:
    @pytest.mark.asyncio
    async def test_foreign_keys_resolve_to_submitted_records(self, db):
        product = await reconcile(full_bundle())

        (brand,) = await load(Brand, id=product.brand_id)
        (category,) = await load(Category, id=product.category_id)
        (seller,) = await load(Seller, id=product.seller_id)
        assert brand.name == "Acme"
        assert category.meta == {"season": ["spring", "fall"]}
        assert seller.rating == 4.5

    @pytest.mark.asyncio
    async def test_product_only_bundle_creates_nothing_else(self, db, count_rows):
        product = await reconcile({"product": {"sku": "P1", "name": "X", "slug": "x"}})

        assert product.brand_id is None
        assert product.category_id is None
        assert product.seller_id is None
        assert await count_rows(Product) == 1
        for model in (Brand, Category, Seller, ProductVariant, Media, Attribute, Tag):
            assert await count_rows(model) == 0

    @pytest.mark.asyncio
    async def test_reference_ids_inside_product_are_ignored(self, db):
        product = await reconcile(
            {"product": {"sku": "P1", "name": "X", "brand_id": "bogus-id", "seller_id": "other-id"}}
        )

        assert product.brand_id is None
        assert product.category_id is None
        assert product.seller_id is None

        linked = await reconcile({"product": {"sku": "P1", "brand_id": "bogus-id"}, "brand": {"name": "B"}})
        (brand,) = await load(Brand)
        assert linked.brand_id == brand.id

        again = await reconcile({"product": {"sku": "P1", "brand_id": "bogus-id"}})
        assert again.brand_id == brand.id

    @pytest.mark.asyncio
    async def test_absent_relation_leaves_existing_reference(self, db):
        first = await reconcile({"product": {"sku": "P1", "name": "X"}, "brand": {"name": "B"}})
        second = await reconcile({"product": {"sku": "P1", "name": "Y"}})

        assert second.brand_id == first.brand_id

    @pytest.mark.asyncio
    async def test_variants_created_with_new_product_id(self, db):
        product = await reconcile(
            {
                "product": {"sku": "NEW", "name": "Fresh"},
                "variants": [
                    {"sku": "NEW-1", "price": 1, "product_id": "someone-else"},
                    {"sku": "NEW-2", "price": 2},
                ],
                "media": [{"url": "https://cdn.example.com/a.png", "product_id": "ignored"}],
            }
        )

        variants = await load(ProductVariant)
        assert {v.product_id for v in variants} == {product.id}
        (media,) = await load(Media)
        assert media.product_id == product.id

    @pytest.mark.asyncio
    async def test_variant_moves_to_product_that_resubmits_it(self, db, count_rows):
        await reconcile({"product": {"sku": "A", "name": "A"}, "variants": [{"sku": "V", "price": 1}]})
        b = await reconcile({"product": {"sku": "B", "name": "B"}, "variants": [{"sku": "V", "price": 2}]})

        (variant,) = await load(ProductVariant)
        assert variant.product_id == b.id
        assert variant.price == 2
        assert await count_rows(ProductVariant) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_natural_key(self, db, count_rows):
        with pytest.raises(ValidationError) as exc:
            await reconcile({"product": {"name": "no sku"}})
        assert exc.value.details == {"missing": ["sku"]}
        assert await count_rows(Product) == 0

    @pytest.mark.asyncio
    async def test_missing_name_on_create(self, db):
        with pytest.raises(ValidationError) as exc:
            await reconcile({"product": {"sku": "P1"}})
        assert exc.value.details == {"missing": ["name"]}

    @pytest.mark.asyncio
    async def test_rejects_non_object_bundle(self, db):
        with pytest.raises(ValidationError):
            await reconcile(["not", "a", "bundle"])

    @pytest.mark.asyncio
    async def test_rejects_non_list_variants(self, db, count_rows):
        with pytest.raises(ValidationError):
            await reconcile({"product": {"sku": "P1", "name": "X"}, "variants": {"sku": "V"}})
        assert await count_rows(Product) == 0

    @pytest.mark.asyncio
    async def test_earlier_steps_survive_a_later_failure(self, db, count_rows):
        bundle = {
            "product": {"sku": "P1", "name": "X"},
            "brand": {"name": "B"},
            "variants": [{"sku": "V1", "price": 5}, {"sku": "V2", "price": "free"}],
            "media": [{"url": "https://cdn.example.com/never.png"}],
        }
        with pytest.raises(ValidationError) as exc:
            await reconcile(bundle)
        assert "variants[1]" in exc.value.message

        assert await count_rows(Brand) == 1
        assert await count_rows(Product) == 1
        assert await count_rows(ProductVariant) == 1
        assert await count_rows(Media) == 0

    @pytest.mark.asyncio
    async def test_atomic_mode_rolls_back_everything(self, db, count_rows):
        bundle = {
            "product": {"sku": "P1", "name": "X"},
            "brand": {"name": "B"},
            "variants": [{"sku": "V1", "price": -1}],
        }
        with pytest.raises(ValidationError):
            await reconcile(bundle, atomic=True)

        assert await count_rows(Brand) == 0
        assert await count_rows(Product) == 0


class TestConcurrentInsert:
    @pytest.mark.asyncio
    async def test_lost_insert_race_updates_existing_row(self, db, count_rows, monkeypatch: pytest.MonkeyPatch):
        async with get_session() as session:
            session.add(Brand(name="Acme", slug="acme"))

        real_find_by = reconciler._find_by
        calls = {"n": 0}

        async def stale_first_read(session, model, key, value):
            # First lookup misses, as if another request inserted in between.
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_find_by(session, model, key, value)

        monkeypatch.setattr(reconciler, "_find_by", stale_first_read)

        async with get_session() as session:
            brand = await upsert_by_natural_key(session, Brand, "name", {"name": "Acme", "description": "d"})

        assert await count_rows(Brand) == 1
        assert brand.slug == "acme"
        assert brand.description == "d"


class TestReconcileMany:
    @pytest.mark.asyncio
    async def test_collects_failures_and_keeps_going(self, db, count_rows):
        result = await reconcile_many(
            [
                {"product": {"sku": "A", "name": "A"}},
                "garbage",
                {"product": {"name": "missing sku"}},
                {"product": {"sku": "B", "name": "B"}},
            ]
        )

        assert [p.sku for p in result.products] == ["A", "B"]
        assert [f.index for f in result.failures] == [1, 2]
        assert not result.ok
        assert await count_rows(Product) == 2

    @pytest.mark.asyncio
    async def test_atomic_setting(self, db, count_rows, monkeypatch: pytest.MonkeyPatch):
        from marketplace_api.settings import get_settings

        monkeypatch.setenv("RECONCILE_ATOMIC", "true")
        get_settings.cache_clear()

        result = await reconcile_many([{"brand": {"name": "B"}, "product": {"sku": "P1"}}])

        assert len(result.failures) == 1
        assert await count_rows(Brand) == 0
