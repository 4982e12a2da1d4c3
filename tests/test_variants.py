"""Tests for variant resolution: exact attribute tuples, Apple RAM rule, images."""

import pytest

from phonedex.ingest.cache import DedupCache
from phonedex.ingest.stats import IngestionStats
from phonedex.matcher import (
    ProductMatcher,
    build_images,
    merge_images,
    variant_attributes,
    variant_display_name,
    variant_key,
)
from phonedex.models import Product, ProductVariant
from phonedex.schemas import ListingFields, NormalizedProduct, VariantAttributes


def _record(brand="Samsung", model_name="Galaxy S24", image_url=None, image_urls=(), **attrs):
    return NormalizedProduct(
        source="croma",
        brand=brand,
        model_name=model_name,
        variant_attributes=VariantAttributes(**attrs),
        listing_fields=ListingFields(
            store_name="croma", url="https://example.com/p", image_url=image_url, image_urls=list(image_urls),
        ),
    )


@pytest.fixture()
def product_id(db, brands, categories):
    product = Product(
        model_name="iphone 15", slug="apple-iphone-15",
        brand_id=brands["Apple"], category_id=categories["Smartphones"],
    )
    db.add(product)
    db.commit()
    return product.id


class TestVariantAttributes:
    def test_phone_attributes(self):
        attrs = variant_attributes(_record(ram=8, storage=256, color="Onyx Black Color"), "Samsung")
        assert attrs == {
            "ram_gb": 8, "storage_gb": 256, "color": "onyx black",
            "display_size": None, "connectivity_type": None,
        }

    def test_apple_ram_forced_null(self):
        attrs = variant_attributes(_record(ram=6, storage=128, color="Black"), "Apple")
        assert attrs["ram_gb"] is None

    def test_tablet_attributes(self):
        attrs = variant_attributes(
            _record(storage=256, color="Grey", display_size=11.0, connectivity_type="Wi-Fi"), "Samsung")
        assert attrs["display_size"] == 11
        assert attrs["connectivity_type"] == "wi-fi"

    def test_key_without_ram(self):
        attrs = {"ram_gb": None, "storage_gb": 128, "color": "black"}
        assert variant_key(1, attrs, include_ram=False) == (1, 128, "black", None, None)
        assert variant_key(1, attrs) == (1, 128, "black", None, None, None)


class TestResolveVariant:
    @pytest.mark.asyncio
    async def test_same_attributes_same_variant(self, store, product_id):
        stats = IngestionStats()
        matcher = ProductMatcher(store, DedupCache(), stats)
        a = await matcher.resolve_variant(_record(ram=8, storage=256, color="Black"), product_id, "Samsung")
        b = await matcher.resolve_variant(_record(ram=8, storage=256, color="black color"), product_id, "Samsung")
        assert a == b
        assert stats.variants.created == 1
        assert stats.variants.existing == 1

    @pytest.mark.asyncio
    async def test_ram_difference_splits_non_apple(self, store, product_id):
        matcher = ProductMatcher(store, DedupCache(), IngestionStats())
        a = await matcher.resolve_variant(_record(ram=8, storage=256, color="Black"), product_id, "Samsung")
        b = await matcher.resolve_variant(_record(ram=12, storage=256, color="Black"), product_id, "Samsung")
        assert a != b

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first_ram,second_ram", [(None, 6), (6, None)])
    async def test_apple_ram_excluded(self, store, product_id, first_ram, second_ram):
        matcher = ProductMatcher(store, DedupCache(), IngestionStats())
        a = await matcher.resolve_variant(
            _record(brand="Apple", model_name="iPhone 15", ram=first_ram, storage=128, color="Black"),
            product_id, "Apple")
        b = await matcher.resolve_variant(
            _record(brand="Apple", model_name="iPhone 15", ram=second_ram, storage=128, color="Black"),
            product_id, "Apple")
        assert a == b

    @pytest.mark.asyncio
    async def test_apple_ram_excluded_across_runs(self, store, product_id):
        a = await ProductMatcher(store, DedupCache(), IngestionStats()).resolve_variant(
            _record(brand="Apple", ram=None, storage=128, color="Blue"), product_id, "Apple Inc")
        b = await ProductMatcher(store, DedupCache(), IngestionStats()).resolve_variant(
            _record(brand="Apple", ram=6, storage=128, color="Blue"), product_id, "Apple Inc")
        assert a == b

    @pytest.mark.asyncio
    async def test_stored_name_and_attributes(self, db, store, product_id):
        matcher = ProductMatcher(store, DedupCache(), IngestionStats())
        vid = await matcher.resolve_variant(
            _record(model_name="Galaxy S24", ram=8, storage=256, color="Black"), product_id, "Samsung")
        variant = db.get(ProductVariant, vid)
        assert variant.name == "Samsung Galaxy S24 - black, 256GB, 8GB RAM"
        assert variant.attributes["storage_gb"] == 256


class TestVariantImages:
    @pytest.mark.asyncio
    async def test_images_unioned_within_run(self, db, store, product_id):
        matcher = ProductMatcher(store, DedupCache(), IngestionStats())
        vid = await matcher.resolve_variant(
            _record(storage=128, color="Black", image_url="https://img/a.jpg"), product_id, "Samsung")
        await matcher.resolve_variant(
            _record(storage=128, color="Black", image_urls=["https://img/a.jpg", "https://img/b.jpg"]),
            product_id, "Samsung")

        db.expire_all()
        images = db.get(ProductVariant, vid).images
        assert [i["url"] for i in images] == ["https://img/a.jpg", "https://img/b.jpg"]
        assert [i["type"] for i in images] == ["main", "gallery"]

    @pytest.mark.asyncio
    async def test_images_unioned_across_runs(self, db, store, product_id):
        first = ProductMatcher(store, DedupCache(), IngestionStats())
        vid = await first.resolve_variant(
            _record(storage=128, color="Black", image_url="https://img/a.jpg", image_urls=["https://img/b.jpg"]),
            product_id, "Samsung")
        second = ProductMatcher(store, DedupCache(), IngestionStats())
        await second.resolve_variant(
            _record(storage=128, color="Black", image_url="https://img/c.jpg"), product_id, "Samsung")

        db.expire_all()
        urls = [i["url"] for i in db.get(ProductVariant, vid).images]
        assert urls == ["https://img/a.jpg", "https://img/b.jpg", "https://img/c.jpg"]


class TestImageHelpers:
    def test_build_images_marks_first_main(self):
        images = build_images(_record(image_url="u1", image_urls=["u1", "u2"]))
        assert [(i["url"], i["type"]) for i in images] == [("u1", "main"), ("u2", "gallery")]
        assert images[0]["source"] == "croma"

    def test_merge_drops_duplicate_urls(self):
        merged = merge_images([{"url": "a"}], [{"url": "a"}, {"url": "b"}])
        assert [i["url"] for i in merged] == ["a", "b"]


class TestDisplayName:
    def test_phone(self):
        attrs = {"ram_gb": 12, "storage_gb": 512, "color": "titanium gray"}
        assert variant_display_name("Samsung", "Galaxy S24 Ultra", attrs) == \
            "Samsung Galaxy S24 Ultra - titanium gray, 512GB, 12GB RAM"

    def test_tablet_storage_in_tb(self):
        attrs = {"ram_gb": None, "storage_gb": 2048, "color": "silver",
                 "display_size": 11, "connectivity_type": "wi-fi"}
        assert variant_display_name("Apple", "iPad Pro", attrs) == \
            "Apple iPad Pro 2 TB ROM 11 Inch with wi-fi (silver)"

    def test_no_attributes(self):
        assert variant_display_name("Nokia", "105", {}) == "Nokia 105"
