"""End-to-end ingestion tests over normalized JSON files."""

import json

import pytest

from phonedex.ingest.pipeline import Ingestor, stock_status
from phonedex.models import Category, Listing, Product, ProductVariant
from phonedex.schemas import NormalizedProduct


def _raw(brand, model, url, source="flipkart", price=19999, ram=8, storage=128, color="Black",
         model_number=None, availability="In Stock", category=None):
    return {
        "product_identifiers": {
            "brand": brand, "model_name": model, "model_number": model_number,
            "original_title": f"{brand} {model} ({color}, {storage} GB)",
        },
        "variant_attributes": {"ram": ram, "storage": storage, "color": color},
        "listing_info": {
            "price": {"current": price, "currency": "INR"},
            "rating": {"score": 4.3, "count": 120},
            "availability": availability,
            "image_url": f"{url}/img.jpg",
        },
        "source_details": {"source_name": source, "url": url, "scraped_at_utc": "2025-01-30T10:00:00Z"},
        "key_specifications": {},
        "category": category,
    }


def _write(tmp_path, name, records):
    path = tmp_path / name
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture()
def files(tmp_path):
    flipkart = _write(tmp_path, "flipkart_normalized_data.json", [
        _raw("Samsung", "Galaxy S24", "https://fk/1", model_number="SM-S921B"),
        _raw("one plus", "OnePlus 12", "https://fk/2", ram=12, storage=256, color="Flowy Emerald"),
        _raw("", "Mystery Phone", "https://fk/3"),
    ])
    croma = _write(tmp_path, "croma_normalized_data.json", [
        _raw("Samsung", "Galaxy S24 5G", "https://cr/1", source="croma", color="Marble Grey"),
        _raw("Apple", "iPhone 15", "https://cr/2", source="croma", ram=None, color="Blue",
             availability="Out of Stock"),
    ])
    return [flipkart, croma]


class TestStockStatus:
    @pytest.mark.parametrize("text,expected", [
        ("In Stock", "in_stock"),
        ("Currently unavailable", "out_of_stock"),
        ("OUT OF STOCK", "out_of_stock"),
        ("Only a few left", "limited_stock"),
        ("Limited stock", "limited_stock"),
        ("Pre-order now", "pre_order"),
        ("Coming Soon", "pre_order"),
        ("", "in_stock"),
        (None, "in_stock"),
    ])
    def test_mapping(self, text, expected):
        assert stock_status(text) == expected


class TestIngestAll:
    @pytest.mark.asyncio
    async def test_multi_source_run(self, db, store, files):
        ingestor = Ingestor(store)
        summaries = await ingestor.ingest_all(files)

        assert [s.source for s in summaries] == ["flipkart", "croma"]
        assert summaries[0].processed == 2
        assert summaries[0].skipped == 1
        assert summaries[0].new_products == 2
        assert summaries[1].new_products == 1

        stats = ingestor.stats
        assert stats.matches["created"] == 3
        assert stats.matches["variant_match"] == 1
        assert stats.dedup_rate == 25.0
        assert stats.variants.created == 4
        assert stats.listings.created == 4
        assert stats.brands.created == 3
        assert stats.errors == [{"identifier": "Mystery Phone", "message": "missing brand"}]

        cross = stats.cross_platform()
        assert cross.total_unique_products == 3
        assert cross.common_products == 1
        assert cross.platform_breakdown == {"flipkart": 1, "croma": 1}
        assert cross.new_variants_on_existing_products == 1

    @pytest.mark.asyncio
    async def test_rows_written(self, db, store, files):
        await Ingestor(store).ingest_all(files)

        s24 = db.query(Product).filter_by(model_name="galaxy s24").one()
        assert s24.model_number == "SM-S921B"
        assert s24.variant_count == 2
        assert db.query(Product).count() == 3

        iphone = db.query(Product).filter_by(model_name="iphone 15").one()
        variant = db.query(ProductVariant).filter_by(product_id=iphone.id).one()
        assert variant.attributes["ram_gb"] is None

        listing = db.query(Listing).filter_by(url="https://cr/2").one()
        assert listing.stock_status == "out_of_stock"
        assert listing.store_name == "croma"

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, db, store, files):
        ingestor = Ingestor(store)
        await ingestor.ingest_all(files)
        summaries = await ingestor.ingest_all(files)

        assert [s.new_products for s in summaries] == [0, 0]
        assert ingestor.stats.matches["created"] == 0
        assert ingestor.stats.variants.created == 0
        assert ingestor.stats.listings.existing == 4
        assert db.query(Product).count() == 3

    @pytest.mark.asyncio
    async def test_bad_file_does_not_stop_run(self, tmp_path, store, files):
        broken = tmp_path / "amazon_normalized_data.json"
        broken.write_text("{not json", encoding="utf-8")
        missing = tmp_path / "reliance_normalized_data.json"

        ingestor = Ingestor(store)
        summaries = await ingestor.ingest_all([broken, missing, *files])

        assert [s.source for s in summaries] == ["flipkart", "croma"]
        failed = [e["identifier"] for e in ingestor.stats.errors]
        assert str(broken) in failed
        assert str(missing) in failed

    @pytest.mark.asyncio
    async def test_source_override(self, tmp_path, store):
        path = _write(tmp_path, "latest.json", [_raw("Samsung", "Galaxy A15", "https://x/1")])
        ingestor = Ingestor(store)
        summaries = await ingestor.ingest_all([path], source="amazon")
        assert summaries[0].source == "amazon"
        assert ingestor.stats.cross_platform().platform_breakdown == {"amazon": 1}


class TestProcessRecord:
    @pytest.mark.asyncio
    async def test_unknown_category_falls_back(self, db, store):
        ingestor = Ingestor(store)
        record = NormalizedProduct.from_raw(
            _raw("Samsung", "Galaxy Watch 6", "https://x/w", category="Smart Watches"))
        outcome = await ingestor.process_record(record, "flipkart")

        product = db.get(Product, outcome.product_id)
        assert db.get(Category, product.category_id).name == "others"

    @pytest.mark.asyncio
    async def test_missing_model_name_skipped(self, store):
        ingestor = Ingestor(store)
        record = NormalizedProduct.from_raw(_raw("Samsung", None, "https://x/none"))
        assert await ingestor.process_record(record, "flipkart") is None
        assert ingestor.stats.errors[0]["message"] == "missing model_name"

    @pytest.mark.asyncio
    async def test_outcome_shape(self, store):
        ingestor = Ingestor(store)
        outcome = await ingestor.process_record(
            NormalizedProduct.from_raw(_raw("Samsung", "Galaxy A15", "https://x/1")), "flipkart")
        assert outcome.match_type == "created"
        assert outcome.listing_created is True
        assert outcome.variant_id is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_recorded(self, store):
        ingestor = Ingestor(store)

        async def explode(*args, **kwargs):
            raise RuntimeError("boom")

        ingestor.matcher.resolve_variant = explode
        outcome = await ingestor.process_record(
            NormalizedProduct.from_raw(_raw("Samsung", "Galaxy A15", "https://x/1")), "flipkart")
        assert outcome is None
        assert ingestor.stats.errors[-1]["message"] == "RuntimeError: boom"
