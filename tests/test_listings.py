"""Tests for listing upserts and price history."""

from datetime import datetime

import pytest

from phonedex.models import Listing, Product, ProductVariant
from phonedex.store.sql import SqlCatalogStore


@pytest.fixture()
def variant_ids(db, brands, categories):
    product = Product(model_name="galaxy s24", slug="samsung-galaxy-s24",
                      brand_id=brands["Samsung"], category_id=categories["Smartphones"])
    db.add(product)
    db.flush()
    ids = []
    for color in ("black", "violet"):
        v = ProductVariant(product_id=product.id, attributes={"color": color})
        db.add(v)
        db.flush()
        ids.append(v.id)
    db.commit()
    return ids


def _fields(price=74999.0, url="https://www.flipkart.com/p/itm1"):
    return {"store_name": "flipkart", "url": url, "title": "Samsung Galaxy S24", "price": price,
            "stock_status": "in_stock", "availability": "In Stock"}


class TestUpsertListing:
    @pytest.mark.asyncio
    async def test_create_then_update(self, store, variant_ids):
        listing, created = await store.upsert_listing(variant_ids[0], _fields())
        assert created
        assert listing.price_history == []

        listing, created = await store.upsert_listing(variant_ids[0], _fields(price=72999.0))
        assert not created
        assert listing.price == 72999.0
        assert [h["price"] for h in listing.price_history] == [74999.0]

    @pytest.mark.asyncio
    async def test_same_price_keeps_history_but_refreshes_last_seen(self, db, store, variant_ids):
        listing, _ = await store.upsert_listing(variant_ids[0], _fields())
        listing.last_seen_at = datetime(2020, 1, 1)
        db.commit()

        listing, _ = await store.upsert_listing(variant_ids[0], _fields())
        assert listing.price_history == []
        assert listing.last_seen_at.replace(tzinfo=None) > datetime(2020, 1, 1)

    @pytest.mark.asyncio
    async def test_price_history_capped_fifo(self, store, variant_ids):
        await store.upsert_listing(variant_ids[0], _fields(price=1000.0))
        for i in range(1, 32):
            listing, _ = await store.upsert_listing(variant_ids[0], _fields(price=1000.0 + i))

        assert len(listing.price_history) == 30
        # 1000.0 was pushed first and evicted
        assert listing.price_history[0]["price"] == 1001.0
        assert listing.price_history[-1]["price"] == 1030.0
        assert listing.price == 1031.0

    @pytest.mark.asyncio
    async def test_custom_history_limit(self, db, variant_ids):
        store = SqlCatalogStore(db, price_history_limit=3)
        for price in (10.0, 20.0, 30.0, 40.0, 50.0):
            listing, _ = await store.upsert_listing(variant_ids[0], _fields(price=price))
        assert [h["price"] for h in listing.price_history] == [20.0, 30.0, 40.0]

    @pytest.mark.asyncio
    async def test_keyed_by_store_and_url(self, db, store, variant_ids):
        await store.upsert_listing(variant_ids[0], _fields())
        await store.upsert_listing(variant_ids[0], _fields(url="https://www.flipkart.com/p/itm2"))
        await store.upsert_listing(variant_ids[0], {**_fields(), "store_name": "croma"})
        assert db.query(Listing).count() == 3

    @pytest.mark.asyncio
    async def test_repointed_to_new_variant(self, store, variant_ids):
        await store.upsert_listing(variant_ids[0], _fields())
        listing, created = await store.upsert_listing(variant_ids[1], _fields())
        assert not created
        assert listing.variant_id == variant_ids[1]

    @pytest.mark.asyncio
    async def test_zero_price_keeps_known_price(self, store, variant_ids):
        await store.upsert_listing(variant_ids[0], _fields(price=74999.0))
        listing, created = await store.upsert_listing(
            variant_ids[0], {**_fields(price=0.0), "availability": "Currently unavailable"})

        assert not created
        assert listing.price == 74999.0
        assert listing.price_history == []
        assert listing.availability == "Currently unavailable"
