"""Ingestion pipeline: normalized JSON files → brands, products, variants, listings.

Records are processed one at a time, in file order. A bad record is logged
and recorded in the run's error list; it never stops the batch.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import settings
from ..matcher import ProductMatcher
from ..normalizer import standardize_brand
from ..schemas import NormalizedProduct
from ..store import StoreError
from ..store.base import CatalogStore
from .cache import DedupCache
from .stats import IngestionStats

logger = logging.getLogger(__name__)

# (substrings, status) checked in order against the lowercased availability text
_STOCK_RULES: list[tuple[tuple[str, ...], str]] = [
    (("out of stock", "unavailable"), "out_of_stock"),
    (("limited", "few left"), "limited_stock"),
    (("pre-order", "preorder", "coming soon"), "pre_order"),
]


def stock_status(availability: str | None) -> str:
    text = (availability or "").lower()
    for needles, status in _STOCK_RULES:
        if any(n in text for n in needles):
            return status
    return "in_stock"


@dataclass
class RecordOutcome:
    product_id: int
    variant_id: int
    match_type: str
    listing_created: bool | None = None  # None when the record had no URL


@dataclass
class SourceSummary:
    source: str
    path: str
    total: int = 0
    processed: int = 0
    skipped: int = 0
    new_products: int = 0
    new_variants: int = 0
    new_listings: int = 0
    product_ids: set[int] = field(default_factory=set)


class Ingestor:
    """One ingestion run over one or more normalized data files."""

    def __init__(
        self,
        store: CatalogStore,
        fuzzy_threshold: float | None = None,
        progress_every: int | None = None,
    ) -> None:
        self.store = store
        self.cache = DedupCache()
        self._fuzzy_threshold = fuzzy_threshold
        self._progress_every = progress_every or settings.progress_every
        self.stats = IngestionStats()
        self.matcher = ProductMatcher(store, self.cache, self.stats, fuzzy_threshold)

    def start_run(self) -> None:
        """Drop the previous run's cache and counters."""
        self.cache.clear()
        self.stats = IngestionStats()
        self.matcher = ProductMatcher(self.store, self.cache, self.stats, self._fuzzy_threshold)

    # -- brand / category --------------------------------------------------

    async def resolve_brand(self, name: str) -> int:
        cached = self.cache.get_brand(name)
        if cached is not None:
            self.stats.brands.existing += 1
            return cached
        brand, created = await self.store.find_or_create_brand(name)
        if created:
            self.stats.brands.created += 1
        else:
            self.stats.brands.existing += 1
        return self.cache.put_brand(name, brand.id)

    async def resolve_category(self, hint: str | None) -> int | None:
        name = hint or settings.default_category
        cached = self.cache.get_category(name)
        if cached is not None:
            self.stats.categories.existing += 1
            return cached
        category = await self.store.find_category_by_name(name)
        if category is None and name != settings.fallback_category:
            logger.warning("Category '%s' not found, using '%s'", name, settings.fallback_category)
            category = await self.store.find_category_by_name(settings.fallback_category)
        if category is None:
            return None
        self.stats.categories.existing += 1
        return self.cache.put_category(name, category.id)

    # -- records -----------------------------------------------------------

    async def process_record(self, record: NormalizedProduct, platform: str) -> RecordOutcome | None:
        """Resolve one record all the way to its listing. None means skipped."""
        identifier = record.identifier
        try:
            brand_name = standardize_brand(record.brand)
            if not brand_name:
                logger.warning("Skipping record without brand: %s", identifier)
                self.stats.record_error(identifier, "missing brand")
                return None
            record = record.model_copy(update={"brand": brand_name})

            brand_id = await self.resolve_brand(brand_name)
            category_id = await self.resolve_category(record.category_hint)

            match = await self.matcher.resolve_product(record, brand_id, category_id)
            if match is None:
                return None

            variants_before = self.stats.variants.created
            variant_id = await self.matcher.resolve_variant(record, match.product_id, brand_name)
            if variant_id is None:
                return None
            was_new_variant = self.stats.variants.created > variants_before

            listing_created = await self._upsert_listing(record, variant_id)

            attrs = record.variant_attributes
            self.stats.track_platform(
                platform,
                brand_name,
                record.model_name or "",
                match.product_id,
                f"{attrs.ram or 0}_{attrs.storage or 0}_{attrs.color or 'default'}",
                was_new_product=match.created,
                was_new_variant=was_new_variant,
            )
            return RecordOutcome(match.product_id, variant_id, match.match_type, listing_created)
        except StoreError as e:
            logger.warning("Store error for '%s': %s", identifier, e)
            self.stats.record_error(identifier, str(e))
        except Exception as e:
            logger.warning("Error processing '%s': %s", identifier, e)
            self.stats.record_error(identifier, f"{type(e).__name__}: {e}")
        return None

    async def _upsert_listing(self, record: NormalizedProduct, variant_id: int) -> bool | None:
        lf = record.listing_fields
        if not lf.url:
            logger.debug("No URL for '%s', listing not stored", record.identifier)
            return None
        listing, created = await self.store.upsert_listing(variant_id, {
            "store_name": lf.store_name,
            "url": lf.url,
            "title": lf.title,
            "price": lf.price,
            "original_price": lf.original_price,
            "discount_percentage": lf.discount_percent,
            "currency": lf.currency,
            "rating": lf.rating,
            "review_count": lf.review_count,
            "availability": lf.availability or "",
            "stock_status": stock_status(lf.availability),
            "scraped_at": lf.scraped_at,
        })
        if created:
            self.stats.listings.created += 1
        else:
            self.stats.listings.existing += 1
        return created

    # -- files -------------------------------------------------------------

    async def ingest_records(self, raw_records: list[dict[str, Any]], source: str, path: str = "") -> SourceSummary:
        summary = SourceSummary(source=source, path=path, total=len(raw_records))
        before = await self.store.count_catalog()

        for i, raw in enumerate(raw_records, 1):
            try:
                record = NormalizedProduct.from_raw(raw, source=source)
            except (ValidationError, AttributeError, TypeError) as e:
                logger.warning("Invalid record #%d in %s: %s", i, source, e)
                self.stats.record_error(f"{source} record #{i}", f"invalid record: {e}")
                summary.skipped += 1
                continue

            outcome = await self.process_record(record, source)
            if outcome is None:
                summary.skipped += 1
            else:
                summary.processed += 1
                summary.product_ids.add(outcome.product_id)

            if i % self._progress_every == 0:
                logger.info("%s: %d/%d records", source, i, len(raw_records))

        if summary.product_ids:
            await self.store.refresh_variant_counts(sorted(summary.product_ids))

        after = await self.store.count_catalog()
        summary.new_products = after["products"] - before["products"]
        summary.new_variants = after["variants"] - before["variants"]
        summary.new_listings = after["listings"] - before["listings"]
        logger.info(
            "%s: %d processed, %d skipped | +%d products, +%d variants, +%d listings",
            source, summary.processed, summary.skipped,
            summary.new_products, summary.new_variants, summary.new_listings,
        )
        return summary

    async def ingest_file(self, path: str | Path, source: str | None = None) -> SourceSummary:
        """Ingest one normalized data file. Raises on a missing or unreadable file."""
        path = Path(path)
        source = source or path.stem.split("_")[0]
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("products", [])
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of records")
        logger.info("Ingesting %d %s records from %s", len(data), source, path)
        return await self.ingest_records(data, source, str(path))

    async def ingest_all(
        self, paths: list[str | Path] | None = None, source: str | None = None,
    ) -> list[SourceSummary]:
        """Run over several files; a file that fails is logged and skipped."""
        self.start_run()
        if paths is None:
            data_dir = Path(settings.data_dir)
            paths = [data_dir / f"{s}_normalized_data.json" for s in settings.sources]

        summaries: list[SourceSummary] = []
        for path in paths:
            try:
                summaries.append(await self.ingest_file(path, source))
            except (OSError, ValueError, StoreError) as e:
                logger.exception("Failed to ingest %s: %s", path, e)
                self.stats.record_error(str(path), str(e))

        self.stats.log_summary()
        return summaries
