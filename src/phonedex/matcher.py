"""Product / variant resolution: decide whether a normalized record is a known product.

Product phases (first hit wins; each phase checks the run cache before the store):
  1. model_number        exact (brand, model_number)
  2. exact_name /        model_name IN [base, base + " 5g"]  (4G names: exact only)
     variant_match
  3. cross_field_fuzzy   model_number vs existing model names, trigram > floor
                         (only when a model_number is given)
  4. fuzzy_model_name    model_name vs existing model names, trigram > floor
  5. created             new Product row

A product matched in phases 1-4 that has no model_number gets the incoming one
(an existing model_number is never overwritten).

The run cache only remembers what a store lookup would find again: model-name
entries come from phase 2 and from created products, keyed by the product's own
name, and model-number entries only for numbers the product row carries.

Variants never match fuzzily: the attributes tuple must be equal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import settings
from .ingest.cache import DedupCache
from .ingest.stats import IngestionStats
from .models import Product
from .normalizer import (
    generate_search_variants,
    normalize_color,
    normalize_model_name,
    slugify,
)
from .schemas import NormalizedProduct
from .store import StoreError
from .store.base import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class ProductMatch:
    product_id: int
    match_type: str  # see ingest.stats.MATCH_TYPES
    similarity: float | None = None  # fuzzy phases only

    @property
    def created(self) -> bool:
        return self.match_type == "created"


# ---------------------------------------------------------------------------
# Variant helpers
# ---------------------------------------------------------------------------


def is_apple(brand_name: str | None) -> bool:
    return bool(brand_name) and "apple" in brand_name.lower()


def variant_attributes(record: NormalizedProduct, brand_name: str | None) -> dict[str, Any]:
    """Attributes tuple stored on ProductVariant.attributes.

    Apple spec pages never state RAM, so Apple variants always carry ram_gb=None.
    """
    attrs = record.variant_attributes
    tablet = attrs.is_tablet_shaped
    return {
        "ram_gb": None if is_apple(brand_name) else attrs.ram,
        "storage_gb": attrs.storage,
        "color": normalize_color(attrs.color),
        "display_size": attrs.display_size if tablet else None,
        "connectivity_type": attrs.connectivity_type.strip().lower() if tablet and attrs.connectivity_type else None,
    }


def variant_key(product_id: int, attributes: dict[str, Any], include_ram: bool = True) -> tuple:
    key: tuple = (
        product_id,
        attributes.get("storage_gb"),
        attributes.get("color"),
        attributes.get("display_size"),
        attributes.get("connectivity_type"),
    )
    if include_ram:
        key += (attributes.get("ram_gb"),)
    return key


def variant_display_name(brand: str, model: str, attributes: dict[str, Any]) -> str:
    """Human-readable variant name.

    Phones:  "Samsung Galaxy S24 - black, 256GB, 8GB RAM"
    Tablets: "Apple iPad Pro 2 TB ROM 11 Inch with wi-fi (silver)"
    """
    name = f"{brand} {model}".strip()
    storage = attributes.get("storage_gb")
    if attributes.get("display_size") or attributes.get("connectivity_type"):
        specs = []
        if storage:
            specs.append(f"{storage / 1024:.0f} TB ROM" if storage >= 1024 else f"{storage} GB ROM")
        if attributes.get("display_size"):
            specs.append(f"{attributes['display_size']} Inch")
        if attributes.get("connectivity_type"):
            specs.append(f"with {attributes['connectivity_type']}")
        if attributes.get("color"):
            specs.append(f"({attributes['color']})")
        return f"{name} {' '.join(specs)}" if specs else name

    parts = []
    if attributes.get("color"):
        parts.append(attributes["color"])
    if storage:
        parts.append(f"{storage}GB")
    if attributes.get("ram_gb"):
        parts.append(f"{attributes['ram_gb']}GB RAM")
    return f"{name} - {', '.join(parts)}" if parts else name


def build_images(record: NormalizedProduct) -> list[dict[str, Any]]:
    """Image records from image_url + image_urls; the first URL is the main image."""
    listing = record.listing_fields
    urls = ([listing.image_url] if listing.image_url else []) + list(listing.image_urls)
    scraped_at = listing.scraped_at.isoformat()
    images: list[dict[str, Any]] = []
    seen: set[str] = set()
    for url in urls:
        if url in seen:
            continue
        seen.add(url)
        images.append({
            "url": url,
            "type": "main" if not images else "gallery",
            "source": record.source,
            "scraped_at": scraped_at,
        })
    return images


def merge_images(existing: list[dict[str, Any]], incoming: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Append incoming images whose URL is not already present."""
    merged = list(existing)
    seen = {img.get("url") for img in existing}
    for img in incoming:
        if img["url"] not in seen:
            seen.add(img["url"])
            merged.append(img)
    return merged


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class ProductMatcher:
    """Resolves records to Product / ProductVariant ids for one ingestion run."""

    def __init__(
        self,
        store: CatalogStore,
        cache: DedupCache,
        stats: IngestionStats,
        fuzzy_threshold: float | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._stats = stats
        self._fuzzy_threshold = settings.fuzzy_match_threshold if fuzzy_threshold is None else fuzzy_threshold

    def _store_failed(self, identifier: str, phase: str, error: StoreError) -> None:
        logger.warning("Store error in %s for '%s': %s", phase, identifier, error)
        self._stats.record_error(identifier, f"{phase}: {error}")

    async def resolve_product(
        self, record: NormalizedProduct, brand_id: int, category_id: int | None,
    ) -> ProductMatch | None:
        """Return the matched or newly created product, or None if the record can't be resolved."""
        identifier = record.identifier
        model_name = normalize_model_name(record.model_name or "")
        if not model_name:
            logger.warning("Skipping record without model name: %s", identifier)
            self._stats.record_error(identifier, "missing model_name")
            return None
        model_number = record.model_number

        match: ProductMatch | None = None
        product: Product | None = None

        # Phase 1: model number
        if model_number:
            match, product = await self._match_model_number(model_number, brand_id, identifier)

        # Phase 2: model name and its 5G spelling
        if match is None:
            match, product = await self._match_model_name(model_name, brand_id, identifier)

        # Phase 3: model number against existing model names
        if match is None and model_number:
            match, product = await self._match_fuzzy(
                "cross_field_fuzzy", model_number, brand_id, category_id, identifier,
            )

        # Phase 4: model name against existing model names
        if match is None:
            match, product = await self._match_fuzzy(
                "fuzzy_model_name", model_name, brand_id, category_id, identifier,
            )

        if match is not None:
            if product is not None:
                self._cache.note_product(product.id, product.model_number)
            if model_number:
                await self._backfill_model_number(match.product_id, model_number, identifier)
                # cache only a number the product row actually carries
                if (match.match_type == "model_number"
                        or self._cache.product_model_number(match.product_id) == model_number):
                    self._cache.put_model_number(brand_id, model_number, match.product_id)
            if match.match_type in ("exact_name", "variant_match") and product is not None:
                self._cache.put_model_name(brand_id, product.id, product.model_name)
            self._stats.record_match(match.match_type)
            logger.debug("'%s' → product %d (%s)", identifier, match.product_id, match.match_type)
            return match

        # Phase 5: create
        if category_id is None:
            self._stats.record_error(identifier, "no category for new product")
            return None
        brand = (record.brand or "").lower()
        slug_source = model_name if not brand or model_name.startswith(brand) else f"{brand} {model_name}"
        fields = {
            "model_name": model_name,
            "slug": slugify(slug_source),
            "brand_id": brand_id,
            "category_id": category_id,
            "model_number": model_number,
            "specifications": dict(record.key_specifications),
        }
        try:
            product = await self._store.create_product(fields)
        except StoreError as e:
            self._store_failed(identifier, "create_product", e)
            return None

        self._cache.note_product(product.id, product.model_number)
        self._cache.put_model_name(brand_id, product.id, model_name)
        if model_number:
            self._cache.put_model_number(brand_id, model_number, product.id)
        self._stats.record_match("created")
        logger.debug("'%s' → new product %d", identifier, product.id)
        return ProductMatch(product.id, "created")

    async def _match_model_number(
        self, model_number: str, brand_id: int, identifier: str,
    ) -> tuple[ProductMatch | None, Product | None]:
        cached = self._cache.get_by_model_number(brand_id, model_number)
        if cached is not None:
            return ProductMatch(cached, "model_number"), None
        try:
            product = await self._store.find_product_by_model_number(model_number, brand_id)
        except StoreError as e:
            self._store_failed(identifier, "model_number lookup", e)
            return None, None
        if product is None:
            return None, None
        return ProductMatch(product.id, "model_number"), product

    async def _match_model_name(
        self, model_name: str, brand_id: int, identifier: str,
    ) -> tuple[ProductMatch | None, Product | None]:
        cached = self._cache.get_by_model_name(brand_id, model_name)
        if cached is not None:
            match_type = "exact_name" if cached.product_name == model_name else "variant_match"
            return ProductMatch(cached.product_id, match_type), None
        try:
            rows = await self._store.find_products_by_model_name_in(
                generate_search_variants(model_name), brand_id,
            )
        except StoreError as e:
            self._store_failed(identifier, "model_name lookup", e)
            return None, None
        if not rows:
            return None, None
        # Exact spelling first, then the oldest row
        product = min(rows, key=lambda p: (p.model_name != model_name, p.id))
        match_type = "exact_name" if product.model_name == model_name else "variant_match"
        return ProductMatch(product.id, match_type), product

    async def _match_fuzzy(
        self, phase: str, text: str, brand_id: int, category_id: int | None, identifier: str,
    ) -> tuple[ProductMatch | None, Product | None]:
        try:
            if phase == "cross_field_fuzzy":
                found = await self._store.find_product_by_fuzzy_model_number(
                    text, brand_id, category_id, self._fuzzy_threshold,
                )
            else:
                found = await self._store.find_product_by_fuzzy_model_name(
                    text, brand_id, category_id, self._fuzzy_threshold,
                )
        except StoreError as e:
            self._store_failed(identifier, phase, e)
            return None, None
        # Below the floor is the ordinary "nothing found" outcome
        if found is None or found.similarity <= self._fuzzy_threshold:
            return None, None
        return ProductMatch(found.product.id, phase, found.similarity), found.product

    async def _backfill_model_number(self, product_id: int, model_number: str, identifier: str) -> None:
        if not self._cache.lacks_model_number(product_id):
            return
        try:
            await self._store.update_product(product_id, {"model_number": model_number})
        except StoreError as e:
            self._store_failed(identifier, "model_number backfill", e)
            return
        self._cache.note_product(product_id, model_number)
        logger.info("Backfilled model number %s on product %d", model_number, product_id)

    # -- variants ----------------------------------------------------------

    async def resolve_variant(
        self, record: NormalizedProduct, product_id: int, brand_name: str | None,
    ) -> int | None:
        """Return the id of the variant with exactly these attributes, creating it if needed."""
        identifier = record.identifier
        attributes = variant_attributes(record, brand_name)
        key = variant_key(product_id, attributes, include_ram=not is_apple(brand_name))
        images = build_images(record)

        variant_id = self._cache.get_variant(key)
        if variant_id is not None:
            self._stats.variants.existing += 1
            await self._union_images(variant_id, self._cache.variant_images(variant_id), images, identifier)
            return variant_id

        try:
            variant = await self._store.find_variant_by_exact_attributes(product_id, attributes)
        except StoreError as e:
            self._store_failed(identifier, "variant lookup", e)
            variant = None

        if variant is not None:
            self._stats.variants.existing += 1
            self._cache.put_variant(key, variant.id)
            await self._union_images(variant.id, variant.images or [], images, identifier)
            return variant.id

        fields = {
            "product_id": product_id,
            "name": variant_display_name(brand_name or "", record.model_name or "", attributes),
            "attributes": attributes,
            "images": images,
        }
        try:
            variant = await self._store.create_variant(fields)
        except StoreError as e:
            self._store_failed(identifier, "create_variant", e)
            return None
        self._stats.variants.created += 1
        self._cache.put_variant(key, variant.id)
        self._cache.set_variant_images(variant.id, images)
        return variant.id

    async def _union_images(
        self, variant_id: int, existing: list[dict] | None, incoming: list[dict], identifier: str,
    ) -> None:
        existing = existing or []
        merged = merge_images(existing, incoming)
        if len(merged) > len(existing):
            try:
                await self._store.update_variant_images(variant_id, merged)
            except StoreError as e:
                self._store_failed(identifier, "variant images", e)
                merged = existing
        self._cache.set_variant_images(variant_id, merged)
