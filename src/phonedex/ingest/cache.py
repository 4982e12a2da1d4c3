"""Per-run id cache: repeated brand/model lookups within one batch skip the store."""

from __future__ import annotations

import logging
from typing import Hashable, NamedTuple

from ..normalizer import get_cache_key

logger = logging.getLogger(__name__)


class ModelNameEntry(NamedTuple):
    product_id: int
    product_name: str


class DedupCache:
    """Key → id maps for a single ingestion run.

    A key, once written, keeps its first id for the rest of the run; a later
    write with a different id is ignored. No TTL and nothing is shared
    across runs. Call :meth:`clear` at the start of each run.
    """

    def __init__(self) -> None:
        self._model_numbers: dict[tuple[int, str], int] = {}
        self._model_names: dict[tuple[int, str], ModelNameEntry] = {}
        self._variants: dict[tuple, int] = {}
        self._brands: dict[str, int] = {}
        self._categories: dict[str, int] = {}
        # Last known state of rows resolved this run (plain overwrite, not first-writer)
        self._product_numbers: dict[int, str | None] = {}
        self._variant_images: dict[int, list[dict]] = {}

    def clear(self) -> None:
        self._model_numbers.clear()
        self._model_names.clear()
        self._variants.clear()
        self._brands.clear()
        self._categories.clear()
        self._product_numbers.clear()
        self._variant_images.clear()

    @staticmethod
    def _put(store: dict, key: Hashable, value: int, kind: str) -> int:
        existing = store.get(key)
        if existing is None:
            store[key] = value
            return value
        if existing != value:
            logger.debug("%s cache keeps id %s for %r (ignored %s)", kind, existing, key, value)
        return existing

    # -- products ----------------------------------------------------------

    def get_by_model_number(self, brand_id: int, model_number: str) -> int | None:
        return self._model_numbers.get((brand_id, model_number))

    def put_model_number(self, brand_id: int, model_number: str, product_id: int) -> int:
        return self._put(self._model_numbers, (brand_id, model_number), product_id, "model_number")

    def get_by_model_name(self, brand_id: int, model_name: str) -> ModelNameEntry | None:
        """Lookup by normalized model name; bare and " 5g" spellings share one entry."""
        return self._model_names.get((brand_id, get_cache_key(model_name)))

    def put_model_name(self, brand_id: int, product_id: int, product_name: str) -> int:
        """Cache a product under its own stored name, folded like a phase-2 lookup."""
        key = (brand_id, get_cache_key(product_name))
        existing = self._model_names.get(key)
        if existing is None:
            self._model_names[key] = ModelNameEntry(product_id, product_name)
            return product_id
        if existing.product_id != product_id:
            logger.debug("model_name cache keeps id %s for %r (ignored %s)", existing.product_id, key, product_id)
        return existing.product_id

    def note_product(self, product_id: int, model_number: str | None) -> None:
        self._product_numbers[product_id] = model_number

    def product_model_number(self, product_id: int) -> str | None:
        return self._product_numbers.get(product_id)

    def lacks_model_number(self, product_id: int) -> bool:
        """True only for a product seen this run whose model_number is still NULL."""
        return product_id in self._product_numbers and self._product_numbers[product_id] is None

    # -- variants ----------------------------------------------------------

    def get_variant(self, key: tuple) -> int | None:
        return self._variants.get(key)

    def put_variant(self, key: tuple, variant_id: int) -> int:
        return self._put(self._variants, key, variant_id, "variant")

    def variant_images(self, variant_id: int) -> list[dict] | None:
        return self._variant_images.get(variant_id)

    def set_variant_images(self, variant_id: int, images: list[dict]) -> None:
        self._variant_images[variant_id] = list(images)

    # -- brands / categories -----------------------------------------------

    def get_brand(self, name: str) -> int | None:
        return self._brands.get(name.lower())

    def put_brand(self, name: str, brand_id: int) -> int:
        return self._put(self._brands, name.lower(), brand_id, "brand")

    def get_category(self, name: str) -> int | None:
        return self._categories.get(name)

    def put_category(self, name: str, category_id: int) -> int:
        return self._put(self._categories, name, category_id, "category")

    def sizes(self) -> dict[str, int]:
        return {
            "model_numbers": len(self._model_numbers),
            "model_names": len(self._model_names),
            "variants": len(self._variants),
            "brands": len(self._brands),
            "categories": len(self._categories),
        }
