"""Catalog store interface used by the matcher and the ingestion pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..models import Brand, Category, Listing, Product, ProductVariant


@dataclass
class FuzzyMatch:
    product: Product
    similarity: float  # 0.0..1.0


class CatalogStore(ABC):
    """Abstract base for catalog persistence.

    Implementations raise ``StoreError`` for any backend failure.
    """

    # -- products ----------------------------------------------------------

    @abstractmethod
    async def find_product_by_model_number(self, model_number: str, brand_id: int) -> Product | None:
        ...

    @abstractmethod
    async def find_products_by_model_name_in(self, names: list[str], brand_id: int) -> list[Product]:
        """Products of *brand_id* whose model_name is one of *names*, ordered by id."""
        ...

    @abstractmethod
    async def find_product_by_fuzzy_model_number(
        self, model_number: str, brand_id: int, category_id: int | None, threshold: float,
    ) -> FuzzyMatch | None:
        """Best product whose model_name is trigram-similar to *model_number* (score > threshold)."""
        ...

    @abstractmethod
    async def find_product_by_fuzzy_model_name(
        self, model_name: str, brand_id: int, category_id: int | None, threshold: float,
    ) -> FuzzyMatch | None:
        ...

    @abstractmethod
    async def create_product(self, fields: dict[str, Any]) -> Product:
        ...

    @abstractmethod
    async def update_product(self, product_id: int, fields: dict[str, Any]) -> None:
        ...

    # -- variants ----------------------------------------------------------

    @abstractmethod
    async def find_variant_by_exact_attributes(
        self, product_id: int, attributes: dict[str, Any],
    ) -> ProductVariant | None:
        ...

    @abstractmethod
    async def create_variant(self, fields: dict[str, Any]) -> ProductVariant:
        ...

    @abstractmethod
    async def update_variant_images(self, variant_id: int, images: list[dict[str, Any]]) -> None:
        ...

    # -- brand / category / listing ----------------------------------------

    @abstractmethod
    async def find_or_create_brand(self, name: str) -> tuple[Brand, bool]:
        """Return (brand, created)."""
        ...

    @abstractmethod
    async def find_category_by_name(self, name: str) -> Category | None:
        ...

    @abstractmethod
    async def upsert_listing(self, variant_id: int, fields: dict[str, Any]) -> tuple[Listing, bool]:
        """Insert or update the listing keyed by (store_name, url). Return (listing, created)."""
        ...

    @abstractmethod
    async def refresh_variant_counts(self, product_ids: list[int] | None = None) -> int:
        """Recompute Product.variant_count from active variants. Return rows touched."""
        ...

    @abstractmethod
    async def count_catalog(self) -> dict[str, int]:
        """Row counts keyed by "brands", "products", "variants", "listings"."""
        ...
