"""SQLAlchemy-backed catalog store.

Every public method runs synchronously on the wrapped Session; the async
signatures let the matcher await store calls one phase at a time.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Brand, Category, Listing, Product, ProductVariant
from ..normalizer import slugify
from ..similarity import trigram_similarity
from . import StoreError
from .base import CatalogStore, FuzzyMatch

logger = logging.getLogger(__name__)

# (name, parent name) in insertion order
DEFAULT_CATEGORIES: list[tuple[str, str | None]] = [
    ("Electronics", None),
    ("Mobile Phones", "Electronics"),
    ("Smartphones", "Mobile Phones"),
    ("Basic Phones", "Mobile Phones"),
    ("Tablets", "Electronics"),
    ("others", None),
]


def seed_default_categories(db: Session) -> int:
    """Insert the default category tree if missing. Returns number of rows created."""
    created = 0
    by_name = {c.name: c for c in db.query(Category).all()}
    for name, parent_name in DEFAULT_CATEGORIES:
        if name in by_name:
            continue
        parent = by_name.get(parent_name) if parent_name else None
        slug = slugify(name)
        cat = Category(
            name=name,
            slug=slug,
            parent_id=parent.id if parent else None,
            level=parent.level + 1 if parent else 0,
            path=f"{parent.path}/{slug}" if parent else f"/{slug}",
        )
        db.add(cat)
        db.flush()
        by_name[name] = cat
        created += 1
    db.commit()
    if created:
        logger.info("Seeded %d default categories", created)
    return created


class SqlCatalogStore(CatalogStore):
    def __init__(self, db: Session, price_history_limit: int | None = None) -> None:
        self._db = db
        self._price_history_limit = (
            settings.price_history_limit if price_history_limit is None else price_history_limit
        )

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreError(f"{operation} failed: {e}", operation=operation) from e

    # -- products ----------------------------------------------------------

    async def find_product_by_model_number(self, model_number: str, brand_id: int) -> Product | None:
        with self._guard("find_product_by_model_number"):
            return (
                self._db.query(Product)
                .filter(Product.model_number == model_number, Product.brand_id == brand_id)
                .order_by(Product.id)
                .first()
            )

    async def find_products_by_model_name_in(self, names: list[str], brand_id: int) -> list[Product]:
        if not names:
            return []
        with self._guard("find_products_by_model_name_in"):
            return (
                self._db.query(Product)
                .filter(Product.model_name.in_(names), Product.brand_id == brand_id)
                .order_by(Product.id)
                .all()
            )

    async def find_product_by_fuzzy_model_number(
        self, model_number: str, brand_id: int, category_id: int | None, threshold: float,
    ) -> FuzzyMatch | None:
        with self._guard("find_product_by_fuzzy_model_number"):
            return self._best_trigram_match(model_number, brand_id, category_id, threshold)

    async def find_product_by_fuzzy_model_name(
        self, model_name: str, brand_id: int, category_id: int | None, threshold: float,
    ) -> FuzzyMatch | None:
        with self._guard("find_product_by_fuzzy_model_name"):
            return self._best_trigram_match(model_name, brand_id, category_id, threshold)

    def _best_trigram_match(
        self, text: str, brand_id: int, category_id: int | None, threshold: float,
    ) -> FuzzyMatch | None:
        """Highest trigram similarity strictly above *threshold*; ties go to the lowest id."""
        text = text.lower()
        if self._db.get_bind().dialect.name == "postgresql":
            # pg_trgm extension (see the initial migration)
            score = func.similarity(Product.model_name, text)
            q = self._db.query(Product, score.label("score")).filter(
                Product.brand_id == brand_id, score > threshold,
            )
            if category_id is not None:
                q = q.filter(Product.category_id == category_id)
            row = q.order_by(score.desc(), Product.id.asc()).first()
            return FuzzyMatch(row[0], float(row[1])) if row else None

        q = self._db.query(Product).filter(Product.brand_id == brand_id)
        if category_id is not None:
            q = q.filter(Product.category_id == category_id)
        best: FuzzyMatch | None = None
        for product in q.order_by(Product.id):
            s = trigram_similarity(text, product.model_name)
            if s > threshold and (best is None or s > best.similarity):
                best = FuzzyMatch(product, s)
        return best

    async def create_product(self, fields: dict[str, Any]) -> Product:
        with self._guard("create_product"):
            fields = dict(fields)
            fields["slug"] = self._unique_slug(fields.get("slug") or slugify(fields["model_name"]))
            product = Product(**fields)
            self._db.add(product)
            self._db.commit()
            return product

    def _unique_slug(self, slug: str) -> str:
        candidate, n = slug, 1
        while self._db.query(Product.id).filter(Product.slug == candidate).first():
            n += 1
            candidate = f"{slug}-{n}"
        return candidate

    async def update_product(self, product_id: int, fields: dict[str, Any]) -> None:
        with self._guard("update_product"):
            product = self._db.get(Product, product_id)
            if product is None:
                raise StoreError(f"product {product_id} not found", operation="update_product")
            for key, value in fields.items():
                setattr(product, key, value)
            self._db.commit()

    # -- variants ----------------------------------------------------------

    async def find_variant_by_exact_attributes(
        self, product_id: int, attributes: dict[str, Any],
    ) -> ProductVariant | None:
        with self._guard("find_variant_by_exact_attributes"):
            variants = (
                self._db.query(ProductVariant)
                .filter(ProductVariant.product_id == product_id)
                .order_by(ProductVariant.id)
                .all()
            )
        for v in variants:
            stored = v.attributes or {}
            if all(stored.get(k) == val for k, val in attributes.items()):
                return v
        return None

    async def create_variant(self, fields: dict[str, Any]) -> ProductVariant:
        with self._guard("create_variant"):
            variant = ProductVariant(**fields)
            self._db.add(variant)
            self._db.commit()
            return variant

    async def update_variant_images(self, variant_id: int, images: list[dict[str, Any]]) -> None:
        with self._guard("update_variant_images"):
            variant = self._db.get(ProductVariant, variant_id)
            if variant is None:
                raise StoreError(f"variant {variant_id} not found", operation="update_variant_images")
            variant.images = list(images)
            self._db.commit()

    # -- brand / category --------------------------------------------------

    async def find_or_create_brand(self, name: str) -> tuple[Brand, bool]:
        slug = slugify(name)
        with self._guard("find_or_create_brand"):
            brand = self._db.query(Brand).filter(Brand.slug == slug).first()
            if brand is None:
                brand = self._db.query(Brand).filter(func.lower(Brand.name) == name.lower()).first()
            if brand is not None:
                return brand, False
            brand = Brand(name=name, slug=slug)
            self._db.add(brand)
            self._db.commit()
            logger.info("Created brand: %s", name)
            return brand, True

    async def find_category_by_name(self, name: str) -> Category | None:
        with self._guard("find_category_by_name"):
            return (
                self._db.query(Category)
                .filter(Category.name == name, Category.is_active == True)  # noqa: E712
                .first()
            )

    # -- listings ----------------------------------------------------------

    async def upsert_listing(self, variant_id: int, fields: dict[str, Any]) -> tuple[Listing, bool]:
        now = datetime.now(timezone.utc)
        with self._guard("upsert_listing"):
            listing = (
                self._db.query(Listing)
                .filter(Listing.store_name == fields["store_name"], Listing.url == fields["url"])
                .first()
            )
            if listing is None:
                listing = Listing(variant_id=variant_id, last_seen_at=now, **fields)
                self._db.add(listing)
                self._db.commit()
                return listing, True

            if listing.variant_id != variant_id:
                logger.debug("Listing %s moved from variant %s to %s", listing.id, listing.variant_id, variant_id)
                listing.variant_id = variant_id

            new_price = fields.get("price")
            if not new_price:
                # a missing price never replaces a known one
                fields = {k: v for k, v in fields.items() if k != "price"}
            elif float(listing.price or 0) != float(new_price):
                history = list(listing.price_history or [])
                history.append({
                    "price": listing.price,
                    "date": (listing.updated_at or now).isoformat(),
                })
                # oldest entries drop off the front
                listing.price_history = history[-self._price_history_limit:]

            for key, value in fields.items():
                setattr(listing, key, value)
            listing.last_seen_at = now
            self._db.commit()
            return listing, False

    # -- maintenance -------------------------------------------------------

    async def refresh_variant_counts(self, product_ids: list[int] | None = None) -> int:
        with self._guard("refresh_variant_counts"):
            counts = dict(
                self._db.query(ProductVariant.product_id, func.count(ProductVariant.id))
                .filter(ProductVariant.is_active == True)  # noqa: E712
                .group_by(ProductVariant.product_id)
                .all()
            )
            q = self._db.query(Product)
            if product_ids is not None:
                if not product_ids:
                    return 0
                q = q.filter(Product.id.in_(product_ids))
            touched = 0
            for product in q:
                count = counts.get(product.id, 0)
                if product.variant_count != count:
                    product.variant_count = count
                    touched += 1
            self._db.commit()
            return touched

    async def count_catalog(self) -> dict[str, int]:
        with self._guard("count_catalog"):
            return {
                "brands": self._db.query(func.count(Brand.id)).scalar() or 0,
                "products": self._db.query(func.count(Product.id)).scalar() or 0,
                "variants": self._db.query(func.count(ProductVariant.id)).scalar() or 0,
                "listings": self._db.query(func.count(Listing.id)).scalar() or 0,
            }
