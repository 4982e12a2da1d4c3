"""Run statistics: entity counters, per-phase match counts, cross-platform overlap."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from ..normalizer import get_network_type, remove_network_suffix

logger = logging.getLogger(__name__)

# Every match type the matcher can report, in phase order
MATCH_TYPES = (
    "model_number",
    "exact_name",
    "variant_match",
    "cross_field_fuzzy",
    "fuzzy_model_name",
    "created",
)


@dataclass
class EntityCounts:
    created: int = 0
    existing: int = 0

    @property
    def total(self) -> int:
        return self.created + self.existing


@dataclass
class PlatformProduct:
    """One product as seen across the sources of a run."""
    brand: str
    model_name: str
    product_id: int | None
    was_new: bool
    platforms: set[str] = field(default_factory=set)
    variants: set[tuple[str, str]] = field(default_factory=set)  # (platform, variant key)


@dataclass
class CrossPlatformReport:
    total_unique_products: int = 0
    common_products: int = 0
    platform_specific_products: int = 0
    platform_breakdown: dict[str, int] = field(default_factory=dict)   # exclusive products per platform
    variants_per_platform: dict[str, int] = field(default_factory=dict)  # over common products only
    new_variants_on_existing_products: int = 0
    common_sample: list[dict[str, Any]] = field(default_factory=list)


class IngestionStats:
    """Counters for one ingestion run. Only the owning run writes to it."""

    def __init__(self) -> None:
        self.brands = EntityCounts()
        self.categories = EntityCounts()
        self.products = EntityCounts()
        self.variants = EntityCounts()
        self.listings = EntityCounts()
        self.matches: Counter[str] = Counter({t: 0 for t in MATCH_TYPES})
        self.errors: list[dict[str, str]] = []
        self.new_variants_on_existing_products = 0
        self._products: dict[tuple[str, str], PlatformProduct] = {}

    # -- recording ---------------------------------------------------------

    def record_match(self, match_type: str) -> None:
        self.matches[match_type] += 1
        if match_type == "created":
            self.products.created += 1
        else:
            self.products.existing += 1

    def record_error(self, identifier: str, message: str) -> None:
        self.errors.append({"identifier": identifier, "message": message})

    @staticmethod
    def platform_key(brand: str, model_name: str) -> tuple[str, str]:
        """Brand + model name with a trailing " 5g" dropped."""
        name = model_name.lower().strip()
        if get_network_type(name) == "5g":
            name = remove_network_suffix(name)
        return brand.lower().strip(), name

    def track_platform(
        self,
        platform: str,
        brand: str,
        model_name: str,
        product_id: int | None,
        variant_key: str,
        was_new_product: bool,
        was_new_variant: bool,
    ) -> None:
        key = self.platform_key(brand, model_name)
        entry = self._products.get(key)
        if entry is None:
            entry = PlatformProduct(brand=brand, model_name=key[1], product_id=product_id, was_new=was_new_product)
            self._products[key] = entry
        entry.platforms.add(platform)
        entry.variants.add((platform, variant_key))
        if len(entry.platforms) > 1 and not was_new_product and was_new_variant:
            self.new_variants_on_existing_products += 1

    # -- reporting ---------------------------------------------------------

    @property
    def matched(self) -> int:
        return sum(n for t, n in self.matches.items() if t != "created")

    @property
    def dedup_rate(self) -> float:
        """Share of resolved products that reused an existing row, in percent."""
        total = self.matched + self.matches["created"]
        if not total:
            return 0.0
        return round(100 * self.matched / total, 1)

    def cross_platform(self, sample_size: int = 10) -> CrossPlatformReport:
        report = CrossPlatformReport(
            total_unique_products=len(self._products),
            new_variants_on_existing_products=self.new_variants_on_existing_products,
        )
        for entry in self._products.values():
            if len(entry.platforms) > 1:
                report.common_products += 1
                if len(report.common_sample) < sample_size:
                    report.common_sample.append({
                        "brand": entry.brand,
                        "model": entry.model_name,
                        "platforms": sorted(entry.platforms),
                        "variant_count": len(entry.variants),
                    })
                per_platform: dict[str, set[str]] = {}
                for platform, vkey in entry.variants:
                    per_platform.setdefault(platform, set()).add(vkey)
                for platform, keys in per_platform.items():
                    report.variants_per_platform[platform] = report.variants_per_platform.get(platform, 0) + len(keys)
            else:
                report.platform_specific_products += 1
                (platform,) = entry.platforms
                report.platform_breakdown[platform] = report.platform_breakdown.get(platform, 0) + 1
        return report

    def report(self) -> dict[str, Any]:
        cross = self.cross_platform()
        return {
            "brands": vars(self.brands).copy(),
            "categories": vars(self.categories).copy(),
            "products": vars(self.products).copy(),
            "variants": vars(self.variants).copy(),
            "listings": vars(self.listings).copy(),
            "matches": dict(self.matches),
            "dedup_rate": self.dedup_rate,
            "cross_platform": vars(cross).copy(),
            "errors": list(self.errors),
        }

    def log_summary(self, max_errors: int = 5) -> None:
        cross = self.cross_platform()
        logger.info("=== Ingestion summary ===")
        logger.info(
            "Products: %d new, %d existing | Variants: %d new, %d existing | Listings: %d new, %d updated",
            self.products.created, self.products.existing,
            self.variants.created, self.variants.existing,
            self.listings.created, self.listings.existing,
        )
        logger.info(
            "Brands: %d new, %d existing | Categories: %d new, %d existing",
            self.brands.created, self.brands.existing,
            self.categories.created, self.categories.existing,
        )
        logger.info(
            "Matches: %s | Dedup rate: %.1f%%",
            ", ".join(f"{t}={self.matches[t]}" for t in MATCH_TYPES), self.dedup_rate,
        )
        if cross.total_unique_products:
            logger.info(
                "Cross-platform: %d unique, %d common (%.1f%%), %d platform-specific, %d new variants on existing",
                cross.total_unique_products, cross.common_products,
                100 * cross.common_products / cross.total_unique_products,
                cross.platform_specific_products, cross.new_variants_on_existing_products,
            )
            for platform, count in sorted(cross.platform_breakdown.items()):
                logger.info("  %s exclusive: %d", platform, count)
            for item in cross.common_sample:
                logger.info("  common: %s %s on %s", item["brand"], item["model"], ", ".join(item["platforms"]))
        if self.errors:
            logger.warning("%d errors", len(self.errors))
            for err in self.errors[:max_errors]:
                logger.warning("  %s: %s", err["identifier"], err["message"])
            if len(self.errors) > max_errors:
                logger.warning("  ... and %d more", len(self.errors) - max_errors)
