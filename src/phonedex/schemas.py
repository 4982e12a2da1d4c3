"""Normalized product records consumed by the ingestion pipeline.

The per-site normalizers emit JSON shaped like::

    {
      "product_identifiers": {"brand", "model_name", "model_number", "original_title"},
      "variant_attributes": {"ram", "storage", "color", "display_size", "connectivity_type"},
      "listing_info": {"price": {"current", "original", "discount_percent", "currency"},
                       "rating": {"score", "count"}, "availability",
                       "image_url", "image_urls"},
      "source_details": {"source_name", "url", "scraped_at_utc"},
      "key_specifications": {...},
      "category": "Smartphones"
    }

``NormalizedProduct.from_raw`` flattens that into the fixed shape below.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_number(value: Any) -> int | float | None:
    """Coerce "8", 8.0, "8 GB" → 8; garbage, NaN and non-positive values → None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        digits = "".join(ch for ch in value.strip() if ch.isdigit() or ch == ".")
        if not digits:
            return None
        try:
            value = float(digits)
        except ValueError:
            return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(num) or math.isinf(num) or num <= 0:
        return None
    return int(num) if num.is_integer() else num


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class VariantAttributes(BaseModel):
    ram: int | float | None = None
    storage: int | float | None = None
    color: str | None = None
    display_size: int | float | None = None
    connectivity_type: str | None = None

    @field_validator("ram", "storage", "display_size", mode="before")
    @classmethod
    def _number(cls, v: Any) -> int | float | None:
        return _to_number(v)

    @field_validator("color", "connectivity_type", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return _to_text(v)

    @property
    def is_tablet_shaped(self) -> bool:
        return self.display_size is not None or self.connectivity_type is not None


class ListingFields(BaseModel):
    store_name: str = "unknown"
    url: str = ""
    title: str = ""
    price: float = 0.0
    original_price: float | None = None
    discount_percent: float | None = None
    currency: str = "INR"
    rating: float | None = None
    review_count: int = 0
    availability: str | None = None
    image_url: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    scraped_at: datetime = Field(default_factory=_utcnow)

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        num = _to_number(v)
        return float(num) if num is not None else 0.0

    @field_validator("original_price", "discount_percent", "rating", mode="before")
    @classmethod
    def _optional_number(cls, v: Any) -> float | None:
        num = _to_number(v)
        return float(num) if num is not None else None

    @field_validator("review_count", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        num = _to_number(v)
        return int(num) if num is not None else 0

    @field_validator("image_urls", mode="before")
    @classmethod
    def _urls(cls, v: Any) -> list[str]:
        if not v:
            return []
        return [u for u in v if isinstance(u, str) and u.strip()]


class NormalizedProduct(BaseModel):
    """One listing after site-specific extraction, in the common schema."""

    source: str = "unknown"
    brand: str | None = None
    model_name: str | None = None
    model_number: str | None = None
    category_hint: str | None = None
    variant_attributes: VariantAttributes = Field(default_factory=VariantAttributes)
    listing_fields: ListingFields = Field(default_factory=ListingFields)
    key_specifications: dict[str, Any] = Field(default_factory=dict)

    @field_validator("brand", "model_name", "model_number", "category_hint", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str | None:
        return _to_text(v)

    @property
    def identifier(self) -> str:
        """Human-readable identifier used in error reports."""
        parts = [p for p in (self.brand, self.model_name) if p]
        if parts:
            return " ".join(parts)
        return self.model_number or self.listing_fields.url or "unknown record"

    @classmethod
    def from_raw(cls, data: dict[str, Any], source: str | None = None) -> NormalizedProduct:
        ids = data.get("product_identifiers") or {}
        variant = data.get("variant_attributes") or {}
        info = data.get("listing_info") or {}
        details = data.get("source_details") or {}
        price = info.get("price") or {}
        rating = info.get("rating") or {}
        if not isinstance(price, dict):
            price = {"current": price}
        if not isinstance(rating, dict):
            rating = {"score": rating}

        source_name = details.get("source_name") or source or "unknown"
        listing: dict[str, Any] = {
            "store_name": source_name,
            "url": details.get("url") or "",
            "title": ids.get("original_title") or "",
            "price": price.get("current"),
            "original_price": price.get("original"),
            "discount_percent": price.get("discount_percent"),
            "currency": price.get("currency") or "INR",
            "rating": rating.get("score"),
            "review_count": rating.get("count"),
            "availability": info.get("availability"),
            "image_url": info.get("image_url"),
            "image_urls": info.get("image_urls"),
        }
        if details.get("scraped_at_utc"):
            listing["scraped_at"] = details["scraped_at_utc"]

        return cls(
            source=source or source_name,
            brand=ids.get("brand"),
            model_name=ids.get("model_name"),
            model_number=ids.get("model_number"),
            category_hint=data.get("category"),
            variant_attributes=VariantAttributes(**{
                k: variant.get(k)
                for k in ("ram", "storage", "color", "display_size", "connectivity_type")
            }),
            listing_fields=ListingFields(**listing),
            key_specifications=data.get("key_specifications") or {},
        )
