"""Brand / model cross-checks between a spec table and a product title.

A pair that scores below the accept threshold is never silently merged or
split: the result carries the title value and ``needs_manual_review=True``.

Called by the per-store normalizers that write the JSON files ``phonedex ingest``
reads; ingestion takes their brand and model values as already checked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import settings
from .normalizer import KNOWN_SUB_BRANDS, clean_model_name, detect_model_number, standardize_brand
from .similarity import model_similarity, similarity

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    value: str | None
    needs_manual_review: bool = False
    similarity: int | None = None
    model_number: str | None = None  # set when the spec "model" was really a SKU


def more_informative(a: str, b: str) -> str:
    """Prefer the name with more tokens, then the longer one; ties go to *a*."""
    a, b = a.strip(), b.strip()

    def score(s: str) -> int:
        return len(s.split()) * 10 + len(s)

    return a if score(a) >= score(b) else b


def validate_brand(
    spec_brand: str | None,
    title_brand: str | None,
    threshold: int | None = None,
) -> ValidationResult:
    threshold = settings.validation_threshold if threshold is None else threshold
    spec = standardize_brand(spec_brand)
    title = standardize_brand(title_brand)

    if not spec or not title:
        return ValidationResult(spec or title)

    # Redmi / POCO titles beat a "Xiaomi" spec table
    if title in KNOWN_SUB_BRANDS and spec != title:
        logger.debug("Preferring sub-brand %s over %s", title, spec)
        return ValidationResult(title)

    score = similarity(spec, title)
    if score >= threshold:
        return ValidationResult(spec if len(spec) >= len(title) else title, similarity=score)

    logger.warning("Brand mismatch: spec=%r title=%r similarity=%d", spec, title, score)
    return ValidationResult(title, needs_manual_review=True, similarity=score)


def validate_model(
    spec_model: str | None,
    title_model: str | None,
    brand: str | None = None,
    threshold: int | None = None,
) -> ValidationResult:
    threshold = settings.validation_threshold if threshold is None else threshold
    spec = clean_model_name(spec_model)
    title = clean_model_name(title_model)
    model_number = spec if detect_model_number(spec) else None

    if model_number and title:
        return ValidationResult(title, model_number=model_number)
    if not spec or not title:
        return ValidationResult(spec or title, model_number=model_number)

    score = model_similarity(spec, title, brand)
    if score >= threshold:
        return ValidationResult(more_informative(spec, title), similarity=score)

    logger.warning("Model mismatch: spec=%r title=%r similarity=%d", spec, title, score)
    return ValidationResult(title, needs_manual_review=True, similarity=score)
