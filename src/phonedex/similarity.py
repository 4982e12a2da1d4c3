"""String similarity for model names.

Two scales are used:
  similarity()          → 0..100 integer, edit-distance based (validation, 90 = accept)
  trigram_similarity()  → 0.0..1.0 float, pg_trgm compatible (fuzzy lookup floor)
"""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

from .normalizer import remove_network_suffix


def similarity(a: str | None, b: str | None) -> int:
    """Edit-distance similarity in 0..100, case-insensitive.

    Examples:
        similarity("iPhone 15", "iphone 15") → 100
        similarity("", "")                   → 100
        similarity("iPhone 15", "")          → 0
    """
    a = (a or "").strip().lower()
    b = (b or "").strip().lower()
    if a == b:
        return 100
    max_len = max(len(a), len(b))
    if not a or not b:
        return 0
    dist = Levenshtein.distance(a, b)
    return round(100 * (max_len - dist) / max_len)


def strip_brand_from_model(model: str, brand: str | None) -> str:
    """Remove a leading brand token from *model*.

    Tries the full brand, the brand with spaces removed, then the brand's first
    word ("One Plus" → "OnePlus" → "One").
    """
    text = model.strip()
    if not brand:
        return text
    brand = brand.strip()
    candidates = [brand, brand.replace(" ", ""), brand.split()[0] if brand.split() else ""]
    for cand in candidates:
        if not cand:
            continue
        m = re.match(rf"{re.escape(cand)}\b\s*", text, re.IGNORECASE)
        if m:
            return text[m.end():].strip()
    return text


def model_similarity(spec_model: str | None, title_model: str | None, brand: str | None = None) -> int:
    """Compare two model names ignoring brand prefix and network suffix."""
    a = remove_network_suffix(strip_brand_from_model(spec_model or "", brand))
    b = remove_network_suffix(strip_brand_from_model(title_model or "", brand))
    return similarity(a, b)


# ---------------------------------------------------------------------------
# Trigrams (same rules as PostgreSQL pg_trgm)
# ---------------------------------------------------------------------------


def _trigrams(text: str) -> set[str]:
    """Each alphanumeric word padded with two leading and one trailing space."""
    grams: set[str] = set()
    for word in re.findall(r"[0-9a-z]+", text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return grams


def trigram_similarity(a: str | None, b: str | None) -> float:
    """Shared trigrams over the union of trigrams, 0.0..1.0."""
    ta = _trigrams(a or "")
    tb = _trigrams(b or "")
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)
