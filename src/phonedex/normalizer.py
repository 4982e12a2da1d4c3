"""Key normalization: canonical brand names and comparable model-name keys.

Handles:
- Brand aliases and casing (moto → Motorola, one plus → OnePlus, iqoo → iQOO)
- Model-name cleanup (parentheticals, trailing ", Black, 8GB" suffixes, noise words)
- Network suffix rules (" 5g" / " 4g" at the end of a model name)
- Search variants and cache-key folding for bare vs explicit-5G spellings
- Model-number shaped tokens (CPH2717, SM-F966B, S24)

All functions are pure: no I/O, no database access.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Brand alias map  (lowercase form → canonical display name)
# ---------------------------------------------------------------------------

_BRAND_ALIASES: dict[str, str] = {
    "samsung": "Samsung",
    "apple": "Apple",
    "google": "Google",
    "oneplus": "OnePlus", "one plus": "OnePlus",
    "xiaomi": "Xiaomi", "mi": "Xiaomi",
    "redmi": "Redmi",
    "poco": "POCO",
    "realme": "Realme",
    "oppo": "Oppo",
    "vivo": "Vivo",
    "iqoo": "iQOO",
    "motorola": "Motorola", "moto": "Motorola",
    "nokia": "Nokia",
    "nothing": "Nothing", "cmf": "Nothing",
    "tecno": "Tecno",
    "infinix": "Infinix",
    "itel": "itel",
    "lava": "Lava",
    "honor": "Honor",
    "huawei": "Huawei",
    "lenovo": "Lenovo",
    "asus": "Asus",
}

# Sub-brands that win over a parent brand found in the spec table
KNOWN_SUB_BRANDS = frozenset({"Redmi", "POCO"})

# Model "names" that carry no model information at all
_GENERIC_MODEL_NAMES = frozenset({
    "smartphone", "mobile phone", "mobile", "phone", "cell phone",
    "product information", "mobile phone information", "smartphone mobile phone information",
    "tablet", "android tablet",
})


def standardize_brand(raw: str | None) -> str | None:
    """Return the canonical brand for *raw*, the trimmed input if unknown, or None for garbage."""
    if not raw or not isinstance(raw, str):
        return None
    cleaned = re.sub(r"\s+", " ", raw).strip()
    if not re.search(r"[A-Za-z0-9]", cleaned):
        return None
    return _BRAND_ALIASES.get(cleaned.lower(), cleaned)


def clean_model_name(raw: str | None) -> str | None:
    """Strip parentheticals and comma suffixes; None if nothing meaningful is left.

    Example: "Galaxy S24 Ultra (Titanium Gray, 12GB RAM), 256GB" → "Galaxy S24 Ultra"
    """
    if not raw or not isinstance(raw, str):
        return None
    cleaned = re.sub(r"\([^)]*\)", " ", raw)
    cleaned = cleaned.split(",")[0]
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned or cleaned.lower() in _GENERIC_MODEL_NAMES:
        return None
    return cleaned


def normalize_model_name(name: str) -> str:
    """Lowercase, trim and collapse whitespace. This is the form stored in Product.model_name."""
    return re.sub(r"\s+", " ", name).strip().lower()


def slugify(text: str) -> str:
    """URL-friendly slug: "Galaxy S24 Ultra 5G" → "galaxy-s24-ultra-5g"."""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def normalize_color(color: str | None) -> str | None:
    """Lowercase colour with a trailing "color"/"colour" word removed."""
    if not color or not isinstance(color, str):
        return None
    cleaned = re.sub(r"\s+", " ", color.lower())
    cleaned = re.sub(r"\s*colou?r\s*$", "", cleaned).strip()
    return cleaned or None


# ---------------------------------------------------------------------------
# Network suffix rules
# ---------------------------------------------------------------------------
# A bare name is treated as the base/5G SKU; only an explicit " 4g" tag keeps
# a listing apart from the base model.

_SUFFIX_RE = re.compile(r" ([45]g)$", re.IGNORECASE)


def has_network_suffix(name: str) -> bool:
    return bool(_SUFFIX_RE.search(name))


def remove_network_suffix(name: str) -> str:
    if has_network_suffix(name):
        return name[:-3]
    return name


def get_network_type(name: str) -> str:
    """'4g' only when explicitly tagged; everything else counts as '5g'."""
    m = _SUFFIX_RE.search(name)
    if m and m.group(1).lower() == "4g":
        return "4g"
    return "5g"


def get_cache_key(name: str) -> str:
    """Fold bare and explicit-5G spellings into one key; 4G keeps its full name."""
    if get_network_type(name) == "4g":
        return name
    return remove_network_suffix(name)


def generate_search_variants(name: str) -> list[str]:
    """Names that refer to the same product in the store.

    "oneplus 12" / "oneplus 12 5g" → ["oneplus 12", "oneplus 12 5g"]
    "galaxy a15 4g"                → ["galaxy a15 4g"]
    """
    if get_network_type(name) == "4g":
        return [name]
    base = remove_network_suffix(name)
    return [base, f"{base} 5g"]


# ---------------------------------------------------------------------------
# Model number detection
# ---------------------------------------------------------------------------

_MODEL_NUMBER_PATTERNS = [
    re.compile(r"^[A-Z]{2,4}\d{3,4}[A-Z]*$", re.IGNORECASE),   # CPH2717, E166PD
    re.compile(r"^[A-Z]{2,3}-[A-Z0-9]{5,}$", re.IGNORECASE),   # SM-F966B, SM-S928BZKCINS
    re.compile(r"^[A-Z]\d{2,4}[A-Z]{0,2}$", re.IGNORECASE),    # S937BC
    re.compile(r"^[A-Z]{1,2}\d{1,3}[A-Z]?$", re.IGNORECASE),   # P55, S24
    re.compile(r"^[A-Z]+\d+[A-Z]*$", re.IGNORECASE),           # general alphanumeric
]


def detect_model_number(token: str | None) -> bool:
    """True when *token* looks like a manufacturer SKU rather than a model name."""
    if not token or not isinstance(token, str):
        return False
    token = token.strip()
    return any(p.match(token) for p in _MODEL_NUMBER_PATTERNS)
