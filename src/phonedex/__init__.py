"""Cross-store phone/tablet catalog ingestion with product and variant deduplication."""

__version__ = "0.1.0"
