"""Batch ingestion: per-run cache, statistics and the file pipeline."""
