"""Hareline: ingestion and normalization pipeline for trail listings."""

__version__ = "0.1.0"
