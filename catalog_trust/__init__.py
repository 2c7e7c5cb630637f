"""Provenance-aware confidence scoring and classification consensus for catalog records."""

__version__ = "0.1.0"
