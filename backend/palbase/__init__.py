"""Palbase pet adoption ingestion service."""

__version__ = "0.1.0"
