"""Fetchers for price data from retailer pages."""

from src.fetchers.costco import ExtractionError, ExtractionTimeoutError, resolve_price

__all__ = ["resolve_price", "ExtractionError", "ExtractionTimeoutError"]
