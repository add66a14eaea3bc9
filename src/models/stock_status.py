# src/models/stock_status.py

"""Tri-state stock status shared by subscriptions and status records."""

from enum import Enum


class StockStatus(str, Enum):
    """Last known availability of a product at a pincode."""

    IN_STOCK = "In Stock"
    OUT_OF_STOCK = "Out of Stock"
    UNKNOWN = "Unknown"

    @classmethod
    def from_available(cls, available: bool) -> "StockStatus":
        """Map a probe verdict onto a status."""
        return cls.IN_STOCK if available else cls.OUT_OF_STOCK

    @classmethod
    def parse(cls, raw: str | None) -> "StockStatus":
        """Parse a persisted value, tolerating unknown strings."""
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN
