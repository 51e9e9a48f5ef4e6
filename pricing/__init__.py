"""USD pricing for holdings and market data lookups."""

from .market import MarketDataService
from .resolver import PriceResolver

__all__ = ["MarketDataService", "PriceResolver"]
