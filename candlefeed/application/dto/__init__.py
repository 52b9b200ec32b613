"""Application DTOs - Data Transfer Objects for consumers."""
from candlefeed.application.dto.market_snapshot import MarketSnapshot

__all__ = [
    "MarketSnapshot",
]
