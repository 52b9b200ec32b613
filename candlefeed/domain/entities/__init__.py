"""Domain entities."""
from candlefeed.domain.entities.candle import Candle

__all__ = ["Candle"]
