"""Application ports - Interfaces to infrastructure."""
from candlefeed.application.ports.event_publisher import EventHandler, IEventPublisher
from candlefeed.application.ports.market_data_provider import (
    ICurrentPriceSource,
    IHistoricalDataSource,
    ILiveFeed,
)

__all__ = [
    "EventHandler",
    "IEventPublisher",
    "ICurrentPriceSource",
    "IHistoricalDataSource",
    "ILiveFeed",
]
