"""Application services - Long-lived orchestration of a subscription."""

from candlefeed.application.services.connection_supervisor import ConnectionSupervisor
from candlefeed.application.services.market_feed_service import (
    MarketFeedService,
    MarketSubscription,
)

__all__ = [
    "ConnectionSupervisor",
    "MarketFeedService",
    "MarketSubscription",
]
