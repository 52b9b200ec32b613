"""External systems - Market data APIs and messaging."""

from candlefeed.infrastructure.external.event_bus_adapter import EventBusAdapter
from candlefeed.infrastructure.external.binance_rest_adapter import BinanceRestAdapter
from candlefeed.infrastructure.external.binance_ws_adapter import BinanceLiveFeed
from candlefeed.infrastructure.external.coingecko_adapter import CoinGeckoAdapter

__all__ = [
    "EventBusAdapter",
    "BinanceRestAdapter",
    "BinanceLiveFeed",
    "CoinGeckoAdapter",
]
