from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Callable, List, Optional

import pytest

from candlefeed.application.ports.event_publisher import EventHandler, IEventPublisher
from candlefeed.application.ports.market_data_provider import (
    ICurrentPriceSource,
    IHistoricalDataSource,
    ILiveFeed,
)
from candlefeed.domain.events.domain_events import DomainEvent
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.config.settings import Settings


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with millisecond timers so supervisor tests run quickly."""
    return Settings(
        _env_file=None,
        live_connect_timeout=0.2,
        disconnected_fallback_delay=0.05,
        simulation_tick_interval=0.01,
        history_strategy_timeout=0.5,
        ws_reconnect_base_delay=0.01,
        ws_reconnect_max_delay=0.05,
        history_limit=20,
    )


@pytest.fixture
def generator() -> SyntheticPriceGenerator:
    return SyntheticPriceGenerator()


class RecordingPublisher(IEventPublisher):
    def __init__(self) -> None:
        self.events: List[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        raise NotImplementedError

    def of_type(self, name: str) -> List[DomainEvent]:
        return [e for e in self.events if type(e).__name__ == name]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


class FakeHistorySource(IHistoricalDataSource, ICurrentPriceSource):
    def __init__(
        self,
        name: str,
        records: Optional[List[Any]] = None,
        error: Optional[Exception] = None,
        record_format: str = "ohlc",
        price: Optional[float] = None,
    ) -> None:
        self.name = name
        self.record_format = record_format
        self._records = records
        self._error = error
        self._price = price
        self.history_calls = 0

    async def fetch_history(self, symbol: str, granularity: str, count: int) -> List[Any]:
        self.history_calls += 1
        if self._error is not None:
            raise self._error
        return list(self._records or [])

    async def fetch_current_tick(self, symbol: str) -> Tick:
        if self._price is None:
            raise self._error or LookupError("no price")
        return Tick(symbol=symbol, price=self._price, received_at=0.0)


class ScriptedLiveFeed(ILiveFeed):
    """Live feed that replays a script per connection attempt.

    Each script is a list of Tick or Exception items; an Exception is
    raised at that point, and reaching the end of the script either
    closes the stream or, with hang=True, blocks forever.
    """

    def __init__(self, *scripts: List[Any], hang: bool = False) -> None:
        self._scripts = list(scripts)
        self._hang = hang
        self.attempts = 0
        self.closed = 0

    async def stream(self, symbol: str) -> AsyncIterator[Tick]:
        script = self._scripts[self.attempts] if self.attempts < len(self._scripts) else []
        self.attempts += 1
        try:
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                yield item
            if self._hang:
                await asyncio.Event().wait()
        finally:
            self.closed += 1


def make_tick(price: float, at: float, symbol: str = "BTCUSDT") -> Tick:
    return Tick(symbol=symbol, price=price, received_at=at)


async def wait_until(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)
