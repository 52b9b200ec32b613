from __future__ import annotations

import asyncio

import pytest

from candlefeed.application.services.market_feed_service import MarketFeedService
from candlefeed.application.use_cases.load_history_usecase import LoadHistoryUseCase
from candlefeed.domain.exceptions.domain_errors import ConnectionLostError, SetupFailureError
from candlefeed.domain.services.candle_normalizer import validate_series
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.domain.value_objects.connection_state import ConnectionState

from tests.conftest import FakeHistorySource, RecordingPublisher, ScriptedLiveFeed, make_tick, wait_until

NOW = 1_700_000_000


def hourly_klines(count: int) -> list:
    start = (NOW - count * 3600) * 1000
    return [[start + i * 3_600_000, "100", "101", "99", "100", "1"] for i in range(count)]


def make_service(fast_settings, feed, publisher, sources=None) -> MarketFeedService:
    generator = SyntheticPriceGenerator()
    loader = LoadHistoryUseCase(
        history_sources=sources if sources is not None else [FakeHistorySource("binance", records=hourly_klines(20))],
        price_sources=[],
        generator=generator,
        strategy_timeout=fast_settings.history_strategy_timeout,
        default_anchor_price=fast_settings.default_anchor_price,
        seed=fast_settings.synthetic_seed,
    )
    return MarketFeedService(
        loader=loader,
        live_feed=feed,
        generator=generator,
        publisher=publisher,
        settings=fast_settings,
    )


async def test_subscribe_loads_history_then_goes_live(fast_settings) -> None:
    publisher = RecordingPublisher()
    last_open = NOW - 3600
    feed = ScriptedLiveFeed([make_tick(120.0, last_open + 10), make_tick(130.0, NOW + 5)], hang=True)
    service = make_service(fast_settings, feed, publisher)

    subscription = await service.subscribe("btcusdt", "1h")
    await wait_until(lambda: len(publisher.of_type("TickReceived")) == 2)

    snapshot = subscription.snapshot()
    assert snapshot.symbol == "BTCUSDT"
    assert snapshot.history_source == "binance"
    assert not snapshot.history_unavailable
    assert snapshot.connection_state == ConnectionState.LIVE
    assert snapshot.current_tick.price == 130.0
    assert len(snapshot.series) == 21
    assert snapshot.series[-2].high == 120.0
    assert snapshot.series[-1].open_time == NOW // 3600 * 3600
    assert validate_series(snapshot.series)

    history = publisher.of_type("HistoryLoaded")
    assert len(history) == 1 and len(history[0].candles) == 20
    updates = publisher.of_type("CandleUpdated")
    assert [u.is_new for u in updates] == [False, True]
    states = [e.current for e in publisher.of_type("ConnectionStateChanged")]
    assert states == ["connecting", "live"]

    await service.unsubscribe()


async def test_history_events_precede_tick_events(fast_settings) -> None:
    publisher = RecordingPublisher()
    feed = ScriptedLiveFeed([make_tick(100.0, NOW)], hang=True)
    service = make_service(fast_settings, feed, publisher)

    await service.subscribe("BTCUSDT", "1h")
    await wait_until(lambda: publisher.of_type("TickReceived"))
    await service.unsubscribe()

    names = [type(e).__name__ for e in publisher.events]
    assert names.index("HistoryLoaded") < names.index("CandleUpdated")


async def test_simulated_ticks_flow_into_series(fast_settings) -> None:
    publisher = RecordingPublisher()
    feed = ScriptedLiveFeed([ConnectionLostError("refused")])
    service = make_service(fast_settings, feed, publisher)

    subscription = await service.subscribe("BTCUSDT", "1m")
    await wait_until(lambda: len(publisher.of_type("TickReceived")) >= 3)
    series = subscription.snapshot().series
    ticks = publisher.of_type("TickReceived")
    await service.unsubscribe()

    assert all(e.simulated for e in ticks)
    assert len(series) >= 21
    assert series[-1].close == ticks[-1].tick.price
    assert subscription.snapshot().series == ()


async def test_unsubscribe_stops_all_events(fast_settings) -> None:
    publisher = RecordingPublisher()
    service = make_service(fast_settings, ScriptedLiveFeed([ConnectionLostError("x")]), publisher)

    subscription = await service.subscribe("BTCUSDT", "1h")
    await wait_until(lambda: len(publisher.of_type("TickReceived")) >= 2)
    await subscription.unsubscribe()

    count = len(publisher.events)
    await asyncio.sleep(0.1)
    assert len(publisher.events) == count
    assert not subscription.active
    assert subscription.snapshot().series == ()


async def test_switching_symbol_tears_down_previous(fast_settings) -> None:
    publisher = RecordingPublisher()
    feed = ScriptedLiveFeed([ConnectionLostError("x")], [ConnectionLostError("y")])
    service = make_service(fast_settings, feed, publisher)

    first = await service.subscribe("BTCUSDT", "1h")
    second = await service.subscribe("ETHUSDT", "1h")
    await wait_until(lambda: any(e.tick.symbol == "ETHUSDT" for e in publisher.of_type("TickReceived")))
    await service.unsubscribe()

    assert not first.active
    assert service.current is None
    assert second.symbol == "ETHUSDT"


async def test_unavailable_history_still_subscribes(fast_settings) -> None:
    class BrokenGenerator(SyntheticPriceGenerator):
        def generate(self, *args, **kwargs):
            raise RuntimeError("boom")

    publisher = RecordingPublisher()
    generator = BrokenGenerator()
    loader = LoadHistoryUseCase([], [], generator, strategy_timeout=0.1)
    service = MarketFeedService(
        loader=loader,
        live_feed=ScriptedLiveFeed([ConnectionLostError("x")]),
        generator=generator,
        publisher=publisher,
        settings=fast_settings,
    )

    subscription = await service.subscribe("BTCUSDT", "1h")
    await wait_until(lambda: publisher.of_type("TickReceived"))
    snapshot = subscription.snapshot()
    await service.unsubscribe()

    assert snapshot.history_unavailable
    assert snapshot.history_source == "unavailable"
    assert len(snapshot.series) == 1
    # Sin histórico, la simulación se ancla en el precio por defecto
    assert abs(snapshot.series[0].open / fast_settings.default_anchor_price - 1) < 0.01


async def test_unknown_granularity_is_rejected(fast_settings) -> None:
    service = make_service(fast_settings, ScriptedLiveFeed(), RecordingPublisher())
    with pytest.raises(SetupFailureError):
        await service.subscribe("BTCUSDT", "7x")
    assert service.current is None


async def test_reconnect_is_forwarded(fast_settings) -> None:
    publisher = RecordingPublisher()
    feed = ScriptedLiveFeed([ConnectionLostError("x")], [make_tick(100.0, NOW)], hang=True)
    service = make_service(fast_settings, feed, publisher)

    subscription = await service.subscribe("BTCUSDT", "1h")
    await wait_until(lambda: subscription.connection_state == ConnectionState.SIMULATED)
    await service.reconnect()
    await wait_until(lambda: subscription.connection_state == ConnectionState.LIVE)
    await service.unsubscribe()

    assert feed.attempts == 2


async def test_unsubscribe_while_history_is_published_never_starts_feed(fast_settings) -> None:
    feed = ScriptedLiveFeed([make_tick(100.0, NOW)], hang=True)

    class TearingDownPublisher(RecordingPublisher):
        async def publish(self, event) -> None:
            await super().publish(event)
            if type(event).__name__ == "HistoryLoaded":
                await service.unsubscribe()

    publisher = TearingDownPublisher()
    service = make_service(fast_settings, feed, publisher)

    subscription = await service.subscribe("BTCUSDT", "1h")
    await asyncio.sleep(0.05)

    assert feed.attempts == 0
    assert not subscription.active
    assert [type(e).__name__ for e in publisher.events] == ["HistoryLoaded"]
