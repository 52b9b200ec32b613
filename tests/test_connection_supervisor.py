from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from candlefeed.application.services.connection_supervisor import ConnectionSupervisor
from candlefeed.domain.exceptions.domain_errors import ConnectionLostError, SetupFailureError
from candlefeed.domain.services.synthetic_price_generator import SyntheticPriceGenerator
from candlefeed.domain.value_objects.connection_state import ConnectionState
from candlefeed.domain.value_objects.tick import Tick
from candlefeed.shared.config.settings import Settings

from tests.conftest import ScriptedLiveFeed, make_tick, wait_until

CONNECTING = ConnectionState.CONNECTING
LIVE = ConnectionState.LIVE
SIMULATED = ConnectionState.SIMULATED
DISCONNECTED = ConnectionState.DISCONNECTED
ERROR = ConnectionState.ERROR


class Recorder:
    def __init__(self) -> None:
        self.ticks: List[Tuple[Tick, bool]] = []
        self.states: List[ConnectionState] = []

    async def on_tick(self, tick: Tick, simulated: bool) -> None:
        self.ticks.append((tick, simulated))

    async def on_state_change(self, previous: ConnectionState, current: ConnectionState) -> None:
        self.states.append(current)

    @property
    def simulated_ticks(self) -> List[Tick]:
        return [t for t, simulated in self.ticks if simulated]

    @property
    def live_ticks(self) -> List[Tick]:
        return [t for t, simulated in self.ticks if not simulated]


def make_supervisor(feed, settings: Settings, recorder: Recorder) -> ConnectionSupervisor:
    return ConnectionSupervisor(
        live_feed=feed,
        generator=SyntheticPriceGenerator(),
        settings=settings,
        on_tick=recorder.on_tick,
        on_state_change=recorder.on_state_change,
    )


async def test_error_before_first_message_goes_straight_to_simulated(fast_settings) -> None:
    recorder = Recorder()
    feed = ScriptedLiveFeed([ConnectionLostError("refused")])
    supervisor = make_supervisor(feed, fast_settings, recorder)

    await supervisor.start("BTCUSDT", 50_000.0)
    await wait_until(lambda: len(recorder.simulated_ticks) >= 3)
    await supervisor.stop()

    assert recorder.states == [CONNECTING, SIMULATED]
    assert LIVE not in recorder.states
    assert recorder.live_ticks == []
    first = recorder.simulated_ticks[0]
    assert first.symbol == "BTCUSDT"
    assert abs(first.price / 50_000.0 - 1) < 0.01


async def test_stream_ending_before_first_message_is_a_failed_connect(fast_settings) -> None:
    recorder = Recorder()
    supervisor = make_supervisor(ScriptedLiveFeed([]), fast_settings, recorder)

    await supervisor.start("BTCUSDT", 50_000.0)
    await wait_until(lambda: supervisor.state == SIMULATED)
    await supervisor.stop()

    assert recorder.states == [CONNECTING, SIMULATED]


async def test_silent_socket_times_out_into_simulation(fast_settings) -> None:
    recorder = Recorder()
    feed = ScriptedLiveFeed([], hang=True)
    supervisor = make_supervisor(feed, fast_settings, recorder)

    await supervisor.start("BTCUSDT", 50_000.0)
    await wait_until(lambda: supervisor.state == SIMULATED)
    await supervisor.stop()

    assert recorder.states == [CONNECTING, SIMULATED]
    assert feed.closed == 1


async def test_live_then_close_goes_disconnected_then_simulated(fast_settings) -> None:
    recorder = Recorder()
    feed = ScriptedLiveFeed([make_tick(101.0, 1.0), make_tick(102.0, 2.0)])
    supervisor = make_supervisor(feed, fast_settings, recorder)

    await supervisor.start("BTCUSDT", 100.0)
    await wait_until(lambda: supervisor.state == SIMULATED)
    await wait_until(lambda: len(recorder.simulated_ticks) >= 1)
    await supervisor.stop()

    assert recorder.states == [CONNECTING, LIVE, DISCONNECTED, SIMULATED]
    assert [t.price for t in recorder.live_ticks] == [101.0, 102.0]
    # La simulación arranca desde el último precio conocido
    assert abs(recorder.simulated_ticks[0].price / 102.0 - 1) < 0.01


async def test_reconnect_during_disconnected_cancels_fallback(fast_settings) -> None:
    settings = fast_settings.model_copy(update={"disconnected_fallback_delay": 0.3})
    recorder = Recorder()
    feed = ScriptedLiveFeed([make_tick(101.0, 1.0)], [make_tick(103.0, 2.0)], hang=False)
    supervisor = make_supervisor(feed, settings, recorder)

    await supervisor.start("BTCUSDT", 100.0)
    await wait_until(lambda: supervisor.state == DISCONNECTED)
    await supervisor.reconnect()
    await wait_until(lambda: len(recorder.live_ticks) == 2)
    await supervisor.stop()

    assert recorder.states[:4] == [CONNECTING, LIVE, DISCONNECTED, CONNECTING]
    assert recorder.simulated_ticks == []


async def test_setup_failure_enters_error_until_reconnect(fast_settings) -> None:
    recorder = Recorder()
    feed = ScriptedLiveFeed([SetupFailureError("bad target", target="??")], [make_tick(5.0, 1.0)], hang=True)
    supervisor = make_supervisor(feed, fast_settings, recorder)

    await supervisor.start("BTCUSDT", 5.0)
    await wait_until(lambda: supervisor.state == ERROR)
    await asyncio.sleep(0.1)
    assert supervisor.state == ERROR
    assert recorder.ticks == []

    await supervisor.reconnect()
    await wait_until(lambda: supervisor.state == LIVE)
    await supervisor.stop()

    assert recorder.states == [CONNECTING, ERROR, CONNECTING, LIVE]


async def test_reconnect_from_simulated_stops_simulation(fast_settings) -> None:
    recorder = Recorder()
    feed = ScriptedLiveFeed([ConnectionLostError("refused")], [make_tick(200.0, 1.0)], hang=True)
    supervisor = make_supervisor(feed, fast_settings, recorder)

    await supervisor.start("BTCUSDT", 200.0)
    await wait_until(lambda: len(recorder.simulated_ticks) >= 2)
    await supervisor.reconnect()
    await wait_until(lambda: supervisor.state == LIVE)

    simulated_before = len(recorder.simulated_ticks)
    await asyncio.sleep(0.1)
    await supervisor.stop()

    assert len(recorder.simulated_ticks) == simulated_before
    assert recorder.states == [CONNECTING, SIMULATED, CONNECTING, LIVE]


async def test_no_callbacks_after_stop(fast_settings) -> None:
    recorder = Recorder()
    supervisor = make_supervisor(ScriptedLiveFeed([ConnectionLostError("x")]), fast_settings, recorder)

    await supervisor.start("BTCUSDT", 10.0)
    await wait_until(lambda: len(recorder.simulated_ticks) >= 2)
    await supervisor.stop()

    ticks, states = len(recorder.ticks), len(recorder.states)
    await asyncio.sleep(0.1)
    assert len(recorder.ticks) == ticks
    assert len(recorder.states) == states
    assert supervisor.state == DISCONNECTED
    assert not supervisor.running


async def test_auto_retry_reconnects_from_simulated(fast_settings) -> None:
    settings = fast_settings.model_copy(update={"live_auto_retry": True})
    recorder = Recorder()
    feed = ScriptedLiveFeed([ConnectionLostError("refused")], [make_tick(7.0, 1.0)], hang=True)
    supervisor = make_supervisor(feed, settings, recorder)

    await supervisor.start("BTCUSDT", 7.0)
    await wait_until(lambda: supervisor.state == LIVE)
    assert supervisor.stats["reconnect_attempts"] == 0
    await supervisor.stop()

    assert recorder.states == [CONNECTING, SIMULATED, CONNECTING, LIVE]
    assert feed.attempts == 2


async def test_failing_tick_callback_does_not_kill_the_source(fast_settings) -> None:
    calls: List[Tick] = []

    async def flaky(tick: Tick, simulated: bool) -> None:
        calls.append(tick)
        raise RuntimeError("renderer exploded")

    supervisor = ConnectionSupervisor(
        live_feed=ScriptedLiveFeed([ConnectionLostError("x")]),
        generator=SyntheticPriceGenerator(),
        settings=fast_settings,
        on_tick=flaky,
    )
    await supervisor.start("BTCUSDT", 10.0)
    await wait_until(lambda: len(calls) >= 3)
    await supervisor.stop()


@pytest.mark.parametrize("anchor", [0.5, 65_000.0])
async def test_simulated_prices_stay_positive(fast_settings, anchor: float) -> None:
    recorder = Recorder()
    supervisor = make_supervisor(ScriptedLiveFeed([ConnectionLostError("x")]), fast_settings, recorder)
    await supervisor.start("BTCUSDT", anchor)
    await wait_until(lambda: len(recorder.simulated_ticks) >= 20)
    await supervisor.stop()

    assert all(t.price > 0 for t in recorder.simulated_ticks)
