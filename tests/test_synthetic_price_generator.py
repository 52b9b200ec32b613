from __future__ import annotations

import pytest

from candlefeed.domain.services.candle_normalizer import validate_series
from candlefeed.domain.services.synthetic_price_generator import (
    MAX_STEP_CHANGE,
    SyntheticPriceGenerator,
)

NOW = 1_700_000_000.0


def test_same_seed_same_series(generator: SyntheticPriceGenerator) -> None:
    first = generator.generate(65_000.0, 100, seed=42, now=NOW)
    second = generator.generate(65_000.0, 100, seed=42, now=NOW)
    assert first == second
    assert first != generator.generate(65_000.0, 100, seed=43, now=NOW)


def test_series_is_valid_and_ends_on_anchor(generator: SyntheticPriceGenerator) -> None:
    series = generator.generate(65_000.0, 100, seed=1, now=NOW)
    assert 0 < len(series) <= 100
    assert validate_series(series)
    assert series[-1].close == pytest.approx(65_000.0, rel=1e-6)


def test_steps_are_bounded(generator: SyntheticPriceGenerator) -> None:
    series = generator.generate(30_000.0, 200, seed=9, now=NOW)
    for prev, cur in zip(series, series[1:]):
        change = abs(cur.close / prev.close - 1)
        assert change <= MAX_STEP_CHANGE + 1e-4


def test_timestamps_follow_cadence(generator: SyntheticPriceGenerator) -> None:
    series = generator.generate(100_000.0, 24, seed=5, now=NOW, cadence_seconds=3600)
    times = [c.open_time for c in series]
    assert times[-1] == int(NOW // 3600 * 3600)
    assert all(b - a == 3600 for a, b in zip(times, times[1:]))


def test_colliding_slots_shift_back() -> None:
    # Cadencia menor que el slot: varios puntos caen en el mismo slot
    gen = SyntheticPriceGenerator(cadence_seconds=60, slot_seconds=3600)
    series = gen.generate(50_000.0, 10, seed=2, now=NOW)
    times = [c.open_time for c in series]
    assert len(set(times)) == len(times)
    assert times == sorted(times)
    assert all(t % 3600 == 0 for t in times)


def test_low_anchor_keeps_positive_prices(generator: SyntheticPriceGenerator) -> None:
    series = generator.generate(0.5, 50, seed=4, now=NOW)
    assert validate_series(series)
    assert all(c.low > 0 for c in series)


@pytest.mark.parametrize("anchor,count", [(0, 10), (-1, 10), (100, 0)])
def test_bad_arguments(generator: SyntheticPriceGenerator, anchor, count) -> None:
    with pytest.raises(ValueError):
        generator.generate(anchor, count, seed=1, now=NOW)


def test_next_tick_is_pure_and_bounded(generator: SyntheticPriceGenerator) -> None:
    state = generator.initial_tick_state(50_000.0, seed=11)
    price_a, next_a = generator.next_tick(state)
    price_b, next_b = generator.next_tick(state)
    assert price_a == price_b
    assert next_a == next_b
    assert next_a.step == 1
    assert abs(price_a / 50_000.0 - 1) <= MAX_STEP_CHANGE


def test_tick_walk_never_goes_below_floor(generator: SyntheticPriceGenerator) -> None:
    state = generator.initial_tick_state(10.0, seed=3)
    for _ in range(500):
        price, state = generator.next_tick(state)
        assert price >= state.floor > 0
