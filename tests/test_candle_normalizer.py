from __future__ import annotations

from datetime import datetime, timezone

import pytest

from candlefeed.domain.entities.candle import Candle
from candlefeed.domain.exceptions.domain_errors import InvalidRecordError, InvalidTimestampError
from candlefeed.domain.services.candle_normalizer import (
    normalize,
    normalize_price_points,
    resolve_timestamp,
    validate_series,
)


def kline(open_time_ms: int, o: str, h: str, l: str, c: str, v: str = "1.5") -> list:
    return [open_time_ms, o, h, l, c, v, open_time_ms + 59_999, "0", 10, "0", "0", "0"]


class TestResolveTimestamp:
    def test_seconds_millis_micros_resolve_to_same_instant(self) -> None:
        assert resolve_timestamp(1_700_000_000) == 1_700_000_000
        assert resolve_timestamp(1_700_000_000_123) == 1_700_000_000
        assert resolve_timestamp(1_700_000_000_123_456) == 1_700_000_000

    def test_numeric_string_and_iso(self) -> None:
        assert resolve_timestamp("1700000000000") == 1_700_000_000
        assert resolve_timestamp("2023-11-14T22:13:20Z") == 1_700_000_000

    def test_naive_datetime_is_utc(self) -> None:
        naive = datetime(2023, 11, 14, 22, 13, 20)
        aware = naive.replace(tzinfo=timezone.utc)
        assert resolve_timestamp(naive) == resolve_timestamp(aware) == 1_700_000_000

    @pytest.mark.parametrize("value", [None, "", "yesterday", -5, float("nan"), True, object()])
    def test_unresolvable_values_raise(self, value) -> None:
        with pytest.raises(InvalidTimestampError):
            resolve_timestamp(value)


class TestNormalize:
    def test_klines_with_string_prices(self) -> None:
        series = normalize([
            kline(1_700_000_000_000, "100.5", "101", "99.5", "100.8"),
            kline(1_700_000_060_000, "100.8", "102", "100.1", "101.9"),
        ])
        assert series == [
            Candle(1_700_000_000, 100.5, 101.0, 99.5, 100.8, 1.5),
            Candle(1_700_000_060, 100.8, 102.0, 100.1, 101.9, 1.5),
        ]

    def test_dict_records_are_sorted_ascending(self) -> None:
        records = [
            {"time": 300, "open": 3, "high": 3, "low": 3, "close": 3},
            {"time": 100, "open": 1, "high": 1, "low": 1, "close": 1},
            {"time": 200, "open": 2, "high": 2, "low": 2, "close": 2},
        ]
        assert [c.open_time for c in normalize(records)] == [100, 200, 300]

    def test_first_duplicate_wins(self) -> None:
        records = [
            {"time": 100, "open": 1, "high": 1, "low": 1, "close": 1},
            {"time": 100, "open": 9, "high": 9, "low": 9, "close": 9},
            {"time": 200, "open": 2, "high": 2, "low": 2, "close": 2},
        ]
        series = normalize(records)
        assert len(series) == 2
        assert series[0].close == 1

    def test_inconsistent_high_low_are_widened(self) -> None:
        series = normalize([{"time": 100, "open": 10, "high": 9, "low": 11, "close": 12}])
        candle = series[0]
        assert candle.high == 12
        assert candle.low == 10
        assert candle.is_consistent

    @pytest.mark.parametrize("bad", ["abc", 0, -1, float("inf"), None])
    def test_bad_price_rejects_batch(self, bad) -> None:
        records = [
            {"time": 100, "open": 1, "high": 1, "low": 1, "close": 1},
            {"time": 200, "open": bad, "high": 2, "low": 1, "close": 2},
        ]
        with pytest.raises(InvalidRecordError):
            normalize(records)

    def test_short_array_rejected(self) -> None:
        with pytest.raises(InvalidRecordError):
            normalize([[1, 2, 3]])

    def test_missing_timestamp_is_interpolated_between_neighbours(self) -> None:
        records = [
            {"time": 1000, "open": 1, "high": 1, "low": 1, "close": 1},
            {"time": "garbage", "open": 2, "high": 2, "low": 2, "close": 2},
            {"time": 3000, "open": 3, "high": 3, "low": 3, "close": 3},
        ]
        series = normalize(records)
        assert [c.open_time for c in series] == [1000, 2000, 3000]

    def test_missing_timestamp_extrapolated_from_one_side(self) -> None:
        records = [
            {"time": 1000, "open": 1, "high": 1, "low": 1, "close": 1},
            {"open": 2, "high": 2, "low": 2, "close": 2},
        ]
        assert [c.open_time for c in normalize(records, fallback_spacing=60)] == [1000, 1060]

    def test_no_valid_timestamps_anchor_on_now(self) -> None:
        records = [{"open": p, "high": p, "low": p, "close": p} for p in (1, 2, 3)]
        series = normalize(records, fallback_spacing=60, now=10_000)
        assert [c.open_time for c in series] == [9820, 9880, 9940]

    def test_invalid_volume_becomes_none(self) -> None:
        series = normalize([{"time": 100, "open": 1, "high": 1, "low": 1, "close": 1, "volume": "-3"}])
        assert series[0].volume is None

    def test_empty_input(self) -> None:
        assert normalize([]) == []

    def test_output_always_validates(self) -> None:
        records = [kline(1_700_000_000_000 + i * 60_000, "10", "9", "11", "10.5") for i in range(50)]
        assert validate_series(normalize(list(reversed(records))))


class TestPricePoints:
    def test_open_is_previous_close(self) -> None:
        points = [[1_700_000_000_000, 100.0], [1_700_086_400_000, 105.0], [1_700_172_800_000, 103.0]]
        series = normalize_price_points(points, seed=7)
        assert series[0].open == 100.0
        assert series[1].open == 100.0
        assert series[2].open == 105.0
        assert [c.close for c in series] == [100.0, 105.0, 103.0]
        assert validate_series(series)

    def test_spread_is_bounded_and_deterministic(self) -> None:
        points = [[i * 86_400_000 + 1_700_000_000_000, 100.0 + i] for i in range(30)]
        first = normalize_price_points(points, seed=3)
        second = normalize_price_points(points, seed=3)
        assert first == second
        for candle in first:
            assert candle.high <= round(max(candle.open, candle.close) * 1.02, 2)
            assert candle.low >= round(min(candle.open, candle.close) * 0.98, 2)

    def test_malformed_point(self) -> None:
        with pytest.raises(InvalidRecordError):
            normalize_price_points([[1_700_000_000_000]])


class TestValidateSeries:
    def test_rejects_empty_and_unordered(self) -> None:
        a = Candle(100, 1, 1, 1, 1)
        b = Candle(200, 1, 1, 1, 1)
        assert not validate_series([])
        assert validate_series([a, b])
        assert not validate_series([b, a])
        assert not validate_series([a, a])

    def test_rejects_inconsistent_candle(self) -> None:
        assert not validate_series([Candle(100, 5, 4, 3, 5)])
