from __future__ import annotations

from datetime import UTC, datetime, timedelta

from deltaticks.core.data.candles import aggregate_ticks, parse_interval
from deltaticks.core.services.identifiers import candle_id
from deltaticks.core.services.intervals import load_timezone

KOLKATA = load_timezone("Asia/Kolkata")
T0 = datetime(2025, 8, 1, 0, 0, tzinfo=UTC)


def test_one_minute_candle_values(make_tick):
    ticks = [
        make_tick(T0 + timedelta(seconds=1), 100.0, 1.0, row_number=1),
        make_tick(T0 + timedelta(seconds=20), 105.0, 2.0, row_number=2),
        make_tick(T0 + timedelta(seconds=59), 95.0, 0.5, row_number=3),
    ]

    (candle,) = aggregate_ticks(ticks, parse_interval("M1"), KOLKATA, "BTCUSD", "BTC")

    assert (candle.open, candle.high, candle.low, candle.close) == (100.0, 105.0, 95.0, 95.0)
    assert candle.volume == 3.5
    assert candle.trade_count == 3
    assert candle.bucket_start == T0
    assert candle.local_datetime == "2025-08-01T05:30:00+05:30"
    assert candle.first_tick_time == T0 + timedelta(seconds=1)
    assert candle.last_tick_time == T0 + timedelta(seconds=59)
    assert candle.id == candle_id("BTCUSD", "M1", T0)


def test_result_does_not_depend_on_input_order(make_tick):
    ticks = [make_tick(T0 + timedelta(seconds=17 * i), 100.0 + (i % 7), row_number=i + 1) for i in range(40)]
    spec = parse_interval("M3")

    forward = aggregate_ticks(ticks, spec, KOLKATA, "BTCUSD", "BTC")
    backward = aggregate_ticks(list(reversed(ticks)), spec, KOLKATA, "BTCUSD", "BTC")

    assert forward == backward
    assert [c.bucket_start for c in forward] == sorted(c.bucket_start for c in forward)
    assert sum(c.trade_count for c in forward) == 40


def test_equal_timestamps_ordered_by_source_and_row(make_tick):
    ticks = [
        make_tick(T0, 101.0, source_file="b.csv", row_number=1),
        make_tick(T0, 102.0, source_file="a.csv", row_number=2),
        make_tick(T0, 103.0, source_file="a.csv", row_number=1),
    ]

    (candle,) = aggregate_ticks(ticks, parse_interval("M1"), KOLKATA, "BTCUSD", "BTC")

    assert (candle.open, candle.close) == (103.0, 101.0)


def test_empty_buckets_are_not_emitted(make_tick):
    ticks = [make_tick(T0, 100.0), make_tick(T0 + timedelta(minutes=10), 101.0)]

    candles = aggregate_ticks(ticks, parse_interval("M1"), KOLKATA, "BTCUSD", "BTC")

    assert [c.bucket_start for c in candles] == [T0, T0 + timedelta(minutes=10)]


def test_daily_buckets_start_at_local_midnight(make_tick):
    ticks = [make_tick(datetime(2025, 8, 1, 19, 0, tzinfo=UTC), 100.0)]

    (candle,) = aggregate_ticks(ticks, parse_interval("D1"), KOLKATA, "BTCUSD", "BTC")

    assert candle.bucket_start == datetime(2025, 8, 1, 18, 30, tzinfo=UTC)
    assert candle.local_datetime == "2025-08-02T00:00:00+05:30"


def test_repeated_local_hour_yields_two_candles(make_tick):
    new_york = load_timezone("America/New_York")
    ticks = [
        make_tick(datetime(2025, 11, 2, 5, 30, 10, tzinfo=UTC), 100.0, row_number=1),
        make_tick(datetime(2025, 11, 2, 6, 30, 10, tzinfo=UTC), 101.0, row_number=2),
    ]

    candles = aggregate_ticks(ticks, parse_interval("M1"), new_york, "BTCUSD", "BTC")

    assert [c.trade_count for c in candles] == [1, 1]
    assert [c.local_datetime for c in candles] == ["2025-11-02T01:30:00-04:00", "2025-11-02T01:30:00-05:00"]
    assert candles[0].id != candles[1].id


def test_four_ticks_in_arrival_order(make_tick):
    prices = [10.0, 12.0, 9.0, 11.0]
    ticks = [make_tick(T0 + timedelta(seconds=10 * i), price, row_number=i + 1) for i, price in enumerate(prices)]

    (candle,) = aggregate_ticks(ticks, parse_interval("M1"), KOLKATA, "BTCUSD", "BTC")

    assert (candle.open, candle.high, candle.low, candle.close) == (10.0, 12.0, 9.0, 11.0)
    assert (candle.volume, candle.trade_count) == (4.0, 4)
