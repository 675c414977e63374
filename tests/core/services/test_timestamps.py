from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from deltaticks.core.exceptions import TimestampParseError
from deltaticks.core.services.timestamps import TimestampResolver, infer_start_date, trim_fraction_to_millis


def test_trim_fraction_to_millis():
    assert trim_fraction_to_millis("10:00:00.533193") == "10:00:00.533"
    assert trim_fraction_to_millis("10:00:00.5") == "10:00:00.5"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("01/08/2025 10:15:30.123", datetime(2025, 8, 1, 10, 15, 30, 123000, tzinfo=UTC)),
        ("01/08/2025 10:15:30", datetime(2025, 8, 1, 10, 15, 30, tzinfo=UTC)),
        ("2025-08-01 00:00:05.533193", datetime(2025, 8, 1, 0, 0, 5, 533000, tzinfo=UTC)),
        ("2025-08-01T00:00:05Z", datetime(2025, 8, 1, 0, 0, 5, tzinfo=UTC)),
        ("2025-08-01T00:00:05.250Z", datetime(2025, 8, 1, 0, 0, 5, 250000, tzinfo=UTC)),
    ],
)
def test_full_timestamps_are_utc(raw, expected):
    resolver = TimestampResolver("ticks.csv", date(2020, 1, 1))
    assert resolver.resolve(raw) == expected


def test_time_only_uses_start_date():
    resolver = TimestampResolver("ticks.csv", date(2025, 8, 1))
    assert resolver("09:30") == datetime(2025, 8, 1, 9, 30, tzinfo=UTC)
    assert resolver("09:30:15.5") == datetime(2025, 8, 1, 9, 30, 15, 500000, tzinfo=UTC)


def test_midnight_rollover_advances_day():
    resolver = TimestampResolver("ticks.csv", date(2025, 8, 1))
    assert resolver("23:59:59.500") == datetime(2025, 8, 1, 23, 59, 59, 500000, tzinfo=UTC)
    assert resolver("00:00:00.250") == datetime(2025, 8, 2, 0, 0, 0, 250000, tzinfo=UTC)
    assert resolver.current_day == date(2025, 8, 2)


def test_small_backward_jitter_keeps_day():
    resolver = TimestampResolver("ticks.csv", date(2025, 8, 1))
    resolver("10:00:01")
    assert resolver("10:00:00") == datetime(2025, 8, 1, 10, 0, tzinfo=UTC)
    assert resolver.current_day == date(2025, 8, 1)


def test_full_timestamps_do_not_touch_rollover_state():
    resolver = TimestampResolver("ticks.csv", date(2025, 8, 1))
    resolver("23:00:00")
    resolver("2025-08-05 01:00:00")
    assert resolver("23:30:00") == datetime(2025, 8, 1, 23, 30, tzinfo=UTC)


def test_start_date_inferred_from_path():
    assert TimestampResolver("/data/BTCUSD_2025-08-03.csv").current_day == date(2025, 8, 3)
    assert TimestampResolver("dumps/2025-08/trades.csv.gz").current_day == date(2025, 8, 1)


def test_infer_start_date_rejects_invalid_dates():
    assert infer_start_date("x_2025-13-40.csv") is None
    assert infer_start_date("trades.csv") is None
    assert infer_start_date("20250-08-01.csv") is None


def test_clock_fallback():
    resolver = TimestampResolver("trades.csv", clock=lambda: datetime(2024, 2, 29, 23, 0, tzinfo=UTC))
    assert resolver.current_day == date(2024, 2, 29)


def test_unparseable_timestamp_raises():
    resolver = TimestampResolver("ticks.csv", date(2025, 8, 1))
    with pytest.raises(TimestampParseError) as excinfo:
        resolver("yesterday at noon")
    assert excinfo.value.error_code == "TIMESTAMP_PARSE_ERROR"
    assert excinfo.value.details["raw"] == "yesterday at noon"
    assert excinfo.value.details["source"] == "ticks.csv"
