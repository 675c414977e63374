from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from deltaticks.core.exceptions import ConfigError, IntervalSpecError
from deltaticks.core.services.intervals import (
    IntervalUnit,
    bucket_start,
    format_local,
    load_timezone,
    parse_interval,
    parse_intervals,
)

KOLKATA = ZoneInfo("Asia/Kolkata")


@pytest.mark.parametrize(
    ("label", "unit", "size", "canonical"),
    [
        ("M1", IntervalUnit.MINUTE, 1, "M1"),
        ("m5", IntervalUnit.MINUTE, 5, "M5"),
        (" H4 ", IntervalUnit.HOUR, 4, "H4"),
        ("D1", IntervalUnit.DAY, 1, "D1"),
        ("M05", IntervalUnit.MINUTE, 5, "M5"),
    ],
)
def test_parse_interval(label, unit, size, canonical):
    spec = parse_interval(label)
    assert spec.unit is unit
    assert spec.bin_size == size
    assert spec.label == canonical


@pytest.mark.parametrize("label", ["", "M0", "X5", "5M", "M-1", "W1", "M1.5", "H"])
def test_parse_interval_rejects(label):
    with pytest.raises(IntervalSpecError) as excinfo:
        parse_interval(label)
    assert excinfo.value.error_code == "INTERVAL_SPEC_ERROR"


def test_parse_intervals_keeps_order_and_drops_repeats():
    specs = parse_intervals("M5, m1,M5,,H1")
    assert [spec.label for spec in specs] == ["M5", "M1", "H1"]


def test_minute_buckets_follow_local_clock():
    spec = parse_interval("M1")
    moment = datetime(2025, 8, 1, 0, 0, 5, tzinfo=UTC)
    assert bucket_start(moment, spec, KOLKATA) == datetime(2025, 8, 1, 0, 0, tzinfo=UTC)


def test_multi_minute_buckets():
    spec = parse_interval("M5")
    moment = datetime(2025, 8, 1, 0, 3, tzinfo=UTC)
    assert bucket_start(moment, spec, KOLKATA) == datetime(2025, 8, 1, 0, 0, tzinfo=UTC)


def test_hour_buckets_in_half_hour_offset_zone():
    spec = parse_interval("H1")
    moment = datetime(2025, 8, 1, 0, 10, tzinfo=UTC)
    assert bucket_start(moment, spec, KOLKATA) == datetime(2025, 7, 31, 23, 30, tzinfo=UTC)


def test_day_bucket_starts_at_local_midnight():
    spec = parse_interval("D1")
    moment = datetime(2025, 8, 1, 20, 0, tzinfo=UTC)
    assert bucket_start(moment, spec, KOLKATA) == datetime(2025, 8, 1, 18, 30, tzinfo=UTC)


def test_multi_day_buckets_count_from_reference_date():
    # 2025-08-01 is an even number of days after 2000-01-01
    spec = parse_interval("D2")
    moment = datetime(2025, 8, 1, 20, 0, tzinfo=UTC)
    assert bucket_start(moment, spec, KOLKATA) == datetime(2025, 7, 31, 18, 30, tzinfo=UTC)


def test_day_bucket_in_daylight_saving_zone():
    london = ZoneInfo("Europe/London")
    spec = parse_interval("D1")
    summer = datetime(2025, 7, 1, 12, 0, tzinfo=UTC)
    winter = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)
    assert bucket_start(summer, spec, london) == datetime(2025, 6, 30, 23, 0, tzinfo=UTC)
    assert bucket_start(winter, spec, london) == datetime(2025, 1, 15, 0, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("label", "first", "second"),
    [
        ("M1", datetime(2025, 11, 2, 5, 30, tzinfo=UTC), datetime(2025, 11, 2, 6, 30, tzinfo=UTC)),
        ("H1", datetime(2025, 11, 2, 5, 0, tzinfo=UTC), datetime(2025, 11, 2, 6, 0, tzinfo=UTC)),
    ],
)
def test_repeated_fall_back_hour_keeps_separate_buckets(label, first, second):
    new_york = ZoneInfo("America/New_York")
    spec = parse_interval(label)
    # both read 01:30:10 on the local clock, one in EDT and one in EST
    before = datetime(2025, 11, 2, 5, 30, 10, tzinfo=UTC)
    after = datetime(2025, 11, 2, 6, 30, 10, tzinfo=UTC)
    assert bucket_start(before, spec, new_york) == first
    assert bucket_start(after, spec, new_york) == second
    assert bucket_start(second, spec, new_york) == second


def test_bucket_start_is_idempotent():
    spec = parse_interval("M15")
    moment = datetime(2025, 8, 1, 7, 52, 31, tzinfo=UTC)
    start = bucket_start(moment, spec, KOLKATA)
    assert bucket_start(start, spec, KOLKATA) == start
    assert start <= moment


def test_format_local():
    assert format_local(datetime(2025, 8, 1, tzinfo=UTC), KOLKATA) == "2025-08-01T05:30:00+05:30"


def test_load_timezone_rejects_unknown():
    with pytest.raises(ConfigError):
        load_timezone("Mars/Olympus_Mons")
