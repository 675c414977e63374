from __future__ import annotations

import hashlib
from datetime import UTC, datetime, timedelta, timezone

import pytest

from deltaticks.core.models import TradeRole
from deltaticks.core.services.identifiers import candle_id, format_instant, format_number, tick_id


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.0, "0"),
        (116000.0, "116000"),
        (1, "1"),
        (10.5, "10.5"),
        (-2.25, "-2.25"),
        (0.1 + 0.2, "0.30000000000000004"),
        (0.00001, "0.00001"),
        (0.000001, "0.000001"),
        (1e-7, "1e-7"),
        (1.5e21, "1.5e+21"),
        (1e21, "1e+21"),
        (1e16, "10000000000000000"),
        (123456789012345680000.0, "123456789012345680000"),
    ],
)
def test_format_number_matches_canonical_form(value, expected):
    assert format_number(value) == expected


def test_format_instant_uses_millis_and_z_suffix():
    assert format_instant(datetime(2025, 8, 1, tzinfo=UTC)) == "2025-08-01T00:00:00.000Z"
    assert format_instant(datetime(2025, 8, 1, 0, 0, 5, 123456, tzinfo=UTC)) == "2025-08-01T00:00:05.123Z"
    ist = timezone(timedelta(hours=5, minutes=30))
    assert format_instant(datetime(2025, 8, 1, 5, 30, tzinfo=ist)) == "2025-08-01T00:00:00.000Z"


def test_format_instant_rejects_naive():
    with pytest.raises(ValueError):
        format_instant(datetime(2025, 8, 1))


def test_tick_id_canonical_key():
    ts = datetime(2025, 8, 1, 0, 0, 5, tzinfo=UTC)
    expected = hashlib.sha1(b"BTCUSD|2025-08-01T00:00:05.000Z|116000|0.5|taker").hexdigest()
    assert tick_id("BTCUSD", ts, 116000.0, 0.5, TradeRole.TAKER) == expected


def test_tick_id_ignores_numeric_representation():
    ts = datetime(2025, 8, 1, tzinfo=UTC)
    assert tick_id("BTCUSD", ts, 116000, 1, TradeRole.MAKER) == tick_id("BTCUSD", ts, 116000.0, 1.0, TradeRole.MAKER)
    assert tick_id("BTCUSD", ts, 116000, 1, TradeRole.MAKER) != tick_id("BTCUSD", ts, 116000, 1, TradeRole.TAKER)


def test_candle_id_canonical_key():
    start = datetime(2025, 7, 31, 18, 30, tzinfo=UTC)
    expected = hashlib.sha1(b"BTCUSD|D1|2025-07-31T18:30:00.000Z").hexdigest()
    assert candle_id("BTCUSD", "D1", start) == expected
