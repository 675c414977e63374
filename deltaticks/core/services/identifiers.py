"""Deterministic record identifiers.

Both ids are SHA-1 hex digests over ``|``-joined fields. The canonical
serialisation is fixed so that any implementation produces byte-identical ids:

* instants: ISO-8601 UTC, exactly three fractional digits, ``Z`` suffix
  (``2025-08-01T00:00:05.000Z``);
* numbers: ECMAScript ``Number#toString`` form (``116000``, ``10.5``,
  ``0.00001``, ``1e-7``, ``1.5e+21``).

Tick id fields: instrument, timestamp, price, size, role.
Candle id fields: instrument, interval label, bucket start.
"""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from decimal import Decimal

from deltaticks.core.models import TradeRole


def format_instant(moment: datetime) -> str:
    """Serialise an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if moment.tzinfo is None:
        raise ValueError("instant must be timezone aware")
    utc = moment.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_number(value: float) -> str:
    """Serialise a finite number the way ``Number#toString`` does."""

    number = float(value)
    if number == 0:
        return "0"
    magnitude = abs(number)
    if 1e-6 <= magnitude < 1e21:
        if number.is_integer() and magnitude < 2**53:
            return str(int(number))
        # shortest round-trip digits, zero padded past 2**53
        text = format(Decimal(repr(number)), "f")
        return text.rstrip("0").rstrip(".") if "." in text else text
    # repr is always in exponent form outside [1e-6, 1e21)
    mantissa, _, exponent = repr(number).partition("e")
    power = int(exponent)
    sign = "+" if power > 0 else "-"
    return f"{mantissa}e{sign}{abs(power)}"


def _sha1(key: str) -> str:
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def tick_id(instrument: str, timestamp: datetime, price: float, size: float, role: TradeRole) -> str:
    """Deterministic id of one trade."""

    key = "|".join(
        (instrument, format_instant(timestamp), format_number(price), format_number(size), role.value)
    )
    return _sha1(key)


def candle_id(instrument: str, interval: str, bucket_start: datetime) -> str:
    """Deterministic id of one candle."""

    return _sha1(f"{instrument}|{interval}|{format_instant(bucket_start)}")


__all__ = ["candle_id", "format_instant", "format_number", "tick_id"]
