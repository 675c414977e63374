"""Classification of Delta Exchange instrument symbols."""

from __future__ import annotations

import re
from datetime import date
from functools import lru_cache

from deltaticks.core.exceptions import UnrecognizedSymbolError
from deltaticks.core.models import DEFAULT_CURRENCY, ContractType, InstrumentMeta, OptionType

# P-BTC-116000-010825 -> put, BTC, strike 116000, expiry 2025-08-01
_OPTION_PATTERN = re.compile(r"^([CP])-([A-Za-z0-9_]+)-(\d+)-(\d{2})(\d{2})(\d{2})$")
# BTCUSD, ETHUSD
_FUTURES_PATTERN = re.compile(r"^([A-Z]+)USD$")


def _parse_option(symbol: str) -> InstrumentMeta | None:
    match = _OPTION_PATTERN.match(symbol)
    if match is None:
        return None
    option_type, asset, strike, dd, mm, yy = match.groups()
    try:
        expiry = date(2000 + int(yy), int(mm), int(dd))
    except ValueError:
        return None
    return InstrumentMeta(
        instrument=symbol,
        asset=asset,
        contract_type=ContractType.OPTIONS,
        option_type=OptionType(option_type),
        strike=int(strike),
        expiry=expiry,
        currency=DEFAULT_CURRENCY,
    )


def _parse_futures(symbol: str) -> InstrumentMeta | None:
    match = _FUTURES_PATTERN.match(symbol)
    if match is None:
        return None
    return InstrumentMeta(
        instrument=symbol,
        asset=match.group(1),
        contract_type=ContractType.FUTURES,
        currency=DEFAULT_CURRENCY,
    )


@lru_cache(maxsize=16384)
def _classify(symbol: str) -> InstrumentMeta | None:
    if symbol.startswith(("C-", "P-")):
        return _parse_option(symbol)
    return _parse_futures(symbol)


def classify_symbol(symbol: object) -> InstrumentMeta | None:
    """Return instrument metadata for ``symbol`` or ``None`` if unrecognised.

    Never raises. Results are memoised, so every tick of one instrument
    shares the same :class:`InstrumentMeta` instance.
    """

    if not isinstance(symbol, str):
        return None
    cleaned = symbol.strip()
    if not cleaned:
        return None
    return _classify(cleaned)


def require_instrument(symbol: str, *, row_number: int | None = None) -> InstrumentMeta:
    """Like :func:`classify_symbol` but raise for unrecognised symbols."""

    meta = classify_symbol(symbol)
    if meta is None:
        raise UnrecognizedSymbolError(f"unrecognized instrument symbol {symbol!r}", symbol, row_number)
    return meta


__all__ = ["classify_symbol", "require_instrument"]
