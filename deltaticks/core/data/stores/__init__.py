"""Tick and candle store implementations."""

from deltaticks.core.data.stores.base import CandleStore, InsertResult, TickStore, family_of
from deltaticks.core.data.stores.duckdb import DuckDBCandleStore, DuckDBTickStore
from deltaticks.core.data.stores.memory import InMemoryCandleStore, InMemoryTickStore

__all__ = [
    "CandleStore",
    "DuckDBCandleStore",
    "DuckDBTickStore",
    "InMemoryCandleStore",
    "InMemoryTickStore",
    "InsertResult",
    "TickStore",
    "family_of",
]
