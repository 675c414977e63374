"""deltaticks - Delta Exchange tick import and OHLCV candle building.

Streams futures and options trade dumps into DuckDB with deterministic,
content-derived ids and aggregates them into timezone-aligned candles.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
