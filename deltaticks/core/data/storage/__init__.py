"""DuckDB connection management."""

from deltaticks.core.data.storage.duckdb_factory import DuckDBFactory, DuckDBFactoryConfig

__all__ = ["DuckDBFactory", "DuckDBFactoryConfig"]
