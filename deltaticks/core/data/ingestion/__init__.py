"""Tick ingestion pipeline."""

from deltaticks.core.data.ingestion.channel import ChannelClosedError, FlushChannel
from deltaticks.core.data.ingestion.config import ImportConfig
from deltaticks.core.data.ingestion.importer import FileImportReport, TickImporter
from deltaticks.core.data.ingestion.reader import TradeRow, iter_records, open_source, parse_trade_row

__all__ = [
    "ChannelClosedError",
    "FileImportReport",
    "FlushChannel",
    "ImportConfig",
    "TickImporter",
    "TradeRow",
    "iter_records",
    "open_source",
    "parse_trade_row",
]
