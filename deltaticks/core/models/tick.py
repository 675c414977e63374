"""Tick records produced by the importer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from deltaticks.core.models.instrument import InstrumentMeta
from deltaticks.core.models.market import ContractType, TradeRole


@dataclass(frozen=True, slots=True)
class Tick:
    """One executed trade, identified by a content hash."""

    id: str
    timestamp: datetime
    price: float
    size: float
    role: TradeRole
    meta: InstrumentMeta
    source_file: str
    row_number: int

    @property
    def instrument(self) -> str:
        return self.meta.instrument

    @property
    def contract_type(self) -> ContractType:
        return self.meta.contract_type

    def sort_key(self) -> tuple[datetime, str, int, str]:
        """Arrival order used for open/close: time, then provenance, then id."""
        return (self.timestamp, self.source_file, self.row_number, self.id)


__all__ = ["Tick"]
