"""Instrument metadata derived from exchange symbols."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from deltaticks.core.models.market import ContractType, OptionType

DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True, slots=True)
class InstrumentMeta:
    """Structured description of a futures or options instrument."""

    instrument: str
    asset: str
    contract_type: ContractType
    option_type: OptionType | None = None
    strike: int | None = None
    expiry: date | None = None
    currency: str = DEFAULT_CURRENCY

    @property
    def is_option(self) -> bool:
        return self.contract_type is ContractType.OPTIONS


__all__ = ["DEFAULT_CURRENCY", "InstrumentMeta"]
