"""Domain models shared by the importer and the candle builder."""

from deltaticks.core.models.candle import Candle
from deltaticks.core.models.instrument import DEFAULT_CURRENCY, InstrumentMeta
from deltaticks.core.models.market import ContractType, OptionType, TradeRole
from deltaticks.core.models.ranges import TimeRange
from deltaticks.core.models.tick import Tick

__all__ = [
    "Candle",
    "ContractType",
    "DEFAULT_CURRENCY",
    "InstrumentMeta",
    "OptionType",
    "Tick",
    "TimeRange",
    "TradeRole",
]
