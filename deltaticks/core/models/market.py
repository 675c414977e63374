"""Market-related enums."""

from enum import Enum


class ContractType(str, Enum):
    """Contract family. Also selects the tick store partition."""

    FUTURES = "FUT"
    OPTIONS = "OPT"


class OptionType(str, Enum):
    """Option right."""

    CALL = "C"
    PUT = "P"


class TradeRole(str, Enum):
    """Role of the buyer in an executed trade."""

    MAKER = "maker"
    TAKER = "taker"

    @classmethod
    def from_raw(cls, value: str) -> "TradeRole":
        return cls.TAKER if value.strip().lower() == cls.TAKER.value else cls.MAKER
