"""Global enums. Values are stored verbatim in the markets/trades tables."""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    SETTLED = "SETTLED"
    ARCHIVED = "ARCHIVED"


class Outcome(str, Enum):
    """Canonical side pair for trades and resolved results."""

    YES = "YES"
    NO = "NO"


# Legacy order-entry paths submit UP/DOWN instead of YES/NO
_SIDE_ALIASES: dict[str, Outcome] = {
    "YES": Outcome.YES,
    "NO": Outcome.NO,
    "UP": Outcome.YES,
    "DOWN": Outcome.NO,
}


def normalize_outcome(value: object) -> Outcome:
    """Map YES/NO/UP/DOWN (any case) to the canonical Outcome.

    Raises ValueError for anything else.
    """
    if isinstance(value, Outcome):
        return value
    if isinstance(value, str):
        side = _SIDE_ALIASES.get(value.strip().upper())
        if side is not None:
            return side
    raise ValueError(f"Unknown side {value!r}, expected one of YES, NO, UP, DOWN")
