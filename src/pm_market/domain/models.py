"""Domain models for pm_market: pure dataclasses, no SQLAlchemy dependency.

Fields are validated and coerced on construction so that malformed rows or
requests fail here instead of leaking NaN/None into pricing or settlement.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pm_common.amounts import ZERO, to_amount
from src.pm_common.enums import MarketStatus, Outcome, normalize_outcome


def _non_negative(name: str, value: object) -> Decimal:
    amount = to_amount(value)
    if amount < 0:
        raise ValueError(f"{name} must be >= 0, got {amount}")
    return amount


def _positive(name: str, value: object) -> Decimal:
    amount = to_amount(value)
    if amount <= 0:
        raise ValueError(f"{name} must be > 0, got {amount}")
    return amount


@dataclass
class Market:
    id: str
    question: str
    pool_yes: Decimal
    pool_no: Decimal
    status: MarketStatus = MarketStatus.OPEN
    resolved_outcome: Outcome | None = None
    event_time: datetime | None = None
    settled_at: datetime | None = None
    version: int = 0

    def __post_init__(self) -> None:
        self.pool_yes = _non_negative("pool_yes", self.pool_yes)
        self.pool_no = _non_negative("pool_no", self.pool_no)
        self.status = MarketStatus(self.status)
        if self.resolved_outcome is not None:
            self.resolved_outcome = normalize_outcome(self.resolved_outcome)

    @property
    def total_pool(self) -> Decimal:
        return self.pool_yes + self.pool_no

    def pool_for(self, side: Outcome) -> Decimal:
        return self.pool_yes if side == Outcome.YES else self.pool_no


@dataclass
class Trade:
    id: str
    market_id: str
    user_id: str
    side: Outcome
    amount: Decimal          # gross stake, added to the side's pool
    fee: Decimal             # entry fee withheld on top of the stake
    shares: Decimal          # issued at entry from the pre-trade pools; immutable
    payout: Decimal = ZERO
    settled: bool = False
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        self.side = normalize_outcome(self.side)
        self.amount = _positive("amount", self.amount)
        self.fee = _non_negative("fee", self.fee)
        self.shares = _non_negative("shares", self.shares)
        self.payout = _non_negative("payout", self.payout)
