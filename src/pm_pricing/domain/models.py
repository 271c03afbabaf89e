"""Value objects returned by the CPMM pricing functions."""

from dataclasses import dataclass
from decimal import Decimal

from src.pm_common.enums import Outcome


@dataclass(frozen=True)
class Probabilities:
    prob_yes: float
    prob_no: float

    def for_side(self, side: Outcome) -> float:
        return self.prob_yes if side == Outcome.YES else self.prob_no


@dataclass(frozen=True)
class TradeQuote:
    """Preview of a trade against a pool snapshot.

    shares is zero when the pool has no liquidity on either side; callers
    must reject such quotes rather than record a free trade.
    """

    side: Outcome
    amount: Decimal
    fee: Decimal
    shares: Decimal
    new_pool_yes: Decimal
    new_pool_no: Decimal
    prob_before: Probabilities
    prob_after: Probabilities

    @property
    def total_cost(self) -> Decimal:
        return self.amount + self.fee

    @property
    def avg_price(self) -> Decimal | None:
        """Stake paid per share issued; None when no shares are issued."""
        if self.shares <= 0:
            return None
        return self.amount / self.shares
