"""Domain models for pm_settlement: fee schedule and settlement output."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from src.pm_common.amounts import ZERO, to_amount
from src.pm_common.enums import Outcome
from src.pm_common.errors import ConfigurationError


@dataclass(frozen=True)
class FeeSchedule:
    """Fees taken from a resolved market's pool before winners are paid.

    trading_fee_rate is charged once per side (so twice on the pool);
    house_fee_rate once. Together they must not exceed 100%.
    """

    trading_fee_rate: Decimal = Decimal("0.01")
    house_fee_rate: Decimal = Decimal("0.10")

    def __post_init__(self) -> None:
        for name in ("trading_fee_rate", "house_fee_rate"):
            raw = getattr(self, name)
            try:
                rate = to_amount(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{name}={raw!r} is not a number") from exc
            if rate < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {rate}")
            object.__setattr__(self, name, rate)
        if self.total_rate > 1:
            raise ConfigurationError(
                f"fees take {self.total_rate:.2%} of the pool "
                f"(trading {self.trading_fee_rate} x 2 + house {self.house_fee_rate})"
            )

    @property
    def total_rate(self) -> Decimal:
        return self.trading_fee_rate * 2 + self.house_fee_rate

    @classmethod
    def from_settings(cls, settings: Any) -> "FeeSchedule":
        return cls(
            trading_fee_rate=settings.TRADING_FEE_RATE,
            house_fee_rate=settings.HOUSE_FEE_RATE,
        )


@dataclass(frozen=True)
class SettlementResult:
    """Everything needed to settle one market, computed before any write.

    Only valid if applied as a whole: every trade id in `payouts` (losers
    included, at 0) is marked settled together with the market.

    Conservation: total_payout + house_profit + trading_fee + house_cut
    == total_pool, exactly.
    """

    market_id: str
    outcome: Outcome
    total_pool: Decimal
    trading_fee: Decimal
    house_cut: Decimal
    net_pool: Decimal
    winning_pool: Decimal
    share_factor: Decimal
    payouts: dict[str, Decimal]
    house_profit: Decimal    # part of net_pool not paid out to winners

    @property
    def total_payout(self) -> Decimal:
        return sum(self.payouts.values(), ZERO)

    @property
    def house_revenue(self) -> Decimal:
        """Everything the house keeps: both fees plus the unpaid net pool."""
        return self.trading_fee + self.house_cut + self.house_profit

    @property
    def winner_count(self) -> int:
        return sum(1 for amount in self.payouts.values() if amount > 0)
