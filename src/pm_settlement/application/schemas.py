"""Settlement summary schemas."""
from decimal import Decimal

from pydantic import BaseModel, Field

from src.pm_settlement.domain.models import SettlementResult


class MarketSettlementReport(BaseModel):
    market_id: str
    outcome: str
    total_pool: Decimal
    trading_fee: Decimal
    house_cut: Decimal
    net_pool: Decimal
    total_payout: Decimal
    house_profit: Decimal
    trades_settled: int
    winners: int

    @classmethod
    def from_result(cls, result: SettlementResult) -> "MarketSettlementReport":
        return cls(
            market_id=result.market_id,
            outcome=result.outcome.value,
            total_pool=result.total_pool,
            trading_fee=result.trading_fee,
            house_cut=result.house_cut,
            net_pool=result.net_pool,
            total_payout=result.total_payout,
            house_profit=result.house_profit,
            trades_settled=len(result.payouts),
            winners=result.winner_count,
        )


class BatchSettlementSummary(BaseModel):
    settled: list[MarketSettlementReport] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def total_settled(self) -> int:
        return len(self.settled)

    @property
    def total_house_revenue(self) -> Decimal:
        return sum(
            (r.trading_fee + r.house_cut + r.house_profit for r in self.settled),
            Decimal(0),
        )
