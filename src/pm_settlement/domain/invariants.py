"""Settlement invariant verification. Raises AssertionError if violated."""

import logging

from src.pm_common.amounts import ZERO
from src.pm_settlement.domain.models import SettlementResult

logger = logging.getLogger(__name__)


def verify_settlement_conservation(result: SettlementResult) -> None:
    """Check a settlement before it is applied.

    - payouts + house profit + trading fee + house cut == total pool
    - net pool, house profit and every payout are non-negative
    """
    accounted = result.total_payout + result.house_profit + result.trading_fee + result.house_cut
    assert accounted == result.total_pool, (
        f"market {result.market_id}: payouts({result.total_payout}) + "
        f"house_profit({result.house_profit}) + trading_fee({result.trading_fee}) + "
        f"house_cut({result.house_cut}) = {accounted} != total_pool={result.total_pool}"
    )
    assert result.net_pool >= 0, f"market {result.market_id}: net pool {result.net_pool} < 0"
    assert result.house_profit >= 0, (
        f"market {result.market_id}: house profit {result.house_profit} < 0"
    )
    negative = [tid for tid, amount in result.payouts.items() if amount < ZERO]
    assert not negative, f"market {result.market_id}: negative payouts for {negative}"

    logger.debug(
        "Settlement conserved: market=%s, total_pool=%s, payouts=%s",
        result.market_id, result.total_pool, result.total_payout,
    )
