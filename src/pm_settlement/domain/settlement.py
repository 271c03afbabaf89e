"""Market settlement: split a resolved market's pool between winners and the house.

This is the single settlement algorithm; order entry, the admin path and
the batch job all go through settle(). It is pure: the caller persists the
returned SettlementResult in one transaction (see
src.pm_settlement.application.service).
"""

from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal

from src.pm_common.amounts import ZERO, calculate_fee, round_down
from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InvalidStateError
from src.pm_market.domain.models import Market, Trade
from src.pm_settlement.domain.models import FeeSchedule, SettlementResult


def _check_preconditions(market: Market, trades: list[Trade]) -> None:
    if market.status != MarketStatus.OPEN:
        raise InvalidStateError(
            f"market {market.id} cannot be settled from status {market.status.value}"
        )
    if market.resolved_outcome is None:
        raise InvalidStateError(f"market {market.id} has no resolved outcome")

    seen: set[str] = set()
    for trade in trades:
        if trade.market_id != market.id:
            raise InvalidStateError(
                f"trade {trade.id} belongs to market {trade.market_id}, not {market.id}"
            )
        if trade.settled:
            raise InvalidStateError(f"trade {trade.id} is already settled")
        if trade.id in seen:
            raise InvalidStateError(f"trade {trade.id} appears twice")
        seen.add(trade.id)


def settle(
    market: Market, trades: Iterable[Trade], fee_schedule: FeeSchedule
) -> SettlementResult:
    """Compute payouts for every trade of a resolved, still-open market.

    Winners receive stake * net_pool / winning_pool minus the entry fee they
    already paid (floored at 0 and at 6 decimals); losers receive 0. When
    nobody staked on the resolved side the whole net pool stays with the
    house.

    Both fees are total_pool * rate rounded up to 6 decimals, so they can
    exceed the exact product by up to 0.000001 each. The house cut is then
    capped so net_pool never drops below 0.

    Raises InvalidStateError for an unresolved or non-open market, foreign or
    already settled trades, or trades claiming more than the net pool.
    """
    trades = list(trades)
    _check_preconditions(market, trades)
    outcome = market.resolved_outcome
    assert outcome is not None

    total_pool = market.total_pool
    trading_fee = min(calculate_fee(total_pool, fee_schedule.trading_fee_rate * 2), total_pool)
    # House absorbs fee rounding so net_pool never dips below zero
    house_cut = min(calculate_fee(total_pool, fee_schedule.house_fee_rate), total_pool - trading_fee)
    net_pool = total_pool - trading_fee - house_cut

    winning_pool = market.pool_for(outcome)
    share_factor = net_pool / winning_pool if winning_pool > 0 else ZERO

    payouts: dict[str, Decimal] = {}
    for trade in trades:
        if trade.side != outcome or share_factor == 0:
            payouts[trade.id] = ZERO
            continue
        payouts[trade.id] = max(round_down(trade.amount * share_factor - trade.fee), ZERO)

    total_payout = sum(payouts.values(), ZERO)
    if total_payout > net_pool:
        raise InvalidStateError(
            f"market {market.id}: winning trades claim {total_payout}, "
            f"more than the net pool {net_pool}; trades and pools disagree"
        )

    return SettlementResult(
        market_id=market.id,
        outcome=outcome,
        total_pool=total_pool,
        trading_fee=trading_fee,
        house_cut=house_cut,
        net_pool=net_pool,
        winning_pool=winning_pool,
        share_factor=share_factor,
        payouts=payouts,
        house_profit=net_pool - total_payout,
    )


def apply_settlement(
    market: Market, trades: Iterable[Trade], result: SettlementResult
) -> tuple[Market, list[Trade]]:
    """Return settled copies of the market and its trades; inputs are untouched."""
    if result.market_id != market.id:
        raise InvalidStateError(
            f"settlement for market {result.market_id} applied to market {market.id}"
        )
    settled_trades: list[Trade] = []
    for trade in trades:
        if trade.id not in result.payouts:
            raise InvalidStateError(f"trade {trade.id} is missing from the settlement")
        settled_trades.append(replace(trade, payout=result.payouts[trade.id], settled=True))
    return replace(market, status=MarketStatus.SETTLED), settled_trades
