"""Constant-product market maker (CPMM) pricing for binary YES/NO pools.

Pure functions: no I/O, no logging, and no exceptions for numeric input.
Degenerate pools map to defined fallbacks instead:

- empty market (both pools 0) -> 0.5 / 0.5 odds
- either pool 0, or a non-positive stake -> 0 shares

Applying a quote (persisting the trade and the new pools atomically) is the
caller's job; see src.pm_order.application.service.
"""

import math
from decimal import Decimal

from src.pm_common.amounts import ZERO, fee_from_bps, round_down, to_amount
from src.pm_common.enums import Outcome, normalize_outcome
from src.pm_pricing.domain.models import Probabilities, TradeQuote

_FAIR_ODDS = Probabilities(prob_yes=0.5, prob_no=0.5)


def _pool(value: float | Decimal) -> float:
    """Usable pool size as float; NaN, infinities and negatives count as empty."""
    size = float(value)
    if not math.isfinite(size) or size <= 0:
        return 0.0
    return size


def get_probabilities(pool_yes: float | Decimal, pool_no: float | Decimal) -> Probabilities:
    """Implied YES/NO probabilities from the two pools.

    An empty market is a fair coin by definition, not 0/0.
    """
    yes = _pool(pool_yes)
    no = _pool(pool_no)
    total = yes + no
    if total == 0:
        return _FAIR_ODDS
    prob_yes = yes / total
    return Probabilities(prob_yes=prob_yes, prob_no=1.0 - prob_yes)


def calculate_shares(
    amount: float | Decimal,
    pool_yes: float | Decimal,
    pool_no: float | Decimal,
    side: Outcome | str,
) -> float:
    """Shares issued for staking `amount` on `side` against the current pools.

    With k = pool_yes * pool_no held constant, a YES stake grows the YES pool
    to pool_yes + amount, the NO pool must shrink to k / (pool_yes + amount),
    and the difference is issued as shares. NO is symmetric.

    Raises ValueError only for an unknown side name.
    """
    side = normalize_outcome(side)
    stake = _pool(amount)
    yes = _pool(pool_yes)
    no = _pool(pool_no)
    if stake == 0 or yes == 0 or no == 0:
        return 0.0

    own, opposing = (yes, no) if side == Outcome.YES else (no, yes)
    # opposing - k / (own + stake), rearranged to avoid subtracting two close floats
    shares = opposing * (stake / (own + stake))
    return min(shares, opposing)


def quote_trade(
    amount: float | Decimal,
    pool_yes: float | Decimal,
    pool_no: float | Decimal,
    side: Outcome | str,
    fee_bps: int = 0,
) -> TradeQuote:
    """Price a stake and describe the pool state it would leave behind.

    The staked side's pool grows by the gross stake and the other pool is
    left as is, so the pool product never decreases and each side's pool
    equals the stakes placed on it. Shares are floored to 6 decimals.
    """
    side = normalize_outcome(side)
    stake = max(to_amount(amount), ZERO)
    yes = to_amount(pool_yes)
    no = to_amount(pool_no)

    shares = round_down(to_amount(calculate_shares(stake, yes, no, side)))
    new_yes = yes + stake if side == Outcome.YES else yes
    new_no = no + stake if side == Outcome.NO else no

    return TradeQuote(
        side=side,
        amount=stake,
        fee=fee_from_bps(stake, fee_bps),
        shares=shares,
        new_pool_yes=new_yes,
        new_pool_no=new_no,
        prob_before=get_probabilities(yes, no),
        prob_after=get_probabilities(new_yes, new_no),
    )
