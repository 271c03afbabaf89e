"""Pool invariant verification after pricing. Raises AssertionError if violated."""

from decimal import Decimal

from src.pm_common.enums import Outcome
from src.pm_pricing.domain.models import TradeQuote


def verify_trade_invariants(pool_yes: Decimal, pool_no: Decimal, quote: TradeQuote) -> None:
    """Check a quote against the snapshot it was priced from, before any write.

    - new pools are non-negative
    - pool_yes * pool_no does not decrease
    - shares never exceed the opposing pool they are drawn from
    """
    assert quote.new_pool_yes >= 0 and quote.new_pool_no >= 0, (
        f"negative pool after trade: yes={quote.new_pool_yes}, no={quote.new_pool_no}"
    )
    before = pool_yes * pool_no
    after = quote.new_pool_yes * quote.new_pool_no
    assert after >= before, f"pool product decreased: {before} -> {after}"
    opposing = pool_no if quote.side == Outcome.YES else pool_yes
    assert quote.shares <= opposing, (
        f"shares {quote.shares} exceed opposing pool {opposing}"
    )
