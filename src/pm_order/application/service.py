# src/pm_order/application/service.py
"""Order entry: price a stake against a market's pools and record the trade.

Pool read, pricing and pool write form one unit per trade. The pool write is
conditional on the market version read with the snapshot, so two trades
priced against the same snapshot cannot both commit: the loser gets a
ConcurrentUpdateError, rolls back and is re-priced against fresh pools.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import (
    ConcurrentUpdateError,
    MarketNotFoundError,
    MarketNotOpenError,
    NoLiquidityError,
    StakeTooSmallError,
)
from src.pm_market.domain.models import Market, Trade
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_order.application.schemas import (
    PlaceTradeRequest,
    PlaceTradeResponse,
    QuoteResponse,
)
from src.pm_pricing.domain.cpmm import quote_trade
from src.pm_pricing.domain.invariants import verify_trade_invariants

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        fee_bps: int | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._repo = repo if repo is not None else MarketRepository()
        self._fee_bps = settings.TRADE_FEE_BPS if fee_bps is None else fee_bps
        self._max_retries = settings.TRADE_MAX_RETRIES if max_retries is None else max_retries

    async def _get_tradable_market(self, db: AsyncSession, market_id: str) -> Market:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.status != MarketStatus.OPEN:
            raise MarketNotOpenError(market_id, market.status.value)
        if market.resolved_outcome is not None:
            raise MarketNotOpenError(market_id, "RESOLVED")
        return market

    async def quote(
        self, market_id: str, side: Outcome, amount: Decimal, db: AsyncSession
    ) -> QuoteResponse:
        """Read-only preview of what place_trade would issue right now."""
        market = await self._get_tradable_market(db, market_id)
        q = quote_trade(amount, market.pool_yes, market.pool_no, side, self._fee_bps)
        return QuoteResponse(
            market_id=market_id,
            side=q.side,
            amount=q.amount,
            fee=q.fee,
            total_cost=q.total_cost,
            shares=q.shares,
            avg_price=q.avg_price,
            prob_yes_before=q.prob_before.prob_yes,
            prob_yes_after=q.prob_after.prob_yes,
        )

    async def place_trade(
        self, req: PlaceTradeRequest, user_id: str, db: AsyncSession
    ) -> PlaceTradeResponse:
        """Record one trade and its pool increment, committed together."""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._place_trade_once(req, user_id, db)
                await db.commit()
                return response
            except ConcurrentUpdateError:
                await db.rollback()
                if attempt >= self._max_retries:
                    logger.warning(
                        "Giving up on trade after %d stale snapshots: market=%s user=%s",
                        attempt, req.market_id, user_id,
                    )
                    raise
                logger.info(
                    "Stale pool snapshot, re-pricing: market=%s attempt=%d",
                    req.market_id, attempt,
                )
            except Exception:
                await db.rollback()
                raise

    async def _place_trade_once(
        self, req: PlaceTradeRequest, user_id: str, db: AsyncSession
    ) -> PlaceTradeResponse:
        market = await self._get_tradable_market(db, req.market_id)
        q = quote_trade(req.amount, market.pool_yes, market.pool_no, req.side, self._fee_bps)
        if q.shares <= 0:
            if market.pool_yes > 0 and market.pool_no > 0:
                raise StakeTooSmallError(market.id, req.amount)
            raise NoLiquidityError(market.id)
        verify_trade_invariants(market.pool_yes, market.pool_no, q)

        updated = await self._repo.update_pools(
            db, market.id, q.new_pool_yes, q.new_pool_no, expected_version=market.version
        )
        if not updated:
            raise ConcurrentUpdateError(market.id)

        trade = Trade(
            id=str(uuid.uuid4()),
            market_id=market.id,
            user_id=user_id,
            side=q.side,
            amount=q.amount,
            fee=q.fee,
            shares=q.shares,
            created_at=utc_now(),
        )
        await self._repo.insert_trade(db, trade)

        logger.info(
            "Trade placed: market=%s user=%s side=%s amount=%s fee=%s shares=%s",
            market.id, user_id, trade.side.value, trade.amount, trade.fee, trade.shares,
        )
        return PlaceTradeResponse(
            trade_id=trade.id,
            market_id=market.id,
            side=trade.side,
            amount=trade.amount,
            fee=trade.fee,
            total_cost=q.total_cost,
            shares=trade.shares,
            pool_yes=q.new_pool_yes,
            pool_no=q.new_pool_no,
            prob_yes=q.prob_after.prob_yes,
            prob_no=q.prob_after.prob_no,
        )
