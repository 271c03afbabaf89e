"""Settlement application service: resolve markets and apply settlements.

settle() computes; this module owns the transaction around it. For each
market the OPEN -> SETTLED transition, every trade's payout and every
trade's settled flag are written in one transaction, or nothing is.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.amounts import amount_to_display
from src.pm_common.database import async_session_factory
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import MarketStatus, Outcome, normalize_outcome
from src.pm_common.errors import (
    AppError,
    ConfigurationError,
    InvalidStateError,
    MarketNotFoundError,
    MarketNotOpenError,
)
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_settlement.application.schemas import (
    BatchSettlementSummary,
    MarketSettlementReport,
)
from src.pm_settlement.domain.invariants import verify_settlement_conservation
from src.pm_settlement.domain.models import FeeSchedule, SettlementResult
from src.pm_settlement.domain.settlement import apply_settlement, settle

logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        fee_schedule: FeeSchedule | None = None,
    ) -> None:
        self._repo = repo if repo is not None else MarketRepository()
        self._fee_schedule = fee_schedule

    @property
    def fee_schedule(self) -> FeeSchedule:
        """Explicit schedule, else built from settings (ConfigurationError if invalid)."""
        if self._fee_schedule is None:
            return FeeSchedule.from_settings(settings)
        return self._fee_schedule

    async def resolve_market(
        self, market_id: str, outcome: Outcome | str, db: AsyncSession
    ) -> None:
        """Record the oracle result. Re-sending the same result is a no-op."""
        outcome = normalize_outcome(outcome)
        try:
            market = await self._repo.get_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.status != MarketStatus.OPEN:
                raise MarketNotOpenError(market_id, market.status.value)
            if market.resolved_outcome == outcome:
                return
            if market.resolved_outcome is not None:
                raise InvalidStateError(
                    f"market {market_id} already resolved as {market.resolved_outcome.value}"
                )
            if not await self._repo.set_resolved_outcome(db, market_id, outcome):
                raise MarketNotOpenError(market_id, "UNKNOWN")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Market resolved: market=%s outcome=%s", market_id, outcome.value)

    async def settle_market(
        self,
        market_id: str,
        db: AsyncSession,
        fee_schedule: FeeSchedule | None = None,
    ) -> SettlementResult:
        """Settle one resolved market exactly once.

        Raises InvalidStateError if the market is unresolved, already settled
        (including by a concurrent run) or its trades disagree with its pools.
        """
        try:
            market = await self._repo.get_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            trades = await self._repo.list_trades(db, market_id)

            result = settle(market, trades, fee_schedule or self.fee_schedule)
            verify_settlement_conservation(result)
            _, settled_trades = apply_settlement(market, trades, result)

            settled_at = utc_now()
            if not await self._repo.mark_settled(db, market_id, settled_at):
                # Someone else won the OPEN -> SETTLED transition; discard ours
                raise InvalidStateError(f"market {market_id} was settled concurrently")
            flipped = await self._repo.apply_trade_payouts(db, settled_trades, settled_at)
            if flipped != len(settled_trades):
                raise InvalidStateError(
                    f"market {market_id}: {flipped} of {len(settled_trades)} trades "
                    "could be marked settled"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Market settled: market=%s outcome=%s pool=%s paid=%s house_profit=%s winners=%d",
            market_id,
            result.outcome.value,
            amount_to_display(result.total_pool),
            amount_to_display(result.total_payout),
            amount_to_display(result.house_profit),
            result.winner_count,
        )
        return result

    async def settle_ready_markets(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        now: datetime | None = None,
        batch_size: int | None = None,
    ) -> BatchSettlementSummary:
        """Settle every resolved OPEN market whose event time has passed.

        Each market gets its own session and transaction; one market failing
        is recorded in the summary and does not stop the others. A bad fee
        schedule stops the whole run before any market is touched.
        """
        session_factory = session_factory or async_session_factory
        now = now or utc_now()
        limit = batch_size or settings.SETTLEMENT_BATCH_SIZE
        fee_schedule = self.fee_schedule

        summary = BatchSettlementSummary()
        while True:
            async with session_factory() as db:
                market_ids = await self._repo.list_settleable_market_ids(
                    db, now, limit, exclude=list(summary.failed)
                )
            if not market_ids:
                break
            for market_id in market_ids:
                async with session_factory() as db:
                    try:
                        result = await self.settle_market(market_id, db, fee_schedule)
                    except ConfigurationError:
                        raise
                    except (
                        AppError, AssertionError, SQLAlchemyError, ValueError
                    ) as exc:
                        logger.error("Settlement failed: market=%s error=%s", market_id, exc)
                        summary.failed[market_id] = str(exc)
                        continue
                summary.settled.append(MarketSettlementReport.from_result(result))

        logger.info(
            "Settlement run complete: settled=%d failed=%d house_revenue=%s",
            summary.total_settled,
            len(summary.failed),
            amount_to_display(summary.total_house_revenue),
        )
        return summary
