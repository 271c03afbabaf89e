"""MarketService: market creation, odds display and the retention sweep.

Write methods commit on success and roll back on any error; reads do not
touch the transaction.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import MarketNotFoundError
from src.pm_market.application.schemas import (
    CreateMarketRequest,
    MarketOddsResponse,
    MarketResponse,
)
from src.pm_market.domain.models import Market
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_pricing.domain.cpmm import get_probabilities

logger = logging.getLogger(__name__)


class MarketService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        retention_days: int | None = None,
        purge_limit: int | None = None,
    ) -> None:
        self._repo = repo if repo is not None else MarketRepository()
        self._retention = timedelta(
            days=settings.ARCHIVE_RETENTION_DAYS if retention_days is None else retention_days
        )
        self._purge_limit = settings.ARCHIVE_PURGE_LIMIT if purge_limit is None else purge_limit

    async def create_market(self, req: CreateMarketRequest, db: AsyncSession) -> MarketResponse:
        market = Market(
            id=req.id or str(uuid.uuid4()),
            question=req.question,
            pool_yes=req.pool_yes,
            pool_no=req.pool_no,
            event_time=req.event_time,
        )
        try:
            await self._repo.insert_market(db, market)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Market created: market=%s pool_yes=%s pool_no=%s",
            market.id, market.pool_yes, market.pool_no,
        )
        return MarketResponse.from_domain(market)

    async def get_market(self, market_id: str, db: AsyncSession) -> MarketResponse:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketResponse.from_domain(market)

    async def get_odds(self, market_id: str, db: AsyncSession) -> MarketOddsResponse:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketOddsResponse.from_domain(
            market, get_probabilities(market.pool_yes, market.pool_no)
        )

    async def archive_stale_markets(
        self, db: AsyncSession, now: datetime | None = None
    ) -> int:
        """Archive markets whose event passed without an oracle result."""
        now = now or utc_now()
        try:
            archived = await self._repo.archive_stale_markets(db, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if archived:
            logger.info("Archived %d stale markets", archived)
        return archived

    async def purge_archived_markets(
        self, db: AsyncSession, now: datetime | None = None
    ) -> int:
        """Delete archived markets older than the retention window, with their trades."""
        cutoff = (now or utc_now()) - self._retention
        try:
            purged = await self._repo.purge_archived_markets(db, cutoff, self._purge_limit)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if purged:
            logger.info("Purged %d archived markets older than %s", purged, cutoff.isoformat())
        return purged
