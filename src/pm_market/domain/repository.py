# src/pm_market/domain/repository.py
"""Repository Protocol for market and trade storage.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every method runs inside the caller's transaction; none of them commit.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import Outcome
from src.pm_market.domain.models import Market, Trade


class MarketRepositoryProtocol(Protocol):
    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def insert_market(self, db: AsyncSession, market: Market) -> None: ...

    async def list_trades(self, db: AsyncSession, market_id: str) -> list[Trade]: ...

    async def insert_trade(self, db: AsyncSession, trade: Trade) -> None: ...

    async def update_pools(
        self,
        db: AsyncSession,
        market_id: str,
        pool_yes: Decimal,
        pool_no: Decimal,
        expected_version: int,
    ) -> bool: ...

    async def set_resolved_outcome(
        self, db: AsyncSession, market_id: str, outcome: Outcome
    ) -> bool: ...

    async def mark_settled(
        self, db: AsyncSession, market_id: str, settled_at: datetime
    ) -> bool: ...

    async def apply_trade_payouts(
        self, db: AsyncSession, trades: list[Trade], settled_at: datetime
    ) -> int: ...

    async def list_settleable_market_ids(
        self,
        db: AsyncSession,
        now: datetime,
        limit: int,
        exclude: Sequence[str] = (),
    ) -> list[str]: ...

    async def archive_stale_markets(self, db: AsyncSession, now: datetime) -> int: ...

    async def purge_archived_markets(
        self, db: AsyncSession, cutoff: datetime, limit: int
    ) -> int: ...
