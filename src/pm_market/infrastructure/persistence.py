"""MarketRepository: concrete implementation of MarketRepositoryProtocol.

Queries are SQLAlchemy Core statements on the mapped tables, so Numeric
columns come back as Decimal on every dialect. Nothing here commits: the
application services own the transaction boundary.

Writes that race with other sessions are conditional (version / status in
the WHERE clause) and report whether they hit the row.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import as_utc, utc_now
from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import InvalidStateError
from src.pm_market.domain.models import Market, Trade
from src.pm_market.infrastructure.db_models import MarketORM, TradeORM

_markets = MarketORM.__table__
_trades = TradeORM.__table__

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _row_to_market(row: object) -> Market:
    try:
        return Market(
            id=row.id,  # type: ignore[attr-defined]
            question=row.question,  # type: ignore[attr-defined]
            pool_yes=row.pool_yes,  # type: ignore[attr-defined]
            pool_no=row.pool_no,  # type: ignore[attr-defined]
            status=MarketStatus(row.status),  # type: ignore[attr-defined]
            resolved_outcome=row.resolved_outcome,  # type: ignore[attr-defined]
            event_time=as_utc(row.event_time),  # type: ignore[attr-defined]
            settled_at=as_utc(row.settled_at),  # type: ignore[attr-defined]
            version=row.version,  # type: ignore[attr-defined]
        )
    except ValueError as exc:
        # Unknown status/outcome or a negative pool written by another path
        raise InvalidStateError(
            f"market {row.id} has a malformed row: {exc}"  # type: ignore[attr-defined]
        ) from exc


def _row_to_trade(row: object) -> Trade:
    try:
        return Trade(
            id=row.id,  # type: ignore[attr-defined]
            market_id=row.market_id,  # type: ignore[attr-defined]
            user_id=row.user_id,  # type: ignore[attr-defined]
            side=row.side,  # type: ignore[attr-defined]
            amount=row.amount,  # type: ignore[attr-defined]
            fee=row.fee,  # type: ignore[attr-defined]
            shares=row.shares,  # type: ignore[attr-defined]
            payout=row.payout,  # type: ignore[attr-defined]
            settled=row.settled,  # type: ignore[attr-defined]
            created_at=as_utc(row.created_at),  # type: ignore[attr-defined]
        )
    except ValueError as exc:
        raise InvalidStateError(
            f"trade {row.id} has a malformed row: {exc}"  # type: ignore[attr-defined]
        ) from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class MarketRepository:
    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None:
        result = await db.execute(select(_markets).where(_markets.c.id == market_id))
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def insert_market(self, db: AsyncSession, market: Market) -> None:
        now = utc_now()
        await db.execute(
            insert(_markets).values(
                id=market.id,
                question=market.question,
                pool_yes=market.pool_yes,
                pool_no=market.pool_no,
                status=market.status.value,
                resolved_outcome=market.resolved_outcome.value if market.resolved_outcome else None,
                event_time=market.event_time,
                settled_at=market.settled_at,
                version=market.version,
                created_at=now,
                updated_at=now,
            )
        )

    async def list_trades(self, db: AsyncSession, market_id: str) -> list[Trade]:
        result = await db.execute(
            select(_trades)
            .where(_trades.c.market_id == market_id)
            .order_by(_trades.c.created_at, _trades.c.id)
        )
        return [_row_to_trade(row) for row in result.fetchall()]

    async def insert_trade(self, db: AsyncSession, trade: Trade) -> None:
        await db.execute(
            insert(_trades).values(
                id=trade.id,
                market_id=trade.market_id,
                user_id=trade.user_id,
                side=trade.side.value,
                amount=trade.amount,
                fee=trade.fee,
                shares=trade.shares,
                payout=trade.payout,
                settled=trade.settled,
                created_at=trade.created_at or utc_now(),
            )
        )

    async def update_pools(
        self,
        db: AsyncSession,
        market_id: str,
        pool_yes: Decimal,
        pool_no: Decimal,
        expected_version: int,
    ) -> bool:
        """Write new pools only if nobody else has since the snapshot was read."""
        result = await db.execute(
            update(_markets)
            .where(
                _markets.c.id == market_id,
                _markets.c.version == expected_version,
                _markets.c.status == MarketStatus.OPEN.value,
                _markets.c.resolved_outcome.is_(None),
            )
            .values(
                pool_yes=pool_yes,
                pool_no=pool_no,
                version=_markets.c.version + 1,
                updated_at=utc_now(),
            )
        )
        return result.rowcount == 1

    async def set_resolved_outcome(
        self, db: AsyncSession, market_id: str, outcome: Outcome
    ) -> bool:
        result = await db.execute(
            update(_markets)
            .where(
                _markets.c.id == market_id,
                _markets.c.status == MarketStatus.OPEN.value,
            )
            .values(resolved_outcome=outcome.value, updated_at=utc_now())
        )
        return result.rowcount == 1

    async def mark_settled(
        self, db: AsyncSession, market_id: str, settled_at: datetime
    ) -> bool:
        """OPEN -> SETTLED; the commit point that makes settlement happen once."""
        result = await db.execute(
            update(_markets)
            .where(
                _markets.c.id == market_id,
                _markets.c.status == MarketStatus.OPEN.value,
                _markets.c.resolved_outcome.is_not(None),
            )
            .values(
                status=MarketStatus.SETTLED.value,
                settled_at=settled_at,
                updated_at=settled_at,
            )
        )
        return result.rowcount == 1

    async def apply_trade_payouts(
        self, db: AsyncSession, trades: list[Trade], settled_at: datetime
    ) -> int:
        """Write payout + settled flag per trade; returns how many rows flipped."""
        updated = 0
        for trade in trades:
            result = await db.execute(
                update(_trades)
                .where(_trades.c.id == trade.id, _trades.c.settled.is_(False))
                .values(payout=trade.payout, settled=True, settled_at=settled_at)
            )
            updated += result.rowcount
        return updated

    async def list_settleable_market_ids(
        self,
        db: AsyncSession,
        now: datetime,
        limit: int,
        exclude: Sequence[str] = (),
    ) -> list[str]:
        """OPEN markets with an oracle result whose event time has passed."""
        result = await db.execute(
            select(_markets.c.id)
            .where(
                _markets.c.status == MarketStatus.OPEN.value,
                _markets.c.resolved_outcome.is_not(None),
                (_markets.c.event_time.is_(None)) | (_markets.c.event_time <= now),
                _markets.c.id.not_in(list(exclude)),
            )
            .order_by(_markets.c.event_time, _markets.c.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def archive_stale_markets(self, db: AsyncSession, now: datetime) -> int:
        """OPEN, never resolved, event already passed -> ARCHIVED."""
        result = await db.execute(
            update(_markets)
            .where(
                _markets.c.status == MarketStatus.OPEN.value,
                _markets.c.resolved_outcome.is_(None),
                _markets.c.event_time < now,
            )
            .values(status=MarketStatus.ARCHIVED.value, updated_at=now)
        )
        return result.rowcount

    async def purge_archived_markets(
        self, db: AsyncSession, cutoff: datetime, limit: int
    ) -> int:
        """Delete up to `limit` ARCHIVED markets older than cutoff, trades first."""
        result = await db.execute(
            select(_markets.c.id)
            .where(
                _markets.c.status == MarketStatus.ARCHIVED.value,
                _markets.c.event_time < cutoff,
            )
            .order_by(_markets.c.event_time, _markets.c.id)
            .limit(limit)
        )
        ids = list(result.scalars().all())
        if not ids:
            return 0
        await db.execute(delete(_trades).where(_trades.c.market_id.in_(ids)))
        await db.execute(delete(_markets).where(_markets.c.id.in_(ids)))
        return len(ids)
