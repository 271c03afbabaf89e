"""Integration-test fixtures.

Each test gets its own sqlite file database with the markets/trades tables
created from the ORM metadata, and a session factory bound to it. Sessions
from the same factory behave like separate connections, which is what the
concurrency tests need.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.pm_common.database import create_tables
from src.pm_market.application.schemas import CreateMarketRequest
from src.pm_market.application.service import MarketService
from src.pm_market.infrastructure.persistence import MarketRepository

PAST = datetime(2026, 1, 1, tzinfo=UTC)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'markets.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def repo() -> MarketRepository:
    return MarketRepository()


@pytest.fixture
def make_market(session_factory):
    """Create a seeded OPEN market in its own committed transaction."""

    async def _make(
        market_id: str,
        pool_yes: str = "100",
        pool_no: str = "100",
        event_time: datetime | None = PAST,
    ) -> str:
        req = CreateMarketRequest(
            id=market_id,
            question=f"Question for {market_id}?",
            pool_yes=Decimal(pool_yes),
            pool_no=Decimal(pool_no),
            event_time=event_time,
        )
        async with session_factory() as session:
            resp = await MarketService().create_market(req, session)
        return resp.id

    return _make
