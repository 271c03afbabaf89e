# tests/unit/test_settlement_service.py
"""Unit tests for SettlementService with a mock repository."""
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import settings
from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import (
    ConfigurationError,
    InvalidStateError,
    MarketNotFoundError,
    MarketNotOpenError,
)
from src.pm_market.domain.models import Market, Trade
from src.pm_settlement.application.service import SettlementService
from src.pm_settlement.domain.models import FeeSchedule


def _make_market(market_id: str = "MKT-1", **kwargs) -> Market:
    defaults = dict(
        id=market_id, question="q", pool_yes=Decimal("100"), pool_no=Decimal("100"),
        resolved_outcome=Outcome.YES,
    )
    defaults.update(kwargs)
    return Market(**defaults)


def _make_trades(market_id: str = "MKT-1") -> list[Trade]:
    return [
        Trade(id=f"{market_id}-T1", market_id=market_id, user_id="alice", side="YES",
              amount="60", fee="0.6", shares="37.5"),
        Trade(id=f"{market_id}-T2", market_id=market_id, user_id="bob", side="YES",
              amount="40", fee="0.4", shares="20"),
        Trade(id=f"{market_id}-T3", market_id=market_id, user_id="carol", side="NO",
              amount="100", fee="1", shares="50"),
    ]


@pytest.fixture
def db():
    return AsyncMock()


@pytest.fixture
def repo():
    r = MagicMock()
    r.get_market = AsyncMock(return_value=_make_market())
    r.list_trades = AsyncMock(return_value=_make_trades())
    r.set_resolved_outcome = AsyncMock(return_value=True)
    r.mark_settled = AsyncMock(return_value=True)
    r.apply_trade_payouts = AsyncMock(side_effect=lambda db, trades, at: len(trades))
    r.list_settleable_market_ids = AsyncMock(return_value=[])
    return r


class TestResolveMarket:
    async def test_records_outcome(self, db, repo) -> None:
        repo.get_market.return_value = _make_market(resolved_outcome=None)
        await SettlementService(repo=repo).resolve_market("MKT-1", "down", db)
        repo.set_resolved_outcome.assert_awaited_once_with(db, "MKT-1", Outcome.NO)
        db.commit.assert_awaited_once()

    async def test_same_outcome_is_noop(self, db, repo) -> None:
        await SettlementService(repo=repo).resolve_market("MKT-1", "YES", db)
        repo.set_resolved_outcome.assert_not_awaited()
        db.commit.assert_not_awaited()

    async def test_conflicting_outcome_rejected(self, db, repo) -> None:
        with pytest.raises(InvalidStateError, match="already resolved as YES"):
            await SettlementService(repo=repo).resolve_market("MKT-1", Outcome.NO, db)
        db.rollback.assert_awaited_once()

    async def test_settled_market_rejected(self, db, repo) -> None:
        repo.get_market.return_value = _make_market(status=MarketStatus.SETTLED)
        with pytest.raises(MarketNotOpenError):
            await SettlementService(repo=repo).resolve_market("MKT-1", "YES", db)

    async def test_missing_market(self, db, repo) -> None:
        repo.get_market.return_value = None
        with pytest.raises(MarketNotFoundError):
            await SettlementService(repo=repo).resolve_market("MKT-1", "YES", db)

    async def test_unknown_outcome(self, db, repo) -> None:
        with pytest.raises(ValueError):
            await SettlementService(repo=repo).resolve_market("MKT-1", "MAYBE", db)
        repo.get_market.assert_not_awaited()


class TestSettleMarket:
    async def test_persists_payouts_and_commits(self, db, repo) -> None:
        result = await SettlementService(repo=repo, fee_schedule=FeeSchedule()).settle_market(
            "MKT-1", db
        )

        assert result.net_pool == Decimal("176")
        assert result.house_profit == Decimal("1")
        repo.mark_settled.assert_awaited_once()
        written = repo.apply_trade_payouts.await_args.args[1]
        assert [t.payout for t in written] == [Decimal("105"), Decimal("70"), Decimal("0")]
        assert all(t.settled for t in written)
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    async def test_explicit_fee_schedule_wins(self, db, repo) -> None:
        svc = SettlementService(repo=repo, fee_schedule=FeeSchedule())
        zero = FeeSchedule(trading_fee_rate=Decimal("0"), house_fee_rate=Decimal("0"))
        result = await svc.settle_market("MKT-1", db, fee_schedule=zero)
        assert result.net_pool == Decimal("200")

    async def test_lost_race_discards_settlement(self, db, repo) -> None:
        repo.mark_settled.return_value = False
        with pytest.raises(InvalidStateError, match="settled concurrently"):
            await SettlementService(repo=repo).settle_market("MKT-1", db)
        repo.apply_trade_payouts.assert_not_awaited()
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_partial_trade_update_rolls_back(self, db, repo) -> None:
        repo.apply_trade_payouts.side_effect = None
        repo.apply_trade_payouts.return_value = 2
        with pytest.raises(InvalidStateError, match="2 of 3 trades"):
            await SettlementService(repo=repo).settle_market("MKT-1", db)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_unresolved_market(self, db, repo) -> None:
        repo.get_market.return_value = _make_market(resolved_outcome=None)
        with pytest.raises(InvalidStateError):
            await SettlementService(repo=repo).settle_market("MKT-1", db)
        repo.mark_settled.assert_not_awaited()

    async def test_missing_market(self, db, repo) -> None:
        repo.get_market.return_value = None
        with pytest.raises(MarketNotFoundError):
            await SettlementService(repo=repo).settle_market("MKT-1", db)
        db.rollback.assert_awaited_once()


class TestSettleReadyMarkets:
    @staticmethod
    def _factory(db):
        @asynccontextmanager
        async def session_factory():
            yield db

        return session_factory

    async def test_failure_does_not_block_other_markets(self, db, repo) -> None:
        markets = {
            "MKT-A": _make_market("MKT-A"),
            "MKT-B": _make_market("MKT-B"),
        }
        trades = {
            "MKT-A": _make_trades("MKT-A"),
            # already settled trade makes MKT-B fail
            "MKT-B": [
                Trade(id="B-1", market_id="MKT-B", user_id="u", side="YES",
                      amount="100", fee="0", shares="1", settled=True),
            ],
        }
        repo.get_market.side_effect = lambda db, mid: markets[mid]
        repo.list_trades.side_effect = lambda db, mid: trades[mid]
        repo.list_settleable_market_ids.side_effect = [["MKT-A", "MKT-B"], []]
        now = datetime(2026, 1, 1, tzinfo=UTC)

        summary = await SettlementService(repo=repo).settle_ready_markets(
            session_factory=self._factory(db), now=now, batch_size=10
        )

        assert summary.total_settled == 1
        assert summary.settled[0].market_id == "MKT-A"
        assert summary.settled[0].winners == 2
        assert "MKT-B" in summary.failed
        assert summary.total_house_revenue == Decimal("25")
        second_call = repo.list_settleable_market_ids.await_args_list[1]
        assert second_call.args[1:] == (now, 10)
        assert second_call.kwargs["exclude"] == ["MKT-B"]

    async def test_nothing_to_settle(self, db, repo) -> None:
        summary = await SettlementService(repo=repo).settle_ready_markets(
            session_factory=self._factory(db)
        )
        assert summary.total_settled == 0
        assert summary.failed == {}

    async def test_bad_fee_schedule_halts_run(self, db, repo, monkeypatch) -> None:
        monkeypatch.setattr(settings, "HOUSE_FEE_RATE", Decimal("0.99"))
        repo.list_settleable_market_ids.return_value = ["MKT-1"]
        with pytest.raises(ConfigurationError):
            await SettlementService(repo=repo).settle_ready_markets(
                session_factory=self._factory(db)
            )
        repo.list_settleable_market_ids.assert_not_awaited()
        repo.mark_settled.assert_not_awaited()

    async def test_unexpected_value_error_does_not_abort_run(self, db, repo) -> None:
        def get_market(db, mid):
            if mid == "MKT-A":
                raise ValueError("Unknown side 'VOID'")
            return _make_market(mid)

        repo.get_market.side_effect = get_market
        repo.list_trades.side_effect = lambda db, mid: _make_trades(mid)
        repo.list_settleable_market_ids.side_effect = [["MKT-A", "MKT-B"], []]

        svc = SettlementService(repo=repo, fee_schedule=FeeSchedule())
        summary = await svc.settle_ready_markets(session_factory=self._factory(db))

        assert [r.market_id for r in summary.settled] == ["MKT-B"]
        assert "VOID" in summary.failed["MKT-A"]
