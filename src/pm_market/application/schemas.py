"""Pydantic schemas for market creation and odds display."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.pm_common.amounts import amount_to_display
from src.pm_market.domain.models import Market
from src.pm_pricing.domain.models import Probabilities


class CreateMarketRequest(BaseModel):
    question: str = Field(min_length=1)
    event_time: datetime | None = None
    # Seed liquidity; both sides must be funded for shares to be issued
    pool_yes: Decimal = Field(ge=0, decimal_places=6)
    pool_no: Decimal = Field(ge=0, decimal_places=6)
    id: str | None = None

    @field_validator("question")
    @classmethod
    def strip_question(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v


class MarketResponse(BaseModel):
    id: str
    question: str
    status: str
    pool_yes: Decimal
    pool_no: Decimal
    resolved_outcome: str | None
    event_time: datetime | None
    settled_at: datetime | None

    @classmethod
    def from_domain(cls, m: Market) -> "MarketResponse":
        return cls(
            id=m.id,
            question=m.question,
            status=m.status.value,
            pool_yes=m.pool_yes,
            pool_no=m.pool_no,
            resolved_outcome=m.resolved_outcome.value if m.resolved_outcome else None,
            event_time=m.event_time,
            settled_at=m.settled_at,
        )


class MarketOddsResponse(BaseModel):
    market_id: str
    prob_yes: float
    prob_no: float
    pool_yes: Decimal
    pool_no: Decimal
    total_pool_display: str

    @classmethod
    def from_domain(cls, m: Market, odds: Probabilities) -> "MarketOddsResponse":
        return cls(
            market_id=m.id,
            prob_yes=odds.prob_yes,
            prob_no=odds.prob_no,
            pool_yes=m.pool_yes,
            pool_no=m.pool_no,
            total_pool_display=amount_to_display(m.total_pool),
        )
