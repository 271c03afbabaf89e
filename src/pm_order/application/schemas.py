# src/pm_order/application/schemas.py
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.pm_common.enums import Outcome, normalize_outcome


class PlaceTradeRequest(BaseModel):
    market_id: str
    side: Outcome
    amount: Decimal = Field(gt=0, decimal_places=6)

    @field_validator("side", mode="before")
    @classmethod
    def canonical_side(cls, v: object) -> Outcome:
        # UP/DOWN from the legacy trade path become YES/NO here
        return normalize_outcome(v)

    @field_validator("market_id")
    @classmethod
    def no_whitespace(cls, v: str) -> str:
        if not v or v != v.strip() or " " in v:
            raise ValueError("market_id must not contain whitespace")
        return v


class QuoteResponse(BaseModel):
    market_id: str
    side: Outcome
    amount: Decimal
    fee: Decimal
    total_cost: Decimal
    shares: Decimal
    avg_price: Decimal | None
    prob_yes_before: float
    prob_yes_after: float


class PlaceTradeResponse(BaseModel):
    trade_id: str
    market_id: str
    side: Outcome
    amount: Decimal
    fee: Decimal
    total_cost: Decimal
    shares: Decimal
    pool_yes: Decimal
    pool_no: Decimal
    prob_yes: float
    prob_no: float
