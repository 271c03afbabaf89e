"""SQLAlchemy ORM models for the markets and trades tables.

Amounts are Numeric(20, 6): six decimals, matching src.pm_common.amounts.
persistence.py queries these tables through Core statements built on the
mapped Table objects.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.pm_common.database import Base

AMOUNT = Numeric(20, 6)


class MarketORM(Base):
    __tablename__ = "markets"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    pool_yes: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    pool_no: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    resolved_outcome: Mapped[str | None] = mapped_column(Text)
    event_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TradeORM(Base):
    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    market_id: Mapped[str] = mapped_column(
        Text, ForeignKey("markets.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    side: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    fee: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    shares: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    payout: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, default=0)
    settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
