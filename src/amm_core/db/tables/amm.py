"""SQLAlchemy ORM models for the amm schema."""

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from amm_core.db.base import Base

SCHEMA = "amm"


class MarketRow(Base):
    """One binary AMM market and its current reserves."""

    __tablename__ = "markets"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    feed_key: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    yes_reserve: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    no_reserve: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    k: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    seed_liquidity: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    # Bumped on every reserve write; guards read-modify-write races
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AmmSnapshotRow(Base):
    """Historical reserve point for price charts."""

    __tablename__ = "amm_snapshots"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    market_id: Mapped[str] = mapped_column(
        Text, ForeignKey(f"{SCHEMA}.markets.id"), nullable=False, index=True,
    )
    yes_reserve: Mapped[float] = mapped_column(Numeric, nullable=False)
    no_reserve: Mapped[float] = mapped_column(Numeric, nullable=False)
    prob_yes: Mapped[float] = mapped_column(Numeric, nullable=False)
    prob_no: Mapped[float] = mapped_column(Numeric, nullable=False)
    ts: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
