"""SQLAlchemy ORM models for the portfolio engine.

Tables fall into three groups:
- holdings: raw per-date positions written by the upstream sync pipeline
- reference: metrics, benchmark assignments, benchmark membership, index weights,
  score weightings (also written upstream; read-only here)
- portfolio_snapshot: one NAV row per calendar date, written by snapshot capture

Usage:
    from app.database.orm import PortfolioSnapshot
    from app.database.connection import get_session

    async with get_session() as session:
        result = await session.execute(select(PortfolioSnapshot))
"""

from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# HOLDINGS
# =============================================================================


class Holding(Base):
    """One position row as delivered by the holdings upload for a given date.

    Duplicate tickers per date are possible (the upload is not deduplicated);
    consumers keep the first row by id.
    """
    __tablename__ = "holdings"

    id: Mapped[int] = mapped_column(primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    stock_ticker: Mapped[str] = mapped_column(String(32), nullable=False)
    shares: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=0)
    close_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))
    current_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))
    market_value: Mapped[Decimal | None] = mapped_column(Numeric(20, 4))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_holdings_date", "date"),
        Index("idx_holdings_date_ticker", "date", "stock_ticker"),
    )


# =============================================================================
# SNAPSHOTS
# =============================================================================


class PortfolioSnapshot(Base):
    """Daily NAV snapshot; at most one row per snapshot_date."""
    __tablename__ = "portfolio_snapshot"

    id: Mapped[int] = mapped_column(primary_key=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    nav: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    total_cash: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False, default=0)
    total_equity: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False, default=0)
    holdings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("snapshot_date", name="uq_portfolio_snapshot_date"),
        Index("idx_portfolio_snapshot_date", "snapshot_date", postgresql_ops={"snapshot_date": "DESC"}),
    )


# =============================================================================
# REFERENCE DATA
# =============================================================================


class ReferenceMetrics(Base):
    """Per-ticker valuation/market reference snapshot.

    Values are stored as delivered by the spreadsheet export (text), so
    placeholders like '#N/A' or '-' survive until parse time.
    """
    __tablename__ = "reference_metrics"

    ticker: Mapped[str] = mapped_column(String(32), primary_key=True)
    pe_ntm: Mapped[str | None] = mapped_column(Text)
    ev_ebitda_ntm: Mapped[str | None] = mapped_column(Text)
    ev_sales_ntm: Mapped[str | None] = mapped_column(Text)
    price: Mapped[str | None] = mapped_column(Text)
    volatility_2m: Mapped[str | None] = mapped_column(Text)
    beta_3y: Mapped[str | None] = mapped_column(Text)
    week_52_high: Mapped[str | None] = mapped_column(Text)
    consensus_price_target: Mapped[str | None] = mapped_column(Text)
    eps_ntm: Mapped[str | None] = mapped_column(Text)
    eps_ntm_90d_ago: Mapped[str | None] = mapped_column(Text)
    sales_ntm: Mapped[str | None] = mapped_column(Text)
    sales_ntm_90d_ago: Mapped[str | None] = mapped_column(Text)
    eps_surprise: Mapped[str | None] = mapped_column(Text)
    sales_surprise: Mapped[str | None] = mapped_column(Text)
    roic_1y: Mapped[str | None] = mapped_column(Text)
    roic_3y: Mapped[str | None] = mapped_column(Text)
    gross_profit_ltm: Mapped[str | None] = mapped_column(Text)
    total_assets: Mapped[str | None] = mapped_column(Text)
    accruals_pct: Mapped[str | None] = mapped_column(Text)
    fcf: Mapped[str | None] = mapped_column(Text)
    ebitda_ltm: Mapped[str | None] = mapped_column(Text)
    sales_ltm: Mapped[str | None] = mapped_column(Text)
    net_debt: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BenchmarkAssignment(Base):
    """Benchmark slots and classification per ticker (GICS sheet)."""
    __tablename__ = "benchmark_assignments"

    ticker: Mapped[str] = mapped_column(String(32), primary_key=True)
    company_name: Mapped[str | None] = mapped_column(String(255))
    gics_sector: Mapped[str | None] = mapped_column(String(100))
    benchmark1: Mapped[str | None] = mapped_column(String(20))
    benchmark2: Mapped[str | None] = mapped_column(String(20))
    benchmark3: Mapped[str | None] = mapped_column(String(20))
    benchmark_custom: Mapped[str | None] = mapped_column(String(20))
    core_flag: Mapped[str | None] = mapped_column(String(20))  # Core / Non-Core
    risk_on_off: Mapped[str | None] = mapped_column(String(20))  # Risk On / Risk Off

    __table_args__ = (
        Index("idx_benchmark_assignments_benchmark1", "benchmark1"),
    )


class BenchmarkMembership(Base):
    """Sparse benchmark membership: one column per benchmark ETF.

    A ticker belongs to a benchmark when its cell is non-null and not '-'.
    """
    __tablename__ = "weightings_universe"

    ticker: Mapped[str] = mapped_column(String(32), primary_key=True)
    spy: Mapped[str | None] = mapped_column(Text)
    qqq: Mapped[str | None] = mapped_column(Text)
    soxx: Mapped[str | None] = mapped_column(Text)
    smh: Mapped[str | None] = mapped_column(Text)
    arkk: Mapped[str | None] = mapped_column(Text)
    xlk: Mapped[str | None] = mapped_column(Text)
    xlf: Mapped[str | None] = mapped_column(Text)
    xlc: Mapped[str | None] = mapped_column(Text)
    xly: Mapped[str | None] = mapped_column(Text)
    xlp: Mapped[str | None] = mapped_column(Text)
    xle: Mapped[str | None] = mapped_column(Text)
    xlv: Mapped[str | None] = mapped_column(Text)
    xli: Mapped[str | None] = mapped_column(Text)
    xlb: Mapped[str | None] = mapped_column(Text)
    xlre: Mapped[str | None] = mapped_column(Text)
    xlu: Mapped[str | None] = mapped_column(Text)
    igv: Mapped[str | None] = mapped_column(Text)
    ita: Mapped[str | None] = mapped_column(Text)


class IndexWeighting(Base):
    """Stock weight (percent, 0-100) inside each index used for short netting."""
    __tablename__ = "index_weightings"

    ticker: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    qqq: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    spy: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    dow: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    soxx: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    smh: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    arkk: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))


class ScoreWeighting(Base):
    """Scoring weights per profile.

    Category rows have metric_name NULL and carry category_weight;
    metric rows carry metric_weight.
    """
    __tablename__ = "score_weightings"

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_name: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    metric_name: Mapped[str | None] = mapped_column(String(100))
    metric_weight: Mapped[Decimal | None] = mapped_column(Numeric(6, 4))
    category_weight: Mapped[Decimal | None] = mapped_column(Numeric(6, 4))

    __table_args__ = (
        UniqueConstraint("profile_name", "category", "metric_name", name="uq_score_weightings_profile_metric"),
        Index("idx_score_weightings_profile", "profile_name"),
    )
