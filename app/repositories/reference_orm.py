"""Reference data repository using SQLAlchemy ORM.

Covers reference metrics, benchmark assignments and membership, index
weightings and score weightings. All tables are filled upstream; this
module only reads them.

Usage:
    from app.repositories import reference_orm as reference_repo

    benchmark = await reference_repo.get_benchmark_assignment("AAPL", "BENCHMARK1")
    members = await reference_repo.get_benchmark_members(benchmark)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select

from app.core.logging import get_logger
from app.database.connection import get_session
from app.database.orm import (
    BenchmarkAssignment,
    BenchmarkMembership,
    IndexWeighting,
    ReferenceMetrics,
    ScoreWeighting,
)
from app.portfolio.peers import BenchmarkSlot, is_member_cell, membership_column


logger = get_logger("repositories.reference_orm")


SLOT_COLUMNS = {
    BenchmarkSlot.BENCHMARK1: BenchmarkAssignment.benchmark1,
    BenchmarkSlot.BENCHMARK2: BenchmarkAssignment.benchmark2,
    BenchmarkSlot.BENCHMARK3: BenchmarkAssignment.benchmark3,
    BenchmarkSlot.BENCHMARK_CUSTOM: BenchmarkAssignment.benchmark_custom,
}

INDEX_WEIGHT_COLUMNS = ("qqq", "spy", "dow", "soxx", "smh", "arkk")


def _row_to_dict(row: Any) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _num(value: Any) -> float | None:
    return float(value) if value is not None else None


def _upper(tickers: Sequence[str]) -> list[str]:
    return [t.strip().upper() for t in tickers if t and t.strip()]


async def get_metrics_by_tickers(tickers: Sequence[str]) -> list[dict[str, Any]]:
    """Raw reference metrics rows; values keep their text form."""
    wanted = _upper(tickers)
    if not wanted:
        return []

    async with get_session() as session:
        result = await session.execute(
            select(ReferenceMetrics).where(func.upper(ReferenceMetrics.ticker).in_(wanted))
        )
        rows = result.scalars().all()

    return [_row_to_dict(row) for row in rows]


async def get_benchmark_assignment(ticker: str, slot: str) -> str | None:
    column = SLOT_COLUMNS[BenchmarkSlot(slot)]
    async with get_session() as session:
        result = await session.execute(
            select(column).where(func.upper(BenchmarkAssignment.ticker) == ticker.strip().upper())
        )
        value = result.scalar_one_or_none()

    if value is None or not value.strip():
        return None
    return value.strip().upper()


async def get_benchmark_members(benchmark: str) -> list[str]:
    """Tickers whose membership cell for the benchmark is set and not '-'."""
    column_name = membership_column(benchmark)
    if column_name is None:
        return []

    column = getattr(BenchmarkMembership, column_name)
    async with get_session() as session:
        result = await session.execute(
            select(BenchmarkMembership.ticker, column)
            .where(column.is_not(None))
            .order_by(BenchmarkMembership.ticker.asc())
        )
        rows = result.all()

    return [ticker.strip().upper() for ticker, cell in rows if is_member_cell(cell)]


async def get_index_weights(tickers: Sequence[str]) -> dict[str, dict[str, float | None]]:
    """Index weights (0-100) keyed by upper-case ticker."""
    wanted = _upper(tickers)
    if not wanted:
        return {}

    async with get_session() as session:
        result = await session.execute(
            select(IndexWeighting).where(func.upper(IndexWeighting.ticker).in_(wanted))
        )
        rows = result.scalars().all()

    weights: dict[str, dict[str, float | None]] = {}
    for row in rows:
        weights[row.ticker.strip().upper()] = {
            name: _num(getattr(row, name))
            for name in INDEX_WEIGHT_COLUMNS
        }
    return weights


async def get_assignments(tickers: Sequence[str]) -> dict[str, dict[str, Any]]:
    """Benchmark assignment and classification rows keyed by upper-case ticker."""
    wanted = _upper(tickers)
    if not wanted:
        return {}

    async with get_session() as session:
        result = await session.execute(
            select(BenchmarkAssignment).where(func.upper(BenchmarkAssignment.ticker).in_(wanted))
        )
        rows = result.scalars().all()

    return {row.ticker.strip().upper(): _row_to_dict(row) for row in rows}


async def get_score_weightings(profile_name: str) -> list[dict[str, Any]]:
    async with get_session() as session:
        result = await session.execute(
            select(ScoreWeighting)
            .where(ScoreWeighting.profile_name == profile_name)
            .order_by(ScoreWeighting.id.asc())
        )
        rows = result.scalars().all()

    return [
        {
            "profile_name": row.profile_name,
            "category": row.category,
            "metric_name": row.metric_name,
            "metric_weight": _num(row.metric_weight),
            "category_weight": _num(row.category_weight),
        }
        for row in rows
    ]
