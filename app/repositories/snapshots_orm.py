"""Portfolio snapshot repository using SQLAlchemy ORM.

Usage:
    from app.repositories import snapshots_orm as snapshots_repo

    row = await snapshots_repo.upsert_snapshot(
        today, nav=1_000_000.0, total_cash=50_000.0, total_equity=950_000.0, holdings_count=42
    )
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from app.core.logging import get_logger
from app.database.connection import get_session
from app.database.orm import PortfolioSnapshot


logger = get_logger("repositories.snapshots_orm")


def _snapshot_to_dict(row: PortfolioSnapshot) -> dict[str, Any]:
    return {
        "id": row.id,
        "snapshot_date": row.snapshot_date,
        "nav": float(row.nav),
        "total_cash": float(row.total_cash),
        "total_equity": float(row.total_equity),
        "holdings_count": row.holdings_count,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


async def get_snapshot(snapshot_date: date) -> dict[str, Any] | None:
    async with get_session() as session:
        result = await session.execute(
            select(PortfolioSnapshot).where(PortfolioSnapshot.snapshot_date == snapshot_date)
        )
        row = result.scalar_one_or_none()
        return _snapshot_to_dict(row) if row else None


async def upsert_snapshot(
    snapshot_date: date,
    *,
    nav: float,
    total_cash: float,
    total_equity: float,
    holdings_count: int,
) -> dict[str, Any]:
    """Insert or overwrite the snapshot for a date in one statement.

    INSERT ... ON CONFLICT (snapshot_date) DO UPDATE keeps concurrent
    captures for the same date down to a single row.
    """
    async with get_session() as session:
        stmt = insert(PortfolioSnapshot).values(
            snapshot_date=snapshot_date,
            nav=nav,
            total_cash=total_cash,
            total_equity=total_equity,
            holdings_count=holdings_count,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["snapshot_date"],
            set_={
                "nav": stmt.excluded.nav,
                "total_cash": stmt.excluded.total_cash,
                "total_equity": stmt.excluded.total_equity,
                "holdings_count": stmt.excluded.holdings_count,
                "updated_at": func.now(),
            },
        ).returning(PortfolioSnapshot)

        result = await session.execute(stmt)
        snapshot = _snapshot_to_dict(result.scalar_one())
        await session.commit()

    logger.debug(f"Upserted snapshot for {snapshot_date}")
    return snapshot


async def list_recent_snapshots(limit: int = 90) -> list[dict[str, Any]]:
    """Newest first."""
    async with get_session() as session:
        result = await session.execute(
            select(PortfolioSnapshot)
            .order_by(PortfolioSnapshot.snapshot_date.desc())
            .limit(limit)
        )
        return [_snapshot_to_dict(row) for row in result.scalars().all()]


async def list_snapshots() -> list[dict[str, Any]]:
    """All snapshots, oldest first."""
    async with get_session() as session:
        result = await session.execute(
            select(PortfolioSnapshot).order_by(PortfolioSnapshot.snapshot_date.asc())
        )
        return [_snapshot_to_dict(row) for row in result.scalars().all()]
