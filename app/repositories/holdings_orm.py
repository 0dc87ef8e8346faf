"""Holdings repository using SQLAlchemy ORM.

Read-only: rows are written by the upstream holdings upload.

Usage:
    from app.repositories import holdings_orm as holdings_repo

    latest = await holdings_repo.get_latest_holdings_date()
    rows = await holdings_repo.get_holdings(latest)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select

from app.core.logging import get_logger
from app.database.connection import get_session
from app.database.orm import Holding


logger = get_logger("repositories.holdings_orm")


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _holding_to_dict(row: Holding) -> dict[str, Any]:
    return {
        "id": row.id,
        "date": row.date,
        "ticker": row.stock_ticker.strip().upper(),
        "shares": _num(row.shares) or 0.0,
        "close_price": _num(row.close_price),
        "current_price": _num(row.current_price),
        "market_value": _num(row.market_value),
    }


async def get_latest_holdings_date() -> date | None:
    """Most recent date with any holdings rows."""
    async with get_session() as session:
        result = await session.execute(select(func.max(Holding.date)))
        return result.scalar_one_or_none()


async def get_holdings(holdings_date: date) -> list[dict[str, Any]]:
    """All rows for a date in upload order (by id).

    Duplicates are returned as-is; callers deduplicate keeping the first.
    """
    async with get_session() as session:
        result = await session.execute(
            select(Holding)
            .where(Holding.date == holdings_date)
            .order_by(Holding.id.asc())
        )
        rows = result.scalars().all()

    logger.debug(f"Loaded {len(rows)} holdings rows for {holdings_date}")
    return [_holding_to_dict(row) for row in rows]
