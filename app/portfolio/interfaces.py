"""Collaborator interfaces consumed by the portfolio engine.

The repository modules and YFinanceService satisfy these structurally;
tests substitute AsyncMock instances.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Optional, Protocol


class ReferenceStore(Protocol):
    """Read access to reference metrics, benchmark data and weightings."""

    async def get_metrics_by_tickers(self, tickers: Sequence[str]) -> list[dict[str, Any]]:
        ...

    async def get_benchmark_assignment(self, ticker: str, slot: str) -> Optional[str]:
        ...

    async def get_benchmark_members(self, benchmark: str) -> list[str]:
        ...

    async def get_index_weights(self, tickers: Sequence[str]) -> dict[str, dict[str, Optional[float]]]:
        ...

    async def get_assignments(self, tickers: Sequence[str]) -> dict[str, dict[str, Any]]:
        ...

    async def get_score_weightings(self, profile_name: str) -> list[dict[str, Any]]:
        ...


class HoldingsStore(Protocol):
    async def get_latest_holdings_date(self) -> Optional[date]:
        ...

    async def get_holdings(self, holdings_date: date) -> list[dict[str, Any]]:
        ...


class MarketDataProvider(Protocol):
    """Quotes and historical price lookups.

    Date-relative lookups are anchored on `as_of` (defaults to today).
    """

    async def get_quote(self, ticker: str) -> Optional[dict[str, Any]]:
        ...

    async def get_price_n_days_ago(
        self, ticker: str, trading_days: int, as_of: Optional[date] = None
    ) -> Optional[float]:
        ...

    async def get_price_calendar_days_ago(
        self, ticker: str, calendar_days: int, as_of: Optional[date] = None
    ) -> Optional[float]:
        ...

    async def get_price_end_of_last_quarter(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[float]:
        ...

    async def get_price_end_of_last_year(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[float]:
        ...

    async def get_max_drawdown(
        self, ticker: str, trading_days: int = 252, as_of: Optional[date] = None
    ) -> Optional[float]:
        ...

    async def get_historical_prices(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[dict[str, Optional[float]]]:
        ...


class SnapshotStore(Protocol):
    async def get_snapshot(self, snapshot_date: date) -> Optional[dict[str, Any]]:
        ...

    async def upsert_snapshot(
        self,
        snapshot_date: date,
        *,
        nav: float,
        total_cash: float,
        total_equity: float,
        holdings_count: int,
    ) -> dict[str, Any]:
        ...

    async def list_recent_snapshots(self, limit: int = 90) -> list[dict[str, Any]]:
        ...

    async def list_snapshots(self) -> list[dict[str, Any]]:
        ...
