"""Multi-window return and contribution calculations.

Each holding gets seven returns: 1, 5, 30, 90 and 252 trading days back,
end of last quarter and end of last year. A failed or empty price lookup
degrades that one window to 0 instead of aborting the whole run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

from app.core.config import settings
from app.core.logging import get_logger

from .interfaces import MarketDataProvider


logger = get_logger("portfolio.performance")


# Trading-day lookbacks; qtd and ytd are calendar anchored
TRADING_DAY_WINDOWS: dict[str, int] = {
    "1d": 1,
    "5d": 5,
    "30d": 30,
    "90d": 90,
    "1yr": 252,
}
PERFORMANCE_WINDOWS: tuple[str, ...] = (*TRADING_DAY_WINDOWS, "qtd", "ytd")

SleepFn = Callable[[float], Awaitable[Any]]


def calculate_return(current_price: float, reference_price: float | None) -> float:
    """Percent return: ((current / reference) - 1) * 100; 0 without a reference."""
    if not reference_price:
        return 0.0
    return ((current_price / reference_price) - 1) * 100


def calculate_contribution(weight_pct: float, return_pct: float) -> float:
    """Contribution to portfolio return in percentage points."""
    return (weight_pct / 100) * return_pct


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class WeightedPosition:
    """Input row for performance: price now and portfolio weight (0-100)."""

    ticker: str
    current_price: float
    weight: float


@dataclass
class HoldingPerformance:
    ticker: str
    weight: float

    return_1d: float = 0.0
    return_5d: float = 0.0
    return_30d: float = 0.0
    return_90d: float = 0.0
    return_1yr: float = 0.0
    return_qtd: float = 0.0
    return_ytd: float = 0.0

    contribution_1d: float = 0.0
    contribution_5d: float = 0.0
    contribution_30d: float = 0.0
    contribution_90d: float = 0.0
    contribution_1yr: float = 0.0
    contribution_qtd: float = 0.0
    contribution_ytd: float = 0.0

    def return_for(self, window: str) -> float:
        return getattr(self, f"return_{window}")

    def contribution_for(self, window: str) -> float:
        return getattr(self, f"contribution_{window}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PortfolioTotals:
    total_contribution_1d: float = 0.0
    total_contribution_5d: float = 0.0
    total_contribution_30d: float = 0.0
    total_contribution_90d: float = 0.0
    total_contribution_1yr: float = 0.0
    total_contribution_qtd: float = 0.0
    total_contribution_ytd: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


# =============================================================================
# Calculations
# =============================================================================


async def calculate_holding_performance(
    position: WeightedPosition,
    market_data: MarketDataProvider,
    today: date,
) -> HoldingPerformance:
    """Fetch the seven reference prices concurrently and derive returns."""
    ticker = position.ticker
    lookups = [
        market_data.get_price_n_days_ago(ticker, days, as_of=today)
        for days in TRADING_DAY_WINDOWS.values()
    ]
    lookups.append(market_data.get_price_end_of_last_quarter(ticker, as_of=today))
    lookups.append(market_data.get_price_end_of_last_year(ticker, as_of=today))

    reference_prices = await asyncio.gather(*lookups, return_exceptions=True)

    values: dict[str, float] = {}
    for window, reference in zip(PERFORMANCE_WINDOWS, reference_prices):
        if isinstance(reference, BaseException):
            logger.warning(f"Price lookup failed for {ticker} ({window}): {reference}")
            reference = None
        period_return = calculate_return(position.current_price, reference)
        values[f"return_{window}"] = period_return
        values[f"contribution_{window}"] = calculate_contribution(position.weight, period_return)

    performance = HoldingPerformance(ticker=ticker, weight=position.weight, **values)
    logger.debug(
        f"{ticker}: 1D={performance.return_1d:.2f}%, "
        f"contrib={performance.contribution_1d:.3f}%"
    )
    return performance


async def calculate_all_holdings_performance(
    positions: Sequence[WeightedPosition],
    market_data: MarketDataProvider,
    today: date,
    batch_size: int | None = None,
    delay_ms: int | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> list[HoldingPerformance]:
    """Run holdings in sequential batches with a pause between batches.

    Output order matches input order.
    """
    batch_size = settings.performance_batch_size if batch_size is None else batch_size
    delay_ms = settings.performance_batch_delay_ms if delay_ms is None else delay_ms
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    total_batches = (len(positions) + batch_size - 1) // batch_size
    results: list[HoldingPerformance] = []

    for start in range(0, len(positions), batch_size):
        batch = positions[start:start + batch_size]
        logger.info(f"Processing performance batch {start // batch_size + 1}/{total_batches}")

        batch_results = await asyncio.gather(
            *(calculate_holding_performance(p, market_data, today) for p in batch)
        )
        results.extend(batch_results)

        if start + batch_size < len(positions) and delay_ms > 0:
            await sleep(delay_ms / 1000)

    return results


def calculate_portfolio_totals(performances: Sequence[HoldingPerformance]) -> PortfolioTotals:
    """Sum contributions per window."""
    totals = {
        f"total_contribution_{window}": sum(p.contribution_for(window) for p in performances)
        for window in PERFORMANCE_WINDOWS
    }
    return PortfolioTotals(**totals)
