"""Daily NAV snapshot capture.

One row per calendar date. A second capture on the same date overwrites the
figures through a single atomic upsert keyed on snapshot_date.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Optional

from app.core.logging import get_logger

from .holdings import (
    CashPolicy,
    Holding,
    calculate_market_value,
    deduplicate_by_ticker,
    detect_duplicates,
    filter_valid_tickers,
    snapshot_cash_policy,
)
from .interfaces import HoldingsStore, MarketDataProvider, SnapshotStore


logger = get_logger("portfolio.snapshot")

NO_HOLDINGS_MESSAGE = "No holdings data available"


@dataclass
class SnapshotResult:
    success: bool
    snapshot_date: date
    nav: float = 0.0
    total_cash: float = 0.0
    total_equity: float = 0.0
    holdings_count: int = 0
    is_update: bool = False
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SnapshotStats:
    total_snapshots: int = 0
    oldest_date: Optional[date] = None
    newest_date: Optional[date] = None
    latest_nav: Optional[float] = None
    last_updated: Optional[datetime] = None
    last_snapshot_date: Optional[date] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def _live_price(market_data: MarketDataProvider, holding: Holding) -> Optional[float]:
    """Live quote, or the stored price when the quote fails or is non-positive."""
    try:
        quote = await market_data.get_quote(holding.ticker)
    except Exception as e:
        logger.warning(f"Failed to fetch price for {holding.ticker}, using stored price: {e}")
        return holding.stored_price

    price = (quote or {}).get("current_price")
    if price is not None and price > 0:
        return float(price)

    logger.warning(f"No live price for {holding.ticker}, using stored price")
    return holding.stored_price


async def fetch_live_prices(
    market_data: MarketDataProvider, holdings: list[Holding]
) -> dict[str, Optional[float]]:
    """Live price per tradeable ticker, falling back to the stored price.

    Quotes are fetched one at a time so the provider's rate limiter paces them.
    """
    tradeable = set(filter_valid_tickers(h.ticker for h in holdings))
    live_prices: dict[str, Optional[float]] = {}
    for holding in holdings:
        if holding.ticker in tradeable:
            live_prices[holding.ticker] = await _live_price(market_data, holding)
    logger.info(f"Fetched prices for {len(live_prices)} securities")
    return live_prices


def value_holding(holding: Holding, live_prices: dict[str, Optional[float]]) -> float:
    return calculate_market_value(
        holding.shares,
        realtime_price=live_prices.get(holding.ticker),
        current_price=holding.current_price,
        fallback_market_value=holding.market_value,
    )


async def capture_portfolio_snapshot(
    holdings_store: HoldingsStore,
    market_data: MarketDataProvider,
    snapshot_store: SnapshotStore,
    today: date,
    cash_policy: Optional[CashPolicy] = None,
) -> SnapshotResult:
    """Value the latest holdings and upsert today's snapshot.

    Returns a non-success result when no holdings exist. Store and provider
    errors outside the per-quote fallback propagate; nothing is written then.
    """
    cash_policy = cash_policy or snapshot_cash_policy()
    logger.info(f"Capturing snapshot for {today.isoformat()}")

    existing = await snapshot_store.get_snapshot(today)
    is_update = existing is not None
    if is_update:
        logger.info("Snapshot already exists for today, updating with latest prices")

    latest_date = await holdings_store.get_latest_holdings_date()
    rows = await holdings_store.get_holdings(latest_date) if latest_date else []
    if not rows:
        logger.warning(NO_HOLDINGS_MESSAGE)
        return SnapshotResult(
            success=False,
            snapshot_date=today,
            is_update=is_update,
            message=NO_HOLDINGS_MESSAGE,
        )

    holdings = [Holding.from_mapping(row) for row in rows]
    logger.info(f"Loaded {len(holdings)} holdings from {latest_date}")

    detect_duplicates(holdings)
    unique = deduplicate_by_ticker(holdings)
    live_prices = await fetch_live_prices(market_data, unique)

    nav = total_cash = total_equity = 0.0
    for holding in unique:
        value = value_holding(holding, live_prices)
        nav += value
        if cash_policy.is_cash(holding.ticker):
            total_cash += value
        else:
            total_equity += value

    logger.info(f"NAV: ${nav:,.2f} (Cash: ${total_cash:,.2f}, Equity: ${total_equity:,.2f})")

    await snapshot_store.upsert_snapshot(
        today,
        nav=nav,
        total_cash=total_cash,
        total_equity=total_equity,
        holdings_count=len(unique),
    )

    logger.info(f"Snapshot {'updated' if is_update else 'created'} for {today.isoformat()}")
    return SnapshotResult(
        success=True,
        snapshot_date=today,
        nav=nav,
        total_cash=total_cash,
        total_equity=total_equity,
        holdings_count=len(unique),
        is_update=is_update,
    )


async def get_snapshot_stats(snapshot_store: SnapshotStore, limit: int = 90) -> SnapshotStats:
    """Summary over the most recent `limit` snapshots (newest first)."""
    recent = await snapshot_store.list_recent_snapshots(limit)
    if not recent:
        return SnapshotStats()

    newest, oldest = recent[0], recent[-1]
    nav = newest.get("nav")
    return SnapshotStats(
        total_snapshots=len(recent),
        oldest_date=oldest.get("snapshot_date"),
        newest_date=newest.get("snapshot_date"),
        latest_nav=float(nav) if nav is not None else None,
        last_updated=newest.get("updated_at") or newest.get("created_at"),
        last_snapshot_date=newest.get("snapshot_date"),
    )
