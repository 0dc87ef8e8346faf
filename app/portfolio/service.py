"""Portfolio engine service: wires repositories and market data into the engine.

Route handlers call these coroutines; each one reads from the stores, runs
the pure engine functions and returns the engine's result types.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import ExternalServiceError, NotFoundError
from app.core.logging import get_logger
from app.repositories import holdings_orm as holdings_repo
from app.repositories import reference_orm as reference_repo
from app.repositories import snapshots_orm as snapshots_repo
from app.services.data_providers import get_yfinance_service

from .dates import reporting_today
from .exposure import PortfolioExposure, calculate_portfolio_exposure
from .holdings import Holding, deduplicate_by_ticker, detect_duplicates, is_valid_ticker
from .interfaces import MarketDataProvider
from .metrics import (
    METRICS_BY_KEY,
    REPORT_METRIC_KEYS,
    VALUATION_METRIC_KEYS,
    HistoricalPrices,
    IndividualMetrics,
    MetricsRecord,
    extract_individual_metrics,
)
from .peers import BenchmarkSlot, PeerGroup, PeerGroupResolver
from .performance import (
    HoldingPerformance,
    PortfolioTotals,
    SleepFn,
    WeightedPosition,
    calculate_all_holdings_performance,
    calculate_portfolio_totals,
)
from .risk import RiskMetrics, calculate_risk_metrics
from .scoring import (
    StockScore,
    format_rank,
    parse_score_weightings,
    percentile_rank,
    rank_position,
    score_universe,
    sorted_distribution,
)
from .shorts import StockIndexWeights
from .snapshot import (
    NO_HOLDINGS_MESSAGE,
    SnapshotResult,
    SnapshotStats,
    capture_portfolio_snapshot,
    fetch_live_prices,
    get_snapshot_stats,
    value_holding,
)


logger = get_logger("portfolio.service")

# Benchmarks reported next to holdings performance
PERFORMANCE_BENCHMARKS: tuple[str, ...] = ("SPY", "QQQ")

# Tickers never looked up for scoring history
SCORING_SKIP_SUBSTRINGS = ("CASH", "MONEY", "&", "OTHER")


# =============================================================================
# Shared loading
# =============================================================================


async def _load_latest_holdings() -> tuple[Optional[date], list[Holding]]:
    latest_date = await holdings_repo.get_latest_holdings_date()
    if latest_date is None:
        return None, []
    rows = await holdings_repo.get_holdings(latest_date)
    return latest_date, [Holding.from_mapping(row) for row in rows]


def _is_scorable(ticker: str) -> bool:
    upper = (ticker or "").strip().upper()
    return bool(upper) and not any(part in upper for part in SCORING_SKIP_SUBSTRINGS)


async def fetch_historical_prices_in_batches(
    tickers: Sequence[str],
    market_data: Optional[MarketDataProvider] = None,
    today: Optional[date] = None,
    batch_size: Optional[int] = None,
    delay_ms: Optional[int] = None,
    sleep: SleepFn = asyncio.sleep,
) -> dict[str, HistoricalPrices]:
    """Price history per ticker, fetched in paced batches.

    Tickers whose lookup fails or returns nothing are absent from the result.
    """
    market_data = market_data or get_yfinance_service()
    today = today or reporting_today()
    batch_size = settings.scoring_batch_size if batch_size is None else batch_size
    delay_ms = settings.scoring_batch_delay_ms if delay_ms is None else delay_ms
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    valid = [t.strip().upper() for t in tickers if _is_scorable(t)]
    total_batches = (len(valid) + batch_size - 1) // batch_size
    results: dict[str, HistoricalPrices] = {}

    for start in range(0, len(valid), batch_size):
        batch = valid[start:start + batch_size]
        logger.info(
            f"Fetching price history batch {start // batch_size + 1}/{total_batches} "
            f"({len(batch)} tickers)"
        )

        fetched = await asyncio.gather(
            *(market_data.get_historical_prices(t, as_of=today) for t in batch),
            return_exceptions=True,
        )
        for ticker, history in zip(batch, fetched):
            if isinstance(history, BaseException):
                logger.warning(f"Price history failed for {ticker}: {history}")
                continue
            if history:
                results[ticker] = HistoricalPrices(**history)

        if start + batch_size < len(valid) and delay_ms > 0:
            await sleep(delay_ms / 1000)

    logger.info(f"Fetched price history for {len(results)}/{len(valid)} tickers")
    return results


# =============================================================================
# Snapshots and risk
# =============================================================================


async def capture_daily_snapshot(today: Optional[date] = None) -> SnapshotResult:
    """Capture today's snapshot; store failures surface as ExternalServiceError."""
    today = today or reporting_today()
    try:
        return await capture_portfolio_snapshot(
            holdings_repo,
            get_yfinance_service(),
            snapshots_repo,
            today,
        )
    except SQLAlchemyError as exc:
        logger.error(f"Snapshot capture failed for {today.isoformat()}: {exc}")
        raise ExternalServiceError(
            message="Portfolio database unavailable",
            details={"snapshot_date": today.isoformat()},
        ) from exc


async def fetch_snapshot_stats() -> SnapshotStats:
    return await get_snapshot_stats(snapshots_repo, settings.snapshot_stats_limit)


async def get_portfolio_risk_metrics() -> RiskMetrics:
    snapshots = await snapshots_repo.list_snapshots()
    return calculate_risk_metrics(
        snapshots,
        min_days=settings.risk_min_days,
        risk_free_rate=settings.risk_free_rate,
    )


# =============================================================================
# Exposure
# =============================================================================


async def get_portfolio_exposure() -> PortfolioExposure:
    """Exposure summary for the latest holdings, using stored market values."""
    _, holdings = await _load_latest_holdings()
    if not holdings:
        raise NotFoundError(NO_HOLDINGS_MESSAGE)

    tickers = [h.ticker.upper() for h in deduplicate_by_ticker(holdings)]
    raw_weights = await reference_repo.get_index_weights(tickers)
    assignments = await reference_repo.get_assignments(tickers)

    index_weights = {
        ticker: StockIndexWeights.from_mapping(row) for ticker, row in raw_weights.items()
    }
    return calculate_portfolio_exposure(holdings, index_weights, assignments)


# =============================================================================
# Performance
# =============================================================================


@dataclass
class PortfolioPerformance:
    as_of: date
    holdings_date: date
    nav: float
    holdings: list[HoldingPerformance]
    benchmarks: list[HoldingPerformance]
    totals: PortfolioTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of,
            "holdings_date": self.holdings_date,
            "nav": self.nav,
            "holdings": [p.to_dict() for p in self.holdings],
            "benchmarks": [p.to_dict() for p in self.benchmarks],
            "totals": self.totals.to_dict(),
        }


async def _benchmark_positions(market_data: MarketDataProvider) -> list[WeightedPosition]:
    positions: list[WeightedPosition] = []
    for symbol in PERFORMANCE_BENCHMARKS:
        try:
            quote = await market_data.get_quote(symbol)
        except Exception as e:
            logger.warning(f"Benchmark quote failed for {symbol}: {e}")
            continue
        price = (quote or {}).get("current_price")
        if price and price > 0:
            positions.append(WeightedPosition(ticker=symbol, current_price=float(price), weight=0.0))
        else:
            logger.warning(f"No benchmark price for {symbol}")
    return positions


async def get_portfolio_performance(today: Optional[date] = None) -> PortfolioPerformance:
    """Per-holding returns and contributions over every window.

    Weights are stored market value over live NAV. Holdings are returned by
    weight, largest first; SPY and QQQ follow at zero weight.
    """
    today = today or reporting_today()
    market_data = get_yfinance_service()

    holdings_date, holdings = await _load_latest_holdings()
    if holdings_date is None or not holdings:
        raise NotFoundError(NO_HOLDINGS_MESSAGE)

    detect_duplicates(holdings)
    unique = deduplicate_by_ticker(holdings)
    live_prices = await fetch_live_prices(market_data, unique)
    nav = sum(value_holding(h, live_prices) for h in unique)

    positions: list[WeightedPosition] = []
    for holding in unique:
        if not is_valid_ticker(holding.ticker):
            continue
        price = live_prices.get(holding.ticker)
        if not price:
            logger.warning(f"Skipping {holding.ticker}: no price available")
            continue
        weight = (holding.market_value or 0.0) / nav * 100 if nav else 0.0
        positions.append(WeightedPosition(ticker=holding.ticker, current_price=price, weight=weight))

    logger.info(f"Calculating performance for {len(positions)} holdings (NAV ${nav:,.2f})")
    performances = await calculate_all_holdings_performance(positions, market_data, today)
    performances.sort(key=lambda p: p.weight, reverse=True)

    benchmarks = await calculate_all_holdings_performance(
        await _benchmark_positions(market_data), market_data, today, batch_size=2
    )

    return PortfolioPerformance(
        as_of=today,
        holdings_date=holdings_date,
        nav=nav,
        holdings=performances,
        benchmarks=benchmarks,
        totals=calculate_portfolio_totals(performances),
    )


# =============================================================================
# Benchmark scoring
# =============================================================================


async def resolve_peer_group(ticker: str, slot: BenchmarkSlot | str = BenchmarkSlot.BENCHMARK1) -> PeerGroup:
    return await PeerGroupResolver(reference_repo).resolve(ticker, slot)


@dataclass
class MetricRanking:
    key: str
    label: str
    category: str
    lower_is_better: bool
    value: Optional[float]
    score: Optional[float]
    rank: Optional[int]
    total: int
    rank_display: str
    distribution: list[tuple[str, float]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "category": self.category,
            "lower_is_better": self.lower_is_better,
            "value": self.value,
            "score": self.score,
            "rank": self.rank,
            "total": self.total,
            "rank_display": self.rank_display,
            "distribution": [{"ticker": t, "value": v} for t, v in self.distribution],
        }


@dataclass
class BenchmarkTestReport:
    ticker: str
    slot: BenchmarkSlot
    benchmark: str
    peers: list[str]
    scored_tickers: list[str]
    metrics: IndividualMetrics
    rankings: list[MetricRanking]
    missing_reference: list[str] = field(default_factory=list)
    missing_prices: list[str] = field(default_factory=list)
    incomplete_metrics: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "slot": self.slot.value,
            "benchmark": self.benchmark,
            "peers": list(self.peers),
            "coverage": {
                "peer_count": len(self.peers),
                "scored_count": len(self.scored_tickers),
                "missing_reference_count": len(self.missing_reference),
                "missing_prices_count": len(self.missing_prices),
                "incomplete_count": len(self.incomplete_metrics),
            },
            "metrics": self.metrics.to_dict(),
            "rankings": [r.to_dict() for r in self.rankings],
            "missing_reference": list(self.missing_reference),
            "missing_prices": list(self.missing_prices),
            "incomplete_metrics": list(self.incomplete_metrics),
        }


def _has_valuation(metrics: IndividualMetrics) -> bool:
    return any(metrics.get(key) for key in VALUATION_METRIC_KEYS)


async def score_ticker_against_benchmark(
    ticker: str,
    slot: BenchmarkSlot | str = BenchmarkSlot.BENCHMARK1,
    today: Optional[date] = None,
    sleep: SleepFn = asyncio.sleep,
) -> BenchmarkTestReport:
    """Rank a ticker against its benchmark peers on the report metrics.

    Peers without a reference row or without price history are left out of
    every distribution and listed in the report instead.
    """
    group = await resolve_peer_group(ticker, slot)
    if group.is_empty:
        raise NotFoundError(group.reason or f"No peer group for {group.ticker}")

    rows = await reference_repo.get_metrics_by_tickers(group.members)
    records = {record.ticker: record for record in map(MetricsRecord.from_mapping, rows)}
    missing_reference = [t for t in group.members if t.upper() not in records]

    histories = await fetch_historical_prices_in_batches(
        [t for t in group.members if t.upper() in records], today=today, sleep=sleep
    )

    all_metrics: dict[str, IndividualMetrics] = {}
    missing_prices: list[str] = []
    incomplete: list[str] = []
    for member in group.members:
        key = member.upper()
        if key not in records:
            continue
        history = histories.get(key)
        if history is None:
            missing_prices.append(key)
            continue
        metrics = extract_individual_metrics(records[key], history)
        all_metrics[key] = metrics
        if not _has_valuation(metrics):
            incomplete.append(key)

    test_metrics = all_metrics.get(group.ticker)
    if test_metrics is None:
        raise NotFoundError(f"No metrics available for {group.ticker}")

    logger.info(
        f"Benchmark test {group.ticker} vs {group.benchmark}: "
        f"{len(all_metrics)} scored, {len(missing_reference)} without reference data, "
        f"{len(missing_prices)} without prices"
    )

    rankings: list[MetricRanking] = []
    for key in REPORT_METRIC_KEYS:
        definition = METRICS_BY_KEY[key]
        distribution = [(t, m.get(key)) for t, m in all_metrics.items()]
        rank, total = rank_position(group.ticker, distribution, definition.lower_is_better)
        rankings.append(
            MetricRanking(
                key=key,
                label=definition.label,
                category=definition.category.value,
                lower_is_better=definition.lower_is_better,
                value=test_metrics.get(key),
                score=percentile_rank(
                    test_metrics.get(key),
                    [value for _, value in distribution],
                    definition.lower_is_better,
                ),
                rank=rank,
                total=total,
                rank_display=format_rank(rank, total),
                distribution=sorted_distribution(distribution, definition.lower_is_better),
            )
        )

    return BenchmarkTestReport(
        ticker=group.ticker,
        slot=group.slot,
        benchmark=group.benchmark or "",
        peers=group.members,
        scored_tickers=list(all_metrics),
        metrics=test_metrics,
        rankings=rankings,
        missing_reference=missing_reference,
        missing_prices=missing_prices,
        incomplete_metrics=incomplete,
    )


async def score_holdings_universe(
    today: Optional[date] = None,
    sleep: SleepFn = asyncio.sleep,
) -> list[StockScore]:
    """Score every current holding against the others, weighted by the configured profile."""
    _, holdings = await _load_latest_holdings()
    if not holdings:
        raise NotFoundError(NO_HOLDINGS_MESSAGE)

    tickers = [h.ticker.upper() for h in deduplicate_by_ticker(holdings) if _is_scorable(h.ticker)]
    rows = await reference_repo.get_metrics_by_tickers(tickers)
    records = {record.ticker: record for record in map(MetricsRecord.from_mapping, rows)}

    histories = await fetch_historical_prices_in_batches(
        [t for t in tickers if t in records], today=today, sleep=sleep
    )
    all_metrics = {
        ticker: extract_individual_metrics(records[ticker], histories.get(ticker))
        for ticker in tickers
        if ticker in records
    }

    profile = parse_score_weightings(
        await reference_repo.get_score_weightings(settings.scoring_profile),
        settings.scoring_profile,
    )
    scored = score_universe(all_metrics, profile)
    scored.sort(key=lambda s: s.total_score if s.total_score is not None else -1.0, reverse=True)
    return scored
