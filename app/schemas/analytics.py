"""Portfolio analytics Pydantic schemas for API responses."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


# =============================================================================
# Snapshots and risk
# =============================================================================


class SnapshotResponse(BaseModel):
    """Result of a NAV snapshot capture."""

    success: bool
    snapshot_date: date
    nav: float
    total_cash: float
    total_equity: float
    holdings_count: int
    is_update: bool
    message: str | None = None


class SnapshotStatsResponse(BaseModel):
    total_snapshots: int = 0
    oldest_date: date | None = None
    newest_date: date | None = None
    latest_nav: float | None = None
    last_updated: datetime | None = None
    last_snapshot_date: date | None = None


class RiskMetricsResponse(BaseModel):
    """Risk metrics from daily NAV snapshots; null until enough history exists."""

    sharpe_ratio: float | None = None
    annualized_volatility: float | None = Field(default=None, description="Percent")
    var_95: float | None = Field(default=None, description="One-day 95% VaR, percent")
    max_drawdown: float | None = Field(default=None, description="Percent, <= 0")
    days_of_data: int
    requires_days: int


# =============================================================================
# Exposure
# =============================================================================


class IndexShortTotalsResponse(BaseModel):
    qqq: float = 0.0
    spy: float = 0.0
    dow: float = 0.0
    soxx: float = 0.0
    arkk: float = 0.0


class ShortBreakdownResponse(IndexShortTotalsResponse):
    total: float = 0.0


class ExposureRowResponse(BaseModel):
    ticker: str
    market_value: float
    weight: float
    is_cash: bool
    breakdown: ShortBreakdownResponse
    net_weight: float
    in_index: float
    not_in_index: float
    benchmark: str | None = None
    gics_sector: str | None = None


class SectorExposureResponse(BaseModel):
    benchmark: str
    gics_sector: str
    current_weight: float
    net_weight: float
    in_index: float
    not_in_index: float
    tickers: list[str] = Field(default_factory=list)


class ExposureSummary(BaseModel):
    long: float
    short: float
    net_exposure: float


class CompositionSummary(BaseModel):
    core: float
    non_core: float


class BiasSummary(BaseModel):
    risk_on: float
    risk_off: float


class ExposureResponse(BaseModel):
    """Long/short/net exposure with per-holding and per-benchmark detail (weights in %)."""

    holdings: list[ExposureRowResponse]
    sectors: list[SectorExposureResponse]
    index_short_totals: IndexShortTotalsResponse
    exposure: ExposureSummary
    cash_weight: float
    composition: CompositionSummary
    bias: BiasSummary
    total_market_value: float


# =============================================================================
# Performance
# =============================================================================


class HoldingPerformanceResponse(BaseModel):
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


class PortfolioTotalsResponse(BaseModel):
    total_contribution_1d: float = 0.0
    total_contribution_5d: float = 0.0
    total_contribution_30d: float = 0.0
    total_contribution_90d: float = 0.0
    total_contribution_1yr: float = 0.0
    total_contribution_qtd: float = 0.0
    total_contribution_ytd: float = 0.0


class PerformanceResponse(BaseModel):
    as_of: date
    holdings_date: date
    nav: float
    holdings: list[HoldingPerformanceResponse]
    benchmarks: list[HoldingPerformanceResponse]
    totals: PortfolioTotalsResponse


# =============================================================================
# Scoring
# =============================================================================


class PeerGroupResponse(BaseModel):
    ticker: str
    slot: str
    benchmark: str | None = None
    members: list[str] = Field(default_factory=list)
    reason: str | None = None


class DistributionPoint(BaseModel):
    ticker: str
    value: float


class MetricRankingResponse(BaseModel):
    key: str
    label: str
    category: str
    lower_is_better: bool
    value: float | None = None
    score: float | None = Field(default=None, description="Percentile 0-100, higher is better")
    rank: int | None = None
    total: int
    rank_display: str = Field(..., examples=["3 of 12", "N/A"])
    distribution: list[DistributionPoint] = Field(default_factory=list)


class CoverageResponse(BaseModel):
    peer_count: int
    scored_count: int
    missing_reference_count: int
    missing_prices_count: int
    incomplete_count: int


class BenchmarkTestResponse(BaseModel):
    """A ticker ranked against its benchmark peers."""

    ticker: str
    slot: str
    benchmark: str
    peers: list[str]
    coverage: CoverageResponse
    metrics: dict[str, float | None]
    rankings: list[MetricRankingResponse]
    missing_reference: list[str] = Field(default_factory=list)
    missing_prices: list[str] = Field(default_factory=list)
    incomplete_metrics: list[str] = Field(default_factory=list)


class CompositeScoresResponse(BaseModel):
    value_score: float | None = None
    momentum_score: float | None = None
    quality_score: float | None = None
    risk_score: float | None = None


class StockScoreResponse(BaseModel):
    ticker: str
    metrics: dict[str, float | None]
    scores: dict[str, float | None]
    composites: CompositeScoresResponse | None = None
    total_score: float | None = None
