"""Portfolio exposure summary: long/short/net, sectors, composition and bias."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from app.core.logging import get_logger

from .holdings import CashPolicy, Holding, deduplicate_by_ticker, exposure_cash_policy
from .shorts import (
    IndexShortTotals,
    LeverageConfig,
    ShortBreakdown,
    StockIndexWeights,
    calculate_index_short_totals,
    calculate_net_exposure,
    calculate_stock_effective_short_breakdown,
    get_leverage_config,
)


logger = get_logger("portfolio.exposure")

UNKNOWN = "Unknown"


def calculate_index_exposure(
    holding_weight: float,
    index_weight: Optional[float],
) -> tuple[float, float]:
    """Split a holding weight into (in-index, not-in-index) parts."""
    if not index_weight:
        return 0.0, holding_weight
    if holding_weight <= index_weight:
        return holding_weight, 0.0
    return index_weight, holding_weight - index_weight


def _label(value: Any) -> str:
    return str(value or "").strip().upper()


@dataclass
class ExposureRow:
    ticker: str
    market_value: float
    weight: float
    is_cash: bool
    breakdown: ShortBreakdown
    net_weight: float
    in_index: float
    not_in_index: float
    benchmark: Optional[str] = None
    gics_sector: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "market_value": self.market_value,
            "weight": self.weight,
            "is_cash": self.is_cash,
            "breakdown": self.breakdown.to_dict(),
            "net_weight": self.net_weight,
            "in_index": self.in_index,
            "not_in_index": self.not_in_index,
            "benchmark": self.benchmark,
            "gics_sector": self.gics_sector,
        }


@dataclass
class SectorExposure:
    """Non-cash holdings grouped by primary benchmark."""

    benchmark: str
    gics_sector: str
    current_weight: float = 0.0
    net_weight: float = 0.0
    in_index: float = 0.0
    not_in_index: float = 0.0
    tickers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "benchmark": self.benchmark,
            "gics_sector": self.gics_sector,
            "current_weight": self.current_weight,
            "net_weight": self.net_weight,
            "in_index": self.in_index,
            "not_in_index": self.not_in_index,
            "tickers": list(self.tickers),
        }


@dataclass
class PortfolioExposure:
    holdings: list[ExposureRow]
    sectors: list[SectorExposure]
    index_short_totals: IndexShortTotals
    long: float
    short: float
    net_exposure: float
    cash_weight: float
    core: float
    non_core: float
    risk_on: float
    risk_off: float
    total_market_value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "holdings": [row.to_dict() for row in self.holdings],
            "sectors": [sector.to_dict() for sector in self.sectors],
            "index_short_totals": self.index_short_totals.to_dict(),
            "exposure": {
                "long": self.long,
                "short": self.short,
                "net_exposure": self.net_exposure,
            },
            "cash_weight": self.cash_weight,
            "composition": {"core": self.core, "non_core": self.non_core},
            "bias": {"risk_on": self.risk_on, "risk_off": self.risk_off},
            "total_market_value": self.total_market_value,
        }


@dataclass(frozen=True)
class _Weighted:
    ticker: str
    weight: float


def calculate_portfolio_exposure(
    holdings: Sequence[Holding],
    index_weights: Mapping[str, StockIndexWeights],
    assignments: Mapping[str, Mapping[str, Any]],
    config: Optional[LeverageConfig] = None,
    cash_policy: Optional[CashPolicy] = None,
    semiconductor_fallback: Optional[bool] = None,
) -> PortfolioExposure:
    """Net inverse ETF shorts onto holdings and summarize the portfolio.

    `index_weights` and `assignments` are keyed by upper-case ticker; missing
    entries mean "no index membership" and "unclassified".
    """
    config = config if config is not None else get_leverage_config()
    cash_policy = cash_policy or exposure_cash_policy()

    unique = deduplicate_by_ticker(holdings)
    total_market_value = sum(h.market_value or 0.0 for h in unique)

    weighted = [
        _Weighted(
            ticker=h.ticker.upper(),
            weight=((h.market_value or 0.0) / total_market_value * 100) if total_market_value else 0.0,
        )
        for h in unique
    ]
    totals = calculate_index_short_totals(weighted, config)

    rows: list[ExposureRow] = []
    sectors: dict[str, SectorExposure] = {}
    long_weight = cash_weight = 0.0
    core = non_core = risk_on = risk_off = 0.0

    for holding, position in zip(unique, weighted):
        ticker = position.ticker
        weights = index_weights.get(ticker) or StockIndexWeights()
        assignment = assignments.get(ticker) or {}

        breakdown = calculate_stock_effective_short_breakdown(totals, weights, semiconductor_fallback)
        net_weight = calculate_net_exposure(position.weight, breakdown)
        in_index, not_in_index = calculate_index_exposure(position.weight, weights.qqq)
        is_cash = cash_policy.is_cash(ticker)

        row = ExposureRow(
            ticker=ticker,
            market_value=holding.market_value or 0.0,
            weight=position.weight,
            is_cash=is_cash,
            breakdown=breakdown,
            net_weight=net_weight,
            in_index=in_index,
            not_in_index=not_in_index,
            benchmark=assignment.get("benchmark1"),
            gics_sector=assignment.get("gics_sector"),
        )
        rows.append(row)

        if is_cash:
            cash_weight += position.weight
        else:
            long_weight += position.weight
            benchmark = row.benchmark or UNKNOWN
            sector = sectors.setdefault(
                benchmark,
                SectorExposure(benchmark=benchmark, gics_sector=row.gics_sector or UNKNOWN),
            )
            sector.current_weight += position.weight
            sector.net_weight += net_weight
            sector.in_index += in_index
            sector.not_in_index += not_in_index
            sector.tickers.append(ticker)

        core_flag = _label(assignment.get("core_flag"))
        if core_flag == "CORE":
            core += position.weight
        elif core_flag == "NON-CORE":
            non_core += position.weight

        bias = _label(assignment.get("risk_on_off"))
        if bias == "RISK ON":
            risk_on += position.weight
        elif bias == "RISK OFF":
            risk_off += position.weight

    short_weight = totals.total
    exposure = PortfolioExposure(
        holdings=rows,
        sectors=sorted(sectors.values(), key=lambda s: s.current_weight, reverse=True),
        index_short_totals=totals,
        long=long_weight,
        short=short_weight,
        net_exposure=long_weight - short_weight,
        cash_weight=cash_weight,
        core=core,
        non_core=non_core,
        risk_on=risk_on,
        risk_off=risk_off,
        total_market_value=total_market_value,
    )

    logger.info(
        f"Exposure - Long: {long_weight:.2f}%, Short: {short_weight:.2f}%, "
        f"Net: {exposure.net_exposure:.2f}%"
    )
    return exposure
