"""Metric extraction: raw reference records + price history -> typed metrics.

Every metric degrades to None independently; nothing here raises on bad
input. Scoring treats None as "excluded from ranking", never as zero.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any

from .performance import calculate_return


# Spreadsheet error strings and sentinels that mean "no value"
NULL_PLACEHOLDERS = frozenset({
    "",
    "-",
    "#N/A",
    "#N/A N/A",
    "N/A",
    "#VALUE!",
    "#DIV/0!",
    "NaN",
    "nan",
})


def parse_number(value: Any) -> float | None:
    """Coerce a raw cell to float; placeholders and junk become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text in NULL_PLACEHOLDERS:
            return None
        try:
            number = float(text.replace(",", ""))
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _ratio(numerator: float | None, denominator: float | None) -> float | None:
    # Falsy operands (None or 0) mean the ratio is undefined
    if not numerator or not denominator:
        return None
    return numerator / denominator


# =============================================================================
# Input records
# =============================================================================


@dataclass(frozen=True)
class MetricsRecord:
    """Reference snapshot for one ticker; values are raw (possibly text)."""

    ticker: str
    pe_ntm: Any = None
    ev_ebitda_ntm: Any = None
    ev_sales_ntm: Any = None
    price: Any = None
    volatility_2m: Any = None
    beta_3y: Any = None
    week_52_high: Any = None
    consensus_price_target: Any = None
    eps_ntm: Any = None
    eps_ntm_90d_ago: Any = None
    sales_ntm: Any = None
    sales_ntm_90d_ago: Any = None
    eps_surprise: Any = None
    sales_surprise: Any = None
    roic_1y: Any = None
    roic_3y: Any = None
    gross_profit_ltm: Any = None
    total_assets: Any = None
    accruals_pct: Any = None
    fcf: Any = None
    ebitda_ltm: Any = None
    sales_ltm: Any = None
    net_debt: Any = None

    @classmethod
    def from_mapping(cls, row: dict[str, Any]) -> MetricsRecord:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in row.items() if k in known}
        values["ticker"] = str(row.get("ticker", "")).strip().upper()
        return cls(**values)


@dataclass(frozen=True)
class HistoricalPrices:
    """Price points needed for momentum/risk metrics."""

    current_price: float | None = None
    price_30d_ago: float | None = None
    price_90d_ago: float | None = None
    price_365d_ago: float | None = None
    max_drawdown: float | None = None


# =============================================================================
# Output metrics and their catalogue
# =============================================================================


class MetricCategory(str, Enum):
    VALUE = "VALUE"
    MOMENTUM = "MOMENTUM"
    QUALITY = "QUALITY"
    RISK = "RISK"


@dataclass
class IndividualMetrics:
    """Typed metrics for one ticker. Returns are in percent."""

    # VALUE
    pe_ratio: float | None = None
    ev_ebitda: float | None = None
    ev_sales: float | None = None
    target_price_upside: float | None = None

    # MOMENTUM
    return_12m_ex_1m: float | None = None
    return_3m: float | None = None
    pct_52_week_high: float | None = None
    eps_surprise: float | None = None
    rev_surprise: float | None = None
    ntm_eps_change: float | None = None
    ntm_rev_change: float | None = None

    # QUALITY
    roic_ttm: float | None = None
    gross_profitability: float | None = None
    accruals: float | None = None
    fcf_to_assets: float | None = None
    roic_3yr: float | None = None
    ebitda_margin: float | None = None

    # RISK
    beta_3yr: float | None = None
    volatility_60d: float | None = None
    max_drawdown: float | None = None
    financial_leverage: float | None = None

    def get(self, key: str) -> float | None:
        return getattr(self, key)

    def to_dict(self) -> dict[str, float | None]:
        return asdict(self)


@dataclass(frozen=True)
class MetricDefinition:
    """How a metric is ranked and which score_weightings row weights it."""

    key: str
    label: str
    category: MetricCategory
    lower_is_better: bool
    weight_name: str


METRIC_DEFINITIONS: tuple[MetricDefinition, ...] = (
    MetricDefinition("pe_ratio", "P/E NTM", MetricCategory.VALUE, True, "P/E"),
    MetricDefinition("ev_ebitda", "EV/EBITDA NTM", MetricCategory.VALUE, True, "EV/EBITDA"),
    MetricDefinition("ev_sales", "EV/Sales NTM", MetricCategory.VALUE, True, "EV/Sales"),
    MetricDefinition("target_price_upside", "Target Price Upside", MetricCategory.VALUE, False, "TGT PRICE"),
    MetricDefinition("return_12m_ex_1m", "12M Return ex 1M", MetricCategory.MOMENTUM, False, "12M Return ex 1M"),
    MetricDefinition("return_3m", "3M Return", MetricCategory.MOMENTUM, False, "3M Return"),
    MetricDefinition("pct_52_week_high", "52-Week High %", MetricCategory.MOMENTUM, False, "52-Week High %"),
    MetricDefinition("eps_surprise", "EPS Surprise", MetricCategory.MOMENTUM, False, "EPS Surprise"),
    MetricDefinition("rev_surprise", "Revenue Surprise", MetricCategory.MOMENTUM, False, "Rev Surprise"),
    MetricDefinition("ntm_eps_change", "NTM EPS Change", MetricCategory.MOMENTUM, False, "NTM EPS Change"),
    MetricDefinition("ntm_rev_change", "NTM Revenue Change", MetricCategory.MOMENTUM, False, "NTM Rev Change"),
    MetricDefinition("roic_ttm", "ROIC TTM", MetricCategory.QUALITY, False, "ROIC TTM"),
    MetricDefinition("gross_profitability", "Gross Profitability", MetricCategory.QUALITY, False, "Gross Profitability"),
    MetricDefinition("accruals", "Accruals", MetricCategory.QUALITY, True, "Accruals"),
    MetricDefinition("fcf_to_assets", "FCF / Assets", MetricCategory.QUALITY, False, "FCF"),
    MetricDefinition("roic_3yr", "ROIC 3-Yr", MetricCategory.QUALITY, False, "ROIC 3-Yr"),
    MetricDefinition("ebitda_margin", "EBITDA Margin", MetricCategory.QUALITY, False, "EBITDA Margin"),
    MetricDefinition("beta_3yr", "Beta 3-Yr", MetricCategory.RISK, True, "Beta 3-Yr"),
    MetricDefinition("volatility_60d", "60-Day Volatility", MetricCategory.RISK, True, "60-Day Volatility"),
    MetricDefinition("max_drawdown", "Max Drawdown", MetricCategory.RISK, True, "Max Drawdown"),
    MetricDefinition("financial_leverage", "Financial Leverage", MetricCategory.RISK, True, "Financial Leverage"),
)

METRICS_BY_KEY: dict[str, MetricDefinition] = {m.key: m for m in METRIC_DEFINITIONS}

# Metrics reported by the benchmark test report
REPORT_METRIC_KEYS: tuple[str, ...] = (
    "pe_ratio",
    "ev_ebitda",
    "ev_sales",
    "return_3m",
    "beta_3yr",
    "eps_surprise",
    "rev_surprise",
    "ntm_eps_change",
    "ntm_rev_change",
    "roic_ttm",
    "gross_profitability",
    "accruals",
)

# A report row is incomplete when all of these are missing
VALUATION_METRIC_KEYS: tuple[str, ...] = ("pe_ratio", "ev_ebitda", "ev_sales")


# =============================================================================
# Extraction
# =============================================================================


def _period_return(current: float | None, reference: float | None) -> float | None:
    if current is None or not reference:
        return None
    return calculate_return(current, reference)


def _percent_to_fraction(value: float | None) -> float | None:
    return value / 100 if value is not None else None


def extract_individual_metrics(
    record: MetricsRecord,
    historical_prices: HistoricalPrices | None = None,
) -> IndividualMetrics:
    """Derive typed metrics from a reference record and optional price history.

    Callers skip tickers without a record; missing history only nulls the
    price-derived metrics.
    """
    history = historical_prices or HistoricalPrices()

    price = parse_number(record.price)
    total_assets = parse_number(record.total_assets)
    ebitda = parse_number(record.ebitda_ltm)

    # max_drawdown from history is a fraction (e.g. -0.23); store as percent
    max_drawdown = history.max_drawdown * 100 if history.max_drawdown is not None else None

    return IndividualMetrics(
        pe_ratio=parse_number(record.pe_ntm),
        ev_ebitda=parse_number(record.ev_ebitda_ntm),
        ev_sales=parse_number(record.ev_sales_ntm),
        target_price_upside=_ratio(parse_number(record.consensus_price_target), price),
        return_12m_ex_1m=_period_return(history.price_30d_ago, history.price_365d_ago),
        return_3m=_period_return(history.current_price, history.price_90d_ago),
        pct_52_week_high=_ratio(price, parse_number(record.week_52_high)),
        # Surprises arrive as percentages (4.1 == 4.1%)
        eps_surprise=_percent_to_fraction(parse_number(record.eps_surprise)),
        rev_surprise=_percent_to_fraction(parse_number(record.sales_surprise)),
        ntm_eps_change=_ratio(parse_number(record.eps_ntm), parse_number(record.eps_ntm_90d_ago)),
        ntm_rev_change=_ratio(parse_number(record.sales_ntm), parse_number(record.sales_ntm_90d_ago)),
        roic_ttm=parse_number(record.roic_1y),
        gross_profitability=_ratio(parse_number(record.gross_profit_ltm), total_assets),
        accruals=parse_number(record.accruals_pct),
        fcf_to_assets=_ratio(parse_number(record.fcf), total_assets),
        roic_3yr=parse_number(record.roic_3y),
        ebitda_margin=_ratio(ebitda, parse_number(record.sales_ltm)),
        beta_3yr=parse_number(record.beta_3y),
        volatility_60d=parse_number(record.volatility_2m),
        max_drawdown=max_drawdown,
        financial_leverage=_ratio(parse_number(record.net_debt), ebitda),
    )
