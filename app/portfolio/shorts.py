"""Leverage-adjusted short exposure from inverse ETFs.

Inverse ETF weights are scaled by leverage and grouped by the index they
short. Each stock then absorbs a share of every index total proportional to
its own weight in that index, which gives its effective short.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from app.core.config import settings
from app.core.logging import get_logger


logger = get_logger("portfolio.shorts")


class IndexKey(str, Enum):
    QQQ = "QQQ"
    SPY = "SPY"
    DOW = "DOW"
    SOXX = "SOXX"
    ARKK = "ARKK"

    @property
    def field_name(self) -> str:
        return self.value.lower()


ALLOWED_LEVERAGE = frozenset({1, 2, 3})


@dataclass(frozen=True)
class InverseInstrument:
    ticker: str
    leverage: int
    index: IndexKey


class TickerWeight(Protocol):
    ticker: str
    weight: float


# =============================================================================
# Leverage configuration
# =============================================================================


@dataclass(frozen=True)
class LeverageConfig:
    """Inverse instrument table: ticker -> leverage tier and underlying index."""

    instruments: Mapping[str, InverseInstrument] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for ticker, instrument in self.instruments.items():
            if ticker != ticker.strip().upper():
                raise ValueError(f"Inverse instrument ticker must be upper-case: {ticker!r}")
            if instrument.leverage not in ALLOWED_LEVERAGE:
                raise ValueError(
                    f"Invalid leverage {instrument.leverage} for {ticker}; expected 1, 2 or 3"
                )
            if not isinstance(instrument.index, IndexKey):
                raise ValueError(f"Unknown index {instrument.index!r} for {ticker}")

    @classmethod
    def from_mapping(cls, table: Mapping[str, Mapping[str, Any]]) -> LeverageConfig:
        """Build from {"SQQQ": {"leverage": 3, "index": "QQQ"}, ...}."""
        instruments: dict[str, InverseInstrument] = {}
        for raw_ticker, entry in table.items():
            ticker = raw_ticker.strip().upper()
            index_name = str(entry.get("index", "")).strip().upper()
            try:
                index = IndexKey(index_name)
            except ValueError:
                raise ValueError(f"Unknown index {index_name!r} for {ticker}") from None
            try:
                leverage = int(entry["leverage"])
            except (KeyError, TypeError, ValueError):
                raise ValueError(f"Missing or invalid leverage for {ticker}") from None
            instruments[ticker] = InverseInstrument(ticker=ticker, leverage=leverage, index=index)
        return cls(instruments=instruments)

    def get(self, ticker: str) -> Optional[InverseInstrument]:
        return self.instruments.get(ticker.strip().upper())

    def tickers_for(self, index: IndexKey) -> list[str]:
        return [t for t, inst in self.instruments.items() if inst.index is index]


DEFAULT_INVERSE_INSTRUMENTS: dict[str, dict[str, Any]] = {
    # 3x
    "SQQQ": {"leverage": 3, "index": "QQQ"},
    "SPXU": {"leverage": 3, "index": "SPY"},
    "SDOW": {"leverage": 3, "index": "DOW"},
    "SOXS": {"leverage": 3, "index": "SOXX"},
    # 2x
    "QID": {"leverage": 2, "index": "QQQ"},
    "SDS": {"leverage": 2, "index": "SPY"},
    "DXD": {"leverage": 2, "index": "DOW"},
    # 1x
    "PSQ": {"leverage": 1, "index": "QQQ"},
    "SH": {"leverage": 1, "index": "SPY"},
    "DOG": {"leverage": 1, "index": "DOW"},
    "SARK": {"leverage": 1, "index": "ARKK"},
}

DEFAULT_LEVERAGE_CONFIG = LeverageConfig.from_mapping(DEFAULT_INVERSE_INSTRUMENTS)


def get_leverage_config() -> LeverageConfig:
    """Configured leverage table; settings override replaces the default."""
    if settings.inverse_instruments:
        return LeverageConfig.from_mapping(settings.inverse_instruments)
    return DEFAULT_LEVERAGE_CONFIG


# =============================================================================
# Value types
# =============================================================================


@dataclass
class IndexShortTotals:
    qqq: float = 0.0
    spy: float = 0.0
    dow: float = 0.0
    soxx: float = 0.0
    arkk: float = 0.0

    def get(self, index: IndexKey) -> float:
        return getattr(self, index.field_name)

    def add(self, index: IndexKey, amount: float) -> None:
        setattr(self, index.field_name, self.get(index) + amount)

    @property
    def total(self) -> float:
        return self.qqq + self.spy + self.dow + self.soxx + self.arkk

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class StockIndexWeights:
    """A stock's weight (0-100) inside each index; None when not a member."""

    qqq: Optional[float] = None
    spy: Optional[float] = None
    dow: Optional[float] = None
    soxx: Optional[float] = None
    smh: Optional[float] = None
    arkk: Optional[float] = None

    @classmethod
    def from_mapping(cls, row: Optional[Mapping[str, Any]]) -> StockIndexWeights:
        if not row:
            return cls()

        def _weight(key: str) -> Optional[float]:
            value = row.get(key)
            return float(value) if value is not None else None

        return cls(**{name: _weight(name) for name in ("qqq", "spy", "dow", "soxx", "smh", "arkk")})

    def semiconductor_weight(self, smh_fallback: bool = True) -> Optional[float]:
        """SOXX weight, or SMH when SOXX is missing and the fallback is on."""
        if self.soxx is not None or not smh_fallback:
            return self.soxx
        return self.smh

    def weight_for(self, index: IndexKey, smh_fallback: bool = True) -> Optional[float]:
        if index is IndexKey.SOXX:
            return self.semiconductor_weight(smh_fallback)
        return getattr(self, index.field_name)


@dataclass
class ShortBreakdown:
    qqq: float = 0.0
    spy: float = 0.0
    dow: float = 0.0
    soxx: float = 0.0
    arkk: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


# =============================================================================
# Calculations
# =============================================================================


def _config(config: Optional[LeverageConfig]) -> LeverageConfig:
    return config if config is not None else get_leverage_config()


def calculate_shorts(
    ticker: str,
    holding_weight: float,
    config: Optional[LeverageConfig] = None,
) -> Optional[float]:
    """Leveraged short for an inverse ETF (weight * leverage); None otherwise."""
    instrument = _config(config).get(ticker)
    if instrument is None:
        return None
    return holding_weight * instrument.leverage


def is_inverse_etf(ticker: str, config: Optional[LeverageConfig] = None) -> bool:
    return _config(config).get(ticker) is not None


def get_leverage_multiplier(ticker: str, config: Optional[LeverageConfig] = None) -> Optional[int]:
    instrument = _config(config).get(ticker)
    return instrument.leverage if instrument else None


def calculate_effective_hedge(
    holdings: Iterable[TickerWeight],
    config: Optional[LeverageConfig] = None,
) -> float:
    """Sum of leveraged shorts across the portfolio."""
    config = _config(config)
    total = 0.0
    for holding in holdings:
        short = calculate_shorts(holding.ticker, holding.weight, config)
        if short is not None:
            total += short
    return total


def calculate_index_short_totals(
    holdings: Iterable[TickerWeight],
    config: Optional[LeverageConfig] = None,
) -> IndexShortTotals:
    """Leveraged shorts grouped by the index each instrument shorts."""
    config = _config(config)
    totals = IndexShortTotals()
    for holding in holdings:
        instrument = config.get(holding.ticker)
        if instrument is None:
            continue
        totals.add(instrument.index, holding.weight * instrument.leverage)
    return totals


def calculate_stock_effective_short_breakdown(
    index_totals: IndexShortTotals,
    stock_weights: StockIndexWeights,
    semiconductor_fallback: Optional[bool] = None,
) -> ShortBreakdown:
    """Per-index share of the portfolio's shorts attributed to one stock."""
    if semiconductor_fallback is None:
        semiconductor_fallback = settings.semiconductor_smh_fallback

    breakdown = ShortBreakdown()
    for index in IndexKey:
        weight = stock_weights.weight_for(index, semiconductor_fallback)
        if weight is not None:
            setattr(breakdown, index.field_name, index_totals.get(index) * (weight / 100))

    breakdown.total = breakdown.qqq + breakdown.spy + breakdown.dow + breakdown.soxx + breakdown.arkk
    return breakdown


def calculate_stock_effective_short(
    index_totals: IndexShortTotals,
    stock_weights: StockIndexWeights,
    semiconductor_fallback: Optional[bool] = None,
) -> float:
    return calculate_stock_effective_short_breakdown(
        index_totals, stock_weights, semiconductor_fallback
    ).total


def calculate_inverse_etf_contributions(
    holdings: Iterable[TickerWeight],
    stock_weights: StockIndexWeights,
    config: Optional[LeverageConfig] = None,
    semiconductor_fallback: Optional[bool] = None,
) -> dict[str, float]:
    """Each configured inverse ETF's contribution to one stock's short.

    Keys are every configured instrument ticker; instruments not held are 0.
    """
    config = _config(config)
    if semiconductor_fallback is None:
        semiconductor_fallback = settings.semiconductor_smh_fallback

    contributions = {ticker: 0.0 for ticker in config.instruments}
    for holding in holdings:
        instrument = config.get(holding.ticker)
        if instrument is None:
            continue
        factor = (stock_weights.weight_for(instrument.index, semiconductor_fallback) or 0) / 100
        contributions[instrument.ticker] += holding.weight * instrument.leverage * factor
    return contributions


def calculate_net_exposure(holding_weight: float, breakdown: ShortBreakdown) -> float:
    return holding_weight - breakdown.total
