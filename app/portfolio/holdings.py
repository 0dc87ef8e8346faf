"""Holdings helpers shared by snapshot, performance and exposure calculations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from app.core.logging import get_logger


logger = get_logger("portfolio.holdings")


# Tickers never sent to the market data provider
EXCLUDED_TICKER_SUBSTRINGS = ("CASH", "MONEY", "&")
EXCLUDED_TICKERS = frozenset({"FGXXX"})
MAX_TICKER_LENGTH = 5


@dataclass(frozen=True)
class Holding:
    """One position as read from the holdings store."""

    ticker: str
    shares: float
    close_price: float | None = None
    current_price: float | None = None
    market_value: float | None = None

    @classmethod
    def from_mapping(cls, row: dict[str, Any]) -> Holding:
        """Build from a repository dict (accepts `ticker` or `stock_ticker`)."""
        ticker = row.get("ticker") or row.get("stock_ticker") or ""
        return cls(
            ticker=str(ticker).strip().upper(),
            shares=_to_float(row.get("shares")) or 0.0,
            close_price=_to_float(row.get("close_price")),
            current_price=_to_float(row.get("current_price")),
            market_value=_to_float(row.get("market_value")),
        )

    @property
    def stored_price(self) -> float | None:
        """Last price known to the store: close first, then current."""
        return self.close_price or self.current_price


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


T = TypeVar("T")


def _ticker_of(item: Any) -> str:
    if isinstance(item, dict):
        ticker = item.get("ticker") or item.get("stock_ticker") or ""
    else:
        ticker = item.ticker
    return str(ticker).strip().upper()


def deduplicate_by_ticker(holdings: Iterable[T]) -> list[T]:
    """Keep the first occurrence of each ticker, preserving input order.

    Works with Holding objects and with plain dicts carrying `ticker`
    or `stock_ticker`.
    """
    seen: set[str] = set()
    unique: list[T] = []
    for holding in holdings:
        ticker = _ticker_of(holding)
        if ticker in seen:
            continue
        seen.add(ticker)
        unique.append(holding)
    return unique


def detect_duplicates(holdings: Iterable[Any]) -> dict[str, int]:
    """Return tickers appearing more than once with their counts."""
    counts: dict[str, int] = {}
    for holding in holdings:
        ticker = _ticker_of(holding)
        counts[ticker] = counts.get(ticker, 0) + 1

    duplicates = {ticker: count for ticker, count in counts.items() if count > 1}
    if duplicates:
        listing = ", ".join(f"{t} ({c}x)" for t, c in duplicates.items())
        logger.warning(f"Duplicate tickers in holdings: {listing}")
    return duplicates


def is_valid_ticker(ticker: str) -> bool:
    """True for symbols worth quoting (not cash lines, sweeps or labels)."""
    if not ticker or len(ticker) > MAX_TICKER_LENGTH:
        return False
    upper = ticker.upper()
    if upper in EXCLUDED_TICKERS:
        return False
    return not any(part in upper for part in EXCLUDED_TICKER_SUBSTRINGS)


def filter_valid_tickers(tickers: Iterable[str]) -> list[str]:
    """Drop non-tradeable placeholder tickers, preserving order."""
    return [ticker for ticker in tickers if is_valid_ticker(ticker)]


@dataclass(frozen=True)
class CashPolicy:
    """Decides which tickers count as cash.

    A ticker is cash when it exactly matches one of `tickers` (case-insensitive)
    or, if `substring` is set, contains it.
    """

    tickers: frozenset[str] = field(default_factory=frozenset)
    substring: str | None = None

    @classmethod
    def from_list(cls, tickers: Sequence[str], substring: str | None = None) -> CashPolicy:
        return cls(
            tickers=frozenset(t.strip().upper() for t in tickers),
            substring=substring.upper() if substring else None,
        )

    def is_cash(self, ticker: str) -> bool:
        upper = ticker.strip().upper()
        if upper in self.tickers:
            return True
        return bool(self.substring) and self.substring in upper


def snapshot_cash_policy() -> CashPolicy:
    """Cash policy used for NAV snapshots (money market funds + '*CASH*')."""
    from app.core.config import settings

    return CashPolicy.from_list(
        settings.snapshot_cash_tickers,
        settings.snapshot_cash_substring or None,
    )


def exposure_cash_policy() -> CashPolicy:
    """Cash policy used for long/short exposure (exact matches only)."""
    from app.core.config import settings

    return CashPolicy.from_list(settings.exposure_cash_tickers)


def calculate_market_value(
    shares: float,
    realtime_price: float | None = None,
    current_price: float | None = None,
    close_price: float | None = None,
    fallback_market_value: float | None = None,
) -> float:
    """Market value using the first usable price in priority order.

    Priority: realtime > current > close; falls back to the stored market
    value (or 0) when no positive price is available.
    """
    price = next((p for p in (realtime_price, current_price, close_price) if p and p > 0), None)
    if price is not None:
        return price * shares
    return fallback_market_value or 0.0
