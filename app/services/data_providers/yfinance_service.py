"""
YFinance market data provider - quotes and historical price lookups.

All yfinance calls go through this module so that:
1. Rate limiting is enforced at a single entry point
2. Blocking calls run in one shared ThreadPoolExecutor
3. Repeated lookups for the same symbol/date hit the L1 memory cache

Historical lookups are anchored on an explicit `as_of` date so callers
(and tests) control the reporting calendar.

Usage:
    from app.services.data_providers import get_yfinance_service

    service = get_yfinance_service()

    quote = await service.get_quote("AAPL")
    price = await service.get_price_n_days_ago("AAPL", 5, as_of=today)
    history = await service.get_historical_prices("AAPL", as_of=today)
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from app.core.config import settings
from app.core.logging import get_logger
from app.core.rate_limiter import get_yfinance_limiter
from app.portfolio.dates import end_of_last_quarter, end_of_last_year


logger = get_logger("data_providers.yfinance")

# Single shared executor for ALL yfinance calls
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="yfinance")

# In-memory cache (L1) - short TTL
_MEMORY_CACHE: dict[str, tuple[float, Any]] = {}

# Close fetches in progress; concurrent lookups for one key await the same fetch
_IN_FLIGHT: dict[str, asyncio.Future] = {}
MEMORY_CACHE_TTL = 60  # 1 minute

# Calendar days of history fetched per lookup; covers 252 trading days + 365 calendar days
HISTORY_LOOKBACK_DAYS = 800


def _safe_float(value: Any) -> Optional[float]:
    """Safely convert value to float."""
    if value is None:
        return None
    try:
        f = float(value)
        if f != f or f == float('inf') or f == float('-inf'):
            return None
        return f
    except (ValueError, TypeError):
        return None


# =============================================================================
# Close-series helpers (pure)
# =============================================================================


def _positive(value: Any) -> Optional[float]:
    number = _safe_float(value)
    return number if number else None


def price_n_trading_days_ago(closes: pd.Series, trading_days: int) -> Optional[float]:
    """Close `trading_days` sessions before the latest one.

    With too little history the earliest available close is used.
    """
    valid = closes.dropna()
    if valid.empty:
        return None
    index = max(len(valid) - 1 - trading_days, 0)
    return _positive(valid.iloc[index])


def price_nearest_date(closes: pd.Series, target: date) -> Optional[float]:
    """Close of the session closest to `target` (either side)."""
    valid = closes.dropna()
    if valid.empty:
        return None
    distances = [abs((ts.date() - target).days) for ts in valid.index]
    nearest = distances.index(min(distances))
    return _positive(valid.iloc[nearest])


def price_on_or_before(closes: pd.Series, target: date) -> Optional[float]:
    """Last close on or before `target`."""
    valid = closes.dropna()
    eligible = valid[[ts.date() <= target for ts in valid.index]]
    if eligible.empty:
        return None
    return _positive(eligible.iloc[-1])


def max_drawdown_from_closes(closes: pd.Series, trading_days: int = 252) -> Optional[float]:
    """Most negative peak-to-trough decline over the last sessions, as a fraction."""
    prices = closes.dropna().tail(trading_days)
    if len(prices) < 2:
        return None
    running_peak = prices.cummax()
    drawdown = float((prices / running_peak - 1.0).min())
    return min(drawdown, 0.0)


class YFinanceService:
    """
    Market data provider backed by yfinance.

    Features:
    - Memory cache (60s) per symbol and anchor date
    - Central rate limiting via get_yfinance_limiter()
    - Fail-soft: provider errors are logged and surface as None
    """

    def __init__(self):
        self._limiter = get_yfinance_limiter()

    # =========================================================================
    # Memory Cache Helpers (L1)
    # =========================================================================

    def _get_from_memory(self, key: str) -> Optional[Any]:
        """Get from L1 memory cache if not expired."""
        if key in _MEMORY_CACHE:
            ts, data = _MEMORY_CACHE[key]
            if time.time() - ts < MEMORY_CACHE_TTL:
                return data
            del _MEMORY_CACHE[key]
        return None

    def _set_in_memory(self, key: str, data: Any) -> None:
        """Set in L1 memory cache."""
        _MEMORY_CACHE[key] = (time.time(), data)
        # Prune old entries periodically
        if len(_MEMORY_CACHE) > 500:
            now = time.time()
            to_delete = [k for k, (ts, _) in _MEMORY_CACHE.items() if now - ts > MEMORY_CACHE_TTL]
            for k in to_delete:
                del _MEMORY_CACHE[k]

    # =========================================================================
    # Core yfinance API Calls (Sync, run in thread pool)
    # =========================================================================

    def _fetch_quote_sync(self, symbol: str) -> Optional[dict[str, Any]]:
        """Fetch latest price from yfinance (blocking)."""
        if not self._limiter.acquire_sync(timeout=settings.external_api_timeout):
            logger.warning(f"Rate limit timeout for quote: {symbol}")
            return None

        try:
            fast_info = yf.Ticker(symbol).fast_info
            current_price = _safe_float(fast_info.last_price)
            previous_close = _safe_float(fast_info.previous_close)
        except Exception as e:
            logger.warning(f"yfinance quote failed for {symbol}: {e}")
            return None

        if current_price is None:
            return None

        change = current_price - previous_close if previous_close else None
        return {
            "symbol": symbol,
            "current_price": current_price,
            "previous_close": previous_close,
            "change": change,
            "change_percent": (change / previous_close * 100) if change is not None else None,
        }

    def _fetch_closes_sync(self, symbol: str, start: date, end: date) -> Optional[pd.Series]:
        """Fetch daily closes from yfinance (blocking); `end` is exclusive."""
        if not self._limiter.acquire_sync(timeout=settings.external_api_timeout):
            logger.warning(f"Rate limit timeout for price history: {symbol}")
            return None

        try:
            df = yf.download(
                symbol,
                start=start.isoformat(),
                end=end.isoformat(),
                interval="1d",
                auto_adjust=True,
                progress=False,
                timeout=30,
            )

            if df is None or df.empty:
                return None

            # Handle MultiIndex columns (newer yfinance)
            if isinstance(df.columns, pd.MultiIndex):
                ticker_upper = symbol.upper()
                if ticker_upper in df.columns.get_level_values(1):
                    df = df.xs(ticker_upper, axis=1, level=1)
                else:
                    df.columns = df.columns.droplevel(1)

            if "Close" not in df.columns:
                return None
            return df["Close"].dropna()
        except Exception as e:
            logger.warning(f"yfinance price history failed for {symbol}: {e}")
            return None

    # =========================================================================
    # Public API (async)
    # =========================================================================

    async def get_quote(self, ticker: str) -> Optional[dict[str, Any]]:
        """Latest quote: current_price, previous_close, change, change_percent."""
        symbol = ticker.upper()
        cache_key = f"quote:{symbol}"

        cached = self._get_from_memory(cache_key)
        if cached is not None:
            return cached

        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(_executor, self._fetch_quote_sync, symbol)
        if data:
            self._set_in_memory(cache_key, data)
        return data

    async def get_closes(self, ticker: str, as_of: Optional[date] = None) -> Optional[pd.Series]:
        """Daily closes up to and including `as_of` (default today)."""
        symbol = ticker.upper()
        anchor = as_of or date.today()
        cache_key = f"closes:{symbol}:{anchor.isoformat()}"

        cached = self._get_from_memory(cache_key)
        if cached is not None:
            return cached

        pending = _IN_FLIGHT.get(cache_key)
        if pending is not None:
            return await asyncio.shield(pending)

        loop = asyncio.get_event_loop()
        future: asyncio.Future = loop.create_future()
        _IN_FLIGHT[cache_key] = future
        closes: Optional[pd.Series] = None
        try:
            closes = await loop.run_in_executor(
                _executor,
                self._fetch_closes_sync,
                symbol,
                anchor - timedelta(days=HISTORY_LOOKBACK_DAYS),
                anchor + timedelta(days=1),
            )
            if closes is not None and closes.empty:
                closes = None
            if closes is not None:
                self._set_in_memory(cache_key, closes)
        finally:
            # Waiters see None if the owning call failed or was cancelled
            _IN_FLIGHT.pop(cache_key, None)
            if not future.done():
                future.set_result(closes)
        return closes

    async def get_price_n_days_ago(
        self, ticker: str, trading_days: int, as_of: Optional[date] = None
    ) -> Optional[float]:
        closes = await self.get_closes(ticker, as_of)
        if closes is None:
            return None
        return price_n_trading_days_ago(closes, trading_days)

    async def get_price_calendar_days_ago(
        self, ticker: str, calendar_days: int, as_of: Optional[date] = None
    ) -> Optional[float]:
        anchor = as_of or date.today()
        closes = await self.get_closes(ticker, anchor)
        if closes is None:
            return None
        return price_nearest_date(closes, anchor - timedelta(days=calendar_days))

    async def get_price_end_of_last_quarter(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[float]:
        anchor = as_of or date.today()
        closes = await self.get_closes(ticker, anchor)
        if closes is None:
            return None
        return price_on_or_before(closes, end_of_last_quarter(anchor))

    async def get_price_end_of_last_year(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[float]:
        anchor = as_of or date.today()
        closes = await self.get_closes(ticker, anchor)
        if closes is None:
            return None
        return price_on_or_before(closes, end_of_last_year(anchor))

    async def get_max_drawdown(
        self, ticker: str, trading_days: int = 252, as_of: Optional[date] = None
    ) -> Optional[float]:
        closes = await self.get_closes(ticker, as_of)
        if closes is None:
            return None
        return max_drawdown_from_closes(closes, trading_days)

    async def get_historical_prices(
        self, ticker: str, as_of: Optional[date] = None
    ) -> Optional[dict[str, Optional[float]]]:
        """Current price, closes 30/90/365 calendar days back and 1y max drawdown."""
        anchor = as_of or date.today()
        closes = await self.get_closes(ticker, anchor)
        if closes is None:
            return None

        quote = await self.get_quote(ticker)
        current_price = (quote or {}).get("current_price") or _positive(closes.iloc[-1])

        return {
            "current_price": current_price,
            "price_30d_ago": price_nearest_date(closes, anchor - timedelta(days=30)),
            "price_90d_ago": price_nearest_date(closes, anchor - timedelta(days=90)),
            "price_365d_ago": price_nearest_date(closes, anchor - timedelta(days=365)),
            "max_drawdown": max_drawdown_from_closes(closes, 252),
        }


# Singleton instance
_instance: Optional[YFinanceService] = None


def get_yfinance_service() -> YFinanceService:
    """Get singleton YFinanceService instance."""
    global _instance
    if _instance is None:
        _instance = YFinanceService()
    return _instance
