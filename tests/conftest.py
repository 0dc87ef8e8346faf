"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import gc
import warnings
from datetime import date
from typing import Any, AsyncGenerator, Generator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Configure asyncio
pytest_plugins = ["pytest_asyncio"]


def _force_cleanup():
    """Force cleanup of pending async resources."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ResourceWarning)
        gc.collect()


@pytest.fixture(scope="function", autouse=True)
def cleanup_after_test():
    """Reset module-level singletons so every test starts clean."""
    import app.database.connection as db_conn
    import app.services.data_providers.yfinance_service as yf_service

    async def _close_engine():
        if db_conn._engine is not None:
            await db_conn._engine.dispose()

    def _reset():
        try:
            asyncio.run(_close_engine())
        except Exception:
            pass
        db_conn._engine = None
        db_conn._session_factory = None
        yf_service._instance = None
        yf_service._MEMORY_CACHE.clear()
        yf_service._IN_FLIGHT.clear()

    _reset()
    yield
    _reset()
    _force_cleanup()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from app.api.app import create_api_app

    app = create_api_app()
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    _force_cleanup()


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the FastAPI app."""
    from app.api.app import create_api_app

    app = create_api_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Collaborator fakes
# ============================================================================


@pytest.fixture
def today() -> date:
    """A Wednesday, so no calendar anchor falls on it."""
    return date(2025, 6, 18)


@pytest.fixture
def holdings_rows() -> list[dict[str, Any]]:
    """Latest holdings as returned by the holdings repository."""
    return [
        {"id": 1, "ticker": "AAPL", "shares": 100, "close_price": 190.0, "current_price": 195.0, "market_value": 19_500.0},
        {"id": 2, "ticker": "MSFT", "shares": 50, "close_price": 400.0, "current_price": 410.0, "market_value": 20_500.0},
        {"id": 3, "ticker": "AAPL", "shares": 999, "close_price": 1.0, "current_price": 1.0, "market_value": 999.0},
        {"id": 4, "ticker": "FGXXX", "shares": 10_000, "close_price": 1.0, "current_price": 1.0, "market_value": 10_000.0},
    ]


@pytest.fixture
def holdings_store(holdings_rows) -> AsyncMock:
    store = AsyncMock()
    store.get_latest_holdings_date.return_value = date(2025, 6, 17)
    store.get_holdings.return_value = holdings_rows
    return store


@pytest.fixture
def snapshot_store() -> AsyncMock:
    store = AsyncMock()
    store.get_snapshot.return_value = None
    store.upsert_snapshot.return_value = {}
    store.list_recent_snapshots.return_value = []
    store.list_snapshots.return_value = []
    return store


@pytest.fixture
def market_data() -> AsyncMock:
    """Market data provider with fixed quotes and flat reference prices."""
    provider = AsyncMock()
    quotes = {"AAPL": 200.0, "MSFT": 420.0, "SPY": 500.0, "QQQ": 450.0}

    async def get_quote(ticker):
        price = quotes.get(ticker)
        return {"symbol": ticker, "current_price": price} if price else None

    provider.get_quote.side_effect = get_quote
    provider.get_price_n_days_ago.return_value = 100.0
    provider.get_price_end_of_last_quarter.return_value = 100.0
    provider.get_price_end_of_last_year.return_value = 100.0
    provider.get_historical_prices.return_value = None
    return provider


@pytest.fixture
def reference_store() -> AsyncMock:
    store = AsyncMock()
    store.get_benchmark_assignment.return_value = None
    store.get_benchmark_members.return_value = []
    store.get_metrics_by_tickers.return_value = []
    store.get_index_weights.return_value = {}
    store.get_assignments.return_value = {}
    store.get_score_weightings.return_value = []
    return store


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records delays without waiting."""
    return AsyncMock()
