"""Tests for the snapshot, analytics and scoring API routes."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from app.core.exceptions import ExternalServiceError, NotFoundError
from app.portfolio.exposure import calculate_portfolio_exposure
from app.portfolio.holdings import CashPolicy, Holding
from app.portfolio.metrics import IndividualMetrics
from app.portfolio.peers import BenchmarkSlot, PeerGroup
from app.portfolio.risk import RiskMetrics
from app.portfolio.scoring import StockScore
from app.portfolio.service import BenchmarkTestReport, MetricRanking
from app.portfolio.shorts import DEFAULT_LEVERAGE_CONFIG
from app.portfolio.snapshot import SnapshotResult, SnapshotStats


SERVICE = "app.portfolio.service"


def _patch(mocker, name, **kwargs):
    return mocker.patch(f"{SERVICE}.{name}", new=AsyncMock(**kwargs))


class TestSnapshotRoutes:
    """Tests for POST /snapshots and GET /snapshots/stats."""

    def _result(self, **overrides):
        values = dict(
            success=True,
            snapshot_date=date(2025, 6, 18),
            nav=51_000.0,
            total_cash=10_000.0,
            total_equity=41_000.0,
            holdings_count=3,
        )
        values.update(overrides)
        return SnapshotResult(**values)

    def test_create_returns_201(self, client: TestClient, mocker):
        """A new snapshot answers 201 Created."""
        _patch(mocker, "capture_daily_snapshot", return_value=self._result())

        response = client.post("/snapshots")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["nav"] == 51_000.0
        assert data["snapshot_date"] == "2025-06-18"
        assert data["is_update"] is False

    def test_update_returns_200(self, client: TestClient, mocker):
        """Refreshing today's snapshot answers 200 OK."""
        _patch(mocker, "capture_daily_snapshot", return_value=self._result(is_update=True))

        response = client.post("/snapshots")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_update"] is True

    def test_no_holdings_returns_409(self, client: TestClient, mocker):
        """Nothing to snapshot answers 409 with the reason."""
        _patch(
            mocker,
            "capture_daily_snapshot",
            return_value=SnapshotResult(success=False, snapshot_date=date(2025, 6, 18), message="No holdings found"),
        )

        response = client.post("/snapshots")

        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["error"] == "CONFLICT"
        assert data["message"] == "No holdings found"
        assert data["details"] == {"snapshot_date": "2025-06-18"}

    def test_database_unavailable_returns_503(self, client: TestClient, mocker):
        """A database outage during capture answers 503."""
        _patch(
            mocker,
            "capture_daily_snapshot",
            side_effect=ExternalServiceError("Portfolio database unavailable", details={"snapshot_date": "2025-06-18"}),
        )

        response = client.post("/snapshots")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error"] == "EXTERNAL_SERVICE_ERROR"

    def test_stats(self, client: TestClient, mocker):
        """Stats are returned as stored."""
        _patch(
            mocker,
            "fetch_snapshot_stats",
            return_value=SnapshotStats(total_snapshots=2, latest_nav=1_100.0, newest_date=date(2025, 6, 18)),
        )

        data = client.get("/snapshots/stats").json()

        assert data["total_snapshots"] == 2
        assert data["latest_nav"] == 1_100.0
        assert data["newest_date"] == "2025-06-18"


class TestAnalyticsRoutes:
    """Tests for GET /exposure, /performance and /risk/metrics."""

    def test_exposure(self, client: TestClient, mocker):
        """Exposure is returned with nested summary groups."""
        exposure = calculate_portfolio_exposure(
            [Holding("AAPL", 10, market_value=60.0), Holding("BIL", 1, market_value=40.0)],
            {},
            {},
            config=DEFAULT_LEVERAGE_CONFIG,
            cash_policy=CashPolicy.from_list(["BIL"]),
        )
        _patch(mocker, "get_portfolio_exposure", return_value=exposure)

        response = client.get("/exposure")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["exposure"]["long"] == pytest.approx(60.0)
        assert data["cash_weight"] == pytest.approx(40.0)
        assert [row["ticker"] for row in data["holdings"]] == ["AAPL", "BIL"]

    def test_exposure_without_holdings(self, client: TestClient, mocker):
        """No holdings answers 404."""
        _patch(mocker, "get_portfolio_exposure", side_effect=NotFoundError("No holdings found"))

        response = client.get("/exposure")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_FOUND"

    def test_risk_metrics_null_until_enough_history(self, client: TestClient, mocker):
        """Metrics are null with the required day count."""
        _patch(
            mocker,
            "get_portfolio_risk_metrics",
            return_value=RiskMetrics(None, None, None, None, days_of_data=3, requires_days=30),
        )

        data = client.get("/risk/metrics").json()

        assert data["sharpe_ratio"] is None
        assert data["days_of_data"] == 3
        assert data["requires_days"] == 30

    def test_unexpected_error_is_500(self, client: TestClient, mocker):
        """Unhandled errors become a generic 500 body."""
        _patch(mocker, "get_portfolio_performance", side_effect=RuntimeError("boom"))

        response = client.get("/performance")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "INTERNAL_ERROR"


class TestScoringRoutes:
    """Tests for the /scoring routes."""

    def test_peer_group(self, client: TestClient, mocker):
        """A resolved peer group lists its members."""
        resolve = _patch(
            mocker,
            "resolve_peer_group",
            return_value=PeerGroup("AAPL", BenchmarkSlot.BENCHMARK2, "XLK", ["MSFT", "AAPL"]),
        )

        response = client.get("/scoring/peers/AAPL", params={"slot": "BENCHMARK2"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["members"] == ["MSFT", "AAPL"]
        resolve.assert_awaited_once_with("AAPL", BenchmarkSlot.BENCHMARK2)

    def test_empty_peer_group_is_404(self, client: TestClient, mocker):
        """An unresolved group answers 404 with its reason."""
        _patch(
            mocker,
            "resolve_peer_group",
            return_value=PeerGroup("ZZZ", BenchmarkSlot.BENCHMARK1, reason="No benchmark assigned to ZZZ in BENCHMARK1"),
        )

        response = client.get("/scoring/peers/ZZZ")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "No benchmark assigned" in response.json()["message"]

    def test_invalid_slot_is_422(self, client: TestClient):
        """Unknown slots are rejected by validation."""
        response = client.get("/scoring/peers/AAPL", params={"slot": "BENCHMARK9"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT

    def test_benchmark_test(self, client: TestClient, mocker):
        """The report carries rankings and coverage."""
        report = BenchmarkTestReport(
            ticker="AAPL",
            slot=BenchmarkSlot.BENCHMARK1,
            benchmark="XLK",
            peers=["MSFT", "AAPL"],
            scored_tickers=["MSFT", "AAPL"],
            metrics=IndividualMetrics(pe_ratio=30.0),
            rankings=[
                MetricRanking(
                    key="pe_ratio",
                    label="P/E NTM",
                    category="VALUE",
                    lower_is_better=True,
                    value=30.0,
                    score=50.0,
                    rank=1,
                    total=2,
                    rank_display="1 of 2",
                    distribution=[("AAPL", 30.0), ("MSFT", 35.0)],
                )
            ],
        )
        _patch(mocker, "score_ticker_against_benchmark", return_value=report)

        data = client.get("/scoring/benchmark-test/AAPL").json()

        assert data["benchmark"] == "XLK"
        assert data["coverage"]["scored_count"] == 2
        assert data["rankings"][0]["rank_display"] == "1 of 2"
        assert data["rankings"][0]["distribution"][1] == {"ticker": "MSFT", "value": 35.0}

    def test_holdings_scores(self, client: TestClient, mocker):
        """Holdings scores are returned in service order."""
        _patch(
            mocker,
            "score_holdings_universe",
            return_value=[
                StockScore("AAPL", IndividualMetrics(pe_ratio=30.0), {"pe_ratio": 50.0}, total_score=50.0),
                StockScore("MSFT", IndividualMetrics(pe_ratio=35.0), {"pe_ratio": 0.0}, total_score=0.0),
            ],
        )

        data = client.get("/scoring/holdings").json()

        assert [row["ticker"] for row in data] == ["AAPL", "MSFT"]
        assert data[0]["total_score"] == 50.0
