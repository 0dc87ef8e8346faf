"""Tests for the portfolio exposure summary."""

from __future__ import annotations

import pytest

from app.portfolio.exposure import calculate_index_exposure, calculate_portfolio_exposure
from app.portfolio.holdings import CashPolicy, Holding
from app.portfolio.shorts import DEFAULT_LEVERAGE_CONFIG, StockIndexWeights


class TestIndexExposure:
    """Tests for calculate_index_exposure."""

    def test_not_in_index(self):
        """No index weight puts everything outside the index."""
        assert calculate_index_exposure(5.0, None) == (0.0, 5.0)
        assert calculate_index_exposure(5.0, 0.0) == (0.0, 5.0)

    def test_within_index_weight(self):
        """A holding smaller than the index weight is fully in-index."""
        assert calculate_index_exposure(3.0, 8.0) == (3.0, 0.0)

    def test_overweight(self):
        """The excess over the index weight is not-in-index."""
        assert calculate_index_exposure(10.0, 8.0) == (8.0, 2.0)


class TestPortfolioExposure:
    """Tests for calculate_portfolio_exposure."""

    @pytest.fixture
    def holdings(self):
        return [
            Holding("AAPL", 100, market_value=40_000.0),
            Holding("NVDA", 50, market_value=30_000.0),
            Holding("SQQQ", 10, market_value=10_000.0),
            Holding("BIL", 200, market_value=20_000.0),
            Holding("AAPL", 1, market_value=5.0),
        ]

    @pytest.fixture
    def index_weights(self):
        return {
            "AAPL": StockIndexWeights(qqq=9.0, spy=7.0),
            "NVDA": StockIndexWeights(qqq=8.0, smh=20.0),
        }

    @pytest.fixture
    def assignments(self):
        return {
            "AAPL": {"benchmark1": "XLK", "gics_sector": "Information Technology", "core_flag": "Core", "risk_on_off": "Risk On"},
            "NVDA": {"benchmark1": "SOXX", "gics_sector": "Information Technology", "core_flag": "non-core", "risk_on_off": "RISK ON"},
            "BIL": {"core_flag": "Core", "risk_on_off": "Risk Off"},
        }

    def _exposure(self, holdings, index_weights, assignments):
        return calculate_portfolio_exposure(
            holdings,
            index_weights,
            assignments,
            config=DEFAULT_LEVERAGE_CONFIG,
            cash_policy=CashPolicy.from_list(["BIL"]),
            semiconductor_fallback=True,
        )

    def test_summary(self, holdings, index_weights, assignments):
        """Long excludes cash, short is the leveraged index total."""
        exposure = self._exposure(holdings, index_weights, assignments)

        assert exposure.total_market_value == pytest.approx(100_000.0)
        assert exposure.cash_weight == pytest.approx(20.0)
        assert exposure.long == pytest.approx(80.0)
        assert exposure.short == pytest.approx(30.0)
        assert exposure.net_exposure == pytest.approx(50.0)

    def test_rows_are_deduplicated(self, holdings, index_weights, assignments):
        """Only the first row per ticker is used."""
        exposure = self._exposure(holdings, index_weights, assignments)
        assert [row.ticker for row in exposure.holdings] == ["AAPL", "NVDA", "SQQQ", "BIL"]

    def test_net_weight_per_holding(self, holdings, index_weights, assignments):
        """Each stock absorbs the QQQ short by its QQQ weight."""
        exposure = self._exposure(holdings, index_weights, assignments)
        aapl = exposure.holdings[0]

        assert aapl.weight == pytest.approx(40.0)
        assert aapl.breakdown.qqq == pytest.approx(30.0 * 0.09)
        assert aapl.net_weight == pytest.approx(40.0 - 2.7)
        assert aapl.in_index == pytest.approx(9.0)
        assert aapl.not_in_index == pytest.approx(31.0)

    def test_composition_and_bias(self, holdings, index_weights, assignments):
        """Core and bias labels match case-insensitively."""
        exposure = self._exposure(holdings, index_weights, assignments)

        assert exposure.core == pytest.approx(60.0)
        assert exposure.non_core == pytest.approx(30.0)
        assert exposure.risk_on == pytest.approx(70.0)
        assert exposure.risk_off == pytest.approx(20.0)

    def test_sectors_sorted_by_weight(self, holdings, index_weights, assignments):
        """Non-cash holdings group by benchmark, largest first."""
        exposure = self._exposure(holdings, index_weights, assignments)

        assert [s.benchmark for s in exposure.sectors] == ["XLK", "SOXX", "Unknown"]
        assert exposure.sectors[0].tickers == ["AAPL"]

    def test_zero_market_value(self):
        """A portfolio worth nothing has zero weights instead of dividing by zero."""
        exposure = calculate_portfolio_exposure(
            [Holding("AAPL", 0, market_value=0.0)],
            {},
            {},
            config=DEFAULT_LEVERAGE_CONFIG,
            cash_policy=CashPolicy(),
        )
        assert exposure.long == 0.0
        assert exposure.holdings[0].weight == 0.0

    def test_to_dict_nesting(self, holdings, index_weights, assignments):
        """to_dict groups exposure, composition and bias."""
        data = self._exposure(holdings, index_weights, assignments).to_dict()

        assert set(data["exposure"]) == {"long", "short", "net_exposure"}
        assert set(data["composition"]) == {"core", "non_core"}
        assert set(data["bias"]) == {"risk_on", "risk_off"}
