"""Tests for multi-window returns, contributions and batching."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from app.portfolio.performance import (
    PERFORMANCE_WINDOWS,
    HoldingPerformance,
    WeightedPosition,
    calculate_all_holdings_performance,
    calculate_contribution,
    calculate_holding_performance,
    calculate_portfolio_totals,
    calculate_return,
)


class TestReturnMath:
    """Tests for calculate_return and calculate_contribution."""

    def test_return_percent(self):
        """Return is expressed in percent."""
        assert calculate_return(110.0, 100.0) == pytest.approx(10.0)
        assert calculate_return(90.0, 100.0) == pytest.approx(-10.0)

    def test_missing_reference_is_zero(self):
        """A zero or missing reference returns 0."""
        assert calculate_return(110.0, 0.0) == 0.0
        assert calculate_return(110.0, None) == 0.0

    def test_contribution(self):
        """Contribution is weight/100 times return."""
        assert calculate_contribution(5.0, 10.0) == pytest.approx(0.5)


class TestHoldingPerformance:
    """Tests for calculate_holding_performance."""

    @pytest.mark.asyncio
    async def test_all_windows(self, market_data, today):
        """Every window uses its own reference price."""
        position = WeightedPosition(ticker="AAPL", current_price=110.0, weight=20.0)

        result = await calculate_holding_performance(position, market_data, today)

        for window in PERFORMANCE_WINDOWS:
            assert result.return_for(window) == pytest.approx(10.0)
            assert result.contribution_for(window) == pytest.approx(2.0)
        market_data.get_price_n_days_ago.assert_has_awaits(
            [call("AAPL", days, as_of=today) for days in (1, 5, 30, 90, 252)]
        )
        market_data.get_price_end_of_last_quarter.assert_awaited_once_with("AAPL", as_of=today)
        market_data.get_price_end_of_last_year.assert_awaited_once_with("AAPL", as_of=today)

    @pytest.mark.asyncio
    async def test_failed_lookup_degrades_one_window(self, market_data, today):
        """A failing lookup zeroes only that window."""
        market_data.get_price_end_of_last_year.side_effect = RuntimeError("provider down")
        market_data.get_price_end_of_last_quarter.return_value = None
        position = WeightedPosition(ticker="AAPL", current_price=110.0, weight=20.0)

        result = await calculate_holding_performance(position, market_data, today)

        assert result.return_ytd == 0.0
        assert result.return_qtd == 0.0
        assert result.return_1d == pytest.approx(10.0)


class TestAllHoldingsPerformance:
    """Tests for calculate_all_holdings_performance."""

    @pytest.mark.asyncio
    async def test_batches_and_delays(self, market_data, today, no_sleep):
        """Seven holdings in batches of three sleep twice, between batches only."""
        positions = [WeightedPosition(f"T{i}", 100.0, 1.0) for i in range(7)]

        results = await calculate_all_holdings_performance(
            positions, market_data, today, batch_size=3, delay_ms=100, sleep=no_sleep
        )

        assert [r.ticker for r in results] == [p.ticker for p in positions]
        assert no_sleep.await_count == 2
        no_sleep.assert_awaited_with(0.1)

    @pytest.mark.asyncio
    async def test_single_batch_no_delay(self, market_data, today, no_sleep):
        """One batch never sleeps."""
        positions = [WeightedPosition("A", 100.0, 1.0)]
        await calculate_all_holdings_performance(
            positions, market_data, today, batch_size=5, delay_ms=100, sleep=no_sleep
        )
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [0, -1])
    async def test_invalid_batch_size(self, market_data, today, batch_size):
        """Batch size below one is rejected, including an explicit zero."""
        with pytest.raises(ValueError):
            await calculate_all_holdings_performance([], market_data, today, batch_size=batch_size)

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, market_data, today, mocker):
        """Batch size and delay default to settings."""
        mocker.patch("app.portfolio.performance.settings.performance_batch_size", 1)
        mocker.patch("app.portfolio.performance.settings.performance_batch_delay_ms", 250)
        sleep = AsyncMock()

        await calculate_all_holdings_performance(
            [WeightedPosition("A", 1.0, 1.0), WeightedPosition("B", 1.0, 1.0)],
            market_data,
            today,
            sleep=sleep,
        )

        sleep.assert_awaited_once_with(0.25)


class TestPortfolioTotals:
    """Tests for calculate_portfolio_totals."""

    def test_sums_contributions(self):
        """Totals sum each window independently."""
        performances = [
            HoldingPerformance(ticker="A", weight=50.0, contribution_1d=1.0, contribution_ytd=2.0),
            HoldingPerformance(ticker="B", weight=50.0, contribution_1d=-0.5, contribution_ytd=1.0),
        ]
        totals = calculate_portfolio_totals(performances)

        assert totals.total_contribution_1d == pytest.approx(0.5)
        assert totals.total_contribution_ytd == pytest.approx(3.0)
        assert totals.total_contribution_30d == 0.0

    def test_empty(self):
        """No holdings gives zero totals."""
        assert calculate_portfolio_totals([]).total_contribution_1yr == 0.0
