"""Tests for metric extraction from reference records and price history."""

from __future__ import annotations

import pytest

from app.portfolio.metrics import (
    METRIC_DEFINITIONS,
    METRICS_BY_KEY,
    REPORT_METRIC_KEYS,
    HistoricalPrices,
    IndividualMetrics,
    MetricCategory,
    MetricsRecord,
    extract_individual_metrics,
    parse_number,
)


class TestParseNumber:
    """Tests for parse_number."""

    @pytest.mark.parametrize(
        "raw", [None, "", "-", "#N/A", "#N/A N/A", "N/A", "#VALUE!", "#DIV/0!", "NaN", "nan", "abc", True]
    )
    def test_placeholders_are_none(self, raw):
        """Spreadsheet placeholders and junk parse to None."""
        assert parse_number(raw) is None

    def test_infinite_is_none(self):
        """Non-finite floats parse to None."""
        assert parse_number(float("inf")) is None

    def test_numeric_text(self):
        """Numeric strings with thousands separators parse."""
        assert parse_number(" 1,234.5 ") == 1234.5
        assert parse_number("-0.25") == -0.25
        assert parse_number(7) == 7.0


class TestMetricsRecord:
    """Tests for MetricsRecord.from_mapping."""

    def test_ignores_unknown_columns(self):
        """Unknown keys such as updated_at are dropped."""
        record = MetricsRecord.from_mapping({"ticker": "aapl", "pe_ntm": "25", "updated_at": "x"})
        assert record.ticker == "AAPL"
        assert record.pe_ntm == "25"


class TestExtractIndividualMetrics:
    """Tests for extract_individual_metrics."""

    def test_required_subset(self):
        """pe, ev multiples, beta and 3M return are extracted."""
        record = MetricsRecord(
            ticker="AAPL", pe_ntm="25.0", ev_ebitda_ntm="18", ev_sales_ntm="#N/A", beta_3y="1.2"
        )
        history = HistoricalPrices(current_price=110.0, price_90d_ago=100.0)

        metrics = extract_individual_metrics(record, history)

        assert metrics.pe_ratio == 25.0
        assert metrics.ev_ebitda == 18.0
        assert metrics.ev_sales is None
        assert metrics.beta_3yr == 1.2
        assert metrics.return_3m == pytest.approx(10.0)

    def test_missing_history_nulls_price_metrics(self):
        """Without history the momentum metrics are None, the rest survive."""
        metrics = extract_individual_metrics(MetricsRecord(ticker="X", pe_ntm="10"))
        assert metrics.pe_ratio == 10.0
        assert metrics.return_3m is None
        assert metrics.return_12m_ex_1m is None
        assert metrics.max_drawdown is None

    def test_zero_reference_price_is_none(self):
        """A zero 90-day-ago price gives no 3M return."""
        history = HistoricalPrices(current_price=50.0, price_90d_ago=0.0)
        assert extract_individual_metrics(MetricsRecord(ticker="X"), history).return_3m is None

    def test_twelve_month_ex_one_month(self):
        """Return runs from the 365-day-ago price to the 30-day-ago price."""
        history = HistoricalPrices(current_price=999.0, price_30d_ago=120.0, price_365d_ago=100.0)
        metrics = extract_individual_metrics(MetricsRecord(ticker="X"), history)
        assert metrics.return_12m_ex_1m == pytest.approx(20.0)

    def test_max_drawdown_is_percent(self):
        """A fractional drawdown is reported in percent."""
        history = HistoricalPrices(max_drawdown=-0.25)
        assert extract_individual_metrics(MetricsRecord(ticker="X"), history).max_drawdown == -25.0

    def test_derived_ratios(self):
        """Derived ratios divide the documented fields."""
        record = MetricsRecord(
            ticker="X",
            price="50",
            consensus_price_target="60",
            week_52_high="100",
            eps_surprise="4",
            sales_surprise="-2",
            eps_ntm="11",
            eps_ntm_90d_ago="10",
            gross_profit_ltm="30",
            total_assets="300",
            fcf="15",
            ebitda_ltm="40",
            sales_ltm="200",
            net_debt="80",
        )
        metrics = extract_individual_metrics(record)

        assert metrics.target_price_upside == pytest.approx(1.2)
        assert metrics.pct_52_week_high == pytest.approx(0.5)
        assert metrics.eps_surprise == pytest.approx(0.04)
        assert metrics.rev_surprise == pytest.approx(-0.02)
        assert metrics.ntm_eps_change == pytest.approx(1.1)
        assert metrics.gross_profitability == pytest.approx(0.1)
        assert metrics.fcf_to_assets == pytest.approx(0.05)
        assert metrics.ebitda_margin == pytest.approx(0.2)
        assert metrics.financial_leverage == pytest.approx(2.0)

    def test_zero_denominator_is_none(self):
        """A zero denominator never raises."""
        record = MetricsRecord(ticker="X", gross_profit_ltm="30", total_assets="0", net_debt="5", ebitda_ltm="-")
        metrics = extract_individual_metrics(record)
        assert metrics.gross_profitability is None
        assert metrics.financial_leverage is None


class TestMetricCatalogue:
    """Tests for the metric definitions."""

    def test_every_metric_field_has_a_definition(self):
        """The catalogue covers every IndividualMetrics field."""
        assert set(METRICS_BY_KEY) == set(IndividualMetrics().to_dict())

    def test_direction_of_core_metrics(self):
        """Valuation multiples and beta rank low-is-better, returns high-is-better."""
        assert METRICS_BY_KEY["pe_ratio"].lower_is_better
        assert METRICS_BY_KEY["beta_3yr"].lower_is_better
        assert not METRICS_BY_KEY["return_3m"].lower_is_better

    def test_report_metrics_are_defined(self):
        """Every report metric has a definition."""
        assert all(key in METRICS_BY_KEY for key in REPORT_METRIC_KEYS)
        assert len(REPORT_METRIC_KEYS) == 12

    def test_categories(self):
        """Each category has at least one metric."""
        assert {d.category for d in METRIC_DEFINITIONS} == set(MetricCategory)
