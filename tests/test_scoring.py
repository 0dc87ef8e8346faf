"""Tests for percentile scoring, ranking, weighting profiles and composites."""

from __future__ import annotations

import pytest

from app.portfolio.metrics import IndividualMetrics, MetricCategory
from app.portfolio.scoring import (
    CompositeScores,
    ScoreProfile,
    calculate_benchmark_relative_score,
    calculate_composite_scores,
    calculate_total_score,
    calculate_weighted_average,
    format_rank,
    parse_score_weightings,
    percentile_rank,
    rank_position,
    score_against_peers,
    score_universe,
    sorted_distribution,
)


class TestPercentileRank:
    """Tests for percentile_rank."""

    def test_lower_is_better(self):
        """Share of peers with a strictly higher value."""
        assert percentile_rank(20.0, [15.0, 20.0, 25.0, 30.0], lower_is_better=True) == 50.0

    def test_higher_is_better(self):
        """Share of peers with a strictly lower value."""
        assert percentile_rank(20.0, [15.0, 20.0, 25.0, 30.0], lower_is_better=False) == 25.0

    def test_best_value_tied_stays_below_100(self):
        """A value tied with the best peer does not count itself as worse."""
        assert percentile_rank(10.0, [10.0, 20.0], lower_is_better=True) == 50.0

    def test_nulls_ignored(self):
        """Null peers are dropped from the denominator."""
        assert percentile_rank(5.0, [None, 10.0, None], lower_is_better=True) == 100.0

    def test_none_value_or_no_peers(self):
        """No value or no valid peers scores None."""
        assert percentile_rank(None, [1.0], lower_is_better=True) is None
        assert percentile_rank(1.0, [None, None], lower_is_better=True) is None

    def test_unrounded(self):
        """Scores keep full precision."""
        assert percentile_rank(2.0, [1.0, 2.0, 3.0], lower_is_better=False) == pytest.approx(100 / 3)

    def test_range(self):
        """Scores stay within 0-100."""
        peers = [1.0, 2.0, 3.0]
        for value in (0.0, 2.0, 10.0):
            score = percentile_rank(value, peers, lower_is_better=False)
            assert 0.0 <= score <= 100.0

    @pytest.mark.parametrize("lower_is_better", [True, False])
    def test_monotonic(self, lower_is_better):
        """A better value never scores below a worse one."""
        peers = [3.0, 8.0, 8.0, 12.5, 20.0, None, 41.0]
        values = [0.0, 3.0, 5.0, 8.0, 12.5, 15.0, 20.0, 41.0, 50.0]
        scores = [percentile_rank(v, peers, lower_is_better=lower_is_better) for v in values]

        if lower_is_better:
            assert all(a >= b for a, b in zip(scores, scores[1:]))
        else:
            assert all(a <= b for a, b in zip(scores, scores[1:]))

    def test_each_ticker_against_the_others(self):
        """P/E 20, 30 and 25 ranked against the other two score 100, 0 and 50."""
        pe = {"AAPL": 20.0, "MSFT": 30.0, "GOOGL": 25.0}

        scores = {
            ticker: percentile_rank(value, [v for t, v in pe.items() if t != ticker], lower_is_better=True)
            for ticker, value in pe.items()
        }

        assert scores == {"AAPL": 100.0, "MSFT": 0.0, "GOOGL": 50.0}


class TestRanking:
    """Tests for sorted_distribution, rank_position and format_rank."""

    def test_sorted_best_first(self):
        """Lower-is-better sorts ascending and nulls are dropped."""
        dist = [("A", 3.0), ("B", None), ("C", 1.0)]
        assert sorted_distribution(dist, lower_is_better=True) == [("C", 1.0), ("A", 3.0)]
        assert sorted_distribution(dist, lower_is_better=False) == [("A", 3.0), ("C", 1.0)]

    def test_rank_position(self):
        """Rank is 1-based within the non-null values."""
        dist = [("A", 3.0), ("B", None), ("C", 1.0), ("D", 2.0)]
        assert rank_position("d", dist, lower_is_better=True) == (2, 3)

    def test_rank_missing_ticker(self):
        """A ticker without a value has no rank."""
        assert rank_position("B", [("A", 1.0), ("B", None)], lower_is_better=True) == (None, 1)

    def test_format_rank(self):
        """Display is 'N of M' or N/A."""
        assert format_rank(3, 12) == "3 of 12"
        assert format_rank(None, 12) == "N/A"


class TestWeightedAverage:
    """Tests for calculate_weighted_average."""

    def test_skips_nulls(self):
        """Null scores and their weights are excluded."""
        assert calculate_weighted_average([80.0, None, 40.0], [1.0, 5.0, 1.0]) == 60.0

    def test_rounds_to_one_decimal(self):
        """Result is rounded to one decimal."""
        assert calculate_weighted_average([10.0, 20.0], [1.0, 2.0]) == 16.7

    def test_all_null_is_none(self):
        """No usable score gives None."""
        assert calculate_weighted_average([None], [1.0]) is None

    def test_length_mismatch(self):
        """Mismatched lengths raise ValueError."""
        with pytest.raises(ValueError):
            calculate_weighted_average([1.0], [1.0, 2.0])


class TestBenchmarkRelativeScore:
    """Tests for calculate_benchmark_relative_score."""

    def test_parity_scores_50(self):
        """Equal to the benchmark scores 50 in either direction."""
        assert calculate_benchmark_relative_score(10.0, 10.0, True) == 50.0
        assert calculate_benchmark_relative_score(10.0, 10.0, False) == 50.0

    def test_clamped(self):
        """Scores are clamped to 0-100."""
        assert calculate_benchmark_relative_score(30.0, 10.0, False) == 100.0
        assert calculate_benchmark_relative_score(0.0, 10.0, False) == 0.0

    def test_missing_benchmark(self):
        """A zero or missing benchmark value gives None."""
        assert calculate_benchmark_relative_score(1.0, 0.0, True) is None
        assert calculate_benchmark_relative_score(None, 1.0, True) is None


class TestScoreProfile:
    """Tests for parse_score_weightings and composites."""

    @pytest.fixture
    def rows(self):
        return [
            {"profile_name": "BASE", "category": "value", "metric_name": None, "category_weight": 0.6},
            {"profile_name": "BASE", "category": "VALUE", "metric_name": "P/E", "metric_weight": 1.0},
            {"profile_name": "BASE", "category": "VALUE", "metric_name": "EV/EBITDA", "metric_weight": 1.0},
            {"profile_name": "BASE", "category": "RISK", "metric_name": None, "category_weight": 0.4},
            {"profile_name": "BASE", "category": "RISK", "metric_name": "Beta 3-Yr", "metric_weight": 1.0},
            {"profile_name": "CAUTIOUS", "category": "RISK", "metric_name": None, "category_weight": 1.0},
        ]

    def test_parse_filters_profile(self, rows):
        """Only rows of the requested profile are used."""
        profile = parse_score_weightings(rows, "BASE")
        assert profile.category_weights == {"VALUE": 0.6, "RISK": 0.4}
        assert profile.metric_weights["VALUE"] == {"P/E": 1.0, "EV/EBITDA": 1.0}

    def test_composites_and_total(self, rows):
        """Category composites weight metrics; absent categories are None."""
        profile = parse_score_weightings(rows, "BASE")
        scores = {"pe_ratio": 80.0, "ev_ebitda": 60.0, "beta_3yr": 20.0}

        composites = calculate_composite_scores(scores, profile)

        assert composites.value_score == 70.0
        assert composites.risk_score == 20.0
        assert composites.momentum_score is None
        assert composites.for_category(MetricCategory.QUALITY) is None
        assert calculate_total_score(composites, profile) == 50.0

    def test_empty_profile(self):
        """An empty profile yields no composites."""
        composites = calculate_composite_scores({"pe_ratio": 50.0}, ScoreProfile(name="NONE"))
        assert composites == CompositeScores()


class TestScoreAgainstPeers:
    """Tests for score_against_peers and score_universe."""

    def test_end_to_end_pe(self):
        """Target P/E 20 against peers 15/25/30 with itself scores 50."""
        target = IndividualMetrics(pe_ratio=20.0)
        peers = [IndividualMetrics(pe_ratio=v) for v in (15.0, 25.0, 30.0)] + [target]

        scores = score_against_peers(target, peers, keys=["pe_ratio"])

        assert scores == {"pe_ratio": 50.0}

    def test_all_keys_by_default(self):
        """Every catalogue metric is scored when keys are omitted."""
        scores = score_against_peers(IndividualMetrics(), [IndividualMetrics()])
        assert "financial_leverage" in scores
        assert all(v is None for v in scores.values())

    def test_score_universe_order_and_profile(self):
        """Universe scores keep input order and fill totals with a profile."""
        universe = {
            "A": IndividualMetrics(pe_ratio=10.0),
            "B": IndividualMetrics(pe_ratio=20.0),
        }
        profile = ScoreProfile(
            name="BASE",
            metric_weights={"VALUE": {"P/E": 1.0}},
            category_weights={"VALUE": 1.0},
        )

        results = score_universe(universe, profile)

        assert [r.ticker for r in results] == ["A", "B"]
        assert results[0].scores["pe_ratio"] == 50.0
        assert results[1].scores["pe_ratio"] == 0.0
        assert results[0].total_score == 50.0
        assert results[0].to_dict()["composites"]["value_score"] == 50.0
