"""Percentile scoring of metrics against a peer distribution.

Scores run 0-100 where 100 is best. A value's score is the share of peers
strictly worse than it; ties never count as worse, so a value tied with the
best peer stays below 100.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from app.core.logging import get_logger

from .metrics import METRIC_DEFINITIONS, METRICS_BY_KEY, IndividualMetrics, MetricCategory


logger = get_logger("portfolio.scoring")


def percentile_rank(
    value: Optional[float],
    peer_values: Iterable[Optional[float]],
    lower_is_better: bool,
) -> Optional[float]:
    """Percent of non-null peers strictly worse than `value`.

    Returns None when `value` is None or no peer has a value.
    """
    if value is None:
        return None

    valid = [v for v in peer_values if v is not None]
    if not valid:
        return None

    if lower_is_better:
        worse = sum(1 for v in valid if v > value)
    else:
        worse = sum(1 for v in valid if v < value)

    return 100 * worse / len(valid)


def sorted_distribution(
    distribution: Iterable[tuple[str, Optional[float]]],
    lower_is_better: bool,
) -> list[tuple[str, float]]:
    """Non-null (ticker, value) pairs, best first. Sort is stable."""
    pairs = [(ticker, value) for ticker, value in distribution if value is not None]
    return sorted(pairs, key=lambda pair: pair[1], reverse=not lower_is_better)


def rank_position(
    ticker: str,
    distribution: Iterable[tuple[str, Optional[float]]],
    lower_is_better: bool,
) -> tuple[Optional[int], int]:
    """1-based display rank of `ticker` and the count of ranked values."""
    ordered = sorted_distribution(distribution, lower_is_better)
    target = ticker.upper()
    for index, (candidate, _) in enumerate(ordered):
        if candidate.upper() == target:
            return index + 1, len(ordered)
    return None, len(ordered)


def format_rank(rank: Optional[int], total: int) -> str:
    if not rank:
        return "N/A"
    return f"{rank} of {total}"


def calculate_weighted_average(
    scores: Sequence[Optional[float]],
    weights: Sequence[float],
) -> Optional[float]:
    """Weighted mean of non-null scores, rounded to 1 decimal."""
    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = 0.0
    weighted_sum = 0.0
    for score, weight in zip(scores, weights):
        if score is None:
            continue
        weighted_sum += score * weight
        total_weight += weight

    if total_weight == 0:
        return None
    return round(weighted_sum / total_weight, 1)


def calculate_benchmark_relative_score(
    stock_value: Optional[float],
    benchmark_value: Optional[float],
    lower_is_better: bool,
) -> Optional[float]:
    """Score a stock against a single benchmark value; parity scores 50."""
    if stock_value is None or benchmark_value is None or benchmark_value == 0:
        return None

    ratio = stock_value / benchmark_value
    if lower_is_better:
        score = 50 + (1 - ratio) * 100 if ratio <= 1 else 50 / ratio
    else:
        score = 50 + (ratio - 1) * 100 if ratio >= 1 else 50 * ratio

    return max(0.0, min(100.0, round(score, 1)))


# =============================================================================
# Weighting profiles
# =============================================================================


@dataclass
class ScoreProfile:
    """Metric weights per category plus the weight of each category."""

    name: str
    metric_weights: dict[str, dict[str, float]] = field(default_factory=dict)
    category_weights: dict[str, float] = field(default_factory=dict)

    def has_category(self, category: str) -> bool:
        return category in self.metric_weights or category in self.category_weights


def parse_score_weightings(rows: Iterable[Mapping[str, Any]], profile_name: str) -> ScoreProfile:
    """Build a ScoreProfile from score_weightings rows.

    Rows with a null metric_name carry the category weight; the rest carry
    a metric weight. Rows for other profiles are ignored.
    """
    profile = ScoreProfile(name=profile_name)

    for row in rows:
        if row.get("profile_name") != profile_name:
            continue
        category = str(row.get("category") or "").upper()
        if not category:
            continue

        metric_name = row.get("metric_name")
        if metric_name is None:
            weight = row.get("category_weight")
            if weight is not None:
                profile.category_weights[category] = float(weight)
            continue

        weight = row.get("metric_weight")
        if weight is not None:
            profile.metric_weights.setdefault(category, {})[metric_name] = float(weight)

    return profile


@dataclass
class CompositeScores:
    value_score: Optional[float] = None
    momentum_score: Optional[float] = None
    quality_score: Optional[float] = None
    risk_score: Optional[float] = None

    def for_category(self, category: MetricCategory) -> Optional[float]:
        return getattr(self, f"{category.value.lower()}_score")

    def to_dict(self) -> dict[str, Optional[float]]:
        return asdict(self)


def calculate_composite_scores(
    scores: Mapping[str, Optional[float]],
    profile: ScoreProfile,
) -> CompositeScores:
    """Weighted average of metric scores within each category.

    Categories absent from the profile score None; metrics without a weight
    row weigh 0.
    """
    composites: dict[str, Optional[float]] = {}
    for category in MetricCategory:
        definitions = [d for d in METRIC_DEFINITIONS if d.category is category]
        if not profile.has_category(category.value):
            composites[f"{category.value.lower()}_score"] = None
            continue

        weights = profile.metric_weights.get(category.value, {})
        composites[f"{category.value.lower()}_score"] = calculate_weighted_average(
            [scores.get(d.key) for d in definitions],
            [weights.get(d.weight_name, 0.0) for d in definitions],
        )
    return CompositeScores(**composites)


def calculate_total_score(composites: CompositeScores, profile: ScoreProfile) -> Optional[float]:
    return calculate_weighted_average(
        [composites.for_category(category) for category in MetricCategory],
        [profile.category_weights.get(category.value, 0.0) for category in MetricCategory],
    )


# =============================================================================
# Ranking metric sets
# =============================================================================


def score_against_peers(
    metrics: IndividualMetrics,
    peer_metrics: Sequence[IndividualMetrics],
    keys: Optional[Iterable[str]] = None,
) -> dict[str, Optional[float]]:
    """Percentile score of each metric against the same metric across peers.

    `peer_metrics` is the full distribution; include the scored ticker in it
    when its own value should participate.
    """
    scores: dict[str, Optional[float]] = {}
    for key in keys or METRICS_BY_KEY:
        definition = METRICS_BY_KEY[key]
        scores[key] = percentile_rank(
            metrics.get(key),
            [peer.get(key) for peer in peer_metrics],
            definition.lower_is_better,
        )
    return scores


@dataclass
class StockScore:
    ticker: str
    metrics: IndividualMetrics
    scores: dict[str, Optional[float]]
    composites: Optional[CompositeScores] = None
    total_score: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "metrics": self.metrics.to_dict(),
            "scores": dict(self.scores),
            "composites": self.composites.to_dict() if self.composites else None,
            "total_score": self.total_score,
        }


def score_universe(
    all_metrics: Mapping[str, IndividualMetrics],
    profile: Optional[ScoreProfile] = None,
) -> list[StockScore]:
    """Score every ticker against the whole universe, in input order.

    With a profile, composites and the total score are filled in too.
    """
    universe = list(all_metrics.values())
    results: list[StockScore] = []

    for ticker, metrics in all_metrics.items():
        scores = score_against_peers(metrics, universe)
        result = StockScore(ticker=ticker, metrics=metrics, scores=scores)
        if profile is not None:
            result.composites = calculate_composite_scores(scores, profile)
            result.total_score = calculate_total_score(result.composites, profile)
        results.append(result)

    logger.debug(f"Scored {len(results)} tickers")
    return results
