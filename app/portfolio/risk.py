"""Portfolio risk metrics from daily NAV snapshots.

All statistics use population standard deviation (ddof=0) and annualize
with 252 trading days.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Optional

import numpy as np


TRADING_DAYS_PER_YEAR = 252
VAR_95_Z = 1.645  # one-sided 95% normal quantile


@dataclass
class RiskMetrics:
    sharpe_ratio: Optional[float]
    annualized_volatility: Optional[float]  # percent
    var_95: Optional[float]  # percent, daily
    max_drawdown: Optional[float]  # percent, <= 0
    days_of_data: int
    requires_days: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _sorted_navs(snapshots: Sequence[Mapping[str, Any]]) -> np.ndarray:
    ordered = sorted(snapshots, key=lambda s: s["snapshot_date"])
    return np.array([float(s["nav"]) for s in ordered], dtype=float)


def calculate_daily_returns(snapshots: Sequence[Mapping[str, Any]]) -> np.ndarray:
    """
    Daily NAV returns, oldest first.

    Days whose previous NAV is not positive are skipped.
    """
    navs = _sorted_navs(snapshots)
    if len(navs) < 2:
        return np.array([], dtype=float)

    previous, current = navs[:-1], navs[1:]
    valid = previous > 0
    return (current[valid] - previous[valid]) / previous[valid]


def calculate_sharpe_ratio(daily_returns: np.ndarray, risk_free_rate: float = 0.05) -> float:
    if len(daily_returns) == 0:
        return 0.0

    annualized_return = float(np.mean(daily_returns)) * TRADING_DAYS_PER_YEAR
    annualized_volatility = float(np.std(daily_returns)) * np.sqrt(TRADING_DAYS_PER_YEAR)
    if annualized_volatility == 0:
        return 0.0
    return float((annualized_return - risk_free_rate) / annualized_volatility)


def calculate_annualized_volatility(daily_returns: np.ndarray) -> float:
    if len(daily_returns) == 0:
        return 0.0
    return float(np.std(daily_returns) * np.sqrt(TRADING_DAYS_PER_YEAR) * 100)


def calculate_var_95(daily_returns: np.ndarray) -> float:
    """Parametric one-day VaR at 95%: (mean - 1.645 * std) * 100."""
    if len(daily_returns) == 0:
        return 0.0
    return float((np.mean(daily_returns) - VAR_95_Z * np.std(daily_returns)) * 100)


def calculate_max_drawdown(snapshots: Sequence[Mapping[str, Any]]) -> float:
    """Most negative peak-to-trough NAV decline in percent (0 when none)."""
    navs = _sorted_navs(snapshots)
    if len(navs) == 0:
        return 0.0

    peaks = np.maximum.accumulate(navs)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (navs - peaks) / peaks * 100, 0.0)
    return float(min(drawdowns.min(), 0.0))


def calculate_risk_metrics(
    snapshots: Sequence[Mapping[str, Any]],
    min_days: int = 30,
    risk_free_rate: float = 0.05,
) -> RiskMetrics:
    """All risk metrics, or nulls until `min_days` snapshots exist."""
    days_of_data = len(snapshots)
    if days_of_data < min_days:
        return RiskMetrics(
            sharpe_ratio=None,
            annualized_volatility=None,
            var_95=None,
            max_drawdown=None,
            days_of_data=days_of_data,
            requires_days=min_days,
        )

    returns = calculate_daily_returns(snapshots)
    return RiskMetrics(
        sharpe_ratio=calculate_sharpe_ratio(returns, risk_free_rate),
        annualized_volatility=calculate_annualized_volatility(returns),
        var_95=calculate_var_95(returns),
        max_drawdown=calculate_max_drawdown(snapshots),
        days_of_data=days_of_data,
        requires_days=min_days,
    )
