"""Pydantic schemas for API requests and responses."""

from .analytics import (
    BenchmarkTestResponse,
    ExposureResponse,
    PeerGroupResponse,
    PerformanceResponse,
    RiskMetricsResponse,
    SnapshotResponse,
    SnapshotStatsResponse,
    StockScoreResponse,
)
from .common import ErrorResponse, HealthResponse


__all__ = [
    "BenchmarkTestResponse",
    "ErrorResponse",
    "ExposureResponse",
    "HealthResponse",
    "PeerGroupResponse",
    "PerformanceResponse",
    "RiskMetricsResponse",
    "SnapshotResponse",
    "SnapshotStatsResponse",
    "StockScoreResponse",
]
