"""Portfolio analytics routes: exposure, performance and risk."""

from __future__ import annotations

from fastapi import APIRouter

from app.portfolio import service as portfolio_service
from app.schemas.analytics import ExposureResponse, PerformanceResponse, RiskMetricsResponse


router = APIRouter()


@router.get(
    "/exposure",
    response_model=ExposureResponse,
    tags=["Exposure"],
    summary="Long/short/net exposure",
    description="Nets inverse ETF positions onto the underlying holdings by index weight.",
)
async def get_exposure() -> ExposureResponse:
    exposure = await portfolio_service.get_portfolio_exposure()
    return ExposureResponse(**exposure.to_dict())


@router.get(
    "/performance",
    response_model=PerformanceResponse,
    tags=["Performance"],
    summary="Holding returns and contributions",
)
async def get_performance() -> PerformanceResponse:
    performance = await portfolio_service.get_portfolio_performance()
    return PerformanceResponse(**performance.to_dict())


@router.get(
    "/risk/metrics",
    response_model=RiskMetricsResponse,
    tags=["Risk"],
    summary="Sharpe, volatility, VaR and drawdown from NAV history",
)
async def get_risk_metrics() -> RiskMetricsResponse:
    metrics = await portfolio_service.get_portfolio_risk_metrics()
    return RiskMetricsResponse(**metrics.to_dict())
