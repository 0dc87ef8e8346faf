"""Relative scoring routes: peer groups and benchmark tests."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Path, Query

from app.core.exceptions import NotFoundError
from app.portfolio import service as portfolio_service
from app.portfolio.peers import BenchmarkSlot
from app.schemas.analytics import BenchmarkTestResponse, PeerGroupResponse, StockScoreResponse


router = APIRouter(prefix="/scoring", tags=["Scoring"])


@router.get("/peers/{ticker}", response_model=PeerGroupResponse, summary="Resolve a ticker's peer group")
async def get_peer_group(
    ticker: str = Path(..., min_length=1, max_length=20, description="Ticker symbol"),
    slot: BenchmarkSlot = Query(default=BenchmarkSlot.BENCHMARK1),
) -> PeerGroupResponse:
    group = await portfolio_service.resolve_peer_group(ticker, slot)
    if group.is_empty:
        raise NotFoundError(message=group.reason or f"No peer group for {group.ticker}")
    return PeerGroupResponse(**group.to_dict())


@router.get(
    "/benchmark-test/{ticker}",
    response_model=BenchmarkTestResponse,
    summary="Rank a ticker against its benchmark peers",
)
async def get_benchmark_test(
    ticker: str = Path(..., min_length=1, max_length=20, description="Ticker symbol"),
    slot: BenchmarkSlot = Query(default=BenchmarkSlot.BENCHMARK1),
) -> BenchmarkTestResponse:
    report = await portfolio_service.score_ticker_against_benchmark(ticker, slot)
    return BenchmarkTestResponse(**report.to_dict())


@router.get(
    "/holdings",
    response_model=List[StockScoreResponse],
    summary="Score current holdings against each other",
)
async def get_holdings_scores() -> List[StockScoreResponse]:
    scores = await portfolio_service.score_holdings_universe()
    return [StockScoreResponse(**score.to_dict()) for score in scores]
