"""NAV snapshot routes."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from app.core.exceptions import ConflictError
from app.core.logging import get_logger
from app.portfolio import service as portfolio_service
from app.schemas.analytics import SnapshotResponse, SnapshotStatsResponse


router = APIRouter(prefix="/snapshots", tags=["Snapshots"])

logger = get_logger("api.snapshots")


@router.post(
    "",
    response_model=SnapshotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Capture today's NAV snapshot",
    description="Creates today's snapshot (201) or refreshes it with current prices (200).",
    responses={status.HTTP_200_OK: {"model": SnapshotResponse, "description": "Snapshot updated"}},
)
async def capture_snapshot(response: Response) -> SnapshotResponse:
    result = await portfolio_service.capture_daily_snapshot()
    if not result.success:
        raise ConflictError(
            message=result.message or "Snapshot not captured",
            details={"snapshot_date": result.snapshot_date.isoformat()},
        )

    if result.is_update:
        response.status_code = status.HTTP_200_OK
    return SnapshotResponse(**result.to_dict())


@router.get("/stats", response_model=SnapshotStatsResponse, summary="Snapshot statistics")
async def snapshot_stats() -> SnapshotStatsResponse:
    stats = await portfolio_service.fetch_snapshot_stats()
    return SnapshotStatsResponse(**stats.to_dict())
