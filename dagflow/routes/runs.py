"""Run history and control routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import RunInProgressError, RunNotFoundError
from ..core.dependencies import get_run_service
from ..services.run_service import RunService, to_run_response
from ..schemas.run import RunDetailResponse, RunListItem, RunResponse

router = APIRouter(prefix="/runs")


# Type alias for dependency injection
RunServiceDep = Annotated[RunService, Depends(get_run_service)]


@router.get("", response_model=list[RunListItem])
async def list_runs(
    service: RunServiceDep,
    workflow_id: str | None = Query(None, description="Filter by workflow ID"),
) -> list[RunListItem]:
    """List run history, newest first."""
    return await service.list_runs(workflow_id)


@router.get("/{run_id}", response_model=RunDetailResponse)
async def get_run(
    run_id: str,
    service: RunServiceDep,
) -> RunDetailResponse:
    """Get run details."""
    try:
        return await service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{run_id}/resume", response_model=RunResponse)
async def resume_run(
    run_id: str,
    service: RunServiceDep,
) -> RunResponse:
    """Replay a suspended run now. A run that is executing answers 409."""
    try:
        return to_run_response(await service.resume(run_id))
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.post("/{run_id}/cancel", response_model=RunDetailResponse)
async def cancel_run(
    run_id: str,
    service: RunServiceDep,
) -> RunDetailResponse:
    """Cancel a run. It schedules no further steps."""
    try:
        await service.cancel(run_id)
        return await service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
