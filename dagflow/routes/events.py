"""External event routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ..core.dependencies import get_run_service
from ..services.run_service import RunService
from ..schemas.run import EventRequest, EventResponse

router = APIRouter(prefix="/events")


RunServiceDep = Annotated[RunService, Depends(get_run_service)]


@router.post("/{event_name}", response_model=EventResponse)
async def send_event(
    event_name: str,
    service: RunServiceDep,
    body: EventRequest | None = None,
) -> EventResponse:
    """Deliver an event to the runs waiting for it."""
    woken = await service.send_event(event_name, body.payload if body else None)
    return EventResponse(event=event_name, woken_runs=woken)
