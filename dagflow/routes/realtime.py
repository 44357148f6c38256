"""Server-Sent Events (SSE) routes for live node status."""

from __future__ import annotations

import json
from typing import Annotated, AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sse_starlette.sse import EventSourceResponse

from ..core.exceptions import RunNotFoundError, SubscriptionDenied
from ..core.dependencies import get_realtime_service, get_run_service
from ..services.realtime_service import RealtimeService
from ..services.run_service import RunService
from ..schemas.run import TokenRequest, TokenResponse

router = APIRouter(prefix="/realtime")

# Seconds between disconnect checks while no status arrives
POLL_INTERVAL = 15.0


RealtimeServiceDep = Annotated[RealtimeService, Depends(get_realtime_service)]
RunServiceDep = Annotated[RunService, Depends(get_run_service)]


@router.post("/token", response_model=TokenResponse)
async def create_token(
    body: TokenRequest,
    service: RealtimeServiceDep,
) -> TokenResponse:
    """Issue a short-lived token for one run's status channel."""
    try:
        return service.issue_token(body.run_id, body.topics)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/{run_id}/stream")
async def stream_run_status(
    run_id: str,
    request: Request,
    service: RealtimeServiceDep,
    runs: RunServiceDep,
    token: str = Query(..., description="Subscription token for this run"),
    start: bool = Query(False, description="Launch the run if it was accepted with deferStart"),
) -> EventSourceResponse:
    """
    Stream node status changes of a run via SSE.

    The stream ends when the run finishes. Subscribing happens before a
    deferred run is launched, so no status of that run is missed.
    """
    try:
        subscription = service.subscribe(run_id, token)
    except SubscriptionDenied as e:
        raise HTTPException(status_code=403, detail=e.message)

    if start and runs.is_deferred(run_id):
        runs.launch(run_id)

    async def event_generator() -> AsyncGenerator[dict[str, str], None]:
        try:
            while True:
                event = await subscription.get(timeout=POLL_INTERVAL)
                if event is None:
                    if subscription.closed or await request.is_disconnected():
                        break
                    continue
                yield {"event": event.topic, "data": json.dumps(event.to_payload())}
        finally:
            subscription.close()

    return EventSourceResponse(event_generator())
