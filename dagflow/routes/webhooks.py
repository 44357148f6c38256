"""Webhook routes for triggering workflows."""

from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request

from ..core.exceptions import ValidationError, WorkflowNotFoundError
from ..core.dependencies import get_run_service
from ..realtime.channel import run_channel
from ..services.run_service import RunService

router = APIRouter()


RunServiceDep = Annotated[RunService, Depends(get_run_service)]


@router.post("/webhook/{workflow_id}", status_code=202)
async def handle_webhook(
    workflow_id: str,
    request: Request,
    service: RunServiceDep,
) -> dict[str, Any]:
    """Handle incoming webhook to trigger a workflow. The run proceeds in the background."""
    try:
        body = await request.json()
    except json.JSONDecodeError:
        body = {}

    try:
        record = service.start_webhook(
            workflow_id,
            method=request.method,
            body=body,
            headers=dict(request.headers),
            query_params=dict(request.query_params),
        )
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    service.launch(record.id)
    return {
        "status": record.status.value,
        "runId": record.id,
        "channel": run_channel(record.id),
        "message": "Workflow triggered",
    }
