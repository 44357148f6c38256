"""Workflow routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import (
    ValidationError,
    WorkflowNotFoundError,
)
from ..core.dependencies import get_run_service, get_workflow_service
from ..services.run_service import RunService, accepted_run_response, to_run_response
from ..services.workflow_service import WorkflowService
from ..schemas.workflow import (
    RenameVariableRequest,
    ValidationResponse,
    VariableItemSchema,
    WorkflowCreateRequest,
    WorkflowDetailResponse,
    WorkflowListItem,
    WorkflowResponse,
    WorkflowUpdateRequest,
)
from ..schemas.run import RunRequest, RunResponse
from ..schemas.common import SuccessResponse

router = APIRouter(prefix="/workflows")


# Type aliases for dependency injection
WorkflowServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]
RunServiceDep = Annotated[RunService, Depends(get_run_service)]


@router.get("", response_model=list[WorkflowListItem])
async def list_workflows(service: WorkflowServiceDep) -> list[WorkflowListItem]:
    """List all workflows."""
    return await service.list_workflows()


@router.get("/{workflow_id}", response_model=WorkflowDetailResponse)
async def get_workflow(
    workflow_id: str,
    service: WorkflowServiceDep,
) -> WorkflowDetailResponse:
    """Get a single workflow by ID."""
    try:
        return await service.get_workflow(workflow_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("", response_model=WorkflowResponse, status_code=201)
async def create_workflow(
    workflow: WorkflowCreateRequest,
    service: WorkflowServiceDep,
) -> WorkflowResponse:
    """Create a new workflow."""
    try:
        return await service.create_workflow(workflow)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.put("/{workflow_id}", response_model=WorkflowDetailResponse)
async def update_workflow(
    workflow_id: str,
    workflow: WorkflowUpdateRequest,
    service: WorkflowServiceDep,
) -> WorkflowDetailResponse:
    """Update an existing workflow."""
    try:
        return await service.update_workflow(workflow_id, workflow)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.delete("/{workflow_id}", response_model=SuccessResponse)
async def delete_workflow(
    workflow_id: str,
    service: WorkflowServiceDep,
) -> SuccessResponse:
    """Delete a workflow."""
    try:
        await service.delete_workflow(workflow_id)
        return SuccessResponse(message="Workflow deleted")
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{workflow_id}/validate", response_model=ValidationResponse)
async def validate_workflow(
    workflow_id: str,
    service: WorkflowServiceDep,
) -> ValidationResponse:
    """Validate a workflow graph and return its execution order."""
    try:
        return await service.validate_workflow(workflow_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/{workflow_id}/nodes/{node_id}/variables", response_model=list[VariableItemSchema])
async def get_node_variables(
    workflow_id: str,
    node_id: str,
    service: WorkflowServiceDep,
) -> list[VariableItemSchema]:
    """List the variables a node can reference, nearest producer first."""
    try:
        return await service.get_variables(workflow_id, node_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{workflow_id}/nodes/{node_id}/rename-variable", response_model=WorkflowDetailResponse)
async def rename_node_variable(
    workflow_id: str,
    node_id: str,
    body: RenameVariableRequest,
    service: WorkflowServiceDep,
) -> WorkflowDetailResponse:
    """Rename a node's variable and update the templates that reference it."""
    try:
        return await service.rename_variable(workflow_id, node_id, body.old_name, body.new_name)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/{workflow_id}/run", response_model=RunResponse)
async def run_workflow(
    workflow_id: str,
    service: RunServiceDep,
    body: RunRequest | None = None,
    wait: bool = Query(False, description="Respond only after the run finishes or parks"),
) -> RunResponse:
    """
    Run a saved workflow with optional trigger data.

    By default the run is accepted and driven in the background, and the
    response carries the channel to follow it on. With ``deferStart`` the run
    waits until a status stream opened with ``start=true`` launches it.
    """
    body = body or RunRequest()
    try:
        if wait:
            result = await service.trigger(
                workflow_id,
                initial_data=body.initial_data,
                variable_name=body.variable_name,
            )
            return to_run_response(result)
        record = service.start(
            workflow_id,
            initial_data=body.initial_data,
            variable_name=body.variable_name,
        )
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not body.defer_start:
        service.launch(record.id)
    return accepted_run_response(record)
