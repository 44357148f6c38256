"""Node catalogue routes for the editor palette."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import NodeNotFoundError
from ..core.dependencies import get_node_service
from ..services.node_service import NodeService

router = APIRouter(prefix="/nodes")


NodeServiceDep = Annotated[NodeService, Depends(get_node_service)]


@router.get("", response_model=list[dict[str, Any]])
async def list_node_types(
    service: NodeServiceDep,
    group: str | None = Query(None, description="Only node types in this palette group"),
    trigger: bool | None = Query(None, description="true for trigger types only, false to exclude them"),
) -> list[dict[str, Any]]:
    """List registered node types with their properties and example output."""
    return service.list_nodes(group=group, is_trigger=trigger)


@router.get("/{node_type}", response_model=dict[str, Any])
async def get_node_type(
    node_type: str,
    service: NodeServiceDep,
) -> dict[str, Any]:
    """Describe one node type. Unregistered types answer 404."""
    try:
        return service.get_node(node_type)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
