"""FastAPI dependency injection for workflow engine."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends


# --- Shared Engine Components ---


@lru_cache
def get_node_registry():
    """Get node registry instance."""
    from ..engine.node_registry import node_registry

    return node_registry


@lru_cache
def get_workflow_store():
    """Get workflow store instance."""
    from ..storage.workflow_store import workflow_store

    return workflow_store


@lru_cache
def get_run_store():
    """Get run store instance."""
    from ..storage.run_store import run_store

    return run_store


@lru_cache
def get_status_channel():
    """Get realtime status channel instance."""
    from ..realtime.channel import status_channel

    return status_channel


@lru_cache
def get_event_bus():
    """Get the event bus shared by every run."""
    from ..engine.step_runtime import EventBus

    return EventBus()


@lru_cache
def get_workflow_runner():
    """Get workflow runner instance."""
    from ..engine.workflow_runner import WorkflowRunner

    return WorkflowRunner(get_node_registry(), get_status_channel())


@lru_cache
def get_node_runtime():
    """Collaborators handed to node executors."""
    from ..integrations import LLMGateway, create_crm_gateway
    from ..nodes.base import NodeRuntime

    return NodeRuntime(
        llm=LLMGateway(),
        crm=create_crm_gateway(),
        workflow_store=get_workflow_store(),
        runner=get_workflow_runner(),
    )


# --- Service Dependencies ---


def get_workflow_service(
    workflow_store=Depends(get_workflow_store),
    node_registry=Depends(get_node_registry),
):
    """Get workflow service instance."""
    from ..services.workflow_service import WorkflowService

    return WorkflowService(workflow_store, node_registry)


@lru_cache
def get_run_service():
    """Get run service instance. One per process, it owns the unfinished runs."""
    from ..services.run_service import RunService

    return RunService(
        get_workflow_runner(),
        get_workflow_store(),
        get_run_store(),
        get_event_bus(),
        get_node_runtime(),
        get_status_channel(),
    )


def get_node_service(
    node_registry=Depends(get_node_registry),
):
    """Get node service instance."""
    from ..services.node_service import NodeService

    return NodeService(node_registry)


def get_realtime_service(
    channel=Depends(get_status_channel),
    run_store=Depends(get_run_store),
):
    """Get realtime service instance."""
    from ..services.realtime_service import RealtimeService

    return RealtimeService(channel, run_store)
