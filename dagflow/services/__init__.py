"""Service layer for workflow engine business logic."""

from .workflow_service import WorkflowService
from .run_service import RunService
from .node_service import NodeService
from .realtime_service import RealtimeService

__all__ = [
    "WorkflowService",
    "RunService",
    "NodeService",
    "RealtimeService",
]
