"""Storage layer for workflows and runs."""

from .workflow_store import WorkflowStore, workflow_store
from .run_store import RunStore, run_store

__all__ = [
    "WorkflowStore",
    "workflow_store",
    "RunStore",
    "run_store",
]
