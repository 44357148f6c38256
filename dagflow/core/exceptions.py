"""Custom exceptions for the workflow engine."""

from datetime import datetime
from typing import Any


class WorkflowEngineError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class WorkflowNotFoundError(WorkflowEngineError):
    """Raised when a workflow is not found."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            message=f"Workflow not found: {workflow_id}",
            details={"workflow_id": workflow_id},
        )
        self.workflow_id = workflow_id


class RunNotFoundError(WorkflowEngineError):
    """Raised when a run record is not found."""

    def __init__(self, run_id: str) -> None:
        super().__init__(
            message=f"Run not found: {run_id}",
            details={"run_id": run_id},
        )
        self.run_id = run_id


class RunInProgressError(WorkflowEngineError):
    """Raised when a run is resumed while it is already executing."""

    def __init__(self, run_id: str) -> None:
        super().__init__(
            message=f"Run is already executing: {run_id}",
            details={"run_id": run_id},
        )
        self.run_id = run_id


class NodeNotFoundError(WorkflowEngineError):
    """Raised when a node type is not found."""

    def __init__(self, node_type: str) -> None:
        super().__init__(
            message=f"Node type not found: {node_type}",
            details={"node_type": node_type},
        )
        self.node_type = node_type


class ValidationError(WorkflowEngineError):
    """Raised when a workflow graph is malformed.

    Always raised before a run starts, never mid-run.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )
        self.field = field


class CycleDetected(ValidationError):
    """Raised when topological ordering cannot visit every node."""

    def __init__(self, remaining: list[str]) -> None:
        super().__init__(
            message=f"Workflow has a cycle involving: {', '.join(remaining)}",
            field="edges",
        )
        self.details["remaining"] = remaining
        self.remaining = remaining


class ExecutorError(WorkflowEngineError):
    """Raised when a node's side effect fails.

    The executor has already published the ``error`` status when this is raised.
    """

    def __init__(self, node_id: str, node_type: str, cause: BaseException) -> None:
        super().__init__(
            message=f'Node "{node_id}" ({node_type}) failed: {cause}',
            details={"node_id": node_id, "node_type": node_type},
        )
        self.node_id = node_id
        self.node_type = node_type
        self.cause = cause


class NonRetriableError(WorkflowEngineError):
    """Raised by executors for failures that retrying cannot fix."""


class SubscriptionDenied(WorkflowEngineError):
    """Raised when a subscription token does not grant the requested channel."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=f"Subscription denied: {reason}")


class RunSuspended(WorkflowEngineError):
    """Raised by the step runtime to park a run at a step boundary."""

    def __init__(
        self,
        step_name: str,
        resume_at: datetime | None = None,
        event: str | None = None,
    ) -> None:
        super().__init__(
            message=f"Run suspended at step {step_name}",
            details={
                "step": step_name,
                "resume_at": resume_at.isoformat() if resume_at else None,
                "event": event,
            },
        )
        self.step_name = step_name
        self.resume_at = resume_at
        self.event = event


class RunCancelled(WorkflowEngineError):
    """Raised when a cancelled run attempts to schedule another step."""

    def __init__(self, run_id: str) -> None:
        super().__init__(
            message=f"Run cancelled: {run_id}",
            details={"run_id": run_id},
        )
        self.run_id = run_id
