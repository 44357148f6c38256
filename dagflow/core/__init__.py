"""Core module for workflow engine - config, exceptions, and dependencies."""

from .config import settings, Settings
from .exceptions import (
    WorkflowEngineError,
    WorkflowNotFoundError,
    RunNotFoundError,
    RunInProgressError,
    NodeNotFoundError,
    ValidationError,
    CycleDetected,
    ExecutorError,
    NonRetriableError,
    SubscriptionDenied,
    RunSuspended,
    RunCancelled,
)

__all__ = [
    # Config
    "settings",
    "Settings",
    # Exceptions
    "WorkflowEngineError",
    "WorkflowNotFoundError",
    "RunNotFoundError",
    "RunInProgressError",
    "NodeNotFoundError",
    "ValidationError",
    "CycleDetected",
    "ExecutorError",
    "NonRetriableError",
    "SubscriptionDenied",
    "RunSuspended",
    "RunCancelled",
]
