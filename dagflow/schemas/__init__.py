"""Pydantic schemas for API request/response validation."""

from .workflow import (
    NodeSchema,
    EdgeSchema,
    BundleInputSchema,
    BundleOutputSchema,
    WorkflowCreateRequest,
    WorkflowUpdateRequest,
    WorkflowResponse,
    WorkflowListItem,
    WorkflowDetailResponse,
    ValidationResponse,
    VariableItemSchema,
    RenameVariableRequest,
)
from .run import (
    RunRequest,
    RunErrorSchema,
    RunResponse,
    RunListItem,
    RunDetailResponse,
    EventRequest,
    EventResponse,
    TokenRequest,
    TokenResponse,
)
from .common import (
    SuccessResponse,
    ErrorResponse,
    HealthResponse,
    RootResponse,
)

__all__ = [
    "NodeSchema",
    "EdgeSchema",
    "BundleInputSchema",
    "BundleOutputSchema",
    "WorkflowCreateRequest",
    "WorkflowUpdateRequest",
    "WorkflowResponse",
    "WorkflowListItem",
    "WorkflowDetailResponse",
    "ValidationResponse",
    "VariableItemSchema",
    "RenameVariableRequest",
    "RunRequest",
    "RunErrorSchema",
    "RunResponse",
    "RunListItem",
    "RunDetailResponse",
    "EventRequest",
    "EventResponse",
    "TokenRequest",
    "TokenResponse",
    "SuccessResponse",
    "ErrorResponse",
    "HealthResponse",
    "RootResponse",
]
