"""Run-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Trigger payload for a manual run."""

    initial_data: Any = Field(None, alias="initialData", description="Payload seeded into the context")
    variable_name: str | None = Field(
        None, alias="variableName", description="Extra variable name the payload is visible under"
    )
    defer_start: bool = Field(
        False,
        alias="deferStart",
        description="Accept the run without driving it. A stream opened with start=true launches it",
    )

    class Config:
        populate_by_name = True


class RunErrorSchema(BaseModel):
    """Schema for the error that failed a run."""

    node_id: str
    error: str
    timestamp: str


class RunResponse(BaseModel):
    """Outcome of a run (or of one resume of it)."""

    run_id: str = Field(..., description="Unique run ID")
    workflow_id: str
    status: str = Field(..., description="pending, running, completed, stopped, failed or suspended")
    channel: str = Field(..., description="Realtime channel carrying node status")
    variables: dict[str, Any] = Field(default_factory=dict, description="Final context variables")
    variable_sources: dict[str, str] = Field(default_factory=dict, description="Variable -> producing node")
    executed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    error: RunErrorSchema | None = None
    failed_node: str | None = None
    resume_at: str | None = None
    waiting_for_event: str | None = None


class RunListItem(BaseModel):
    """Schema for run in list response."""

    id: str
    workflow_id: str
    workflow_name: str
    status: str
    mode: str
    start_time: str
    end_time: str | None
    failed_node: str | None


class RunDetailResponse(RunListItem):
    """Detailed run response."""

    result: RunResponse | None = None


class EventRequest(BaseModel):
    """External event delivered to waiting runs."""

    payload: Any = None


class EventResponse(BaseModel):
    event: str
    woken_runs: list[str]


class TokenRequest(BaseModel):
    """Request for a realtime subscription token."""

    run_id: str = Field(..., alias="runId")
    topics: list[str] = Field(default_factory=lambda: ["status"])

    class Config:
        populate_by_name = True


class TokenResponse(BaseModel):
    token: str
    channel: str
    topics: list[str]
    expires_in: int
