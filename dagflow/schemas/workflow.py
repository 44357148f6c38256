"""Workflow-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class NodeSchema(BaseModel):
    """Schema for a node in a workflow."""

    id: str = Field(..., min_length=1, description="Unique id of this node in the workflow")
    type: str = Field(..., description="Node type identifier, e.g. HTTP_REQUEST")
    name: str | None = Field(None, description="Display label for the node")
    data: dict[str, Any] = Field(default_factory=dict, description="Type specific configuration")
    position: dict[str, float] | None = Field(None, description="UI position {x, y}")
    retry_on_fail: int = Field(0, ge=0, alias="retryOnFail", description="Number of retries on failure")
    retry_delay: int = Field(1000, ge=0, alias="retryDelay", description="Initial delay between retries in ms")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "fetch",
                "type": "HTTP_REQUEST",
                "data": {"variableName": "todo", "endpoint": "https://api.example.com/todos/1", "method": "GET"},
                "position": {"x": 100, "y": 200},
            }
        }


class EdgeSchema(BaseModel):
    """Schema for an edge between nodes."""

    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_handle: str | None = Field(None, alias="sourceHandle", description="Branch handle on the source")
    target_handle: str | None = Field(None, alias="targetHandle", description="Input handle on the target")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"source": "check", "target": "notify", "sourceHandle": "true"}
        }


class BundleInputSchema(BaseModel):
    """A named input a bundle workflow accepts."""

    name: str
    type: str = "string"
    description: str | None = None
    default_value: Any = Field(None, alias="defaultValue")

    class Config:
        populate_by_name = True


class BundleOutputSchema(BaseModel):
    """A value a bundle hands back to its caller."""

    name: str
    variable_path: str = Field(..., alias="variablePath")

    class Config:
        populate_by_name = True


class WorkflowCreateRequest(BaseModel):
    """Request schema for creating a workflow."""

    id: str | None = Field(None, description="Optional id, generated when omitted")
    name: str = Field(..., min_length=1, max_length=255, description="Workflow name")
    nodes: list[NodeSchema] = Field(..., min_length=1, description="List of nodes")
    edges: list[EdgeSchema] = Field(default_factory=list, description="List of edges")
    description: str | None = Field(None, max_length=1000, description="Workflow description")
    is_bundle: bool = Field(False, alias="isBundle")
    bundle_inputs: list[BundleInputSchema] = Field(default_factory=list, alias="bundleInputs")
    bundle_outputs: list[BundleOutputSchema] = Field(default_factory=list, alias="bundleOutputs")

    class Config:
        populate_by_name = True


class WorkflowUpdateRequest(BaseModel):
    """Request schema for updating a workflow. Omitted fields keep their value."""

    name: str | None = Field(None, min_length=1, max_length=255, description="Workflow name")
    nodes: list[NodeSchema] | None = Field(None, description="List of nodes")
    edges: list[EdgeSchema] | None = Field(None, description="List of edges")
    description: str | None = Field(None, max_length=1000, description="Workflow description")
    is_bundle: bool | None = Field(None, alias="isBundle")
    bundle_inputs: list[BundleInputSchema] | None = Field(None, alias="bundleInputs")
    bundle_outputs: list[BundleOutputSchema] | None = Field(None, alias="bundleOutputs")

    class Config:
        populate_by_name = True


class WorkflowResponse(BaseModel):
    """Response schema for workflow creation."""

    id: str
    name: str
    active: bool
    webhook_url: str
    created_at: str


class WorkflowListItem(BaseModel):
    """Schema for workflow in list response."""

    id: str
    name: str
    active: bool
    is_bundle: bool
    webhook_url: str
    node_count: int
    created_at: str
    updated_at: str


class WorkflowDetailResponse(BaseModel):
    """Detailed workflow response."""

    id: str
    name: str
    active: bool
    webhook_url: str
    definition: dict[str, Any]
    created_at: str
    updated_at: str


class ValidationResponse(BaseModel):
    """Result of validating a workflow graph."""

    valid: bool
    order: list[str] = Field(default_factory=list, description="Execution order when valid")
    error: str | None = None
    field: str | None = None


class VariableItemSchema(BaseModel):
    """A variable a node may reference, with its nested fields."""

    name: str
    path: str
    label: str
    type: str
    produced_by: str | None
    distance: int
    children: list["VariableItemSchema"] | None = None


class RenameVariableRequest(BaseModel):
    """Rename a node's variable and every downstream reference to it."""

    old_name: str = Field(..., alias="oldName")
    new_name: str = Field(..., alias="newName", pattern=r"^[A-Za-z_$][A-Za-z0-9_$]*$")

    class Config:
        populate_by_name = True
