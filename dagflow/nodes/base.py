"""Base node class for all workflow nodes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, TYPE_CHECKING

from ..core.exceptions import (
    ExecutorError,
    NonRetriableError,
    RunCancelled,
    RunSuspended,
)
from ..engine.expression_engine import expression_engine
from ..engine.types import ExecutionContext, NodeStatus, NodeType, PublishFn, Workflow

if TYPE_CHECKING:
    import httpx

    from ..engine.step_runtime import StepRuntime
    from ..engine.workflow_runner import WorkflowRunner
    from ..integrations.crm import CRMGateway
    from ..integrations.llm import LLMGateway
    from ..storage.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


@dataclass
class NodePropertyOption:
    """Option for a node property."""

    name: str
    value: str
    description: str | None = None


@dataclass
class NodeProperty:
    """Property definition for node schema."""

    display_name: str
    name: str
    type: str  # string, number, boolean, options, collection, json
    default: Any = None
    required: bool = False
    description: str | None = None
    placeholder: str | None = None
    options: list[NodePropertyOption] | None = None
    properties: list[NodeProperty] | None = None  # For collection type
    display_options: dict[str, Any] | None = None
    type_options: dict[str, Any] | None = None


@dataclass
class NodeOutputDefinition:
    """Output handle of a node. Branching nodes declare one per branch."""

    name: str
    display_name: str


@dataclass
class NodeTypeDescription:
    """Full description of a node type for UI generation."""

    display_name: str
    description: str
    icon: str | None = None
    group: list[str] = field(default_factory=lambda: ["transform"])
    outputs: list[NodeOutputDefinition] = field(
        default_factory=lambda: [NodeOutputDefinition(name="main", display_name="Output")]
    )
    properties: list[NodeProperty] = field(default_factory=list)


# Property shared by every node that produces a variable
VARIABLE_NAME_PROPERTY = NodeProperty(
    display_name="Variable Name",
    name="variableName",
    type="string",
    default="",
    placeholder="myVariable",
    description="Name under which this node's output is visible to later nodes",
)


@dataclass
class NodeRuntime:
    """
    Collaborators handed to executors.

    Everything here is injected per run, so executors never reach for globals.
    """

    http_client: httpx.AsyncClient | None = None
    llm: LLMGateway | None = None
    crm: CRMGateway | None = None
    workflow_store: WorkflowStore | None = None
    runner: WorkflowRunner | None = None
    run_id: str | None = None
    # Workflow currently being run, set by the runner
    workflow: Workflow | None = None
    # Bundle nesting level of the workflow being run
    depth: int = 0


@dataclass
class ExecutorParams:
    """Everything a node executor receives for one invocation."""

    data: Mapping[str, Any]
    context: ExecutionContext
    node_id: str
    publish: PublishFn
    step: StepRuntime
    runtime: NodeRuntime = field(default_factory=NodeRuntime)
    retry_on_fail: int = 0
    retry_delay: int | None = None
    node_name: str | None = None


@dataclass
class NodeOutput:
    """Result of a node's side effect plus the control signals it raises."""

    value: Any = None
    should_stop: bool = False
    branch: str | None = None


class BaseNode(ABC):
    """
    Abstract base class for all workflow nodes.

    ``execute`` enforces the executor contract: ``loading`` is published
    before anything else, the side effect in ``perform`` runs once as a named
    step, its value is merged into a copy of the context under the node's
    ``variableName``, and ``success`` or ``error`` is published before
    returning or raising.
    """

    node_description: NodeTypeDescription | None = None

    # Data keys passed to ``perform`` without template resolution
    raw_fields: tuple[str, ...] = ("variableName",)

    @property
    @abstractmethod
    def type(self) -> NodeType:
        """Node type identifier."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description of what the node does."""
        ...

    @abstractmethod
    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        """Perform the node's single side effect and return its output."""
        ...

    def example_output(self, data: Mapping[str, Any]) -> Any:
        """Example of the value this node produces, for variable suggestions."""
        return {"id": "result-id", "success": True}

    async def execute(self, params: ExecutorParams) -> ExecutionContext:
        """Run the node and return the new context."""
        await params.publish(params.node_id, NodeStatus.LOADING)

        try:
            data = self.resolve_data(params.data, params.context)

            async def effect() -> Any:
                return await self.perform(data, params)

            output = await params.step.run(
                f"{params.node_id}:effect",
                effect,
                retries=params.retry_on_fail,
                retry_delay=params.retry_delay,
            )
            context = self.merge(params, output)
        except RunSuspended:
            raise
        except Exception as e:
            if not isinstance(e, RunCancelled):
                logger.exception("Node %s (%s) failed", params.node_id, self.type.value)
            await params.publish(params.node_id, NodeStatus.ERROR)
            raise ExecutorError(params.node_id, self.type.value, e) from e

        await params.publish(params.node_id, NodeStatus.SUCCESS)
        return context

    def resolve_data(self, data: Mapping[str, Any], context: ExecutionContext) -> dict[str, Any]:
        """Resolve templates in the node's data, leaving ``raw_fields`` untouched."""
        resolved: dict[str, Any] = {}
        for key, value in data.items():
            if key in self.raw_fields:
                resolved[key] = value
            else:
                resolved[key] = expression_engine.resolve(value, context)
        return resolved

    def merge(self, params: ExecutorParams, output: Any) -> ExecutionContext:
        """Merge a node output into a copy of the incoming context."""
        if not isinstance(output, NodeOutput):
            output = NodeOutput(value=output)

        context = params.context
        variable_name = params.data.get("variableName")
        if variable_name:
            context = context.with_variable(variable_name, output.value)
        if output.should_stop:
            context = context.stop()
        if output.branch is not None:
            context = context.select_branch(output.branch)
        return context

    def get_parameter(self, data: Mapping[str, Any], key: str, default: Any = None) -> Any:
        """Get a parameter value from node data."""
        value = data.get(key)
        if value is None or value == "":
            if default is None and self._is_required_parameter(key):
                raise NonRetriableError(f'Missing required parameter "{key}" on {self.type.value} node')
            return default
        return value

    def _is_required_parameter(self, key: str) -> bool:
        """Check if a parameter is required."""
        if not self.node_description:
            return False
        for prop in self.node_description.properties:
            if prop.name == key:
                return prop.required
        return False
