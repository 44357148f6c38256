"""Core type definitions for the workflow engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Literal, Mapping

# Variable under which the trigger payload is always visible
TRIGGER_VARIABLE = "trigger"

# Virtual producers used by the variable resolver
BUNDLE_ROOT = "__bundle_root__"
PARENT_WORKFLOW = "__parent_workflow__"


class NodeType(str, Enum):
    """Closed set of node types understood by the engine."""

    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    WEBHOOK_TRIGGER = "WEBHOOK_TRIGGER"
    HTTP_REQUEST = "HTTP_REQUEST"
    AI_COMPLETION = "AI_COMPLETION"
    CREATE_CONTACT = "CREATE_CONTACT"
    UPDATE_CONTACT = "UPDATE_CONTACT"
    CREATE_DEAL = "CREATE_DEAL"
    SET_VARIABLE = "SET_VARIABLE"
    IF_ELSE = "IF_ELSE"
    SWITCH = "SWITCH"
    WAIT = "WAIT"
    STOP_WORKFLOW = "STOP_WORKFLOW"
    BUNDLE_WORKFLOW = "BUNDLE_WORKFLOW"

    @property
    def is_trigger(self) -> bool:
        return self in (NodeType.MANUAL_TRIGGER, NodeType.WEBHOOK_TRIGGER)


class NodeStatus(str, Enum):
    """Live status of a node within one run."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RunStatus(str, Enum):
    """Lifecycle of a single workflow run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"
    SUSPENDED = "suspended"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.STOPPED, RunStatus.FAILED)


# --- Workflow Schema Types ---


@dataclass(frozen=True)
class BundleInput:
    """Named parameter a bundle workflow accepts from its caller."""

    name: str
    type: str = "string"
    description: str | None = None
    default_value: Any = None


@dataclass(frozen=True)
class BundleOutput:
    """Value a bundle hands back to its caller, read from its final variables."""

    name: str
    variable_path: str


@dataclass(frozen=True)
class Node:
    """A node in a workflow graph. ``data`` is a read-only snapshot."""

    id: str
    type: NodeType
    data: Mapping[str, Any] = field(default_factory=dict)
    name: str | None = None
    position: Mapping[str, float] | None = None
    retry_on_fail: int = 0
    retry_delay: int = 1000

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", NodeType(self.type))
        object.__setattr__(self, "data", MappingProxyType(copy.deepcopy(dict(self.data))))

    def __hash__(self) -> int:
        return hash((self.id, self.type))

    @property
    def variable_name(self) -> str | None:
        value = self.data.get("variableName")
        return value or None

    @property
    def label(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class Edge:
    """Directed connection between two nodes."""

    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None


@dataclass(frozen=True)
class Workflow:
    """Immutable workflow snapshot."""

    id: str
    name: str
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    is_bundle: bool = False
    bundle_inputs: tuple[BundleInput, ...] = ()
    bundle_outputs: tuple[BundleOutput, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        object.__setattr__(self, "bundle_inputs", tuple(self.bundle_inputs))
        object.__setattr__(self, "bundle_outputs", tuple(self.bundle_outputs))

    def __hash__(self) -> int:
        return hash(self.id)

    def get_node(self, node_id: str) -> Node | None:
        return next((n for n in self.nodes if n.id == node_id), None)


# --- Execution Types ---


@dataclass(frozen=True)
class ExecutionContext:
    """Accumulated state threaded through a run.

    Never mutated in place: every operation returns a new context.
    """

    variables: Mapping[str, Any] = field(default_factory=dict)
    should_stop: bool = False
    trigger_data: Any = None
    # Output handle chosen by a branching node, consumed by the runner
    branch: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @classmethod
    def from_trigger(
        cls,
        initial_data: Any = None,
        variable_name: str | None = None,
    ) -> ExecutionContext:
        """Seed a context from a trigger payload."""
        data = initial_data if initial_data is not None else {}
        variables: dict[str, Any] = {TRIGGER_VARIABLE: data}
        if variable_name:
            variables[variable_name] = data
        return cls(variables=variables, trigger_data=data)

    def with_variable(self, name: str, value: Any) -> ExecutionContext:
        return replace(self, variables={**self.variables, name: value})

    def with_variables(self, values: Mapping[str, Any]) -> ExecutionContext:
        return replace(self, variables={**self.variables, **values})

    def stop(self) -> ExecutionContext:
        return replace(self, should_stop=True)

    def select_branch(self, handle: str | None) -> ExecutionContext:
        return replace(self, branch=handle)

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict view used for template resolution.

        Variables are reachable both at the top level and under ``variables``.
        """
        variables = dict(self.variables)
        return {
            **variables,
            "variables": variables,
            "triggerData": self.trigger_data,
            "shouldStop": self.should_stop,
        }


@dataclass
class StatusEvent:
    """One node status transition, as broadcast on a run's channel."""

    run_id: str
    node_id: str
    status: NodeStatus
    topic: str = "status"
    timestamp: datetime = field(default_factory=datetime.now)

    def to_payload(self) -> dict[str, str]:
        return {"nodeId": self.node_id, "status": self.status.value}


# Capability handed to executors for emitting status transitions
PublishFn = Callable[[str, NodeStatus], Awaitable[None]]


@dataclass
class TriggerEvent:
    """External event that starts a run."""

    workflow_id: str
    initial_data: Any = None
    variable_name: str | None = None
    mode: Literal["manual", "webhook", "event", "bundle"] = "manual"


@dataclass
class NodeRunError:
    """Error attributed to one node of a run."""

    node_id: str
    error: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RunResult:
    """Outcome of (one invocation of) a run."""

    run_id: str
    workflow_id: str
    status: RunStatus
    context: ExecutionContext
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    variable_sources: dict[str, str] = field(default_factory=dict)
    error: NodeRunError | None = None
    resume_at: datetime | None = None
    waiting_for_event: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def failed_node(self) -> str | None:
        return self.error.node_id if self.error else None


@dataclass
class RunRecord:
    """Run history entry kept by the run store."""

    id: str
    workflow_id: str
    workflow_name: str
    status: RunStatus
    trigger: TriggerEvent
    start_time: datetime
    end_time: datetime | None = None
    result: RunResult | None = None


@dataclass
class StoredWorkflow:
    """Stored workflow with metadata."""

    id: str
    name: str
    workflow: Workflow
    active: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class VariableItem:
    """A variable (or nested field) a node may reference in its templates."""

    path: str
    label: str
    type: Literal["object", "array", "primitive"] = "primitive"
    produced_by: str | None = None
    distance: int = 0
    children: list[VariableItem] | None = None

    @property
    def name(self) -> str:
        return self.path.split(".", 1)[0]
