"""Core workflow engine components."""

from .types import (
    NodeType,
    NodeStatus,
    RunStatus,
    Node,
    Edge,
    Workflow,
    BundleInput,
    BundleOutput,
    ExecutionContext,
    TriggerEvent,
    RunResult,
    RunRecord,
    StoredWorkflow,
    StatusEvent,
    VariableItem,
)
from .graph import WorkflowGraph
from .expression_engine import ExpressionEngine, expression_engine
from .variable_resolver import BundleContext, resolve_variables, update_variable_references
from .step_runtime import EventBus, InMemoryStepRuntime, StepJournal, StepRuntime
from .node_registry import NodeRegistry, node_registry, register_all_nodes
from .workflow_runner import WorkflowRunner

__all__ = [
    "NodeType",
    "NodeStatus",
    "RunStatus",
    "Node",
    "Edge",
    "Workflow",
    "BundleInput",
    "BundleOutput",
    "ExecutionContext",
    "TriggerEvent",
    "RunResult",
    "RunRecord",
    "StoredWorkflow",
    "StatusEvent",
    "VariableItem",
    "WorkflowGraph",
    "ExpressionEngine",
    "expression_engine",
    "BundleContext",
    "resolve_variables",
    "update_variable_references",
    "EventBus",
    "InMemoryStepRuntime",
    "StepJournal",
    "StepRuntime",
    "NodeRegistry",
    "node_registry",
    "register_all_nodes",
    "WorkflowRunner",
]
