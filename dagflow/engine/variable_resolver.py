"""
Variable resolver - which variables can a node reference?

Walks the ancestors of a node and lists the variables they produce, nearest
first, so the editor can offer them as template suggestions. Bundle workflows
additionally expose their declared inputs and the calling workflow's context.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Mapping

from ..core.exceptions import CycleDetected
from .graph import WorkflowGraph
from .types import BUNDLE_ROOT, PARENT_WORKFLOW, BundleInput, Node, VariableItem, Workflow

if TYPE_CHECKING:
    from .node_registry import NodeRegistry

# Arrays only show this many example indices
MAX_ARRAY_EXAMPLES = 5

GENERIC_EXAMPLE: dict[str, Any] = {"id": "result-id", "success": True}

PARENT_PLACEHOLDER: dict[str, Any] = {
    "nodeName1": {"field1": "example value", "field2": 123},
    "nodeName2": {"result": "example result"},
}


@dataclass
class BundleContext:
    """Extra scope for nodes that live inside a bundle workflow."""

    is_bundle: bool = False
    bundle_inputs: list[BundleInput] = field(default_factory=list)
    # workflow name -> node name -> variables
    parent_workflow_context: Mapping[str, Mapping[str, Any]] | None = None
    bundle_workflow_name: str | None = None

    @classmethod
    def for_workflow(
        cls,
        workflow: Workflow,
        parent_workflow_context: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> BundleContext:
        return cls(
            is_bundle=workflow.is_bundle,
            bundle_inputs=list(workflow.bundle_inputs),
            parent_workflow_context=parent_workflow_context,
            bundle_workflow_name=workflow.name if workflow.is_bundle else None,
        )


def example_value_for_type(type_name: str) -> Any:
    """Placeholder example for a declared bundle input type."""
    examples: dict[str, Any] = {
        "string": "example text",
        "number": 42,
        "boolean": True,
        "array": ["item1", "item2"],
        "object": {"key": "value"},
        "date": "2025-01-01T00:00:00.000Z",
    }
    return examples.get(type_name.lower(), "example value")


def build_variable_tree(
    obj: Mapping[str, Any],
    parent_path: str = "",
    produced_by: str | None = None,
    distance: int = 0,
) -> list[VariableItem]:
    """Flatten an example object into nested suggestion items."""
    items: list[VariableItem] = []

    for key, value in obj.items():
        path = f"{parent_path}.{key}" if parent_path else key
        items.append(_tree_item(path, str(key), value, produced_by, distance))

    return items


def _tree_item(
    path: str,
    label: str,
    value: Any,
    produced_by: str | None,
    distance: int,
) -> VariableItem:
    if isinstance(value, Mapping):
        children = build_variable_tree(value, path, produced_by, distance)
        return VariableItem(
            path=path,
            label=label,
            type="object",
            produced_by=produced_by,
            distance=distance,
            children=children or None,
        )

    if isinstance(value, (list, tuple)):
        children = [
            _tree_item(f"{path}.{index}", f"[{index}]", item, produced_by, distance)
            for index, item in enumerate(value[:MAX_ARRAY_EXAMPLES])
        ]
        return VariableItem(
            path=path,
            label=label,
            type="array",
            produced_by=produced_by,
            distance=distance,
            children=children or None,
        )

    return VariableItem(path=path, label=label, produced_by=produced_by, distance=distance)


def example_output_for_node(node: Node, registry: NodeRegistry | None = None) -> Any:
    """Example output shape for a node, inferred from its type."""
    if registry is not None and registry.has(node.type):
        return registry.get(node.type).example_output(node.data)
    return dict(GENERIC_EXAMPLE)


def resolve_variables(
    target_node_id: str,
    graph: WorkflowGraph | Workflow,
    bundle_context: BundleContext | None = None,
    registry: NodeRegistry | None = None,
) -> list[VariableItem]:
    """
    List the variables visible to ``target_node_id``.

    One item per ancestor declaring a ``variableName``, nearest first. When
    two ancestors share a name the nearer one wins; at equal distance the one
    later in topological order wins, matching run-time overwrite order.
    Bundle inputs and parent workflow context follow the graph ancestors.
    """
    if isinstance(graph, Workflow):
        graph = WorkflowGraph(graph)
    if registry is None:
        from .node_registry import node_registry

        registry = node_registry

    try:
        arrival = {node.id: index for index, node in enumerate(graph.topological_order())}
    except CycleDetected:
        arrival = {node.id: graph.position(node.id) for node in graph.nodes}

    chosen: dict[str, tuple[Node, int]] = {}
    ancestors = graph.ancestors_by_distance(target_node_id)
    for node, distance in ancestors:
        name = node.variable_name
        if not name:
            continue
        existing = chosen.get(name)
        if (
            existing is None
            or distance < existing[1]
            or (distance == existing[1] and arrival[node.id] > arrival[existing[0].id])
        ):
            chosen[name] = (node, distance)

    ordered = sorted(chosen.items(), key=lambda item: (item[1][1], graph.position(item[1][0].id)))
    items = [
        _tree_item(name, name, example_output_for_node(node, registry), node.id, distance)
        for name, (node, distance) in ordered
    ]

    if bundle_context is None or not bundle_context.is_bundle:
        return items

    # Bundle inputs are injected before any node runs, so they sit beyond the farthest ancestor
    bundle_distance = max((distance for _, distance in ancestors), default=0) + 1
    for bundle_input in bundle_context.bundle_inputs:
        if bundle_input.name in chosen:
            continue
        example = bundle_input.default_value
        if example is None:
            example = example_value_for_type(bundle_input.type)
        items.append(_tree_item(bundle_input.name, bundle_input.name, example, BUNDLE_ROOT, bundle_distance))
        chosen[bundle_input.name] = (None, bundle_distance)  # type: ignore[assignment]

    parent_context = bundle_context.parent_workflow_context
    if parent_context:
        for workflow_name, workflow_variables in parent_context.items():
            if workflow_name in chosen:
                continue
            items.append(
                _tree_item(workflow_name, workflow_name, dict(workflow_variables), PARENT_WORKFLOW, bundle_distance + 1)
            )
    elif bundle_context.bundle_workflow_name:
        items.append(
            _tree_item(
                bundle_context.bundle_workflow_name,
                bundle_context.bundle_workflow_name,
                PARENT_PLACEHOLDER,
                PARENT_WORKFLOW,
                bundle_distance + 1,
            )
        )

    return items


def update_variable_references(
    workflow: Workflow,
    source_node_id: str,
    old_name: str,
    new_name: str,
) -> Workflow:
    """
    Rename a variable in every template downstream of ``source_node_id``.

    Returns a new workflow; nodes that are not descendants are untouched.
    """
    if old_name == new_name:
        return workflow

    graph = WorkflowGraph(workflow)
    downstream = {node.id for node in graph.descendants(source_node_id)}
    pattern = re.compile(r"\{\{(\s*(?:json\s+)?)" + re.escape(old_name) + r"(?=[.\s}])")

    def rewrite(value: Any) -> Any:
        if isinstance(value, str):
            return pattern.sub(lambda m: "{{" + m.group(1) + new_name, value)
        if isinstance(value, (list, tuple)):
            return [rewrite(item) for item in value]
        if isinstance(value, Mapping):
            return {key: rewrite(item) for key, item in value.items()}
        return value

    nodes = [
        replace(node, data=rewrite(node.data)) if node.id in downstream else node
        for node in workflow.nodes
    ]
    return replace(workflow, nodes=nodes)
