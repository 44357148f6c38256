"""Node registry for managing workflow node types."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, TYPE_CHECKING

from ..core.exceptions import NodeNotFoundError, WorkflowEngineError
from .types import NodeType

if TYPE_CHECKING:
    from ..nodes.base import BaseNode, NodeProperty

logger = logging.getLogger(__name__)


@dataclass
class NodeTypeInfo:
    """Full node type information for API responses."""

    type: str
    display_name: str
    description: str
    icon: str | None = None
    group: list[str] | None = None
    properties: list[dict[str, Any]] = field(default_factory=list)
    outputs: list[dict[str, Any]] = field(default_factory=list)
    is_trigger: bool = False
    example_output: Any = None


class NodeRegistry:
    """
    Maps each node type to exactly one executor.

    Populated at startup and then frozen into a read-only lookup table.
    """

    def __init__(self) -> None:
        self._instances: dict[NodeType, BaseNode] = {}
        self._frozen: Mapping[NodeType, BaseNode] | None = None

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def _table(self) -> Mapping[NodeType, BaseNode]:
        return self._frozen if self._frozen is not None else self._instances

    def register(self, node_class: type[BaseNode]) -> None:
        """Register a node class if not already registered."""
        if self._frozen is not None:
            raise WorkflowEngineError(
                f"Cannot register {node_class.__name__}: node registry is frozen"
            )
        instance = node_class()
        if instance.type in self._instances:
            logger.debug("Node type %s already registered", instance.type.value)
            return
        self._instances[instance.type] = instance

    def freeze(self) -> None:
        """Turn the registry into an immutable lookup table."""
        if self._frozen is None:
            self._frozen = MappingProxyType(dict(self._instances))
            logger.info("Node registry frozen with %d node types", len(self._frozen))

    def get(self, node_type: NodeType | str) -> BaseNode:
        """
        Get the executor for a node type.

        Executors are stateless, so a single cached instance is shared.

        Raises:
            NodeNotFoundError: If the node type is not registered
        """
        instance = self._table().get(self._coerce(node_type))
        if instance is None:
            raise NodeNotFoundError(str(getattr(node_type, "value", node_type)))
        return instance

    def has(self, node_type: NodeType | str) -> bool:
        """Check if node type is registered."""
        return self._coerce(node_type) in self._table()

    def list(self) -> list[NodeType]:
        """List all registered node types."""
        return list(self._table().keys())

    @staticmethod
    def _coerce(node_type: NodeType | str) -> NodeType | None:
        try:
            return NodeType(node_type)
        except ValueError:
            return None

    def get_node_info_full(self) -> list[NodeTypeInfo]:
        """Get full node info with schema for UI rendering."""
        return [self._build_node_type_info(instance) for instance in self._table().values()]

    def get_node_type_info(self, node_type: NodeType | str) -> NodeTypeInfo | None:
        """Get full info for a specific node type."""
        instance = self._table().get(self._coerce(node_type))
        if not instance:
            return None
        return self._build_node_type_info(instance)

    def _build_node_type_info(self, instance: BaseNode) -> NodeTypeInfo:
        """Build NodeTypeInfo from a node instance."""
        desc = instance.node_description

        outputs = [{"name": "main", "displayName": "Output"}]
        if desc and desc.outputs:
            outputs = [{"name": o.name, "displayName": o.display_name} for o in desc.outputs]

        return NodeTypeInfo(
            type=instance.type.value,
            display_name=desc.display_name if desc else instance.type.value,
            description=instance.description,
            icon=desc.icon if desc else None,
            group=desc.group if desc else None,
            properties=self._convert_properties(desc.properties) if desc else [],
            outputs=outputs,
            is_trigger=instance.type.is_trigger,
            example_output=instance.example_output({}),
        )

    def _convert_properties(self, properties: list[NodeProperty]) -> list[dict[str, Any]]:
        """Convert properties to dict format for API responses."""
        result = []
        for prop in properties:
            prop_dict: dict[str, Any] = {
                "displayName": prop.display_name,
                "name": prop.name,
                "type": prop.type,
                "default": prop.default,
            }
            if prop.required:
                prop_dict["required"] = True
            if prop.description:
                prop_dict["description"] = prop.description
            if prop.placeholder:
                prop_dict["placeholder"] = prop.placeholder
            if prop.options:
                prop_dict["options"] = [
                    {"name": o.name, "value": o.value, "description": o.description}
                    for o in prop.options
                ]
            if prop.properties:
                prop_dict["properties"] = self._convert_properties(prop.properties)
            if prop.display_options:
                prop_dict["displayOptions"] = prop.display_options
            if prop.type_options:
                prop_dict["typeOptions"] = prop.type_options
            result.append(prop_dict)
        return result


# Singleton instance
node_registry = NodeRegistry()


def register_all_nodes(registry: NodeRegistry | None = None) -> NodeRegistry:
    """Register all built-in nodes."""
    from ..nodes import (
        # Triggers
        ManualTriggerNode,
        WebhookTriggerNode,
        # Integrations
        HttpRequestNode,
        AiCompletionNode,
        CreateContactNode,
        UpdateContactNode,
        CreateDealNode,
        # Data
        SetVariableNode,
        # Flow control
        IfElseNode,
        SwitchNode,
        WaitNode,
        StopWorkflowNode,
        BundleWorkflowNode,
    )

    registry = registry if registry is not None else node_registry

    all_node_classes: list[type[BaseNode]] = [
        ManualTriggerNode,
        WebhookTriggerNode,
        HttpRequestNode,
        AiCompletionNode,
        CreateContactNode,
        UpdateContactNode,
        CreateDealNode,
        SetVariableNode,
        IfElseNode,
        SwitchNode,
        WaitNode,
        StopWorkflowNode,
        BundleWorkflowNode,
    ]

    if not registry.frozen:
        for node_class in all_node_classes:
            registry.register(node_class)

    return registry
