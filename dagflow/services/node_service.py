"""Node service for business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.exceptions import NodeNotFoundError

if TYPE_CHECKING:
    from ..engine.node_registry import NodeRegistry, NodeTypeInfo


class NodeService:
    """Service for node operations."""

    def __init__(self, node_registry: NodeRegistry) -> None:
        self._node_registry = node_registry

    def list_nodes(self, group: str | None = None, is_trigger: bool | None = None) -> list[dict[str, Any]]:
        """
        Node types with their schemas, in registration order.

        Args:
            group: Keep only types listed in this palette group
            is_trigger: Keep only trigger types (True) or only non-trigger types (False)
        """
        infos = self._node_registry.get_node_info_full()
        if group:
            infos = [i for i in infos if group in (i.group or [])]
        if is_trigger is not None:
            infos = [i for i in infos if i.is_trigger == is_trigger]
        return [self._to_dict(i) for i in infos]

    def get_node(self, node_type: str) -> dict[str, Any]:
        """Get schema for a specific node type."""
        info = self._node_registry.get_node_type_info(node_type)
        if not info:
            raise NodeNotFoundError(node_type)
        return self._to_dict(info)

    @staticmethod
    def _to_dict(info: NodeTypeInfo) -> dict[str, Any]:
        return {
            "type": info.type,
            "displayName": info.display_name,
            "description": info.description,
            "icon": info.icon,
            "group": info.group,
            "properties": info.properties,
            "outputs": info.outputs,
            "isTrigger": info.is_trigger,
            "exampleOutput": info.example_output,
        }
