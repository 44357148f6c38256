"""
Workflow graph - structural queries over an immutable workflow snapshot.

Provides predecessor/ancestor lookups for variable resolution and a stable
topological order for execution.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import TYPE_CHECKING

from ..core.exceptions import CycleDetected, ValidationError
from .types import Edge, Node, Workflow

if TYPE_CHECKING:
    from .node_registry import NodeRegistry

logger = logging.getLogger(__name__)

VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class WorkflowGraph:
    """Read-only graph view of a workflow."""

    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow

        # Build node lookup and stable positions for tie-breaking
        self._nodes: dict[str, Node] = {}
        self._position: dict[str, int] = {}
        for index, node in enumerate(workflow.nodes):
            if node.id not in self._nodes:
                self._nodes[node.id] = node
                self._position[node.id] = index

        self._incoming: dict[str, list[Edge]] = {node_id: [] for node_id in self._nodes}
        self._outgoing: dict[str, list[Edge]] = {node_id: [] for node_id in self._nodes}
        for edge in workflow.edges:
            if edge.target in self._incoming:
                self._incoming[edge.target].append(edge)
            if edge.source in self._outgoing:
                self._outgoing[edge.source].append(edge)

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def position(self, node_id: str) -> int:
        return self._position.get(node_id, len(self._position))

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return list(self._incoming.get(node_id, []))

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return list(self._outgoing.get(node_id, []))

    def direct_predecessors(self, node_id: str) -> set[Node]:
        """Nodes with an edge into ``node_id``."""
        return {
            self._nodes[edge.source]
            for edge in self._incoming.get(node_id, [])
            if edge.source in self._nodes
        }

    def direct_successors(self, node_id: str, handle: str | None = None) -> list[Node]:
        """
        Nodes with an edge out of ``node_id``, in workflow order.

        When ``handle`` is given only edges leaving through that source handle
        are followed.
        """
        targets: dict[str, Node] = {}
        for edge in self._outgoing.get(node_id, []):
            if handle is not None and edge.source_handle != handle:
                continue
            if edge.target in self._nodes:
                targets[edge.target] = self._nodes[edge.target]
        return sorted(targets.values(), key=lambda n: self._position[n.id])

    def ancestors(self, node_id: str) -> set[Node]:
        """Transitive closure of predecessors. Terminates on malformed input."""
        return {node for node, _ in self.ancestors_by_distance(node_id)}

    def ancestors_by_distance(self, node_id: str) -> list[tuple[Node, int]]:
        """
        Ancestors paired with their hop distance, nearest first.

        BFS over incoming edges; each node is visited once with its shortest
        distance. Equal distances keep workflow order.
        """
        distances: dict[str, int] = {}
        visited = {node_id}
        queue: deque[tuple[str, int]] = deque([(node_id, 0)])

        while queue:
            current, depth = queue.popleft()
            for edge in self._incoming.get(current, []):
                source = edge.source
                if source in visited or source not in self._nodes:
                    continue
                visited.add(source)
                distances[source] = depth + 1
                queue.append((source, depth + 1))

        ordered = sorted(distances.items(), key=lambda item: (item[1], self._position[item[0]]))
        return [(self._nodes[source], distance) for source, distance in ordered]

    def descendants(self, node_id: str) -> set[Node]:
        """Transitive closure of successors."""
        found: set[str] = set()
        visited = {node_id}
        queue: deque[str] = deque([node_id])

        while queue:
            current = queue.popleft()
            for edge in self._outgoing.get(current, []):
                target = edge.target
                if target in visited or target not in self._nodes:
                    continue
                visited.add(target)
                found.add(target)
                queue.append(target)

        return {self._nodes[target] for target in found}

    def entry_nodes(self) -> list[Node]:
        """Nodes with no incoming edges, in workflow order."""
        return [node for node in self._nodes.values() if not self._incoming[node.id]]

    def topological_order(self) -> list[Node]:
        """
        Compute execution order using Kahn's algorithm.

        The ready set is always drained in workflow input order, so identical
        graphs produce identical orders.

        Raises:
            CycleDetected: If any node is left unvisited.
        """
        in_degree: dict[str, int] = {node_id: 0 for node_id in self._nodes}
        for node_id, edges in self._incoming.items():
            in_degree[node_id] = sum(1 for e in edges if e.source in self._nodes)

        ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
        order: list[Node] = []

        while ready:
            # Sort for deterministic order
            ready.sort(key=lambda n: self._position[n])
            node_id = ready.pop(0)
            order.append(self._nodes[node_id])

            for edge in self._outgoing[node_id]:
                if edge.target not in in_degree:
                    continue
                in_degree[edge.target] -= 1
                if in_degree[edge.target] == 0:
                    ready.append(edge.target)

        if len(order) != len(self._nodes):
            visited = {n.id for n in order}
            remaining = [node_id for node_id in self._nodes if node_id not in visited]
            raise CycleDetected(remaining)

        return order

    def validate(self, registry: NodeRegistry | None = None) -> None:
        """
        Check the graph structure before anything runs.

        Raises:
            ValidationError: On duplicate ids, dangling edges, bad variable
                names, unregistered node types or cycles.
        """
        seen: set[str] = set()
        for node in self.workflow.nodes:
            if node.id in seen:
                raise ValidationError(f'Duplicate node id "{node.id}"', field=node.id)
            seen.add(node.id)

            variable_name = node.data.get("variableName")
            if variable_name and not VARIABLE_NAME_PATTERN.match(str(variable_name)):
                raise ValidationError(
                    f'Invalid variable name "{variable_name}" on node "{node.id}"',
                    field=node.id,
                )

            if registry is not None and not registry.has(node.type):
                raise ValidationError(
                    f'Unknown node type "{node.type.value}" on node "{node.id}"',
                    field=node.id,
                )

        for edge in self.workflow.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._nodes:
                    raise ValidationError(
                        f'Edge {edge.source} -> {edge.target} references unknown node "{endpoint}"',
                        field=f"{edge.source}->{edge.target}",
                    )

        self.topological_order()
