"""Tests for the workflow graph model."""

import pytest

from dagflow.core.exceptions import CycleDetected, ValidationError
from dagflow.engine.graph import WorkflowGraph
from dagflow.engine.node_registry import NodeRegistry
from dagflow.engine.types import NodeType

from .factories import chain, make_node, make_workflow


def _set(node_id, variable_name=None, value="x"):
    data = {"value": value}
    if variable_name:
        data["variableName"] = variable_name
    return make_node(node_id, NodeType.SET_VARIABLE, **data)


# =============================================================================
# TOPOLOGICAL ORDER
# =============================================================================


class TestTopologicalOrder:
    """Tests for WorkflowGraph.topological_order."""

    def test_every_node_once_and_edges_respected(self):
        """Each node appears once and every edge points forward."""
        workflow = make_workflow(
            [_set("d"), _set("b"), _set("a"), _set("c")],
            [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")],
        )
        order = [n.id for n in WorkflowGraph(workflow).topological_order()]

        assert sorted(order) == ["a", "b", "c", "d"]
        for edge in workflow.edges:
            assert order.index(edge.source) < order.index(edge.target)

    def test_ready_set_drained_in_input_order(self):
        """Independent nodes keep the order they were declared in."""
        workflow = make_workflow([_set("z"), _set("y"), _set("x")])
        order = [n.id for n in WorkflowGraph(workflow).topological_order()]
        assert order == ["z", "y", "x"]

    def test_cycle_raises_with_remaining_nodes(self):
        """A cycle raises CycleDetected naming the unvisited nodes."""
        workflow = make_workflow(
            [_set("a"), _set("b"), _set("c")],
            [("a", "b"), ("b", "c"), ("c", "b")],
        )
        with pytest.raises(CycleDetected) as exc_info:
            WorkflowGraph(workflow).topological_order()

        assert sorted(exc_info.value.remaining) == ["b", "c"]
        assert isinstance(exc_info.value, ValidationError)


# =============================================================================
# ANCESTRY
# =============================================================================


class TestAncestry:
    """Tests for predecessor, ancestor and descendant queries."""

    def test_direct_neighbours(self):
        workflow = make_workflow([_set("a"), _set("b"), _set("c")], chain("a", "b", "c"))
        graph = WorkflowGraph(workflow)

        assert {n.id for n in graph.direct_predecessors("b")} == {"a"}
        assert [n.id for n in graph.direct_successors("b")] == ["c"]
        assert [n.id for n in graph.entry_nodes()] == ["a"]

    def test_successors_filtered_by_handle(self):
        """Only edges leaving through the requested handle are followed."""
        workflow = make_workflow(
            [_set("if"), _set("yes"), _set("no")],
            [("if", "yes", "true"), ("if", "no", "false")],
        )
        graph = WorkflowGraph(workflow)

        assert [n.id for n in graph.direct_successors("if", handle="true")] == ["yes"]
        assert [n.id for n in graph.direct_successors("if", handle="false")] == ["no"]
        assert len(graph.direct_successors("if")) == 2

    def test_ancestors_by_distance_nearest_first(self):
        """BFS distances; a diamond reaches the root at its shortest distance."""
        workflow = make_workflow(
            [_set("root"), _set("left"), _set("right"), _set("join")],
            [("root", "left"), ("root", "right"), ("left", "join"), ("right", "join")],
        )
        result = [(n.id, d) for n, d in WorkflowGraph(workflow).ancestors_by_distance("join")]
        assert result == [("left", 1), ("right", 1), ("root", 2)]

    def test_ancestors_terminate_on_cycles(self):
        workflow = make_workflow([_set("a"), _set("b")], [("a", "b"), ("b", "a")])
        assert {n.id for n in WorkflowGraph(workflow).ancestors("a")} == {"b"}

    def test_descendants_exclude_unrelated_nodes(self):
        workflow = make_workflow(
            [_set("a"), _set("b"), _set("c"), _set("other")],
            chain("a", "b", "c"),
        )
        assert {n.id for n in WorkflowGraph(workflow).descendants("a")} == {"b", "c"}


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidate:
    """Tests for WorkflowGraph.validate."""

    def test_valid_graph_passes(self, registry):
        workflow = make_workflow([_set("a", "first"), _set("b", "second")], chain("a", "b"))
        WorkflowGraph(workflow).validate(registry)

    def test_duplicate_node_ids(self):
        workflow = make_workflow([_set("a"), _set("a")])
        with pytest.raises(ValidationError) as exc_info:
            WorkflowGraph(workflow).validate()
        assert exc_info.value.field == "a"

    def test_dangling_edge(self):
        workflow = make_workflow([_set("a")], [("a", "ghost")])
        with pytest.raises(ValidationError, match="ghost"):
            WorkflowGraph(workflow).validate()

    @pytest.mark.parametrize("name", ["1abc", "with space", "dash-name"])
    def test_invalid_variable_name(self, name):
        workflow = make_workflow([_set("a", name)])
        with pytest.raises(ValidationError, match="Invalid variable name"):
            WorkflowGraph(workflow).validate()

    def test_unregistered_node_type(self):
        """A registry without the type rejects the graph."""
        workflow = make_workflow([_set("a")])
        with pytest.raises(ValidationError, match="Unknown node type"):
            WorkflowGraph(workflow).validate(NodeRegistry())

    def test_cycle_is_a_validation_error(self):
        workflow = make_workflow([_set("a"), _set("b")], [("a", "b"), ("b", "a")])
        with pytest.raises(CycleDetected):
            WorkflowGraph(workflow).validate()
