"""Workflow service for business logic."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..core.exceptions import (
    ValidationError,
    WorkflowNotFoundError,
)
from ..engine.graph import WorkflowGraph
from ..engine.types import (
    BundleInput,
    BundleOutput,
    Edge,
    Node,
    StoredWorkflow,
    VariableItem,
    Workflow,
)
from ..engine.variable_resolver import (
    BundleContext,
    resolve_variables,
    update_variable_references,
)
from ..schemas.workflow import (
    BundleInputSchema,
    BundleOutputSchema,
    EdgeSchema,
    NodeSchema,
    ValidationResponse,
    VariableItemSchema,
    WorkflowCreateRequest,
    WorkflowDetailResponse,
    WorkflowListItem,
    WorkflowResponse,
    WorkflowUpdateRequest,
)

if TYPE_CHECKING:
    from ..engine.node_registry import NodeRegistry
    from ..storage.workflow_store import WorkflowStore


class WorkflowService:
    """Service for workflow operations."""

    def __init__(self, workflow_store: WorkflowStore, registry: NodeRegistry) -> None:
        self._workflow_store = workflow_store
        self._registry = registry

    async def list_workflows(self) -> list[WorkflowListItem]:
        """List all workflows."""
        return [
            WorkflowListItem(
                id=w.id,
                name=w.name,
                active=w.active,
                is_bundle=w.workflow.is_bundle,
                webhook_url=f"/webhook/{w.id}",
                node_count=len(w.workflow.nodes),
                created_at=w.created_at.isoformat(),
                updated_at=w.updated_at.isoformat(),
            )
            for w in self._workflow_store.list()
        ]

    async def get_workflow(self, workflow_id: str) -> WorkflowDetailResponse:
        """Get a workflow by ID."""
        return self._to_detail(self._get_stored(workflow_id))

    async def create_workflow(self, request: WorkflowCreateRequest) -> WorkflowResponse:
        """Create a new workflow. The graph is validated before it is stored."""
        workflow = self._build_workflow(
            workflow_id=request.id or "",
            name=request.name,
            nodes=request.nodes,
            edges=request.edges,
            description=request.description,
            is_bundle=request.is_bundle,
            bundle_inputs=request.bundle_inputs,
            bundle_outputs=request.bundle_outputs,
        )
        WorkflowGraph(workflow).validate(self._registry)

        stored = self._workflow_store.create(workflow)
        return WorkflowResponse(
            id=stored.id,
            name=stored.name,
            active=stored.active,
            webhook_url=f"/webhook/{stored.id}",
            created_at=stored.created_at.isoformat(),
        )

    async def update_workflow(
        self, workflow_id: str, request: WorkflowUpdateRequest
    ) -> WorkflowDetailResponse:
        """Update an existing workflow. Runs in flight keep their snapshot."""
        existing = self._get_stored(workflow_id).workflow

        workflow = self._build_workflow(
            workflow_id=workflow_id,
            name=request.name or existing.name,
            nodes=request.nodes,
            edges=request.edges,
            description=request.description if request.description is not None else existing.description,
            is_bundle=request.is_bundle if request.is_bundle is not None else existing.is_bundle,
            bundle_inputs=request.bundle_inputs,
            bundle_outputs=request.bundle_outputs,
            fallback=existing,
        )
        WorkflowGraph(workflow).validate(self._registry)

        updated = self._workflow_store.update(workflow_id, workflow)
        if not updated:
            raise WorkflowNotFoundError(workflow_id)
        return self._to_detail(updated)

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        if not self._workflow_store.delete(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        return True

    async def validate_workflow(self, workflow_id: str) -> ValidationResponse:
        """Validate a stored workflow and report its execution order."""
        graph = WorkflowGraph(self._get_stored(workflow_id).workflow)
        try:
            graph.validate(self._registry)
        except ValidationError as e:
            return ValidationResponse(valid=False, error=e.message, field=e.field)
        return ValidationResponse(valid=True, order=[n.id for n in graph.topological_order()])

    async def get_variables(self, workflow_id: str, node_id: str) -> list[VariableItemSchema]:
        """Variables available to ``node_id`` in its templates, nearest first."""
        workflow = self._get_stored(workflow_id).workflow
        if workflow.get_node(node_id) is None:
            raise ValidationError(f"Node not found in workflow: {node_id}", field=node_id)

        items = resolve_variables(
            node_id,
            workflow,
            bundle_context=BundleContext.for_workflow(workflow),
            registry=self._registry,
        )
        return [self._variable_to_schema(item) for item in items]

    async def rename_variable(
        self, workflow_id: str, node_id: str, old_name: str, new_name: str
    ) -> WorkflowDetailResponse:
        """Rename a node's variable and rewrite references in its descendants."""
        stored = self._get_stored(workflow_id)
        node = stored.workflow.get_node(node_id)
        if node is None:
            raise ValidationError(f"Node not found in workflow: {node_id}", field=node_id)
        if node.variable_name != old_name:
            raise ValidationError(
                f'Node {node_id} does not produce variable "{old_name}"', field="oldName"
            )

        workflow = update_variable_references(stored.workflow, node_id, old_name, new_name)
        workflow = replace(
            workflow,
            nodes=tuple(
                replace(n, data={**n.data, "variableName": new_name}) if n.id == node_id else n
                for n in workflow.nodes
            ),
        )
        WorkflowGraph(workflow).validate(self._registry)

        updated = self._workflow_store.update(workflow_id, workflow)
        if not updated:
            raise WorkflowNotFoundError(workflow_id)
        return self._to_detail(updated)

    def _get_stored(self, workflow_id: str) -> StoredWorkflow:
        stored = self._workflow_store.get(workflow_id)
        if not stored:
            raise WorkflowNotFoundError(workflow_id)
        return stored

    def _build_workflow(
        self,
        workflow_id: str,
        name: str,
        nodes: list[NodeSchema] | None,
        edges: list[EdgeSchema] | None,
        description: str | None,
        is_bundle: bool,
        bundle_inputs: list[BundleInputSchema] | None,
        bundle_outputs: list[BundleOutputSchema] | None,
        fallback: Workflow | None = None,
    ) -> Workflow:
        """Convert request schemas to an immutable workflow snapshot."""
        try:
            internal_nodes = (
                tuple(
                    Node(
                        id=n.id,
                        type=n.type,
                        data=n.data,
                        name=n.name,
                        position=n.position,
                        retry_on_fail=n.retry_on_fail,
                        retry_delay=n.retry_delay,
                    )
                    for n in nodes
                )
                if nodes is not None
                else fallback.nodes
            )
        except ValueError as e:
            raise ValidationError(f"Unknown node type: {e}", field="nodes") from e

        return Workflow(
            id=workflow_id,
            name=name,
            nodes=internal_nodes,
            edges=(
                tuple(
                    Edge(
                        source=e.source,
                        target=e.target,
                        source_handle=e.source_handle,
                        target_handle=e.target_handle,
                    )
                    for e in edges
                )
                if edges is not None
                else fallback.edges
            ),
            is_bundle=is_bundle,
            bundle_inputs=(
                tuple(
                    BundleInput(
                        name=i.name,
                        type=i.type,
                        description=i.description,
                        default_value=i.default_value,
                    )
                    for i in bundle_inputs
                )
                if bundle_inputs is not None
                else fallback.bundle_inputs if fallback else ()
            ),
            bundle_outputs=(
                tuple(BundleOutput(name=o.name, variable_path=o.variable_path) for o in bundle_outputs)
                if bundle_outputs is not None
                else fallback.bundle_outputs if fallback else ()
            ),
            description=description,
        )

    def _to_detail(self, stored: StoredWorkflow) -> WorkflowDetailResponse:
        return WorkflowDetailResponse(
            id=stored.id,
            name=stored.name,
            active=stored.active,
            webhook_url=f"/webhook/{stored.id}",
            definition=workflow_to_dict(stored.workflow),
            created_at=stored.created_at.isoformat(),
            updated_at=stored.updated_at.isoformat(),
        )

    def _variable_to_schema(self, item: VariableItem) -> VariableItemSchema:
        return VariableItemSchema(
            name=item.name,
            path=item.path,
            label=item.label,
            type=item.type,
            produced_by=item.produced_by,
            distance=item.distance,
            children=[self._variable_to_schema(c) for c in item.children] if item.children else None,
        )


def workflow_to_dict(workflow: Workflow) -> dict[str, Any]:
    """Convert internal Workflow to dict for API response."""
    return {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description,
        "nodes": [
            {
                "id": n.id,
                "type": n.type.value,
                "name": n.name,
                "data": dict(n.data),
                "position": dict(n.position) if n.position else None,
                "retryOnFail": n.retry_on_fail,
                "retryDelay": n.retry_delay,
            }
            for n in workflow.nodes
        ],
        "edges": [
            {
                "source": e.source,
                "target": e.target,
                "sourceHandle": e.source_handle,
                "targetHandle": e.target_handle,
            }
            for e in workflow.edges
        ],
        "isBundle": workflow.is_bundle,
        "bundleInputs": [
            {
                "name": i.name,
                "type": i.type,
                "description": i.description,
                "defaultValue": i.default_value,
            }
            for i in workflow.bundle_inputs
        ],
        "bundleOutputs": [
            {"name": o.name, "variablePath": o.variable_path} for o in workflow.bundle_outputs
        ],
    }
