"""Bundle Workflow node - run a reusable bundle as one step of the caller."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeProperty,
    NodeTypeDescription,
)
from ...core.config import settings
from ...core.exceptions import NonRetriableError
from ...engine.expression_engine import expression_engine
from ...engine.types import ExecutionContext, NodeType, Workflow

logger = logging.getLogger(__name__)


def parent_workflow_context(workflow: Workflow | None, context: ExecutionContext) -> dict[str, Any]:
    """
    Caller variables keyed by workflow name, then node name.

    Only nodes whose variable is already set in ``context`` are included.
    """
    if workflow is None:
        return {}

    namespace: dict[str, Any] = {}
    for node in workflow.nodes:
        name = node.variable_name
        if name and name in context.variables:
            namespace[node.label] = context.variables[name]
    return {workflow.name: namespace}


class BundleWorkflowNode(BaseNode):
    """
    Execute a bundle workflow with mapped inputs.

    The bundle runs through the same runner and step runtime as its caller,
    with step names namespaced under this node, so a suspended or retried
    bundle never repeats its committed steps.
    """

    node_description = NodeTypeDescription(
        display_name="Bundle Workflow",
        description="Run a reusable bundle workflow",
        icon="fa:cubes",
        group=["flow"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Bundle Workflow",
                name="bundleWorkflowId",
                type="string",
                default="",
                required=True,
                description="ID of the bundle workflow to run",
            ),
            NodeProperty(
                display_name="Input Mappings",
                name="inputMappings",
                type="collection",
                default=[],
                type_options={"multipleValues": True},
                properties=[
                    NodeProperty(display_name="Bundle Input", name="bundleInputName", type="string", default=""),
                    NodeProperty(display_name="Value", name="value", type="string", default=""),
                ],
            ),
        ],
    )

    raw_fields = ("variableName", "inputMappings")

    @property
    def type(self) -> NodeType:
        return NodeType.BUNDLE_WORKFLOW

    @property
    def description(self) -> str:
        return "Run a reusable bundle workflow"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {"result": {"output": "bundle output"}}

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        runtime = params.runtime
        if runtime.workflow_store is None or runtime.runner is None:
            raise NonRetriableError("Bundle workflows need a workflow store and runner")

        if runtime.depth >= settings.max_bundle_depth:
            raise NonRetriableError(
                f"Maximum bundle depth of {settings.max_bundle_depth} exceeded. "
                f"This may indicate a bundle calling itself."
            )

        bundle_id = self.get_parameter(data, "bundleWorkflowId")
        stored = runtime.workflow_store.get(str(bundle_id))
        if stored is None:
            raise NonRetriableError(f"Bundle workflow {bundle_id} not found")
        bundle = stored.workflow
        if not bundle.is_bundle:
            raise NonRetriableError(f"Workflow {bundle_id} is not a bundle workflow")

        inputs = self._map_inputs(data.get("inputMappings") or [], bundle, params.context)
        variables = {**parent_workflow_context(runtime.workflow, params.context), **inputs}

        logger.info("Running bundle %s (%s) at depth %d", bundle.name, bundle.id, runtime.depth + 1)

        state = await runtime.runner.execute(
            bundle,
            ExecutionContext(variables=variables, trigger_data=inputs),
            step=params.step.scoped(f"bundle:{params.node_id}"),
            publish=params.publish,
            runtime=replace(runtime, depth=runtime.depth + 1),
        )
        return self._extract_outputs(bundle, state.context)

    def _map_inputs(
        self,
        mappings: list[Mapping[str, Any]],
        bundle: Workflow,
        context: ExecutionContext,
    ) -> dict[str, Any]:
        inputs: dict[str, Any] = {}
        for mapping in mappings:
            name = mapping.get("bundleInputName")
            if name:
                inputs[name] = expression_engine.interpolate_value(mapping.get("value"), context)

        # Defaults for unmapped inputs
        for bundle_input in bundle.bundle_inputs:
            if inputs.get(bundle_input.name) is None and bundle_input.default_value is not None:
                inputs[bundle_input.name] = bundle_input.default_value
        return inputs

    def _extract_outputs(self, bundle: Workflow, context: ExecutionContext) -> dict[str, Any]:
        if not bundle.bundle_outputs:
            return {"result": dict(context.variables)}
        return {
            output.name: expression_engine.lookup(output.variable_path, context)
            for output in bundle.bundle_outputs
        }
