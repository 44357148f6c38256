"""Switch node - route the run to the first matching case."""

from __future__ import annotations

from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeOutput,
    NodeOutputDefinition,
    NodeProperty,
    NodeTypeDescription,
)
from ...engine.expression_engine import expression_engine
from ...engine.types import ExecutionContext, NodeType

DEFAULT_HANDLE = "default"


def case_handle(index: int) -> str:
    return f"case-{index}"


class SwitchNode(BaseNode):
    """Compare a value against each case in order; the first match wins."""

    node_description = NodeTypeDescription(
        display_name="Switch",
        description="Route the run to one of several outputs",
        icon="fa:random",
        group=["flow"],
        # Handles are case-0 .. case-N plus default
        outputs=[
            NodeOutputDefinition(name=case_handle(0), display_name="Case 0"),
            NodeOutputDefinition(name=DEFAULT_HANDLE, display_name="Default"),
        ],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Input Value",
                name="inputValue",
                type="string",
                default="",
                required=True,
                placeholder="{{order.status}}",
            ),
            NodeProperty(
                display_name="Cases",
                name="cases",
                type="collection",
                default=[],
                type_options={"multipleValues": True},
                properties=[
                    NodeProperty(display_name="Value", name="value", type="string", default=""),
                    NodeProperty(display_name="Label", name="label", type="string", default=""),
                ],
            ),
            NodeProperty(display_name="Default Label", name="defaultLabel", type="string", default="Default"),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.SWITCH

    @property
    def description(self) -> str:
        return "Route the run to one of several outputs"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {"value": "example", "matchedCase": 0, "label": "Case 1", "branchToFollow": case_handle(0)}

    def resolve_data(self, data: Mapping[str, Any], context: ExecutionContext) -> dict[str, Any]:
        resolved = super().resolve_data(data, context)
        # Values are compared as text
        resolved["inputValue"] = expression_engine.interpolate(data.get("inputValue") or "", context)
        return resolved

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        value = data.get("inputValue", "")
        cases = data.get("cases") or []

        for index, case in enumerate(cases):
            case_value = expression_engine.stringify(case.get("value"))
            if case_value == value:
                handle = case_handle(index)
                return NodeOutput(
                    value={
                        "value": value,
                        "matchedCase": index,
                        "label": case.get("label") or case_value,
                        "branchToFollow": handle,
                    },
                    branch=handle,
                )

        return NodeOutput(
            value={
                "value": value,
                "matchedCase": None,
                "label": data.get("defaultLabel") or "Default",
                "branchToFollow": DEFAULT_HANDLE,
            },
            branch=DEFAULT_HANDLE,
        )
