"""Set Variable node - store a templated value under a name."""

from __future__ import annotations

from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeProperty,
    NodeTypeDescription,
)
from ...engine.expression_engine import expression_engine
from ...engine.types import ExecutionContext, NodeType


class SetVariableNode(BaseNode):
    """Resolve ``value`` against the context and store the typed result."""

    node_description = NodeTypeDescription(
        display_name="Set Variable",
        description="Store a value under a variable name",
        icon="fa:pen",
        group=["transform"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Value",
                name="value",
                type="string",
                default="",
                description="Literal or {{template}}. JSON, numbers and booleans are parsed.",
            ),
        ],
    )

    raw_fields = ("variableName", "value")

    @property
    def type(self) -> NodeType:
        return NodeType.SET_VARIABLE

    @property
    def description(self) -> str:
        return "Store a value under a variable name"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        value = data.get("value")
        if isinstance(value, str) and "{{" not in value:
            return expression_engine.coerce(value)
        return "example value"

    def resolve_data(self, data: Mapping[str, Any], context: ExecutionContext) -> dict[str, Any]:
        resolved = dict(data)
        raw = data.get("value")
        value = expression_engine.interpolate_value(raw, context)
        # Plain literals get the same coercion as interpolated text
        if value is raw and isinstance(raw, str):
            value = expression_engine.coerce(raw)
        resolved["value"] = value
        return resolved

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        return data.get("value")
