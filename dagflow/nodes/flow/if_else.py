"""If/Else node - pick the true or false branch."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeOutput,
    NodeOutputDefinition,
    NodeProperty,
    NodePropertyOption,
    NodeTypeDescription,
)
from ...engine.expression_engine import expression_engine
from ...engine.types import ExecutionContext, NodeType

logger = logging.getLogger(__name__)

UNARY_OPERATORS = ("isEmpty", "isNotEmpty")


class IfElseNode(BaseNode):
    """
    Compare two operands, or evaluate an expression, and select a branch.

    Operands are interpolated to text before comparison. Numeric operators
    treat non-numeric text as a failed comparison.
    """

    node_description = NodeTypeDescription(
        display_name="If / Else",
        description="Route the run based on a condition (true/false outputs)",
        icon="fa:code-branch",
        group=["flow"],
        outputs=[
            NodeOutputDefinition(name="true", display_name="True"),
            NodeOutputDefinition(name="false", display_name="False"),
        ],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Condition",
                name="condition",
                type="string",
                default="",
                placeholder="{{ order.total >= 100 }}",
                description="Expression that evaluates to true/false. If provided, operands are ignored.",
            ),
            NodeProperty(display_name="Left Operand", name="leftOperand", type="string", default=""),
            NodeProperty(
                display_name="Operator",
                name="operator",
                type="options",
                default="equals",
                options=[
                    NodePropertyOption(name="Equals", value="equals"),
                    NodePropertyOption(name="Not Equals", value="notEquals"),
                    NodePropertyOption(name="Greater Than", value="greaterThan"),
                    NodePropertyOption(name="Less Than", value="lessThan"),
                    NodePropertyOption(name="Greater or Equal", value="greaterThanOrEqual"),
                    NodePropertyOption(name="Less or Equal", value="lessThanOrEqual"),
                    NodePropertyOption(name="Contains", value="contains"),
                    NodePropertyOption(name="Not Contains", value="notContains"),
                    NodePropertyOption(name="Starts With", value="startsWith"),
                    NodePropertyOption(name="Ends With", value="endsWith"),
                    NodePropertyOption(name="Is Empty", value="isEmpty"),
                    NodePropertyOption(name="Is Not Empty", value="isNotEmpty"),
                ],
            ),
            NodeProperty(
                display_name="Right Operand",
                name="rightOperand",
                type="string",
                default="",
                display_options={"hide": {"operator": list(UNARY_OPERATORS)}},
            ),
        ],
    )

    raw_fields = ("variableName", "condition")

    @property
    def type(self) -> NodeType:
        return NodeType.IF_ELSE

    @property
    def description(self) -> str:
        return "Route the run based on a condition (true/false outputs)"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "result": True,
            "leftValue": "example",
            "rightValue": "example",
            "operator": data.get("operator", "equals"),
            "branchToFollow": "true",
        }

    def resolve_data(self, data: Mapping[str, Any], context: ExecutionContext) -> dict[str, Any]:
        resolved = dict(data)
        for key in ("leftOperand", "rightOperand"):
            resolved[key] = expression_engine.interpolate(data.get(key) or "", context)
        return resolved

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        condition = data.get("condition")
        left = data.get("leftOperand", "")
        right = data.get("rightOperand", "")
        operator = data.get("operator") or "equals"

        if condition:
            result = expression_engine.evaluate_condition(condition, params.context)
            operator = "expression"
        else:
            result = self._evaluate(left, operator, right)

        branch = "true" if result else "false"
        return NodeOutput(
            value={
                "result": result,
                "leftValue": left,
                "rightValue": right,
                "operator": operator,
                "branchToFollow": branch,
            },
            branch=branch,
        )

    def _evaluate(self, left: str, operator: str, right: str) -> bool:
        if operator == "equals":
            return left == right
        if operator == "notEquals":
            return left != right
        if operator in ("greaterThan", "lessThan", "greaterThanOrEqual", "lessThanOrEqual"):
            try:
                a, b = _to_number(left), _to_number(right)
            except ValueError:
                return False
            if operator == "greaterThan":
                return a > b
            if operator == "lessThan":
                return a < b
            if operator == "greaterThanOrEqual":
                return a >= b
            return a <= b
        if operator == "contains":
            return right in left
        if operator == "notContains":
            return right not in left
        if operator == "startsWith":
            return left.startswith(right)
        if operator == "endsWith":
            return left.endswith(right)
        if operator == "isEmpty":
            return left.strip() == ""
        if operator == "isNotEmpty":
            return left.strip() != ""

        logger.warning("Unknown operator %s, condition is false", operator)
        return False


def _to_number(value: str) -> float:
    """Numeric value of an operand. A blank operand counts as 0."""
    return float(value) if value.strip() else 0.0
