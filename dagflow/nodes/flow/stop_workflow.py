"""Stop Workflow node - end the run early without an error."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeOutput,
    NodeProperty,
    NodeTypeDescription,
)
from ...engine.types import NodeType


class StopWorkflowNode(BaseNode):
    """Pure context mutator: raises the stop flag and records why."""

    node_description = NodeTypeDescription(
        display_name="Stop Workflow",
        description="Stop the run here; remaining nodes are skipped",
        icon="fa:stop-circle",
        group=["flow"],
        outputs=[],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Reason",
                name="reason",
                type="string",
                default="",
                placeholder="Customer already exists",
                description="Why the run stopped. Supports {{variables}}.",
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.STOP_WORKFLOW

    @property
    def description(self) -> str:
        return "Stop the run here; remaining nodes are skipped"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {"reason": "Workflow stopped", "stoppedAt": "2025-01-01T00:00:00.000Z"}

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        reason = data.get("reason") or "Workflow stopped"
        return NodeOutput(
            value={"reason": str(reason), "stoppedAt": datetime.now().isoformat()},
            should_stop=True,
        )
