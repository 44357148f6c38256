"""Manual trigger node - starts a run from the editor or API."""

from __future__ import annotations

from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeTypeDescription,
)
from ...engine.types import NodeType


class ManualTriggerNode(BaseNode):
    """Entry point for manually started runs. Exposes the trigger payload."""

    node_description = NodeTypeDescription(
        display_name="Manual Trigger",
        description="Start the workflow manually",
        icon="fa:play",
        group=["trigger"],
        properties=[VARIABLE_NAME_PROPERTY],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.MANUAL_TRIGGER

    @property
    def description(self) -> str:
        return "Start the workflow manually"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {}

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        trigger = params.context.trigger_data
        return trigger if trigger is not None else {}
