"""Webhook trigger node - starts a run from an incoming HTTP request."""

from __future__ import annotations

from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeProperty,
    NodePropertyOption,
    NodeTypeDescription,
)
from ...engine.types import NodeType


class WebhookTriggerNode(BaseNode):
    """Webhook trigger node - receives HTTP requests."""

    node_description = NodeTypeDescription(
        display_name="Webhook",
        description="Trigger workflow via HTTP webhook",
        icon="fa:bolt",
        group=["trigger"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="HTTP Method",
                name="method",
                type="options",
                default="POST",
                options=[
                    NodePropertyOption(name="POST", value="POST"),
                    NodePropertyOption(name="GET", value="GET"),
                    NodePropertyOption(name="PUT", value="PUT"),
                ],
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.WEBHOOK_TRIGGER

    @property
    def description(self) -> str:
        return "Trigger workflow via HTTP webhook"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "body": {"key": "value"},
            "headers": {"content-type": "application/json"},
            "query": {},
            "method": data.get("method", "POST"),
            "receivedAt": "2025-01-01T00:00:00.000Z",
        }

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        trigger = params.context.trigger_data
        return trigger if trigger is not None else {}
