"""AI Completion node - single-turn LLM completion."""

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
from ...core.exceptions import NonRetriableError
from ...engine.types import NodeType
from ...integrations.llm import MOCK_MODEL


class AiCompletionNode(BaseNode):
    """Send a prompt to an LLM and store the response text."""

    node_description = NodeTypeDescription(
        display_name="AI Completion",
        description="Send a prompt to an LLM and get a response",
        icon="fa:robot",
        group=["ai"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Model",
                name="model",
                type="options",
                default=MOCK_MODEL,
                options=[
                    NodePropertyOption(name="Mock (Testing)", value=MOCK_MODEL),
                    NodePropertyOption(name="Gemini 2.5 Flash", value="gemini-2.5-flash"),
                    NodePropertyOption(name="Gemini 2.5 Pro", value="gemini-2.5-pro"),
                    NodePropertyOption(name="GPT-4o mini", value="gpt-4o-mini"),
                ],
            ),
            NodeProperty(
                display_name="System Prompt",
                name="systemPrompt",
                type="string",
                default="You are a helpful assistant.",
                description="System message to set assistant behavior",
                type_options={"rows": 3},
            ),
            NodeProperty(
                display_name="User Prompt",
                name="userPrompt",
                type="string",
                default="",
                required=True,
                description="Prompt to send. Supports {{variables}}.",
                type_options={"rows": 5},
            ),
            NodeProperty(
                display_name="Temperature",
                name="temperature",
                type="number",
                default=0.7,
                description="Controls randomness (0-1)",
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.AI_COMPLETION

    @property
    def description(self) -> str:
        return "Send a prompt to an LLM and get a response"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {"text": "AI generated response text", "model": data.get("model", MOCK_MODEL), "usage": {}}

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        if params.runtime.llm is None:
            raise NonRetriableError("No LLM gateway configured")

        user_prompt = self.get_parameter(data, "userPrompt")
        response = await params.runtime.llm.complete(
            model=str(self.get_parameter(data, "model", MOCK_MODEL)),
            user_prompt=str(user_prompt),
            system_prompt=self.get_parameter(data, "systemPrompt"),
            temperature=self.get_parameter(data, "temperature"),
        )
        return response.to_dict()
