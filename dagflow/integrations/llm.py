"""LLM gateway used by AI completion nodes.

Public API:
    LLMGateway.complete(model, user_prompt, system_prompt, temperature) -> LLMResponse

Routing:
  - mock        -> canned response, no network
  - anything    -> OpenAI-compatible ``/chat/completions`` at ``llm_base_url``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)

MOCK_MODEL = "mock"


@dataclass
class LLMResponse:
    """Standardized response from a completion call."""

    text: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "model": self.model, "usage": self.usage}


class LLMGateway:
    """Thin client for an OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.llm_base_url or "").rstrip("/")
        self.api_key = api_key or settings.llm_api_key
        self._client = http_client
        self.timeout = timeout or settings.http_timeout_seconds

    async def complete(
        self,
        model: str,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        if model == MOCK_MODEL:
            return self._mock(user_prompt, system_prompt)

        if not self.base_url:
            raise RuntimeError("No LLM endpoint configured (set DAGFLOW_LLM_BASE_URL)")

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        if self._client is not None:
            response = await self._client.post(
                f"{self.base_url}/chat/completions", json=payload, headers=headers
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=headers
                )
        response.raise_for_status()
        body = response.json()

        choices = body.get("choices") or [{}]
        text = (choices[0].get("message") or {}).get("content") or ""
        return LLMResponse(text=text, model=body.get("model", model), usage=body.get("usage") or {})

    def _mock(self, user_prompt: str, system_prompt: str | None) -> LLMResponse:
        logger.debug("Mock LLM completion for prompt of %d chars", len(user_prompt))
        return LLMResponse(
            text=f"[mock] {user_prompt}",
            model=MOCK_MODEL,
            usage={
                "promptTokens": len(user_prompt.split()) + len((system_prompt or "").split()),
                "completionTokens": len(user_prompt.split()) + 1,
            },
        )
