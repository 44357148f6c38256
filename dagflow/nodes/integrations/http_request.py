"""HTTP Request node - makes HTTP requests to external APIs."""

from __future__ import annotations

import json
from typing import Any, Mapping

import httpx

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeProperty,
    NodePropertyOption,
    NodeTypeDescription,
)
from ...core.config import settings
from ...core.exceptions import NonRetriableError
from ...engine.types import NodeType

BODY_METHODS = ("POST", "PUT", "PATCH")


class HttpRequestNode(BaseNode):
    """HTTP Request node - one request per invocation."""

    node_description = NodeTypeDescription(
        display_name="HTTP Request",
        description="Makes HTTP requests to external APIs",
        icon="fa:globe",
        group=["transform"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Method",
                name="method",
                type="options",
                default="GET",
                required=True,
                options=[
                    NodePropertyOption(name="GET", value="GET"),
                    NodePropertyOption(name="POST", value="POST"),
                    NodePropertyOption(name="PUT", value="PUT"),
                    NodePropertyOption(name="PATCH", value="PATCH"),
                    NodePropertyOption(name="DELETE", value="DELETE"),
                ],
            ),
            NodeProperty(
                display_name="URL",
                name="endpoint",
                type="string",
                default="",
                required=True,
                placeholder="https://api.example.com/endpoint",
                description="The URL to make the request to. Supports {{variables}}.",
            ),
            NodeProperty(
                display_name="Headers",
                name="headers",
                type="collection",
                default=[],
                description="HTTP headers to send with the request",
                type_options={"multipleValues": True},
                properties=[
                    NodeProperty(display_name="Header Name", name="name", type="string", default=""),
                    NodeProperty(display_name="Header Value", name="value", type="string", default=""),
                ],
            ),
            NodeProperty(
                display_name="Body",
                name="body",
                type="json",
                default="",
                description="Request body (for POST, PUT, PATCH)",
                type_options={"language": "json", "rows": 10},
                display_options={"show": {"method": list(BODY_METHODS)}},
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.HTTP_REQUEST

    @property
    def description(self) -> str:
        return "Makes HTTP requests to external APIs"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "status": 200,
            "statusText": "OK",
            "headers": {"content-type": "application/json"},
            "data": {"id": "123", "name": "Example"},
        }

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        url = self.get_parameter(data, "endpoint")
        method = str(self.get_parameter(data, "method", "GET")).upper()

        # Process headers
        headers_param = self.get_parameter(data, "headers", [])
        headers: dict[str, str] = {}
        if isinstance(headers_param, list):
            for h in headers_param:
                if isinstance(h, Mapping) and h.get("name"):
                    headers[str(h["name"])] = str(h.get("value", ""))
        elif isinstance(headers_param, Mapping):
            headers.update({str(k): str(v) for k, v in headers_param.items()})

        # Process body
        body = data.get("body") if method in BODY_METHODS else None
        if isinstance(body, str) and body:
            try:
                body = json.loads(body)
            except json.JSONDecodeError:
                pass  # Keep as string

        client = params.runtime.http_client
        if client is not None:
            response = await self._send(client, method, url, headers, body)
        else:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await self._send(client, method, url, headers, body)

        # Client errors will not change on retry
        if 400 <= response.status_code < 500:
            raise NonRetriableError(
                f"{method} {url} returned {response.status_code}",
                details={"status_code": response.status_code},
            )
        response.raise_for_status()

        try:
            response_data: Any = response.json()
        except ValueError:
            response_data = response.text

        return {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "data": response_data,
        }

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any,
    ) -> httpx.Response:
        if body is None or body == "":
            return await client.request(method, url, headers=headers)
        if isinstance(body, str):
            return await client.request(method, url, headers=headers, content=body)
        return await client.request(method, url, headers=headers, json=body)
