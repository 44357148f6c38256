"""CRM gateways used by the contact and deal nodes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from ..core.config import settings
from ..core.exceptions import NonRetriableError

logger = logging.getLogger(__name__)


class CRMGateway(Protocol):
    async def create_contact(self, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def update_contact(self, contact_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def create_deal(self, fields: dict[str, Any]) -> dict[str, Any]: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryCRMGateway:
    """CRM kept in process memory. Used when no CRM endpoint is configured."""

    def __init__(self) -> None:
        self.contacts: dict[str, dict[str, Any]] = {}
        self.deals: dict[str, dict[str, Any]] = {}

    async def create_contact(self, fields: dict[str, Any]) -> dict[str, Any]:
        contact_id = str(uuid.uuid4())
        contact = {"id": contact_id, **fields, "createdAt": _now()}
        self.contacts[contact_id] = contact
        return dict(contact)

    async def update_contact(self, contact_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        contact = self.contacts.get(contact_id)
        if contact is None:
            raise NonRetriableError(f"Contact not found: {contact_id}")
        contact.update(fields)
        contact["updatedAt"] = _now()
        return dict(contact)

    async def create_deal(self, fields: dict[str, Any]) -> dict[str, Any]:
        deal_id = str(uuid.uuid4())
        deal = {"id": deal_id, **fields, "createdAt": _now()}
        self.deals[deal_id] = deal
        return dict(deal)


class HttpCRMGateway:
    """CRM reached over a JSON REST API at ``crm_base_url``."""

    def __init__(self, base_url: str | None = None, http_client: httpx.AsyncClient | None = None) -> None:
        self.base_url = (base_url or settings.crm_base_url or "").rstrip("/")
        self._client = http_client

    async def _request(self, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            response = await self._client.request(method, url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await client.request(method, url, json=payload)

        # Client errors will not succeed on retry
        if 400 <= response.status_code < 500:
            raise NonRetriableError(
                f"CRM rejected {method} {path}: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text},
            )
        response.raise_for_status()
        return response.json()

    async def create_contact(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/contacts", fields)

    async def update_contact(self, contact_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"/contacts/{contact_id}", fields)

    async def create_deal(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/deals", fields)


def create_crm_gateway(http_client: httpx.AsyncClient | None = None) -> CRMGateway:
    """Pick the CRM gateway for the current settings."""
    if settings.crm_base_url:
        return HttpCRMGateway(settings.crm_base_url, http_client)
    logger.info("No CRM endpoint configured, using in-memory CRM")
    return InMemoryCRMGateway()
