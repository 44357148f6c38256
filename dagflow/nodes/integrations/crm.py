"""CRM nodes - create and update contacts, create deals."""

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

CONTACT_FIELDS = (
    "name",
    "email",
    "companyName",
    "phone",
    "position",
    "type",
    "lifecycleStage",
    "source",
    "website",
    "linkedin",
    "country",
    "city",
    "notes",
)

CONTACT_TYPES = ["LEAD", "PROSPECT", "CUSTOMER", "CHURN", "CLOSED"]


def _contact_properties(name_required: bool) -> list[NodeProperty]:
    properties = [
        NodeProperty(display_name="Name", name="name", type="string", default="", required=name_required),
        NodeProperty(display_name="Email", name="email", type="string", default=""),
        NodeProperty(display_name="Company", name="companyName", type="string", default=""),
        NodeProperty(display_name="Phone", name="phone", type="string", default=""),
        NodeProperty(display_name="Position", name="position", type="string", default=""),
        NodeProperty(
            display_name="Type",
            name="type",
            type="options",
            default="LEAD",
            options=[NodePropertyOption(name=t.title(), value=t) for t in CONTACT_TYPES],
        ),
        NodeProperty(display_name="Lifecycle Stage", name="lifecycleStage", type="string", default=""),
        NodeProperty(display_name="Source", name="source", type="string", default=""),
        NodeProperty(display_name="Notes", name="notes", type="string", default="", type_options={"rows": 3}),
    ]
    return properties


def _crm(params: ExecutorParams):
    if params.runtime.crm is None:
        raise NonRetriableError("No CRM gateway configured")
    return params.runtime.crm


def _present_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """Contact fields that were configured. Blank strings clear a field."""
    fields: dict[str, Any] = {}
    for key in CONTACT_FIELDS:
        if key in data and data[key] is not None:
            fields[key] = data[key] if data[key] != "" else None
    return fields


class CreateContactNode(BaseNode):
    """Create a CRM contact."""

    node_description = NodeTypeDescription(
        display_name="Create Contact",
        description="Create a new contact in the CRM",
        icon="fa:user-plus",
        group=["crm"],
        properties=[VARIABLE_NAME_PROPERTY, *_contact_properties(name_required=True)],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.CREATE_CONTACT

    @property
    def description(self) -> str:
        return "Create a new contact in the CRM"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "id": "contact-id",
            "name": "John Doe",
            "email": "john@example.com",
            "companyName": "Acme Inc",
            "phone": "+1234567890",
            "type": "LEAD",
            "createdAt": "2025-01-01T00:00:00.000Z",
        }

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        self.get_parameter(data, "name")
        fields = {key: value for key, value in _present_fields(data).items() if value is not None}
        fields.setdefault("type", "LEAD")
        return await _crm(params).create_contact(fields)


class UpdateContactNode(BaseNode):
    """Update an existing CRM contact."""

    node_description = NodeTypeDescription(
        display_name="Update Contact",
        description="Update an existing contact in the CRM",
        icon="fa:user-edit",
        group=["crm"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Contact ID",
                name="contactId",
                type="string",
                default="",
                required=True,
                placeholder="{{newContact.id}}",
            ),
            *_contact_properties(name_required=False),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.UPDATE_CONTACT

    @property
    def description(self) -> str:
        return "Update an existing contact in the CRM"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "id": "contact-id",
            "name": "John Doe",
            "email": "john@example.com",
            "type": "CUSTOMER",
            "updatedAt": "2025-01-01T00:00:00.000Z",
        }

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        contact_id = str(self.get_parameter(data, "contactId"))
        fields = _present_fields(data)
        # An empty name never clears the contact's name
        if fields.get("name") is None:
            fields.pop("name", None)
        return await _crm(params).update_contact(contact_id, fields)


class CreateDealNode(BaseNode):
    """Create a CRM deal, optionally linked to contacts."""

    node_description = NodeTypeDescription(
        display_name="Create Deal",
        description="Create a new deal in the CRM",
        icon="fa:handshake",
        group=["crm"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(display_name="Name", name="name", type="string", default="", required=True),
            NodeProperty(display_name="Value", name="value", type="string", default=""),
            NodeProperty(display_name="Currency", name="currency", type="string", default="USD"),
            NodeProperty(display_name="Deadline", name="deadline", type="string", default=""),
            NodeProperty(display_name="Source", name="source", type="string", default=""),
            NodeProperty(display_name="Description", name="description", type="string", default=""),
            NodeProperty(display_name="Pipeline ID", name="pipelineId", type="string", default=""),
            NodeProperty(display_name="Stage ID", name="pipelineStageId", type="string", default=""),
            NodeProperty(
                display_name="Contact IDs",
                name="contactIds",
                type="string",
                default="",
                description="Comma separated contact ids",
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.CREATE_DEAL

    @property
    def description(self) -> str:
        return "Create a new deal in the CRM"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        return {
            "id": "deal-id",
            "name": "New Deal",
            "value": "5000",
            "currency": "USD",
            "deadline": None,
            "pipelineId": "pipeline-id",
            "pipelineStageId": "stage-id",
            "createdAt": "2025-01-01T00:00:00.000Z",
        }

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        name = self.get_parameter(data, "name")

        value = data.get("value")
        if value not in (None, ""):
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise NonRetriableError(f'Deal value "{value}" is not a number')
        else:
            value = None

        contact_ids = data.get("contactIds") or []
        if isinstance(contact_ids, str):
            contact_ids = [cid.strip() for cid in contact_ids.split(",") if cid.strip()]

        fields: dict[str, Any] = {
            "name": name,
            "value": value,
            "currency": data.get("currency") or "USD",
            "deadline": data.get("deadline") or None,
            "source": data.get("source") or None,
            "description": data.get("description") or None,
            "pipelineId": data.get("pipelineId") or None,
            "pipelineStageId": data.get("pipelineStageId") or None,
            "contactIds": list(contact_ids),
        }
        deal = await _crm(params).create_deal(fields)
        if deal.get("value") is not None:
            deal["value"] = str(deal["value"])
        return deal
