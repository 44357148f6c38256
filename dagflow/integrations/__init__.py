"""Gateways to external services invoked by node executors."""

from .crm import CRMGateway, HttpCRMGateway, InMemoryCRMGateway, create_crm_gateway
from .llm import LLMGateway, LLMResponse

__all__ = [
    "CRMGateway",
    "HttpCRMGateway",
    "InMemoryCRMGateway",
    "create_crm_gateway",
    "LLMGateway",
    "LLMResponse",
]
