"""Integration nodes - external services and APIs."""

from .crm import CreateContactNode, CreateDealNode, UpdateContactNode
from .http_request import HttpRequestNode

__all__ = [
    "CreateContactNode",
    "CreateDealNode",
    "HttpRequestNode",
    "UpdateContactNode",
]
