"""Workflow node implementations."""

from .base import BaseNode, ExecutorParams, NodeOutput, NodeRuntime
from .ai import AiCompletionNode
from .data import SetVariableNode
from .flow import BundleWorkflowNode, IfElseNode, StopWorkflowNode, SwitchNode, WaitNode
from .integrations import CreateContactNode, CreateDealNode, HttpRequestNode, UpdateContactNode
from .triggers import ManualTriggerNode, WebhookTriggerNode

__all__ = [
    "BaseNode",
    "ExecutorParams",
    "NodeOutput",
    "NodeRuntime",
    "AiCompletionNode",
    "SetVariableNode",
    "BundleWorkflowNode",
    "IfElseNode",
    "StopWorkflowNode",
    "SwitchNode",
    "WaitNode",
    "CreateContactNode",
    "CreateDealNode",
    "HttpRequestNode",
    "UpdateContactNode",
    "ManualTriggerNode",
    "WebhookTriggerNode",
]
