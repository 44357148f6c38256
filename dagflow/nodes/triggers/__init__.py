"""Trigger nodes - the entry points of a workflow."""

from .manual import ManualTriggerNode
from .webhook import WebhookTriggerNode

__all__ = ["ManualTriggerNode", "WebhookTriggerNode"]
