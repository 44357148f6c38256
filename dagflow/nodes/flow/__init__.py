"""Flow control nodes - routing, timing and nesting."""

from .bundle_workflow import BundleWorkflowNode
from .if_else import IfElseNode
from .stop_workflow import StopWorkflowNode
from .switch import SwitchNode
from .wait import WaitNode

__all__ = [
    "BundleWorkflowNode",
    "IfElseNode",
    "StopWorkflowNode",
    "SwitchNode",
    "WaitNode",
]
