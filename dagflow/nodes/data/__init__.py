"""Data nodes - shape values in the execution context."""

from .set_variable import SetVariableNode

__all__ = ["SetVariableNode"]
