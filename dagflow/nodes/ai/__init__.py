"""AI/LLM nodes - large language model integrations."""

from .completion import AiCompletionNode

__all__ = ["AiCompletionNode"]
