"""Realtime status broadcasting."""

from .channel import STATUS_TOPIC, StatusChannel, Subscription, run_channel, status_channel
from .tokens import TokenIssuer

__all__ = [
    "STATUS_TOPIC",
    "StatusChannel",
    "Subscription",
    "TokenIssuer",
    "run_channel",
    "status_channel",
]
