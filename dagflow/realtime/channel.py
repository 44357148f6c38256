"""
Status channel - live per-node status for each run.

Publishing is fire-and-forget: with no subscribers an update is dropped,
and a subscriber that falls behind loses updates instead of slowing the run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Iterable

from ..core.config import settings
from ..engine.types import NodeStatus, StatusEvent
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)

STATUS_TOPIC = "status"

_CLOSED = object()


def run_channel(run_id: str) -> str:
    """Channel name for one workflow run."""
    return f"workflow-run:{run_id}"


class Subscription:
    """One observer of a channel. Iterate it to receive status events."""

    def __init__(self, hub: StatusChannel, channel: str, topics: Iterable[str], queue_size: int) -> None:
        self._hub = hub
        self.channel = channel
        self.topics = frozenset(topics)
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0
        self.closed = False

    def offer(self, event: StatusEvent) -> bool:
        """Queue an event without waiting. Returns False if it was dropped."""
        if self.closed or event.topic not in self.topics:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Subscriber on %s is full, dropped %s for %s", self.channel, event.status.value, event.node_id)
            return False
        return True

    async def get(self, timeout: float | None = None) -> StatusEvent | None:
        """Next event, or None once closed or when ``timeout`` expires."""
        if self.closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        return None if item is _CLOSED else item  # type: ignore[return-value]

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._hub._remove(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass  # the reader sees ``closed`` once the queue drains

    def __aiter__(self) -> AsyncIterator[StatusEvent]:
        return self

    async def __anext__(self) -> StatusEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class StatusChannel:
    """In-process pub/sub hub keyed by channel name."""

    def __init__(self, tokens: TokenIssuer | None = None, queue_size: int | None = None) -> None:
        self.tokens = tokens or TokenIssuer()
        self.queue_size = queue_size or settings.realtime_queue_size
        self._subscribers: dict[str, list[Subscription]] = {}

    def get_subscription_token(self, channel: str, topics: Iterable[str] = (STATUS_TOPIC,)) -> str:
        return self.tokens.issue(channel, topics)

    def subscribe(self, token: str, channel: str, topics: Iterable[str] | None = None) -> Subscription:
        """
        Attach a new subscriber to ``channel``.

        Raises:
            SubscriptionDenied: If the token is not scoped to this channel and topics
        """
        requested = list(topics) if topics is not None else None
        claims = self.tokens.verify(token, channel, requested)
        subscription = Subscription(self, channel, requested or claims.topics, self.queue_size)
        self._subscribers.setdefault(channel, []).append(subscription)
        logger.debug("New subscriber on %s", channel)
        return subscription

    def publish(self, run_id: str, node_id: str, status: NodeStatus, topic: str = STATUS_TOPIC) -> int:
        """
        Fan a status update out to the run's live subscribers.

        Never raises and never waits. Returns how many subscribers got it.
        """
        event = StatusEvent(run_id=run_id, node_id=node_id, status=NodeStatus(status), topic=topic)
        delivered = 0
        for subscription in list(self._subscribers.get(run_channel(run_id), [])):
            if subscription.offer(event):
                delivered += 1
        return delivered

    def close_channel(self, channel: str) -> None:
        """End every subscription on ``channel``. Used once a run can publish no more."""
        for subscription in list(self._subscribers.get(channel, [])):
            subscription.close()

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, []))

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.channel)
        if not subscribers:
            return
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            del self._subscribers[subscription.channel]


# Singleton instance
status_channel = StatusChannel()
