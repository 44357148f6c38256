"""Realtime service - subscription tokens and status streams."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.exceptions import RunNotFoundError
from ..realtime.channel import STATUS_TOPIC, run_channel
from ..schemas.run import TokenResponse

if TYPE_CHECKING:
    from ..realtime.channel import StatusChannel, Subscription
    from ..storage.run_store import RunStore


class RealtimeService:
    """Issues scoped subscription tokens and opens subscriptions."""

    def __init__(self, channel: StatusChannel, run_store: RunStore) -> None:
        self._channel = channel
        self._run_store = run_store

    def issue_token(self, run_id: str, topics: list[str] | None = None) -> TokenResponse:
        """Token granting the status stream of one run."""
        if self._run_store.get(run_id) is None:
            raise RunNotFoundError(run_id)

        topics = sorted(set(topics or [STATUS_TOPIC]))
        channel = run_channel(run_id)
        return TokenResponse(
            token=self._channel.get_subscription_token(channel, topics),
            channel=channel,
            topics=topics,
            expires_in=self._channel.tokens.ttl_seconds,
        )

    def subscribe(self, run_id: str, token: str, topics: list[str] | None = None) -> Subscription:
        """
        Open a subscription on a run's channel.

        A run that already finished publishes nothing more, so its
        subscription comes back closed.

        Raises:
            SubscriptionDenied: If the token is scoped to another run or topic
        """
        subscription = self._channel.subscribe(token, run_channel(run_id), topics)
        record = self._run_store.get(run_id)
        if record is None or record.status.is_terminal:
            subscription.close()
        return subscription
