"""Tests for the per-run status channel and its subscription tokens."""

import asyncio

import pytest

from dagflow.core.exceptions import SubscriptionDenied
from dagflow.engine.types import NodeStatus
from dagflow.realtime.channel import run_channel
from dagflow.realtime.tokens import TokenIssuer


# =============================================================================
# PUBLISH
# =============================================================================


class TestPublish:
    """Fan-out of status updates to subscribers."""

    def test_publish_without_subscribers(self, channel):
        assert channel.publish("run-1", "n1", NodeStatus.LOADING) == 0

    @pytest.mark.asyncio
    async def test_subscriber_receives_updates_in_order(self, channel):
        token = channel.get_subscription_token(run_channel("run-1"))
        subscription = channel.subscribe(token, run_channel("run-1"))

        assert channel.publish("run-1", "n1", NodeStatus.LOADING) == 1
        assert channel.publish("run-1", "n1", NodeStatus.SUCCESS) == 1

        first = await subscription.get(timeout=1)
        second = await subscription.get(timeout=1)
        assert first.to_payload() == {"nodeId": "n1", "status": "loading"}
        assert second.to_payload() == {"nodeId": "n1", "status": "success"}

    @pytest.mark.asyncio
    async def test_other_runs_are_not_delivered(self, channel):
        token = channel.get_subscription_token(run_channel("run-1"))
        subscription = channel.subscribe(token, run_channel("run-1"))

        assert channel.publish("run-2", "n1", NodeStatus.LOADING) == 0
        assert await subscription.get(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_slow_subscriber_drops_updates(self, channel):
        token = channel.get_subscription_token(run_channel("run-1"))
        subscription = channel.subscribe(token, run_channel("run-1"))

        # queue_size is 2 in the fixture
        for status in (NodeStatus.LOADING, NodeStatus.SUCCESS, NodeStatus.ERROR):
            channel.publish("run-1", "n1", status)

        assert subscription.dropped == 1
        assert (await subscription.get(timeout=1)).status == NodeStatus.LOADING

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self, channel):
        token = channel.get_subscription_token(run_channel("run-1"))
        subscription = channel.subscribe(token, run_channel("run-1"))
        channel.publish("run-1", "n1", NodeStatus.SUCCESS)

        async def collect():
            return [event.node_id async for event in subscription]

        task = asyncio.create_task(collect())
        await asyncio.sleep(0)
        subscription.close()

        assert await asyncio.wait_for(task, timeout=1) == ["n1"]
        assert channel.subscriber_count(run_channel("run-1")) == 0


# =============================================================================
# TOKENS
# =============================================================================


class TestSubscriptionTokens:
    """Tokens are scoped to one channel and a set of topics."""

    def test_token_for_another_run_is_denied(self, channel):
        token = channel.get_subscription_token(run_channel("run-a"))
        with pytest.raises(SubscriptionDenied):
            channel.subscribe(token, run_channel("run-b"))

    def test_ungranted_topic_is_denied(self, channel):
        token = channel.get_subscription_token(run_channel("run-a"), topics=["status"])
        with pytest.raises(SubscriptionDenied, match="topics"):
            channel.subscribe(token, run_channel("run-a"), topics=["status", "logs"])

    def test_token_signed_with_other_secret(self, channel):
        token = TokenIssuer(secret="someone-else").issue(run_channel("run-a"), ["status"])
        with pytest.raises(SubscriptionDenied, match="invalid token"):
            channel.subscribe(token, run_channel("run-a"))

    def test_garbage_token(self, channel):
        with pytest.raises(SubscriptionDenied):
            channel.subscribe("not-a-jwt", run_channel("run-a"))

    def test_claims(self):
        issuer = TokenIssuer(secret="s", ttl_seconds=30)
        claims = issuer.verify(issuer.issue("workflow-run:x", ["status", "status"]), "workflow-run:x")
        assert claims.topics == ["status"]
        assert claims.type == "subscribe"
