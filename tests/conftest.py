"""Pytest configuration and fixtures."""

import os

# Set test environment variables before settings are first loaded
os.environ["DAGFLOW_REALTIME_SECRET"] = "test-secret"
os.environ["DAGFLOW_INLINE_SLEEP_MAX_SECONDS"] = "0.5"

import pytest  # noqa: E402

from .factories import StatusRecorder  # noqa: E402


@pytest.fixture
def registry():
    """A frozen registry with every built-in node type."""
    from dagflow.engine.node_registry import NodeRegistry, register_all_nodes

    registry = NodeRegistry()
    register_all_nodes(registry)
    registry.freeze()
    return registry


@pytest.fixture
def recorder():
    return StatusRecorder()


@pytest.fixture
def runner(registry):
    from dagflow.engine.workflow_runner import WorkflowRunner

    return WorkflowRunner(registry)


@pytest.fixture
def event_bus():
    from dagflow.engine.step_runtime import EventBus

    return EventBus()


@pytest.fixture
def journal():
    from dagflow.engine.step_runtime import StepJournal

    return StepJournal("run-test")


@pytest.fixture
def step(journal, event_bus):
    """Step runtime that parks any sleep longer than a tenth of a second."""
    from dagflow.engine.step_runtime import InMemoryStepRuntime

    return InMemoryStepRuntime(journal, event_bus, inline_sleep_max_seconds=0.1, default_retry_delay=0)


@pytest.fixture
def crm():
    from dagflow.integrations.crm import InMemoryCRMGateway

    return InMemoryCRMGateway()


@pytest.fixture
def node_runtime(crm):
    from dagflow.integrations.llm import LLMGateway
    from dagflow.nodes.base import NodeRuntime
    from dagflow.storage.workflow_store import WorkflowStore

    return NodeRuntime(llm=LLMGateway(), crm=crm, workflow_store=WorkflowStore())


@pytest.fixture
def channel():
    from dagflow.realtime.channel import StatusChannel
    from dagflow.realtime.tokens import TokenIssuer

    return StatusChannel(TokenIssuer(secret="channel-secret", ttl_seconds=60), queue_size=2)
