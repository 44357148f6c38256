"""Tests for the workflow runner."""

from dataclasses import replace
from datetime import datetime, timedelta

import httpx
import pytest

from dagflow.core.exceptions import CycleDetected, ValidationError
from dagflow.engine.step_runtime import InMemoryStepRuntime, StepJournal
from dagflow.engine.types import (
    BundleInput,
    BundleOutput,
    NodeStatus,
    NodeType,
    RunStatus,
    TriggerEvent,
)

from .factories import chain, make_node, make_workflow


def _set(node_id, variable_name, value):
    return make_node(node_id, NodeType.SET_VARIABLE, variableName=variable_name, value=value)


class CountingTransport:
    """httpx transport that counts requests and answers from a status list."""

    def __init__(self, statuses=(200,)):
        self.calls = 0
        self.statuses = list(statuses)

    def handler(self, request):
        status = self.statuses[min(self.calls, len(self.statuses) - 1)]
        self.calls += 1
        return httpx.Response(status, json={"call": self.calls, "path": request.url.path})

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# =============================================================================
# LINEAR RUNS
# =============================================================================


class TestLinearRuns:
    """Sequential execution, stop and failure."""

    @pytest.mark.asyncio
    async def test_completes_and_threads_variables(self, runner, recorder, node_runtime):
        workflow = make_workflow(
            [
                make_node("start", NodeType.MANUAL_TRIGGER, variableName="input"),
                _set("greet", "greeting", "Hello {{input.name}}"),
                _set("shout", "loud", "{{greeting}}!"),
            ],
            chain("start", "greet", "shout"),
        )
        result = await runner.run(
            workflow,
            TriggerEvent(workflow_id=workflow.id, initial_data={"name": "Ada"}),
            publish=recorder,
            runtime=node_runtime,
        )

        assert result.status == RunStatus.COMPLETED
        assert result.executed == ["start", "greet", "shout"]
        assert result.context.variables["loud"] == "Hello Ada!"
        assert result.context.variables["trigger"] == {"name": "Ada"}
        assert result.variable_sources == {"input": "start", "greeting": "greet", "loud": "shout"}
        assert recorder.for_node("greet") == [NodeStatus.LOADING, NodeStatus.SUCCESS]
        assert result.finished_at is not None

    @pytest.mark.asyncio
    async def test_last_writer_owns_an_unchanged_value(self, runner, node_runtime):
        workflow = make_workflow(
            [
                _set("first", "status", "ready"),
                _set("second", "status", "ready"),
            ],
            chain("first", "second"),
        )
        result = await runner.run(workflow, runtime=node_runtime)

        assert result.context.variables["status"] == "ready"
        assert result.variable_sources == {"status": "second"}

    @pytest.mark.asyncio
    async def test_trigger_seeded_variable_is_attributed_to_trigger_node(self, runner, node_runtime):
        workflow = make_workflow(
            [make_node("start", NodeType.MANUAL_TRIGGER, variableName="input")],
        )
        trigger = TriggerEvent(workflow_id=workflow.id, initial_data={"id": 1}, variable_name="input")

        result = await runner.run(workflow, trigger, runtime=node_runtime)

        assert result.context.variables["input"] == {"id": 1}
        assert result.variable_sources == {"input": "start"}

    @pytest.mark.asyncio
    async def test_stop_at_node_three_of_five(self, runner, recorder, node_runtime):
        workflow = make_workflow(
            [
                _set("n1", "one", "1"),
                _set("n2", "two", "2"),
                make_node("n3", NodeType.STOP_WORKFLOW, variableName="stopped", reason="done early"),
                _set("n4", "four", "4"),
                _set("n5", "five", "5"),
            ],
            chain("n1", "n2", "n3", "n4", "n5"),
        )
        result = await runner.run(workflow, publish=recorder, runtime=node_runtime)

        assert result.status == RunStatus.STOPPED
        assert result.executed == ["n1", "n2", "n3"]
        assert result.skipped == ["n4", "n5"]
        assert result.context.should_stop is True
        assert result.context.variables["stopped"]["reason"] == "done early"
        assert "four" not in result.context.variables
        assert recorder.for_node("n4") == []
        assert recorder.for_node("n5") == []

    @pytest.mark.asyncio
    async def test_failure_at_node_two_of_five(self, runner, recorder, node_runtime):
        workflow = make_workflow(
            [
                _set("n1", "one", "1"),
                make_node("n2", NodeType.UPDATE_CONTACT, variableName="contact", contactId="missing"),
                _set("n3", "three", "3"),
                _set("n4", "four", "4"),
                _set("n5", "five", "5"),
            ],
            chain("n1", "n2", "n3", "n4", "n5"),
        )
        result = await runner.run(workflow, publish=recorder, runtime=node_runtime)

        assert result.status == RunStatus.FAILED
        assert result.failed_node == "n2"
        assert "Contact not found" in result.error.error
        assert result.context.variables["one"] == 1
        assert result.executed == ["n1"]
        assert recorder.with_status(NodeStatus.ERROR) == ["n2"]
        assert [nid for nid, _ in recorder.events if nid in ("n3", "n4", "n5")] == []

    @pytest.mark.asyncio
    async def test_invalid_graph_runs_nothing(self, runner, recorder):
        workflow = make_workflow(
            [_set("a", "a", "1"), _set("b", "b", "2")],
            [("a", "b"), ("b", "a")],
        )
        with pytest.raises(CycleDetected):
            await runner.run(workflow, publish=recorder)
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_unregistered_type_is_rejected_before_running(self, recorder):
        from dagflow.engine.node_registry import NodeRegistry
        from dagflow.engine.workflow_runner import WorkflowRunner

        workflow = make_workflow([_set("a", "a", "1")])
        with pytest.raises(ValidationError):
            await WorkflowRunner(NodeRegistry()).run(workflow, publish=recorder)
        assert recorder.events == []


# =============================================================================
# RETRIES
# =============================================================================


class TestRetries:
    """Per-node retry policy."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, runner, recorder, node_runtime):
        transport = CountingTransport(statuses=(500, 503, 200))
        runtime = replace(node_runtime, http_client=transport.client())
        workflow = make_workflow(
            [
                make_node(
                    "fetch",
                    NodeType.HTTP_REQUEST,
                    variableName="todo",
                    endpoint="https://api.example.com/todos/1",
                    retry_on_fail=2,
                    retry_delay=0,
                )
            ]
        )
        result = await runner.run(workflow, publish=recorder, runtime=runtime)

        assert result.status == RunStatus.COMPLETED
        assert transport.calls == 3
        assert result.context.variables["todo"]["data"]["call"] == 3
        # loading once, success once: retries are invisible on the channel
        assert recorder.for_node("fetch") == [NodeStatus.LOADING, NodeStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, runner, recorder, node_runtime):
        transport = CountingTransport(statuses=(404,))
        runtime = replace(node_runtime, http_client=transport.client())
        workflow = make_workflow(
            [
                make_node(
                    "fetch",
                    NodeType.HTTP_REQUEST,
                    variableName="todo",
                    endpoint="https://api.example.com/missing",
                    retry_on_fail=3,
                    retry_delay=0,
                )
            ]
        )
        result = await runner.run(workflow, publish=recorder, runtime=runtime)

        assert result.status == RunStatus.FAILED
        assert transport.calls == 1
        assert recorder.for_node("fetch") == [NodeStatus.LOADING, NodeStatus.ERROR]


# =============================================================================
# BRANCHING
# =============================================================================


class TestBranching:
    """Branch routing through source handles."""

    def _approval_workflow(self):
        return make_workflow(
            [
                make_node(
                    "check",
                    NodeType.IF_ELSE,
                    variableName="check",
                    leftOperand="{{trigger.amount}}",
                    operator="greaterThan",
                    rightOperand="100",
                ),
                _set("big", "path", "manual review"),
                _set("small", "path", "auto approve"),
                _set("after_big", "reviewed", "true"),
            ],
            [("check", "big", "true"), ("check", "small", "false"), ("big", "after_big")],
        )

    @pytest.mark.asyncio
    async def test_true_branch(self, runner, recorder):
        workflow = self._approval_workflow()
        result = await runner.run(
            workflow, TriggerEvent(workflow_id=workflow.id, initial_data={"amount": 150}), publish=recorder
        )

        assert result.executed == ["check", "big", "after_big"]
        assert result.skipped == ["small"]
        assert result.context.variables["path"] == "manual review"
        assert result.context.branch is None

    @pytest.mark.asyncio
    async def test_false_branch_skips_whole_subtree(self, runner, recorder):
        workflow = self._approval_workflow()
        result = await runner.run(
            workflow, TriggerEvent(workflow_id=workflow.id, initial_data={"amount": 20}), publish=recorder
        )

        assert result.executed == ["check", "small"]
        assert result.skipped == ["big", "after_big"]
        assert recorder.for_node("big") == []

    @pytest.mark.asyncio
    async def test_switch_routes_to_matching_case(self, runner, recorder):
        workflow = make_workflow(
            [
                make_node(
                    "route",
                    NodeType.SWITCH,
                    inputValue="{{trigger.status}}",
                    cases=[{"value": "open"}, {"value": "closed"}],
                ),
                _set("opened", "msg", "open"),
                _set("closed", "msg", "closed"),
                _set("other", "msg", "other"),
            ],
            [("route", "opened", "case-0"), ("route", "closed", "case-1"), ("route", "other", "default")],
        )
        result = await runner.run(
            workflow, TriggerEvent(workflow_id=workflow.id, initial_data={"status": "pending"}), publish=recorder
        )

        assert result.executed == ["route", "other"]
        assert result.context.variables["msg"] == "other"


# =============================================================================
# SUSPEND / RESUME / CANCEL
# =============================================================================


class TestDurability:
    """Suspension at wait steps and replay on resume."""

    def _wait_workflow(self, **wait_data):
        return make_workflow(
            [
                make_node("fetch", NodeType.HTTP_REQUEST, variableName="todo", endpoint="https://api/todos/1"),
                make_node("wait", NodeType.WAIT, variableName="waited", **wait_data),
                _set("done", "finished", "true"),
            ],
            chain("fetch", "wait", "done"),
        )

    @pytest.mark.asyncio
    async def test_replay_after_sleep_does_not_repeat_side_effects(
        self, runner, recorder, node_runtime, step, journal
    ):
        transport = CountingTransport()
        runtime = replace(node_runtime, http_client=transport.client())
        workflow = self._wait_workflow(mode="duration", duration=2, unit="hours")

        first = await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)

        assert first.status == RunStatus.SUSPENDED
        assert first.resume_at is not None
        assert first.executed == ["fetch"]
        assert transport.calls == 1

        journal.sleeps["wait:sleep"] = datetime.now() - timedelta(seconds=1)
        second = await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)

        assert second.status == RunStatus.COMPLETED
        assert second.executed == ["fetch", "wait", "done"]
        assert second.context.variables["finished"] is True
        assert second.context.variables["todo"]["status"] == 200
        assert transport.calls == 1
        assert recorder.for_node("fetch") == [NodeStatus.LOADING, NodeStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_event_wait_resumes_with_payload(self, runner, recorder, node_runtime, step, journal, event_bus):
        runtime = replace(node_runtime, http_client=CountingTransport().client())
        workflow = self._wait_workflow(mode="event", eventName="order.approved")

        first = await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)
        assert first.status == RunStatus.SUSPENDED
        assert first.waiting_for_event == "order.approved"

        assert event_bus.emit("order.approved", {"approver": "ops"}) == [journal.run_id]

        second = await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)
        assert second.status == RunStatus.COMPLETED
        assert second.context.variables["waited"] == {
            "event": "order.approved",
            "payload": {"approver": "ops"},
            "timedOut": False,
        }

    @pytest.mark.asyncio
    async def test_cancelled_run_fails_without_running_more_nodes(
        self, runner, recorder, node_runtime, step, journal
    ):
        runtime = replace(node_runtime, http_client=CountingTransport().client())
        workflow = self._wait_workflow(mode="duration", duration=2, unit="hours")

        await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)
        journal.cancel()
        journal.sleeps["wait:sleep"] = datetime.now() - timedelta(seconds=1)
        result = await runner.run(workflow, run_id=journal.run_id, step=step, publish=recorder, runtime=runtime)

        assert result.status == RunStatus.FAILED
        assert result.error.error == "Run cancelled"
        assert "finished" not in result.context.variables
        assert recorder.for_node("done") == []


# =============================================================================
# BUNDLES
# =============================================================================


class TestBundles:
    """Bundle workflows run nested through the same runner."""

    def _store_bundle(self, store, **overrides):
        bundle = make_workflow(
            [_set("compose", "greeting", "Hello {{name}}")],
            workflow_id="",
            name="Greeter",
            is_bundle=True,
            bundle_inputs=(BundleInput(name="name"), BundleInput(name="punctuation", default_value="!")),
            bundle_outputs=(BundleOutput(name="greeting", variable_path="greeting"),),
            **overrides,
        )
        return store.create(bundle).id

    @pytest.mark.asyncio
    async def test_bundle_outputs_are_returned(self, runner, recorder, node_runtime):
        bundle_id = self._store_bundle(node_runtime.workflow_store)
        workflow = make_workflow(
            [
                make_node(
                    "call",
                    NodeType.BUNDLE_WORKFLOW,
                    variableName="greeter",
                    bundleWorkflowId=bundle_id,
                    inputMappings=[{"bundleInputName": "name", "value": "{{trigger.user}}"}],
                )
            ]
        )
        result = await runner.run(
            workflow,
            TriggerEvent(workflow_id=workflow.id, initial_data={"user": "Ada"}),
            publish=recorder,
            runtime=node_runtime,
        )

        assert result.status == RunStatus.COMPLETED
        assert result.context.variables["greeter"] == {"greeting": "Hello Ada"}
        # the bundle's inner node reports on the caller's channel
        assert recorder.for_node("compose") == [NodeStatus.LOADING, NodeStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_non_bundle_workflow_is_rejected(self, runner, recorder, node_runtime):
        store = node_runtime.workflow_store
        plain_id = store.create(make_workflow([_set("x", "x", "1")], workflow_id="")).id
        workflow = make_workflow(
            [make_node("call", NodeType.BUNDLE_WORKFLOW, variableName="out", bundleWorkflowId=plain_id)]
        )
        result = await runner.run(workflow, publish=recorder, runtime=node_runtime)

        assert result.status == RunStatus.FAILED
        assert "not a bundle workflow" in result.error.error
