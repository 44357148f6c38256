"""
Workflow runner - executes DAG-based workflows.

Nodes run strictly one at a time in topological order. Each node is one
durable step, so a resumed run replays committed nodes from the journal
instead of executing them again.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

from ..core.exceptions import ExecutorError, RunCancelled, RunSuspended
from .graph import WorkflowGraph
from .step_runtime import InMemoryStepRuntime, StepJournal, StepRuntime
from .types import (
    ExecutionContext,
    Node,
    NodeRunError,
    NodeStatus,
    PublishFn,
    RunResult,
    RunStatus,
    TriggerEvent,
    Workflow,
)

if TYPE_CHECKING:
    from ..nodes.base import NodeRuntime
    from ..realtime.channel import StatusChannel
    from .node_registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Mutable bookkeeping for one pass over a workflow."""

    context: ExecutionContext
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    # variable name -> id of the node that last wrote it
    variable_sources: dict[str, str] = field(default_factory=dict)
    stopped: bool = False
    current_node: str | None = None


class WorkflowRunner:
    """Executes workflows node by node in dependency order."""

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        channel: StatusChannel | None = None,
    ) -> None:
        if registry is None:
            from .node_registry import node_registry

            registry = node_registry
        self._registry = registry
        self._channel = channel

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    async def run(
        self,
        workflow: Workflow,
        trigger: TriggerEvent | None = None,
        *,
        run_id: str | None = None,
        step: StepRuntime | None = None,
        publish: PublishFn | None = None,
        runtime: NodeRuntime | None = None,
    ) -> RunResult:
        """
        Run a workflow from its trigger.

        Calling ``run`` again with the same ``run_id`` and step runtime resumes
        a suspended run.

        Raises:
            ValidationError: If the graph is malformed. Nothing has run yet.
        """
        from ..nodes.base import NodeRuntime

        # Validate before anything is scheduled or published
        graph = WorkflowGraph(workflow)
        graph.validate(self._registry)

        trigger = trigger or TriggerEvent(workflow_id=workflow.id)
        run_id = run_id or self.new_run_id()
        step = step or InMemoryStepRuntime(StepJournal(run_id))
        publish = publish or self.publisher(run_id)
        runtime = runtime or NodeRuntime()
        runtime = replace(runtime, run_id=run_id, runner=runtime.runner or self)

        result = RunResult(
            run_id=run_id,
            workflow_id=workflow.id,
            status=RunStatus.PENDING,
            context=ExecutionContext.from_trigger(trigger.initial_data, trigger.variable_name),
        )
        state = RunState(context=result.context)

        result.status = RunStatus.RUNNING
        logger.info("Run %s of workflow %s started", run_id, workflow.id)

        try:
            await self.execute(workflow, state.context, step=step, publish=publish, runtime=runtime, state=state)
            result.status = RunStatus.STOPPED if state.stopped else RunStatus.COMPLETED
        except RunSuspended as e:
            result.status = RunStatus.SUSPENDED
            result.resume_at = e.resume_at
            result.waiting_for_event = e.event
            logger.info("Run %s suspended at %s", run_id, e.step_name)
        except ExecutorError as e:
            result.status = RunStatus.FAILED
            result.error = NodeRunError(node_id=e.node_id, error=str(e.cause))
            logger.warning("Run %s failed at node %s: %s", run_id, e.node_id, e.cause)
        except RunCancelled:
            result.status = RunStatus.FAILED
            result.error = NodeRunError(node_id=state.current_node or "", error="Run cancelled")
            logger.info("Run %s cancelled", run_id)

        result.context = state.context.select_branch(None)
        result.executed = state.executed
        result.skipped = state.skipped
        result.variable_sources = state.variable_sources
        if result.status.is_terminal:
            result.finished_at = datetime.now()
        return result

    async def execute(
        self,
        workflow: Workflow,
        context: ExecutionContext,
        *,
        step: StepRuntime,
        publish: PublishFn,
        runtime: NodeRuntime,
        state: RunState | None = None,
    ) -> RunState:
        """
        Execute every reachable node of ``workflow`` starting from ``context``.

        Failures propagate: ``ExecutorError`` for a failed node, ``RunSuspended``
        when a wait parks the run, ``RunCancelled`` once the run is cancelled.
        ``state`` keeps what was committed before the exception.
        """
        from ..nodes.base import ExecutorParams

        graph = WorkflowGraph(workflow)
        graph.validate(self._registry)
        order = graph.topological_order()

        state = state or RunState(context=context)
        runtime = replace(runtime, workflow=workflow)
        reachable = {node.id for node in graph.entry_nodes()}

        for index, node in enumerate(order):
            if node.id not in reachable:
                state.skipped.append(node.id)
                continue

            state.current_node = node.id
            executor = self._registry.get(node.type)
            params = ExecutorParams(
                data=node.data,
                context=state.context,
                node_id=node.id,
                publish=publish,
                step=step,
                runtime=runtime,
                retry_on_fail=node.retry_on_fail,
                retry_delay=node.retry_delay,
                node_name=node.name,
            )

            async def invoke() -> ExecutionContext:
                return await executor.execute(params)

            try:
                returned = await step.run(f"node:{node.id}", invoke)
            except (ExecutorError, RunSuspended, RunCancelled):
                raise
            except Exception as e:
                # Executor broke its contract, so the error status is ours to send
                logger.exception("Node %s (%s) raised outside its executor", node.id, node.type.value)
                await publish(node.id, NodeStatus.ERROR)
                raise ExecutorError(node.id, node.type.value, e) from e

            branch = returned.branch
            state.context = self._merge(state, node, returned)
            state.executed.append(node.id)

            if state.context.should_stop:
                state.stopped = True
                state.skipped.extend(n.id for n in order[index + 1:])
                logger.info("Node %s stopped the workflow", node.id)
                break

            reachable.update(n.id for n in graph.direct_successors(node.id, handle=branch))

        state.current_node = None
        return state

    def _merge(self, state: RunState, node: Node, returned: ExecutionContext) -> ExecutionContext:
        """
        Fold a node's returned context into the run's context.

        The node's variable and every other changed variable are written
        individually and attributed to the node, so the last writer is
        recorded. The stop flag can be raised but never cleared.
        """
        current = state.context
        changed: dict[str, object] = {}
        for key, value in returned.variables.items():
            # The node's own variable counts as written even when the value is unchanged
            if key != node.variable_name and key in current.variables:
                previous = current.variables[key]
                if previous is value or previous == value:
                    continue
            changed[key] = value
            state.variable_sources[key] = node.id

        merged = current.with_variables(changed) if changed else current
        if returned.should_stop and not merged.should_stop:
            merged = merged.stop()
        return merged.select_branch(None)

    def publisher(self, run_id: str) -> PublishFn:
        """Status publish capability for one run. Never raises."""
        channel = self._channel

        async def publish(node_id: str, status: NodeStatus) -> None:
            if channel is None:
                return
            try:
                channel.publish(run_id, node_id, status)
            except Exception:
                logger.exception("Failed to publish %s for node %s", status.value, node_id)

        return publish

    def new_run_id(self) -> str:
        """Generate a unique run ID."""
        return f"run_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"
