"""
Run service - triggers, resumes and cancels workflow runs.

Each run keeps its step journal here while it is unfinished. A run is
accepted first (``start``) and driven afterwards, either awaited by the
caller or in a background task (``launch``), so observers can subscribe to
its status channel before the first node executes. A run parked in a long
sleep is rescheduled with ``loop.call_later``; a run waiting for an event is
resumed when the event bus wakes it. No task is held while parked.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..core.exceptions import (
    RunInProgressError,
    RunNotFoundError,
    ValidationError,
    WorkflowNotFoundError,
)
from ..engine.graph import WorkflowGraph
from ..engine.step_runtime import EventBus, InMemoryStepRuntime, StepJournal
from ..engine.types import (
    NodeType,
    RunRecord,
    RunResult,
    RunStatus,
    TriggerEvent,
    Workflow,
)
from ..realtime.channel import run_channel
from ..schemas.run import (
    RunDetailResponse,
    RunErrorSchema,
    RunListItem,
    RunResponse,
)

if TYPE_CHECKING:
    from ..engine.workflow_runner import WorkflowRunner
    from ..nodes.base import NodeRuntime
    from ..realtime.channel import StatusChannel
    from ..storage.run_store import RunStore
    from ..storage.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


@dataclass
class PendingRun:
    """An unfinished run and what is needed to continue it."""

    workflow: Workflow
    trigger: TriggerEvent
    journal: StepJournal
    running: bool = False
    timer: asyncio.TimerHandle | None = None
    task: asyncio.Task[Any] | None = None

    @property
    def active(self) -> bool:
        """True while a drive is executing or scheduled."""
        return self.running or (self.task is not None and not self.task.done())


class RunService:
    """Service for run operations."""

    def __init__(
        self,
        runner: WorkflowRunner,
        workflow_store: WorkflowStore,
        run_store: RunStore,
        event_bus: EventBus,
        runtime: NodeRuntime | None = None,
        channel: StatusChannel | None = None,
    ) -> None:
        self._runner = runner
        self._workflow_store = workflow_store
        self._run_store = run_store
        self._event_bus = event_bus
        self._runtime = runtime
        self._channel = channel
        self._pending: dict[str, PendingRun] = {}
        event_bus.on_wake(self._wake)

    def start(
        self,
        workflow_id: str,
        initial_data: Any = None,
        variable_name: str | None = None,
        mode: str = "manual",
    ) -> RunRecord:
        """
        Accept a run of a stored workflow without executing any node.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            ValidationError: If the graph is malformed. No run is recorded.
        """
        stored = self._workflow_store.get(workflow_id)
        if not stored:
            raise WorkflowNotFoundError(workflow_id)

        # Runs hold the snapshot taken here, later edits do not affect them
        workflow = stored.workflow
        WorkflowGraph(workflow).validate(self._runner.registry)

        trigger = TriggerEvent(
            workflow_id=workflow_id,
            initial_data=initial_data,
            variable_name=variable_name or self._trigger_variable_name(workflow),
            mode=mode,  # type: ignore[arg-type]
        )
        run_id = self._runner.new_run_id()
        record = self._run_store.start(run_id, workflow_id, stored.name, trigger)
        self._pending[run_id] = PendingRun(workflow=workflow, trigger=trigger, journal=StepJournal(run_id))
        logger.info("Run %s of workflow %s accepted (%s)", run_id, workflow_id, mode)
        return record

    async def trigger(
        self,
        workflow_id: str,
        initial_data: Any = None,
        variable_name: str | None = None,
        mode: str = "manual",
    ) -> RunResult:
        """Start a run and drive it until it finishes or parks."""
        record = self.start(workflow_id, initial_data, variable_name, mode)
        return await self._drive(record.id)

    def launch(self, run_id: str) -> None:
        """
        Drive an accepted or parked run in a background task.

        Does nothing if the run is already executing or scheduled.

        Raises:
            RunNotFoundError: If the run is unknown or already finished
        """
        pending = self._pending.get(run_id)
        if pending is None:
            raise RunNotFoundError(run_id)
        if pending.active:
            return
        self._cancel_timer(pending)
        pending.task = asyncio.get_running_loop().create_task(self._drive_in_background(run_id))

    def is_deferred(self, run_id: str) -> bool:
        """True for an accepted run that has not been driven yet."""
        pending = self._pending.get(run_id)
        record = self._run_store.get(run_id)
        return (
            pending is not None
            and not pending.active
            and record is not None
            and record.status == RunStatus.PENDING
        )

    def start_webhook(
        self,
        workflow_id: str,
        method: str,
        body: Any,
        headers: dict[str, str],
        query_params: dict[str, str],
    ) -> RunRecord:
        """Accept a run from an incoming webhook request."""
        stored = self._workflow_store.get(workflow_id)
        if not stored:
            raise WorkflowNotFoundError(workflow_id)
        if not stored.active:
            raise ValidationError(f"Workflow is not active: {workflow_id}", field="active")
        if not any(n.type == NodeType.WEBHOOK_TRIGGER for n in stored.workflow.nodes):
            raise ValidationError("Workflow has no webhook trigger", field="nodes")

        payload = {
            "body": body,
            "headers": headers,
            "query": query_params,
            "method": method,
            "triggeredAt": datetime.now().isoformat(),
        }
        return self.start(workflow_id, payload, mode="webhook")

    async def resume(self, run_id: str) -> RunResult:
        """
        Replay a parked or accepted run. Committed steps return their recorded results.

        Raises:
            RunNotFoundError: If the run is unknown or already finished
            RunInProgressError: If the run is executing right now
        """
        pending = self._pending.get(run_id)
        if pending is None:
            raise RunNotFoundError(run_id)
        if pending.active:
            raise RunInProgressError(run_id)
        self._cancel_timer(pending)
        return await self._drive(run_id)

    async def cancel(self, run_id: str) -> RunRecord:
        """
        Cancel a run. No further step is scheduled for it.

        A parked run is replayed once so it reaches its terminal state now.
        """
        pending = self._pending.get(run_id)
        record = self._run_store.get(run_id)
        if pending is None:
            if record is None:
                raise RunNotFoundError(run_id)
            return record

        pending.journal.cancel()
        logger.info("Run %s cancelled", run_id)
        if not pending.active:
            await self.resume(run_id)
        return self._run_store.get(run_id) or record

    async def send_event(self, event: str, payload: Any = None) -> list[str]:
        """Deliver an external event. Waiting runs are resumed in the background."""
        return self._event_bus.emit(event, payload)

    async def list_runs(self, workflow_id: str | None = None) -> list[RunListItem]:
        """List run history."""
        return [self._to_list_item(r) for r in self._run_store.list(workflow_id)]

    async def get_run(self, run_id: str) -> RunDetailResponse:
        """Get run details."""
        record = self._run_store.get(run_id)
        if not record:
            raise RunNotFoundError(run_id)

        item = self._to_list_item(record)
        return RunDetailResponse(
            **item.model_dump(),
            result=to_run_response(record.result) if record.result else None,
        )

    async def _drive(self, run_id: str) -> RunResult:
        pending = self._pending[run_id]
        pending.running = True
        self._run_store.set_status(run_id, RunStatus.RUNNING)

        step = InMemoryStepRuntime(pending.journal, self._event_bus)
        try:
            result = await self._runner.run(
                pending.workflow,
                pending.trigger,
                run_id=run_id,
                step=step,
                runtime=self._runtime,
            )
        finally:
            pending.running = False

        self._run_store.record_result(result)

        if result.status == RunStatus.SUSPENDED:
            self._schedule(run_id, result.resume_at)
        else:
            self._finish(run_id)
            logger.info("Run %s finished with status %s", run_id, result.status.value)
        return result

    def _finish(self, run_id: str) -> None:
        """Release everything a finished run still holds."""
        pending = self._pending.pop(run_id, None)
        if pending is not None:
            self._cancel_timer(pending)
            self._event_bus.forget(pending.journal)
        if self._channel is not None:
            self._channel.close_channel(run_channel(run_id))

    def _schedule(self, run_id: str, resume_at: datetime | None) -> None:
        """Arrange for a parked run to be replayed at ``resume_at``."""
        if resume_at is None:
            return
        delay = max((resume_at - datetime.now()).total_seconds(), 0.0)
        loop = asyncio.get_running_loop()
        self._pending[run_id].timer = loop.call_later(delay, self._wake, run_id)
        logger.debug("Run %s resumes in %.1fs", run_id, delay)

    def _wake(self, run_id: str) -> None:
        pending = self._pending.get(run_id)
        if pending is None or pending.active:
            return
        self.launch(run_id)

    async def _drive_in_background(self, run_id: str) -> None:
        try:
            await self._drive(run_id)
        except Exception:
            logger.exception("Background drive of run %s failed", run_id)

    @staticmethod
    def _cancel_timer(pending: PendingRun) -> None:
        if pending.timer:
            pending.timer.cancel()
            pending.timer = None

    @staticmethod
    def _trigger_variable_name(workflow: Workflow) -> str | None:
        for node in workflow.nodes:
            if node.type.is_trigger and node.variable_name:
                return node.variable_name
        return None

    @staticmethod
    def _to_list_item(record: RunRecord) -> RunListItem:
        return RunListItem(
            id=record.id,
            workflow_id=record.workflow_id,
            workflow_name=record.workflow_name,
            status=record.status.value,
            mode=record.trigger.mode,
            start_time=record.start_time.isoformat(),
            end_time=record.end_time.isoformat() if record.end_time else None,
            failed_node=record.result.failed_node if record.result else None,
        )


def to_run_response(result: RunResult) -> RunResponse:
    """Convert a run result to its API response."""
    return RunResponse(
        run_id=result.run_id,
        workflow_id=result.workflow_id,
        status=result.status.value,
        channel=run_channel(result.run_id),
        variables=dict(result.context.variables),
        variable_sources=dict(result.variable_sources),
        executed=list(result.executed),
        skipped=list(result.skipped),
        error=(
            RunErrorSchema(
                node_id=result.error.node_id,
                error=result.error.error,
                timestamp=result.error.timestamp.isoformat(),
            )
            if result.error
            else None
        ),
        failed_node=result.failed_node,
        resume_at=result.resume_at.isoformat() if result.resume_at else None,
        waiting_for_event=result.waiting_for_event,
    )


def accepted_run_response(record: RunRecord) -> RunResponse:
    """Response for a run that was accepted but has produced no result yet."""
    return RunResponse(
        run_id=record.id,
        workflow_id=record.workflow_id,
        status=record.status.value,
        channel=run_channel(record.id),
    )
