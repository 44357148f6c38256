"""
Step runtime - named, memoised steps with retry, sleep and events.

Every side effect of a run goes through a named step. Completed steps are
recorded in the run's journal, so replaying a run after a suspension returns
the recorded results instead of executing the side effects again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from ..core.config import settings
from ..core.exceptions import NonRetriableError, RunCancelled, RunSuspended

logger = logging.getLogger(__name__)

T = TypeVar("T")

WakeCallback = Callable[[str], None]


class StepRuntime(Protocol):
    """What executors and the runner may ask of the durable runtime."""

    async def run(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        *,
        retries: int = 0,
        retry_delay: int | None = None,
    ) -> T: ...

    async def sleep(self, name: str, seconds: float) -> None: ...

    async def wait_for_event(self, name: str, event: str, timeout: float | None = None) -> Any: ...

    async def send_event(self, name: str, event: str, payload: Any = None) -> list[str]: ...

    def scoped(self, prefix: str) -> StepRuntime: ...


@dataclass
class StepJournal:
    """Everything a run has committed so far, keyed by step name."""

    run_id: str
    results: dict[str, Any] = field(default_factory=dict)
    # sleep step -> wake time, fixed on first entry
    sleeps: dict[str, datetime] = field(default_factory=dict)
    # wait step -> (event name, deadline)
    waits: dict[str, tuple[str, datetime | None]] = field(default_factory=dict)
    events: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False

    def is_committed(self, name: str) -> bool:
        return name in self.results

    def cancel(self) -> None:
        self.cancelled = True


class EventBus:
    """Routes external events to the runs waiting for them."""

    def __init__(self) -> None:
        self._waiters: dict[str, list[tuple[StepJournal, str]]] = {}
        self._on_wake: WakeCallback | None = None

    def on_wake(self, callback: WakeCallback | None) -> None:
        """Install the callback invoked with a run id once its event arrives."""
        self._on_wake = callback

    def register(self, event: str, journal: StepJournal, step_name: str) -> None:
        waiters = self._waiters.setdefault(event, [])
        if not any(j is journal and s == step_name for j, s in waiters):
            waiters.append((journal, step_name))

    def unregister(self, event: str, journal: StepJournal, step_name: str) -> None:
        """Forget a waiter whose wait ended without the event."""
        waiters = self._waiters.get(event)
        if not waiters:
            return
        waiters[:] = [(j, s) for j, s in waiters if not (j is journal and s == step_name)]
        if not waiters:
            del self._waiters[event]

    def forget(self, journal: StepJournal) -> None:
        """Drop every waiter of a run that will not be resumed again."""
        for step_name, (event, _) in list(journal.waits.items()):
            self.unregister(event, journal, step_name)

    def waiting_runs(self, event: str) -> list[str]:
        return [journal.run_id for journal, _ in self._waiters.get(event, [])]

    def emit(self, event: str, payload: Any = None) -> list[str]:
        """
        Deliver an event to every current waiter.

        Events nobody waits for are dropped. Returns the woken run ids.
        """
        woken: list[str] = []
        for journal, step_name in self._waiters.pop(event, []):
            if journal.cancelled:
                continue
            journal.events[step_name] = payload
            woken.append(journal.run_id)

        logger.info("Event %s delivered to %d run(s)", event, len(woken))

        if self._on_wake:
            for run_id in woken:
                try:
                    self._on_wake(run_id)
                except Exception:
                    logger.exception("Wake callback failed for run %s", run_id)

        return woken


class InMemoryStepRuntime:
    """
    Step runtime backed by an in-process journal.

    Short sleeps complete inline; anything longer than
    ``inline_sleep_max_seconds`` parks the run by raising ``RunSuspended``.
    """

    def __init__(
        self,
        journal: StepJournal,
        event_bus: EventBus | None = None,
        inline_sleep_max_seconds: float | None = None,
        default_retry_delay: int | None = None,
        prefix: str = "",
    ) -> None:
        self.journal = journal
        self.event_bus = event_bus or EventBus()
        self.inline_sleep_max_seconds = (
            settings.inline_sleep_max_seconds
            if inline_sleep_max_seconds is None
            else inline_sleep_max_seconds
        )
        self.default_retry_delay = (
            settings.default_retry_delay if default_retry_delay is None else default_retry_delay
        )
        self.prefix = prefix

    def scoped(self, prefix: str) -> InMemoryStepRuntime:
        """Runtime sharing this journal with step names namespaced under ``prefix``."""
        return InMemoryStepRuntime(
            self.journal,
            self.event_bus,
            self.inline_sleep_max_seconds,
            self.default_retry_delay,
            prefix=f"{self.prefix}{prefix}/",
        )

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def _check_cancelled(self) -> None:
        if self.journal.cancelled:
            raise RunCancelled(self.journal.run_id)

    async def run(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        *,
        retries: int = 0,
        retry_delay: int | None = None,
    ) -> T:
        """
        Run ``fn`` once as the step ``name`` and record its result.

        A committed step returns its recorded result without calling ``fn``.
        Failures are retried up to ``retries`` times with exponential backoff
        starting at ``retry_delay`` milliseconds.
        """
        key = self._key(name)
        if self.journal.is_committed(key):
            logger.debug("Replaying committed step %s", key)
            return self.journal.results[key]

        self._check_cancelled()

        delay_ms = self.default_retry_delay if retry_delay is None else retry_delay
        attempt = 0
        while True:
            try:
                result = await fn()
                break
            except (NonRetriableError, RunSuspended, RunCancelled):
                raise
            except Exception as e:
                if attempt >= retries:
                    raise
                backoff = (delay_ms / 1000) * (2**attempt)
                attempt += 1
                logger.warning(
                    "Step %s failed (attempt %d/%d), retrying in %.2fs: %s",
                    key,
                    attempt,
                    retries + 1,
                    backoff,
                    e,
                )
                await asyncio.sleep(backoff)
                self._check_cancelled()

        self.journal.results[key] = result
        return result

    async def sleep(self, name: str, seconds: float) -> None:
        """Sleep as a step. The wake time is fixed the first time the step is reached."""
        key = self._key(name)
        if self.journal.is_committed(key):
            return

        self._check_cancelled()

        wake_at = self.journal.sleeps.get(key)
        if wake_at is None:
            wake_at = datetime.now() + timedelta(seconds=max(seconds, 0))
            self.journal.sleeps[key] = wake_at

        remaining = (wake_at - datetime.now()).total_seconds()
        if remaining > self.inline_sleep_max_seconds:
            raise RunSuspended(key, resume_at=wake_at)
        if remaining > 0:
            await asyncio.sleep(remaining)

        self.journal.results[key] = None

    async def wait_for_event(self, name: str, event: str, timeout: float | None = None) -> Any:
        """
        Wait for an external event as a step.

        Returns the event payload, or None once ``timeout`` seconds elapsed
        without the event arriving.
        """
        key = self._key(name)
        if self.journal.is_committed(key):
            return self.journal.results[key]

        self._check_cancelled()

        if key in self.journal.events:
            payload = self.journal.events.pop(key)
            self.journal.waits.pop(key, None)
            self.journal.results[key] = payload
            return payload

        if key not in self.journal.waits:
            deadline = datetime.now() + timedelta(seconds=timeout) if timeout is not None else None
            self.journal.waits[key] = (event, deadline)

        _, deadline = self.journal.waits[key]
        if deadline is not None and datetime.now() >= deadline:
            self.journal.waits.pop(key, None)
            self.event_bus.unregister(event, self.journal, key)
            self.journal.results[key] = None
            return None

        self.event_bus.register(event, self.journal, key)
        raise RunSuspended(key, resume_at=deadline, event=event)

    async def send_event(self, name: str, event: str, payload: Any = None) -> list[str]:
        """Emit an event once, as a step. Returns the woken run ids."""

        async def emit() -> list[str]:
            return self.event_bus.emit(event, payload)

        return await self.run(name, emit)
