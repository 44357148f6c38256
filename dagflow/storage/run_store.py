"""In-memory run history storage."""

from __future__ import annotations

from datetime import datetime

from ..core.config import settings
from ..engine.types import RunRecord, RunResult, RunStatus, TriggerEvent


class RunStore:
    """Bounded history of workflow runs."""

    def __init__(self, max_records: int | None = None) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._max_records = max_records or settings.max_run_records

    def start(self, run_id: str, workflow_id: str, workflow_name: str, trigger: TriggerEvent) -> RunRecord:
        """Create a new run record when a run is accepted."""
        record = RunRecord(
            id=run_id,
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            status=RunStatus.PENDING,
            trigger=trigger,
            start_time=datetime.now(),
        )

        self._runs[run_id] = record
        self._cleanup()
        return record

    def set_status(self, run_id: str, status: RunStatus) -> RunRecord | None:
        record = self._runs.get(run_id)
        if record:
            record.status = status
        return record

    def record_result(self, result: RunResult) -> RunRecord | None:
        """Store the outcome of one invocation of a run."""
        record = self._runs.get(result.run_id)
        if not record:
            return None

        record.status = result.status
        record.result = result
        record.end_time = result.finished_at if result.status.is_terminal else None
        return record

    def get(self, run_id: str) -> RunRecord | None:
        """Get a run record by ID."""
        return self._runs.get(run_id)

    def list(self, workflow_id: str | None = None) -> list[RunRecord]:
        """List run records, newest first, optionally filtered by workflow ID."""
        records = list(self._runs.values())

        if workflow_id:
            records = [r for r in records if r.workflow_id == workflow_id]

        records.sort(key=lambda r: r.start_time, reverse=True)
        return records

    def delete(self, run_id: str) -> bool:
        """Delete a run record."""
        if run_id in self._runs:
            del self._runs[run_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all run records."""
        self._runs.clear()

    def _cleanup(self) -> None:
        """Remove the oldest finished records once over the limit."""
        if len(self._runs) <= self._max_records:
            return

        finished = sorted(
            (r for r in self._runs.values() if r.status.is_terminal),
            key=lambda r: r.start_time,
        )
        for record in finished[: len(self._runs) - self._max_records]:
            del self._runs[record.id]


# Singleton instance
run_store = RunStore()
