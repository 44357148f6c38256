"""In-memory workflow storage."""

from __future__ import annotations

import time
import uuid
from dataclasses import replace
from datetime import datetime

from ..engine.types import StoredWorkflow, Workflow


class WorkflowStore:
    """
    Key/value store of immutable workflow snapshots.

    Updates replace the stored snapshot, so a run holding the previous
    snapshot is never affected by edits.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, StoredWorkflow] = {}

    def create(self, workflow: Workflow) -> StoredWorkflow:
        """Create a new workflow."""
        workflow_id = workflow.id or self._generate_id()
        now = datetime.now()

        stored = StoredWorkflow(
            id=workflow_id,
            name=workflow.name,
            workflow=replace(workflow, id=workflow_id),
            active=True,
            created_at=now,
            updated_at=now,
        )

        self._workflows[workflow_id] = stored
        return stored

    def get(self, workflow_id: str) -> StoredWorkflow | None:
        """Get a workflow by ID."""
        return self._workflows.get(workflow_id)

    def get_active(self, workflow_id: str) -> StoredWorkflow | None:
        """Get a workflow that accepts webhook triggers."""
        stored = self._workflows.get(workflow_id)
        if stored and stored.active:
            return stored
        return None

    def list(self) -> list[StoredWorkflow]:
        """List all workflows."""
        return list(self._workflows.values())

    def update(self, workflow_id: str, workflow: Workflow) -> StoredWorkflow | None:
        """Replace the snapshot of an existing workflow."""
        existing = self._workflows.get(workflow_id)
        if not existing:
            return None

        existing.workflow = replace(workflow, id=workflow_id)
        existing.name = workflow.name or existing.name
        existing.updated_at = datetime.now()
        return existing

    def set_active(self, workflow_id: str, active: bool) -> StoredWorkflow | None:
        """Set workflow active state."""
        existing = self._workflows.get(workflow_id)
        if not existing:
            return None

        existing.active = active
        existing.updated_at = datetime.now()
        return existing

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        if workflow_id in self._workflows:
            del self._workflows[workflow_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all workflows."""
        self._workflows.clear()

    def _generate_id(self) -> str:
        """Generate a unique workflow ID."""
        return f"wf_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


# Singleton instance
workflow_store = WorkflowStore()
