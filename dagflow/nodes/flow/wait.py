"""Wait node - pause the run for a duration or until an event arrives."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from ..base import (
    VARIABLE_NAME_PROPERTY,
    BaseNode,
    ExecutorParams,
    NodeProperty,
    NodePropertyOption,
    NodeTypeDescription,
)
from ...core.exceptions import NonRetriableError
from ...engine.types import NodeType

UNIT_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}

MIN_DURATION = 1
MAX_DURATION = 365


def to_seconds(duration: Any, unit: str) -> float:
    """Convert a configured duration to seconds, rejecting out of range values."""
    try:
        amount = float(duration)
    except (TypeError, ValueError):
        raise NonRetriableError(f'Wait duration "{duration}" is not a number') from None
    if not MIN_DURATION <= amount <= MAX_DURATION:
        raise NonRetriableError(f"Wait duration must be between {MIN_DURATION} and {MAX_DURATION}")
    if unit not in UNIT_SECONDS:
        raise NonRetriableError(f'Unknown wait unit "{unit}"')
    return amount * UNIT_SECONDS[unit]


class WaitNode(BaseNode):
    """
    Wait node - the only node that suspends a run.

    Short waits sleep in-process; long waits and event waits park the run
    until the step runtime wakes it.
    """

    node_description = NodeTypeDescription(
        display_name="Wait",
        description="Pause execution for a duration or until an event",
        icon="fa:hourglass-half",
        group=["flow"],
        properties=[
            VARIABLE_NAME_PROPERTY,
            NodeProperty(
                display_name="Resume",
                name="mode",
                type="options",
                default="duration",
                options=[
                    NodePropertyOption(name="After Time Interval", value="duration"),
                    NodePropertyOption(name="On Event", value="event"),
                ],
            ),
            NodeProperty(
                display_name="Duration",
                name="duration",
                type="number",
                default=1,
                description="How long to wait (1-365)",
            ),
            NodeProperty(
                display_name="Wait Unit",
                name="unit",
                type="options",
                default="seconds",
                options=[
                    NodePropertyOption(name="Seconds", value="seconds"),
                    NodePropertyOption(name="Minutes", value="minutes"),
                    NodePropertyOption(name="Hours", value="hours"),
                    NodePropertyOption(name="Days", value="days"),
                ],
            ),
            NodeProperty(
                display_name="Event Name",
                name="eventName",
                type="string",
                default="",
                display_options={"show": {"mode": ["event"]}},
            ),
            NodeProperty(
                display_name="Timeout",
                name="timeout",
                type="number",
                default=None,
                description="Give up waiting after this many units. Empty waits forever.",
                display_options={"show": {"mode": ["event"]}},
            ),
        ],
    )

    @property
    def type(self) -> NodeType:
        return NodeType.WAIT

    @property
    def description(self) -> str:
        return "Pause execution for a duration or until an event"

    def example_output(self, data: Mapping[str, Any]) -> Any:
        if data.get("mode") == "event":
            return {"event": data.get("eventName") or "event-name", "payload": {}, "timedOut": False}
        return {"waitedSeconds": 60, "resumedAt": "2025-01-01T00:01:00.000Z"}

    async def perform(self, data: dict[str, Any], params: ExecutorParams) -> Any:
        unit = str(self.get_parameter(data, "unit", "seconds"))

        if self.get_parameter(data, "mode", "duration") == "event":
            event = self.get_parameter(data, "eventName")
            if not event:
                raise NonRetriableError("Wait node needs an event name")
            timeout = data.get("timeout")
            timeout_seconds = to_seconds(timeout, unit) if timeout not in (None, "") else None

            payload = await params.step.wait_for_event(
                f"{params.node_id}:wait-for-event", str(event), timeout=timeout_seconds
            )
            return {"event": event, "payload": payload, "timedOut": payload is None}

        seconds = to_seconds(self.get_parameter(data, "duration", 1), unit)
        await params.step.sleep(f"{params.node_id}:sleep", seconds)
        return {"waitedSeconds": seconds, "resumedAt": datetime.now().isoformat()}
