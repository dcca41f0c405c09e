"""Pure data types for taozen.core.

These are simple enums and dataclasses with no behavior coupling.
They can be serialized, passed around, and used anywhere.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class GraphStatus(Enum):
    """Graph lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for states that only retry() can leave."""
        return self in (GraphStatus.COMPLETED, GraphStatus.FAILED, GraphStatus.CANCELLED)


class StepStatus(Enum):
    """Step lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EventType(Enum):
    """Closed set of events published on a graph's event bus.

    ``tao:*`` events describe the graph, ``zen:*`` events describe a
    single step and always carry a ``step_id``.
    """

    TAO_START = "tao:start"
    TAO_COMPLETE = "tao:complete"
    TAO_FAIL = "tao:fail"
    TAO_PAUSE = "tao:pause"
    TAO_RESUME = "tao:resume"
    TAO_RETRY = "tao:retry"
    ZEN_START = "zen:start"
    ZEN_COMPLETE = "zen:complete"
    ZEN_FAIL = "zen:fail"
    ZEN_RETRY = "zen:retry"
    ZEN_PAUSE = "zen:pause"
    ZEN_RESUME = "zen:resume"

    @property
    def is_graph_event(self) -> bool:
        match self:
            case (
                EventType.TAO_START
                | EventType.TAO_COMPLETE
                | EventType.TAO_FAIL
                | EventType.TAO_PAUSE
                | EventType.TAO_RESUME
                | EventType.TAO_RETRY
            ):
                return True
            case (
                EventType.ZEN_START
                | EventType.ZEN_COMPLETE
                | EventType.ZEN_FAIL
                | EventType.ZEN_RETRY
                | EventType.ZEN_PAUSE
                | EventType.ZEN_RESUME
            ):
                return False

    @property
    def is_step_event(self) -> bool:
        return not self.is_graph_event


@dataclass(frozen=True)
class Event:
    """Event record published to listeners and to the state mirror.

    Attributes:
        type: Event type.
        step_id: Step this event relates to (step events only).
        timestamp: When the event occurred, epoch milliseconds.
        data: Event-specific payload (result, retry info, messages).
        error: Exception attached to fail/retry events.
    """

    type: EventType
    step_id: str | None = None
    timestamp: int = field(default_factory=now_ms)
    data: Any = None
    error: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict (errors become messages)."""
        return {
            "type": self.type.value,
            "step_id": self.step_id,
            "timestamp": self.timestamp,
            "data": self.data,
            "error": str(self.error) if self.error is not None else None,
        }

    def __repr__(self) -> str:
        step = f", step_id={self.step_id!r}" if self.step_id else ""
        return f"Event({self.type.value}{step})"


@dataclass
class StepState:
    """Full state of a single step, as exposed to observers.

    Attributes:
        id: Step identifier.
        name: Human-readable step name.
        status: Current status.
        result: Result value (only when completed).
        error: Error (only when failed or cancelled).
        start_time: Start of the most recent execution, epoch ms.
        end_time: End of the most recent execution, epoch ms.
        dependencies: Identifiers of the steps this one depends on.
    """

    id: str
    name: str
    status: StepStatus
    result: Any = None
    error: BaseException | None = None
    start_time: int | None = None
    end_time: int | None = None
    dependencies: list[str] = field(default_factory=list)

