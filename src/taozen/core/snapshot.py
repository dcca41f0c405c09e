"""Pydantic models for mirrored graph state.

These models describe what a state store holds for every registered
graph: a runtime snapshot, full per-step records (enough to rebuild the
dependency edges) and the append-only event log. Result and data fields
hold arbitrary step output; when dumped to JSON, values that are not
JSON-serializable are replaced by their repr.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, field_serializer

from taozen.core.types import Event, EventType, GraphStatus, StepState, StepStatus


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


def _error_message(error: BaseException | None) -> str | None:
    return str(error) if error is not None else None


class StepSummary(BaseModel):
    """Compact per-step entry of a graph snapshot."""

    id: str
    name: str
    status: StepStatus
    error: str | None = None
    result: Any = None
    start_time: int | None = None

    @field_serializer("result", when_used="json")
    def _serialize_result(self, value: Any) -> Any:
        return _jsonable(value)


class GraphSnapshot(BaseModel):
    """Runtime state of one graph, refreshed on every event."""

    name: str
    description: str | None = None
    status: GraphStatus
    progress: int = Field(default=0, ge=0, le=100)
    paused: bool = False
    execution_time: int | None = None
    steps: list[StepSummary] = Field(default_factory=list)


class StepRecord(BaseModel):
    """Full state of one step, including its dependency edges."""

    id: str
    name: str
    status: StepStatus
    result: Any = None
    error: str | None = None
    start_time: int | None = None
    end_time: int | None = None
    dependencies: list[str] = Field(default_factory=list)

    @field_serializer("result", when_used="json")
    def _serialize_result(self, value: Any) -> Any:
        return _jsonable(value)

    @classmethod
    def from_state(cls, state: StepState) -> StepRecord:
        return cls(
            id=state.id,
            name=state.name,
            status=state.status,
            result=state.result,
            error=_error_message(state.error),
            start_time=state.start_time,
            end_time=state.end_time,
            dependencies=list(state.dependencies),
        )


class EventRecord(BaseModel):
    """Serialized form of an Event."""

    type: EventType
    step_id: str | None = None
    timestamp: int
    data: Any = None
    error: str | None = None

    @field_serializer("data", when_used="json")
    def _serialize_data(self, value: Any) -> Any:
        return _jsonable(value)

    @classmethod
    def from_event(cls, event: Event) -> EventRecord:
        return cls(
            type=event.type,
            step_id=event.step_id,
            timestamp=event.timestamp,
            data=event.data,
            error=_error_message(event.error),
        )


class StoreState(BaseModel):
    """Everything a state store holds, keyed by graph id."""

    graphs: dict[str, GraphSnapshot] = Field(default_factory=dict)
    states: dict[str, dict[str, StepRecord]] = Field(default_factory=dict)
    events: dict[str, list[EventRecord]] = Field(default_factory=dict)
