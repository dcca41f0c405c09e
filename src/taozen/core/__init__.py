"""Core - the DAG execution engine.

Architecture:
    graph         Graph: owns steps, runs batches, pause/resume/cancel/retry
    step          Step and StepInput: one unit of work and its policies
    resolver      Topological layering of steps into batches
    cancellation  CancellationToken shared by every suspend point
    policies      RetryConfig with exponential backoff
    events        EventBus and listeners
    orchestrator  Registry, admission control and the default orchestrator
    mirror        State stores and the mirror of registered graphs
    builder       Rebuilding graphs from mirrored state
    types         Pure data types (statuses, events, step state)

Example:
    >>> from taozen.core import Graph, RetryConfig
    >>>
    >>> async def main():
    ...     graph = Graph("pipeline")
    ...     fetch = graph.step("fetch").exe(fetch_data).retry(RetryConfig(max_attempts=3))
    ...     parse = graph.step("parse").exe(lambda inputs: parse(inputs.get(fetch))).after(fetch)
    ...     results = await graph.run()
    ...     print(results[parse.id])
"""

from taozen.core.builder import GraphBuilder, StepBlueprint, restore_graph
from taozen.core.cancellation import CancellationToken
from taozen.core.config import EngineConfig
from taozen.core.errors import (
    AlreadyRegisteredError,
    AlreadyRunError,
    CancelledError,
    CircularDependencyError,
    DependencyUnresolvedError,
    GraphCancelledError,
    InvalidRetryStateError,
    NotRegisteredError,
    RestoreError,
    StepAbortedError,
    StepCancelledError,
    StepExecutionError,
    StepNotFoundError,
    StepTimeoutError,
    TaozenError,
    TooManyConcurrentGraphsError,
)
from taozen.core.events import EventBus, EventListener
from taozen.core.graph import Graph
from taozen.core.mirror import JsonFileStateStore, StateMirror, StateStore
from taozen.core.orchestrator import Orchestrator, get_default_orchestrator, set_default_orchestrator
from taozen.core.policies import RetryConfig
from taozen.core.resolver import resolve_batches
from taozen.core.snapshot import EventRecord, GraphSnapshot, StepRecord, StepSummary, StoreState
from taozen.core.step import Step, StepInput
from taozen.core.types import Event, EventType, GraphStatus, StepState, StepStatus

__all__ = [
    # Graph and steps
    "Graph",
    "Step",
    "StepInput",
    "resolve_batches",
    # Policies and cancellation
    "RetryConfig",
    "CancellationToken",
    # Events
    "Event",
    "EventType",
    "EventBus",
    "EventListener",
    # Types
    "GraphStatus",
    "StepStatus",
    "StepState",
    # Orchestration
    "EngineConfig",
    "Orchestrator",
    "get_default_orchestrator",
    "set_default_orchestrator",
    # Mirror and restore
    "StateStore",
    "JsonFileStateStore",
    "StateMirror",
    "GraphSnapshot",
    "StepSummary",
    "StepRecord",
    "EventRecord",
    "StoreState",
    "GraphBuilder",
    "StepBlueprint",
    "restore_graph",
    # Errors
    "TaozenError",
    "CircularDependencyError",
    "DependencyUnresolvedError",
    "StepExecutionError",
    "StepTimeoutError",
    "StepAbortedError",
    "CancelledError",
    "StepCancelledError",
    "GraphCancelledError",
    "AlreadyRunError",
    "TooManyConcurrentGraphsError",
    "NotRegisteredError",
    "AlreadyRegisteredError",
    "InvalidRetryStateError",
    "StepNotFoundError",
    "RestoreError",
]
