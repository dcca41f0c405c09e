"""Exception hierarchy for graph execution.

Configuration errors (CircularDependencyError, DependencyUnresolvedError)
are raised before or instead of step execution. Step errors
(StepExecutionError, StepTimeoutError) are subject to the step's retry
policy. Cancellation errors are never retried. Misuse guards
(AlreadyRunError, TooManyConcurrentGraphsError, NotRegisteredError,
InvalidRetryStateError, ...) are raised immediately.
"""

from __future__ import annotations

from collections.abc import Iterable


class TaozenError(Exception):
    """Base class for all taozen errors."""


class CircularDependencyError(TaozenError):
    """Raised when the dependency edges of a graph contain a cycle."""

    def __init__(self, step_ids: Iterable[str] = ()) -> None:
        self.step_ids = list(step_ids)
        detail = f": {', '.join(self.step_ids)}" if self.step_ids else ""
        super().__init__(f"Circular dependency detected{detail}")


class DependencyUnresolvedError(TaozenError):
    """Raised when a step reads a dependency that has not completed."""

    def __init__(self, step_name: str, dependency: str) -> None:
        self.step_name = step_name
        self.dependency = dependency
        super().__init__(f"Dependency {dependency} of step {step_name} not completed")


class StepExecutionError(TaozenError):
    """Wraps an exception raised by a step's own function."""

    def __init__(self, step_name: str, cause: BaseException) -> None:
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Step {step_name} failed: {cause}")


class StepTimeoutError(TaozenError):
    """Raised when a single step attempt exceeds its timeout."""

    def __init__(self, step_name: str, timeout_ms: float) -> None:
        self.step_name = step_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Step {step_name} timed out after {timeout_ms}ms")


class StepAbortedError(TaozenError):
    """Set on steps stopped because a sibling in the same batch failed."""

    def __init__(self, step_name: str) -> None:
        self.step_name = step_name
        super().__init__(f"Step {step_name} aborted: graph failed due to another step error")


class CancelledError(TaozenError):
    """Raised when execution is cancelled.

    Distinct from asyncio.CancelledError: this one signals cooperative
    cancellation through a CancellationToken.
    """

    def __init__(self, message: str = "Execution cancelled") -> None:
        super().__init__(message)


class StepCancelledError(CancelledError):
    """Raised inside a step when its graph's token fires."""

    def __init__(self, message: str = "Step cancelled") -> None:
        super().__init__(message)


class GraphCancelledError(CancelledError):
    """Raised from run()/retry() when the graph was cancelled."""

    def __init__(self, message: str = "Graph cancelled") -> None:
        super().__init__(message)


class AlreadyRunError(TaozenError):
    """Raised when run() is called a second time on the same graph."""

    def __init__(self) -> None:
        super().__init__("Graph can only be run once. Create a new instance or use retry().")


class TooManyConcurrentGraphsError(TaozenError):
    """Raised when the orchestrator's concurrent-run limit is reached."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Too many concurrent graphs. Maximum allowed: {limit}")


class NotRegisteredError(TaozenError):
    """Raised when an operation needs a graph registered with the orchestrator."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Graph {name} is not registered")


class AlreadyRegisteredError(TaozenError):
    """Raised when register() is called on an already registered graph."""

    def __init__(self, graph_id: str) -> None:
        self.graph_id = graph_id
        super().__init__(f"Graph already registered as {graph_id}")


class InvalidRetryStateError(TaozenError):
    """Raised when retry() is called outside the failed/cancelled states."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Only failed or cancelled graphs can be retried (status: {status})")


class StepNotFoundError(TaozenError, KeyError):
    """Raised when a step id does not belong to the graph."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"Step {step_id} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class RestoreError(TaozenError):
    """Raised when mirrored state cannot be turned back into a graph."""
