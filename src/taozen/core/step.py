"""Step - a single unit of work inside a graph.

A step wraps a caller-supplied async function together with its
dependencies and execution policy (retry, timeout, cancel callback).
Steps are created through Graph.step() and configured fluently:

    fetch = graph.step("fetch").exe(fetch_data).retry(RetryConfig(max_attempts=3))
    parse = graph.step("parse").exe(parse_data).after(fetch).timeout(500)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from taozen.core.errors import (
    CancelledError,
    DependencyUnresolvedError,
    StepExecutionError,
    StepNotFoundError,
    StepTimeoutError,
)
from taozen.core.ids import generate_step_id
from taozen.core.policies import RetryConfig
from taozen.core.run_logging import log_complete, log_error, log_start, log_warning
from taozen.core.types import Event, EventType, StepState, StepStatus, now_ms

if TYPE_CHECKING:
    from taozen.core.cancellation import CancellationToken
    from taozen.core.graph import Graph

logger = logging.getLogger(__name__)

StepFunction = Callable[["StepInput"], Awaitable[Any] | Any]
CancelCallback = Callable[[], Awaitable[None] | None]


class StepInput:
    """Read-only view over the results of a step's dependencies.

    Passed to every step function. Only declared dependencies are
    visible; asking for anything else raises StepNotFoundError.

    Example:
        >>> async def parse(inputs: StepInput) -> dict:
        ...     raw = inputs.get(fetch)          # by step reference
        ...     same = inputs.get_by_id(fetch.id)  # by identifier
        ...     everything = inputs.get_raw()    # {step_id: result}
    """

    def __init__(self, results: dict[str, Any]) -> None:
        self._results = results

    def get(self, step: Step) -> Any:
        """Get the result of a dependency by step reference."""
        return self.get_by_id(step.id)

    def get_by_id(self, step_id: str) -> Any:
        """Get the result of a dependency by step identifier."""
        if step_id not in self._results:
            raise StepNotFoundError(step_id)
        return self._results[step_id]

    def get_raw(self) -> dict[str, Any]:
        """Get all dependency results keyed by step identifier."""
        return dict(self._results)

    def __repr__(self) -> str:
        return f"StepInput({list(self._results)})"


class Step:
    """A step in a graph.

    Lifecycle: pending -> running -> completed | failed | cancelled.
    Retrying happens inside a single running episode; reset() (used by
    Graph.retry) is the only way back to pending.

    Attributes are exposed read-only through properties; the result is
    only available once the step completed.
    """

    def __init__(self, name: str, graph: Graph, step_id: str | None = None) -> None:
        """Create a step. Use Graph.step() instead of calling this directly.

        Args:
            name: Human-readable step name.
            graph: Owning graph (non-owning back reference).
            step_id: Explicit identifier, used when restoring mirrored state.
        """
        self._id = step_id or generate_step_id()
        self._name = name
        self._graph = graph
        self._fn: StepFunction | None = None
        self._dependencies: list[str] = []
        self._retry: RetryConfig | None = None
        self._timeout_ms: float | None = None
        self._on_cancel: CancelCallback | None = None

        self._status = StepStatus.PENDING
        self._value: Any = None
        self._error: BaseException | None = None
        self._start_time: int | None = None
        self._end_time: int | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def exe(self, fn: StepFunction) -> Step:
        """Set the function executed by this step.

        The function receives a StepInput and may be sync or async.

        Returns:
            Self for chaining.
        """
        self._fn = fn
        return self

    def after(self, *steps: Step) -> Step:
        """Declare that this step depends on other steps of the same graph.

        Returns:
            Self for chaining.

        Raises:
            ValueError: If a step belongs to another graph or is this step.
        """
        for step in steps:
            if step._graph is not self._graph:
                raise ValueError(
                    f"Step {step.name!r} belongs to another graph; "
                    f"cannot be a dependency of {self._name!r}"
                )
            if step is self:
                raise ValueError(f"Step {self._name!r} cannot depend on itself")
            if step.id not in self._dependencies:
                self._dependencies.append(step.id)
        return self

    def retry(self, config: RetryConfig | None = None, **kwargs: Any) -> Step:
        """Set (or clear) the retry policy.

        Accepts either a RetryConfig or its fields as keyword arguments:

            step.retry(RetryConfig(max_attempts=3))
            step.retry(max_attempts=3, initial_delay_ms=100)

        Returns:
            Self for chaining.
        """
        if config is None and kwargs:
            config = RetryConfig(**kwargs)
        self._retry = config
        return self

    def timeout(self, ms: float | None) -> Step:
        """Set a per-attempt timeout in milliseconds (None to clear).

        Returns:
            Self for chaining.
        """
        if ms is not None and ms <= 0:
            raise ValueError("timeout must be > 0 ms")
        self._timeout_ms = ms
        return self

    def cancel(self, callback: CancelCallback) -> Step:
        """Set the callback invoked when the step is cancelled or aborted.

        Returns:
            Self for chaining.
        """
        self._on_cancel = callback
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        """Unique identifier for this step."""
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def status(self) -> StepStatus:
        return self._status

    @property
    def result(self) -> Any:
        """Result of the last execution, or None unless completed."""
        if self._status is not StepStatus.COMPLETED:
            return None
        return self._value

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def start_time(self) -> int | None:
        return self._start_time

    @property
    def end_time(self) -> int | None:
        return self._end_time

    @property
    def dependencies(self) -> list[str]:
        return list(self._dependencies)

    @property
    def retry_config(self) -> RetryConfig | None:
        return self._retry

    @property
    def timeout_ms(self) -> float | None:
        return self._timeout_ms

    @property
    def has_function(self) -> bool:
        return self._fn is not None

    def state(self) -> StepState:
        """Snapshot of this step's full state."""
        return StepState(
            id=self._id,
            name=self._name,
            status=self._status,
            result=self.result,
            error=self._error,
            start_time=self._start_time,
            end_time=self._end_time,
            dependencies=self.dependencies,
        )

    # ------------------------------------------------------------------
    # Execution (driven by Graph)
    # ------------------------------------------------------------------

    async def execute(self, token: CancellationToken) -> Any:
        """Run this step once, applying its retry and timeout policies.

        Args:
            token: Cancellation token of the current graph run.

        Returns:
            The step function's result.

        Raises:
            StepCancelledError: If the token fired.
            StepExecutionError: If the function raised (after retries).
            StepTimeoutError: If the last attempt timed out.
            DependencyUnresolvedError: If a dependency has not completed.
        """
        token.check()

        self._status = StepStatus.RUNNING
        self._start_time = now_ms()
        self._value = None
        self._error = None
        self._emit(EventType.ZEN_START)

        graph_name = self._graph.name
        log_start(logger, graph_name, "step_start", step=self._name, depends_on=self._dependencies)
        start_mono = time.monotonic()

        try:
            inputs = self._resolve_inputs()
            result = await self._execute_with_policy(inputs, token)
        except CancelledError as e:
            self._settle(StepStatus.CANCELLED, e)
            log_warning(logger, graph_name, "step_cancelled", step=self._name)
            self._emit(EventType.ZEN_FAIL, error=e)
            raise
        except Exception as e:
            self._settle(StepStatus.FAILED, e)
            log_error(
                logger,
                graph_name,
                "step_failed",
                e,
                step=self._name,
                duration_s=f"{time.monotonic() - start_mono:.1f}",
            )
            self._emit(EventType.ZEN_FAIL, error=e)
            raise

        self._value = result
        self._status = StepStatus.COMPLETED
        self._end_time = now_ms()
        log_complete(logger, graph_name, "step_complete", time.monotonic() - start_mono, step=self._name)
        self._emit(EventType.ZEN_COMPLETE, data=result)
        return result

    def reset(self) -> None:
        """Return to pending, clearing result and error.

        Identity, configuration and timestamps are kept.
        """
        self._status = StepStatus.PENDING
        self._value = None
        self._error = None

    async def run_cancel_callback(self) -> None:
        """Invoke the cancel callback, logging (not raising) its errors."""
        if self._on_cancel is None:
            return
        try:
            outcome = self._on_cancel()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("cancel callback failed: step=%s", self._name)

    def dispose(self) -> None:
        """Drop the function and callbacks so the step can be collected."""
        self._fn = None
        self._on_cancel = None

    def _settle(self, status: StepStatus, error: BaseException | None) -> None:
        """Force a terminal status (used for cancellation and aborts)."""
        self._status = status
        self._error = error
        self._end_time = now_ms()

    def _emit(self, event_type: EventType, data: Any = None, error: BaseException | None = None) -> None:
        self._graph.emit(Event(type=event_type, step_id=self._id, data=data, error=error))

    def _resolve_inputs(self) -> StepInput:
        results: dict[str, Any] = {}
        for dep_id in self._dependencies:
            dep = self._graph.get_step(dep_id)
            if dep.status is not StepStatus.COMPLETED:
                raise DependencyUnresolvedError(self._name, dep.name)
            results[dep_id] = dep.result
        return StepInput(results)

    async def _execute_with_policy(self, inputs: StepInput, token: CancellationToken) -> Any:
        """Retry loop around timeout-wrapped attempts."""
        policy = self._retry
        if policy is None:
            return await self._attempt(inputs, token)

        attempt = 1
        while True:
            token.check()
            try:
                return await self._attempt(inputs, token)
            except CancelledError:
                raise
            except Exception as e:
                if not policy.should_retry(attempt):
                    raise

                delay_ms = policy.delay_for_attempt(attempt)
                log_warning(
                    logger,
                    self._graph.name,
                    "step_retry",
                    step=self._name,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay_ms=delay_ms,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                self._emit(EventType.ZEN_RETRY, data={"attempt": attempt, "delay": delay_ms}, error=e)
                await token.sleep(delay_ms / 1000)
                attempt += 1

    async def _attempt(self, inputs: StepInput, token: CancellationToken) -> Any:
        """One attempt: bare execution raced against the token and the timeout."""
        call = token.race(self._invoke(inputs))
        if self._timeout_ms is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout=self._timeout_ms / 1000)
        except TimeoutError:
            log_warning(logger, self._graph.name, "step_timeout", step=self._name, timeout_ms=self._timeout_ms)
            raise StepTimeoutError(self._name, self._timeout_ms) from None

    async def _invoke(self, inputs: StepInput) -> Any:
        if self._fn is None:
            return None
        try:
            result = self._fn(inputs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except CancelledError:
            raise
        except asyncio.CancelledError as e:
            # Only a cancel aimed at this task stops the step; one leaking
            # out of the function (e.g. an awaited future cancelled
            # elsewhere) is a function failure.
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise StepExecutionError(self._name, e) from e
        except Exception as e:
            raise StepExecutionError(self._name, e) from e

    def __repr__(self) -> str:
        return f"Step(id={self._id!r}, name={self._name!r}, status={self._status.value})"
