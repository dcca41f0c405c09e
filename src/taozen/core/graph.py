"""Graph - orchestrator of steps.

Graph is a single-use DAG runner that:
- Owns its steps and derives batches from their dependencies
- Runs each batch concurrently and fails fast on the first error
- Supports cooperative pause/resume and cancellation
- Publishes graph and step events to listeners and the state mirror
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from taozen.core.cancellation import CancellationToken
from taozen.core.errors import (
    AlreadyRegisteredError,
    AlreadyRunError,
    CancelledError,
    GraphCancelledError,
    InvalidRetryStateError,
    NotRegisteredError,
    StepAbortedError,
    StepCancelledError,
    StepNotFoundError,
)
from taozen.core.events import EventBus, EventListener
from taozen.core.resolver import resolve_batches
from taozen.core.run_logging import log_complete, log_error, log_info, log_start, log_warning
from taozen.core.snapshot import GraphSnapshot, StepSummary
from taozen.core.step import Step
from taozen.core.types import Event, EventType, GraphStatus, StepState, StepStatus, now_ms

if TYPE_CHECKING:
    from taozen.core.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class Graph:
    """Directed acyclic graph of async steps.

    A graph runs at most once; after a failure or cancellation it can be
    re-executed with retry() once registered with its orchestrator.

    Args:
        name: Human-readable graph name.
        description: Optional description, mirrored to the state store.
        retry_failed_only: On retry(), keep completed steps and their results.
        orchestrator: Owner of the registry and admission limit. Defaults
            to the process default orchestrator.

    Example:
        >>> graph = Graph("pipeline")
        >>> fetch = graph.step("fetch").exe(fetch_data)
        >>> left = graph.step("left").exe(process_left).after(fetch)
        >>> right = graph.step("right").exe(process_right).after(fetch)
        >>> merge = graph.step("merge").exe(merge_results).after(left, right)
        >>>
        >>> results = await graph.run()
        >>> print(results[merge.id])
    """

    def __init__(
        self,
        name: str,
        *,
        description: str | None = None,
        retry_failed_only: bool = False,
        orchestrator: Orchestrator | None = None,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("graph name cannot be empty")

        if orchestrator is None:
            from taozen.core.orchestrator import get_default_orchestrator

            orchestrator = get_default_orchestrator()

        self._name = name
        self._description = description
        self._retry_failed_only = retry_failed_only
        self._orchestrator = orchestrator

        self._id: str | None = None
        self._steps: dict[str, Step] = {}
        self._bus = EventBus()
        self._token = CancellationToken()
        self._pause_gate: asyncio.Event | None = None
        self._status = GraphStatus.PENDING
        self._has_run = False
        self._running: set[str] = set()
        self._results: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Identity and configuration
    # ------------------------------------------------------------------

    @property
    def id(self) -> str | None:
        """Identifier assigned by register(), None while unregistered."""
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str | None:
        return self._description

    @description.setter
    def description(self, description: str | None) -> None:
        self._description = description
        if self._id is not None:
            self._orchestrator.refresh(self._id)

    @property
    def retry_failed_only(self) -> bool:
        return self._retry_failed_only

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    def step(self, name: str) -> Step:
        """Create a new step owned by this graph.

        Args:
            name: Human-readable step name.

        Returns:
            The new step, ready for fluent configuration.
        """
        return self._add_step(name)

    def _add_step(self, name: str, step_id: str | None = None) -> Step:
        step = Step(name, self, step_id=step_id)
        if step.id in self._steps:
            raise ValueError(f"Step '{step.id}' already exists")
        self._steps[step.id] = step
        return step

    # ------------------------------------------------------------------
    # Registration with the orchestrator / state mirror
    # ------------------------------------------------------------------

    def register(self) -> Graph:
        """Register with the orchestrator and start mirroring state.

        Returns:
            Self for chaining.

        Raises:
            AlreadyRegisteredError: If already registered.
        """
        if self._id is not None:
            raise AlreadyRegisteredError(self._id)
        self._id = self._orchestrator.register(self)
        log_info(logger, self._name, "graph_registered", id=self._id)
        return self

    def remove(self) -> None:
        """Dispose the graph and drop its mirrored state.

        Raises:
            NotRegisteredError: If the graph was never registered.
        """
        if self._id is None:
            raise NotRegisteredError(self._name)

        graph_id = self._id
        self.dispose()
        self._orchestrator.unregister(graph_id)
        self._id = None

    def dispose(self) -> None:
        """Release resources: fire the token, drop listeners and steps."""
        self._token.cancel()
        self._bus.clear()

        for step in self._steps.values():
            step.dispose()
        self._steps.clear()

        self._running.clear()
        self._pause_gate = None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to every event of this graph.

        Returns:
            Function that unsubscribes the listener.
        """
        return self._bus.subscribe(listener)

    def on_step(self, step_id: str, listener: EventListener) -> Callable[[], None]:
        """Subscribe to the events of a single step.

        Returns:
            Function that unsubscribes the listener.
        """

        def filtered(event: Event) -> None:
            if event.step_id == step_id:
                listener(event)

        return self._bus.subscribe(filtered)

    def on_finish(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` when the graph completes successfully."""

        def filtered(event: Event) -> None:
            if event.type is EventType.TAO_COMPLETE:
                listener()

        return self._bus.subscribe(filtered)

    def emit(self, event: Event) -> None:
        """Publish an event to all listeners."""
        self._bus.emit(event)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self) -> dict[str, Any]:
        """Execute every step, batch by batch.

        Returns:
            Mapping of step id -> result.

        Raises:
            AlreadyRunError: If this graph already ran.
            TooManyConcurrentGraphsError: If the admission limit is reached.
            CircularDependencyError: If the steps contain a cycle.
            GraphCancelledError: If the graph was cancelled.
            Exception: The error of the first failing step.
        """
        if self._has_run:
            raise AlreadyRunError()

        self._orchestrator.acquire(self)
        self._has_run = True
        try:
            return await self._execute()
        finally:
            self._orchestrator.release(self)

    async def retry(self) -> dict[str, Any]:
        """Re-execute a failed or cancelled graph.

        Resets every step, or only failed/cancelled ones when
        ``retry_failed_only`` is set; completed steps are skipped and
        contribute their cached results.

        Returns:
            Mapping of step id -> result.

        Raises:
            InvalidRetryStateError: If the graph is not failed or cancelled.
            NotRegisteredError: If the graph is not registered.
            TooManyConcurrentGraphsError: If the admission limit is reached.
        """
        if self._status not in (GraphStatus.FAILED, GraphStatus.CANCELLED):
            raise InvalidRetryStateError(self._status.value)

        if self._id is None:
            raise NotRegisteredError(self._name)

        self._orchestrator.acquire(self)
        try:
            self._token = CancellationToken()

            for step in self._steps.values():
                if not self._retry_failed_only or step.status in (
                    StepStatus.FAILED,
                    StepStatus.CANCELLED,
                ):
                    step.reset()

            self._running.clear()
            self._pause_gate = None

            log_info(logger, self._name, "graph_retry", retry_failed_only=self._retry_failed_only)
            self.emit(Event(EventType.TAO_RETRY))

            return await self._execute()
        finally:
            self._orchestrator.release(self)

    async def pause(self) -> None:
        """Pause at the next checkpoint. No-op unless running.

        Running steps are not interrupted; steps about to start and
        batch continuations wait until resume().
        """
        if self._status is not GraphStatus.RUNNING:
            return

        self._status = GraphStatus.PAUSED
        self._pause_gate = asyncio.Event()
        log_info(logger, self._name, "graph_paused", running=len(self._running))
        self.emit(Event(EventType.TAO_PAUSE))

    async def resume(self) -> None:
        """Resume a paused graph. No-op unless paused."""
        if self._status is not GraphStatus.PAUSED:
            return

        self._status = GraphStatus.RUNNING
        gate, self._pause_gate = self._pause_gate, None
        if gate is not None:
            gate.set()
        log_info(logger, self._name, "graph_resumed")
        self.emit(Event(EventType.TAO_RESUME))

    async def cancel(self) -> None:
        """Cancel the graph. Idempotent; no-op once completed, failed or cancelled.

        Invokes every step's cancel callback, emits a single ``tao:fail``
        event carrying GraphCancelledError and fires the token so every
        in-flight await stops promptly.
        """
        if self._status.is_terminal:
            return

        try:
            self._status = GraphStatus.CANCELLED
            self._pause_gate = None

            for step in list(self._steps.values()):
                await step.run_cancel_callback()

            self._running.clear()
            log_warning(logger, self._name, "graph_cancelled")
            self.emit(Event(EventType.TAO_FAIL, error=GraphCancelledError()))
        except Exception:
            logger.exception("error during graph cancellation: graph=%s", self._name)
        finally:
            self._token.cancel()

    async def _execute(self) -> dict[str, Any]:
        if self._token.is_cancelled:
            raise GraphCancelledError()

        self._results = {}
        self._set_status(GraphStatus.RUNNING)
        start_mono = time.monotonic()

        try:
            batches = resolve_batches({sid: s.dependencies for sid, s in self._steps.items()})
            log_start(logger, self._name, "graph_start", steps=len(self._steps), batches=len(batches))

            for batch in batches:
                await self._checkpoint()
                await self._run_batch(batch)

            self._check_cancelled()
        except asyncio.CancelledError:
            # The task awaiting run() was cancelled.
            self._token.cancel()
            await self._settle_interrupted()
            self._mark_cancelled()
            log_warning(
                logger,
                self._name,
                "graph_interrupted",
                duration_s=f"{time.monotonic() - start_mono:.1f}",
            )
            raise
        except Exception as e:
            if isinstance(e, CancelledError) or self._token.is_cancelled:
                self._mark_cancelled()
                log_warning(
                    logger,
                    self._name,
                    "graph_cancelled",
                    duration_s=f"{time.monotonic() - start_mono:.1f}",
                )
                if isinstance(e, GraphCancelledError):
                    raise
                raise GraphCancelledError() from e

            self._set_status(GraphStatus.FAILED, error=e)
            log_error(
                logger,
                self._name,
                "graph_failed",
                e,
                duration_s=f"{time.monotonic() - start_mono:.1f}",
            )
            raise

        self._set_status(GraphStatus.COMPLETED)
        log_complete(logger, self._name, "graph_complete", time.monotonic() - start_mono, steps=len(self._steps))
        return dict(self._results)

    async def _run_batch(self, batch: list[str]) -> None:
        """Run the steps of one batch concurrently, failing fast."""
        tasks: dict[asyncio.Task[Any], Step] = {}
        for step_id in batch:
            step = self._steps[step_id]
            if step.status is StepStatus.COMPLETED:
                self._results[step_id] = step.result
                continue

            self._running.add(step_id)
            task = asyncio.create_task(self._execute_step(step), name=f"taozen:{self._name}:{step.name}")
            tasks[task] = step

        pending: set[asyncio.Task[Any]] = set(tasks)
        failure: BaseException | None = None
        try:
            while pending and failure is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
                for task in done:
                    step = tasks[task]
                    self._running.discard(step.id)
                    error = task.exception()
                    if error is None:
                        self._results[step.id] = task.result()
                    elif failure is None:
                        failure = error
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        if failure is None:
            return

        if pending:
            if isinstance(failure, CancelledError) or self._token.is_cancelled:
                # Cancelled siblings settle promptly through the token.
                await asyncio.wait(pending)
                for task in pending:
                    self._running.discard(tasks[task].id)
                    if not task.cancelled() and task.exception() is None:
                        self._results[tasks[task].id] = task.result()
            else:
                await self._abort(pending, tasks)

        raise failure

    async def _abort(self, pending: set[asyncio.Task[Any]], tasks: dict[asyncio.Task[Any], Step]) -> None:
        """Fail the still-running siblings of a failed step.

        Siblings parked at the post-completion checkpoint already finished
        and keep their status and result.
        """
        aborted: list[Step] = []
        for task in pending:
            step = tasks[task]
            self._running.discard(step.id)
            task.cancel()

            if step.status is StepStatus.COMPLETED:
                self._results[step.id] = step.result
                continue

            error = StepAbortedError(step.name)
            step._settle(StepStatus.FAILED, error)
            log_warning(logger, self._name, "step_aborted", step=step.name)
            self.emit(Event(EventType.ZEN_FAIL, step_id=step.id, error=error))
            aborted.append(step)

        for step in aborted:
            await step.run_cancel_callback()

        await asyncio.gather(*pending, return_exceptions=True)

    async def _settle_interrupted(self) -> None:
        """Cancel steps left running when execution was interrupted."""
        interrupted = [step for step in self._steps.values() if step.status is StepStatus.RUNNING]
        self._running.clear()
        for step in interrupted:
            error = GraphCancelledError()
            step._settle(StepStatus.CANCELLED, error)
            self.emit(Event(EventType.ZEN_FAIL, step_id=step.id, error=error))
        for step in interrupted:
            await step.run_cancel_callback()

    async def _execute_step(self, step: Step) -> Any:
        try:
            await self._checkpoint(step, "Step paused before execution")
        except CancelledError as e:
            step._settle(StepStatus.CANCELLED, e)
            self.emit(Event(EventType.ZEN_FAIL, step_id=step.id, error=e))
            raise

        result = await step.execute(self._token)
        await self._checkpoint(step, "Graph paused after step completion")
        return result

    async def _checkpoint(self, step: Step | None = None, message: str | None = None) -> None:
        """Raise if cancelled; wait for resume() if paused."""
        self._check_cancelled()

        gate = self._pause_gate
        if gate is None:
            return

        if step is not None:
            self.emit(Event(EventType.ZEN_PAUSE, step_id=step.id, data={"message": message}))
        try:
            await self._token.race(gate.wait())
        except StepCancelledError:
            raise GraphCancelledError("Graph cancelled while paused") from None
        if step is not None:
            self.emit(Event(EventType.ZEN_RESUME, step_id=step.id))

    def _check_cancelled(self) -> None:
        if self._token.is_cancelled or self._status is GraphStatus.CANCELLED:
            raise GraphCancelledError()

    def _mark_cancelled(self) -> None:
        """Enter the cancelled state unless cancel() already did."""
        self._pause_gate = None
        if self._status is GraphStatus.CANCELLED:
            return
        self._status = GraphStatus.CANCELLED
        self.emit(Event(EventType.TAO_FAIL, error=GraphCancelledError()))

    def _set_status(self, status: GraphStatus, error: BaseException | None = None) -> None:
        old_status = self._status
        self._status = status
        if status.is_terminal:
            self._pause_gate = None
        if old_status is status:
            return

        match status:
            case GraphStatus.RUNNING:
                self.emit(Event(EventType.TAO_START))
            case GraphStatus.COMPLETED:
                self.emit(Event(EventType.TAO_COMPLETE, data={"results": len(self._results)}))
            case GraphStatus.FAILED:
                self.emit(Event(EventType.TAO_FAIL, error=error))
            case GraphStatus.PENDING | GraphStatus.PAUSED | GraphStatus.CANCELLED:
                pass

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> GraphStatus:
        return self._status

    @property
    def paused(self) -> bool:
        return self._status is GraphStatus.PAUSED

    @property
    def has_run(self) -> bool:
        return self._has_run

    @property
    def results(self) -> dict[str, Any]:
        """Results of the last run or retry, including partial results after a failure."""
        return dict(self._results)

    @property
    def running_steps(self) -> set[str]:
        return set(self._running)

    @property
    def steps(self) -> list[Step]:
        return list(self._steps.values())

    @property
    def progress(self) -> int:
        """Estimated progress, 0-100.

        Completed steps count fully. Running steps count by elapsed time
        against the orchestrator's expected step duration (capped at 95%).
        Failed and cancelled steps count by how long they ran.
        """
        total = len(self._steps)
        if total == 0:
            return 0
        if self._status is GraphStatus.COMPLETED:
            return 100

        estimate_ms = self._orchestrator.config.progress_step_estimate_ms
        weight = 100 / total
        progress = 0.0
        now = now_ms()

        for step in self._steps.values():
            match step.status:
                case StepStatus.COMPLETED:
                    progress += weight
                case StepStatus.RUNNING:
                    if step.start_time is not None:
                        progress += weight * min((now - step.start_time) / estimate_ms, 0.95)
                    else:
                        progress += weight * 0.1
                case StepStatus.FAILED | StepStatus.CANCELLED:
                    if step.start_time is not None and step.end_time is not None:
                        progress += weight * min((step.end_time - step.start_time) / estimate_ms, 1)
                case StepStatus.PENDING:
                    pass

        return min(max(int(progress), 0), 100)

    @property
    def execution_time(self) -> int | None:
        """Milliseconds from the first step start to the last step end (or now)."""
        start_times = [s.start_time for s in self._steps.values() if s.start_time is not None]
        if not start_times:
            return None

        end_times = [s.end_time for s in self._steps.values() if s.end_time is not None]
        end = max(end_times) if end_times else now_ms()
        return end - min(start_times)

    @property
    def errors(self) -> dict[str, BaseException]:
        """Errors of failed or cancelled steps, keyed by step id."""
        return {sid: s.error for sid, s in self._steps.items() if s.error is not None}

    def get_step(self, step_id: str) -> Step:
        """Get a step by id.

        Raises:
            StepNotFoundError: If no step has this id.
        """
        step = self._steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def get_step_by_name(self, name: str) -> Step | None:
        return self.find_step(lambda step: step.name == name)

    def find_step(self, predicate: Callable[[Step], bool]) -> Step | None:
        """Return the first step matching ``predicate``, or None."""
        for step in self._steps.values():
            if predicate(step):
                return step
        return None

    def dependency_tree(self, step_id: str) -> list[dict[str, Any]]:
        """Walk the dependencies of a step, depth first.

        Returns:
            List of {"id", "dependencies"} entries, the step itself first.
            Each step appears once.
        """
        tree: list[dict[str, Any]] = []
        visited: set[str] = set()

        def traverse(current_id: str) -> None:
            if current_id in visited:
                return
            visited.add(current_id)

            deps = self.get_step(current_id).dependencies
            tree.append({"id": current_id, "dependencies": deps})
            for dep_id in deps:
                traverse(dep_id)

        traverse(step_id)
        return tree

    def step_states(self) -> dict[str, StepState]:
        """Full state of every step, keyed by step id."""
        return {sid: step.state() for sid, step in self._steps.items()}

    def runtime_state(self) -> GraphSnapshot:
        """Aggregated runtime state, as mirrored to the state store."""
        return GraphSnapshot(
            name=self._name,
            description=self._description,
            status=self._status,
            progress=self.progress,
            paused=self._status is GraphStatus.PAUSED,
            execution_time=self.execution_time,
            steps=[
                StepSummary(
                    id=step.id,
                    name=step.name,
                    status=step.status,
                    error=str(step.error) if step.error is not None else None,
                    result=step.result,
                    start_time=step.start_time,
                )
                for step in self._steps.values()
            ],
        )

    def __repr__(self) -> str:
        names = [step.name for step in self._steps.values()]
        return f"Graph(name={self._name!r}, status={self._status.value}, steps={names})"

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step: object) -> bool:
        if isinstance(step, Step):
            return self._steps.get(step.id) is step
        return step in self._steps
