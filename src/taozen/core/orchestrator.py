"""Orchestrator - registry and admission control for graphs.

The orchestrator owns:
- The engine configuration (admission limit, progress estimate)
- The registry of graphs by id, mirrored into a StateStore
- The counter of currently running graphs

A process-wide default orchestrator is created lazily from TAOZEN_*
environment variables; tests and embedding applications can inject
their own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from taozen.core.config import EngineConfig
from taozen.core.errors import TooManyConcurrentGraphsError
from taozen.core.ids import generate_graph_id
from taozen.core.mirror import JsonFileStateStore, StateMirror, StateStore
from taozen.core.policies import RetryConfig
from taozen.core.types import GraphStatus

if TYPE_CHECKING:
    from taozen.core.events import EventListener
    from taozen.core.graph import Graph
    from taozen.core.step import CancelCallback, StepFunction

logger = logging.getLogger(__name__)


class Orchestrator:
    """Registry of graphs and gate on how many run at once.

    Args:
        config: Engine configuration. Defaults to EngineConfig().
        store: State store for the mirror. Defaults to a JSON file store
            when config.store_path is set, otherwise an in-memory store.

    Example:
        >>> orchestrator = Orchestrator(EngineConfig(max_concurrent_graphs=2))
        >>> graph = orchestrator.graph("etl").register()
        >>> await orchestrator.pause(graph.id)
    """

    def __init__(self, config: EngineConfig | None = None, store: StateStore | None = None) -> None:
        self._config = config or EngineConfig()
        if store is None:
            store = JsonFileStateStore(self._config.store_path) if self._config.store_path else StateStore()
        self._mirror = StateMirror(store)
        self._instances: dict[str, Graph] = {}
        self._detach: dict[str, Callable[[], None]] = {}
        self._running = 0

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._mirror.store

    @property
    def running_count(self) -> int:
        """Number of graphs currently executing."""
        return self._running

    def graph(self, name: str, **kwargs: Any) -> Graph:
        """Create a graph bound to this orchestrator."""
        from taozen.core.graph import Graph

        return Graph(name, orchestrator=self, **kwargs)

    # ------------------------------------------------------------------
    # Admission control
    # ------------------------------------------------------------------

    def acquire(self, graph: Graph) -> None:
        """Claim a running slot for ``graph``.

        Raises:
            TooManyConcurrentGraphsError: If every slot is taken.
        """
        limit = self._config.max_concurrent_graphs
        if self._running >= limit:
            logger.warning("admission refused: graph=%s, running=%d, limit=%d", graph.name, self._running, limit)
            raise TooManyConcurrentGraphsError(limit)
        self._running += 1

    def release(self, graph: Graph) -> None:
        """Give back the slot claimed by acquire()."""
        self._running = max(self._running - 1, 0)
        logger.debug("slot released: graph=%s, running=%d", graph.name, self._running)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, graph: Graph) -> str:
        """Assign an id to ``graph`` and start mirroring it.

        Returns:
            The new graph id.
        """
        graph_id = generate_graph_id()
        while graph_id in self._instances:
            graph_id = generate_graph_id()

        self._instances[graph_id] = graph
        self._detach[graph_id] = self._mirror.attach(graph_id, graph)
        return graph_id

    def unregister(self, graph_id: str) -> None:
        """Forget a graph and drop its mirrored state."""
        self._instances.pop(graph_id, None)
        detach = self._detach.pop(graph_id, None)
        if detach is not None:
            detach()
        self._mirror.drop(graph_id)

    def refresh(self, graph_id: str) -> None:
        """Re-mirror a registered graph outside of an event."""
        graph = self._instances.get(graph_id)
        if graph is not None:
            self._mirror.sync(graph_id, graph)

    def get(self, graph_id: str) -> Graph | None:
        return self._instances.get(graph_id)

    def list_graphs(self) -> list[str]:
        return list(self._instances)

    async def pause(self, graph_id: str) -> bool:
        """Pause a registered graph. Returns False if the id is unknown."""
        graph = self._instances.get(graph_id)
        if graph is None:
            return False
        await graph.pause()
        return True

    async def resume(self, graph_id: str) -> bool:
        """Resume a registered graph. Returns False if the id is unknown."""
        graph = self._instances.get(graph_id)
        if graph is None:
            return False
        await graph.resume()
        return True

    async def cancel(self, graph_id: str) -> bool:
        """Cancel a registered graph. Returns False if the id is unknown."""
        graph = self._instances.get(graph_id)
        if graph is None:
            return False
        await graph.cancel()
        return True

    def remove(self, graph_id: str) -> bool:
        """Remove a registered graph.

        Returns:
            False if the id is unknown or the graph is actively running
            (a paused graph may be removed).
        """
        graph = self._instances.get(graph_id)
        if graph is None or graph.status is GraphStatus.RUNNING:
            return False
        graph.remove()
        return True

    async def run_single(
        self,
        name: str,
        fn: StepFunction,
        *,
        retry: RetryConfig | None = None,
        timeout: float | None = None,
        on_event: EventListener | None = None,
        on_cancel: CancelCallback | None = None,
        register: bool = False,
    ) -> Any:
        """Run one function as a single-step graph.

        Args:
            name: Name of both the graph and its step.
            fn: Step function.
            retry: Optional retry policy.
            timeout: Optional per-attempt timeout in milliseconds.
            on_event: Optional listener for every event.
            on_cancel: Optional cancel callback.
            register: Register the graph so it is mirrored and addressable.

        Returns:
            The function's result.
        """
        graph = self.graph(name)
        step = graph.step(name).exe(fn).retry(retry).timeout(timeout)
        if on_cancel is not None:
            step.cancel(on_cancel)
        if on_event is not None:
            graph.on(on_event)
        if register:
            graph.register()

        results = await graph.run()
        return results[step.id]


_default_orchestrator: Orchestrator | None = None


def get_default_orchestrator() -> Orchestrator:
    """Get the process-wide orchestrator, creating it from the environment."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = Orchestrator(EngineConfig.from_env())
    return _default_orchestrator


def set_default_orchestrator(orchestrator: Orchestrator | None) -> None:
    """Replace the process-wide orchestrator (None recreates it lazily)."""
    global _default_orchestrator
    _default_orchestrator = orchestrator
