"""State mirror - observable copy of registered graphs.

Every registered graph is mirrored into a StateStore: a runtime
snapshot, per-step records and the append-only event log, all refreshed
synchronously whenever the graph emits an event. Observers (dashboards,
the CLI) read the store instead of touching live graph objects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from taozen.core.snapshot import EventRecord, GraphSnapshot, StepRecord, StoreState
from taozen.core.types import Event

if TYPE_CHECKING:
    from taozen.core.graph import Graph

logger = logging.getLogger(__name__)

StoreListener = Callable[[StoreState], None]


class StateStore:
    """In-memory store of mirrored graph state.

    Mutations go through update(), which persists (a no-op here) and
    then notifies subscribers with the new state.
    """

    def __init__(self, state: StoreState | None = None) -> None:
        self._state = state or StoreState()
        self._listeners: list[StoreListener] = []

    @property
    def current(self) -> StoreState:
        return self._state

    def update(self, mutate: Callable[[StoreState], None]) -> None:
        """Apply ``mutate`` to the state, persist and notify subscribers."""
        mutate(self._state)
        self._persist()

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("state store listener failed")

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener called after every update.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def put_graph(self, graph_id: str, snapshot: GraphSnapshot) -> None:
        """Store or replace the snapshot of one graph."""

        def mutate(state: StoreState) -> None:
            state.graphs[graph_id] = snapshot

        self.update(mutate)

    def drop_graph(self, graph_id: str) -> None:
        """Remove every trace of a graph."""

        def mutate(state: StoreState) -> None:
            state.graphs.pop(graph_id, None)
            state.states.pop(graph_id, None)
            state.events.pop(graph_id, None)

        self.update(mutate)

    def _persist(self) -> None:
        pass


class JsonFileStateStore(StateStore):
    """State store persisted to a JSON file after every update.

    Each update rewrites the whole file synchronously on the event loop,
    so write time grows with the number of mirrored graphs and events.
    Suited to local runs and inspection with ``taozen show``; use the
    in-memory StateStore for large or long-lived workloads.

    Example:
        >>> store = JsonFileStateStore("~/.taozen/state.json")
        >>> store.current.graphs.keys()
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> StoreState:
        if not self._path.exists():
            return StoreState()
        return StoreState.model_validate_json(self._path.read_text(encoding="utf-8"))

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(self._path)


class StateMirror:
    """Keeps a StateStore in sync with live graphs."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    @property
    def store(self) -> StateStore:
        return self._store

    def attach(self, graph_id: str, graph: Graph) -> Callable[[], None]:
        """Start mirroring ``graph`` under ``graph_id``.

        Writes the initial snapshot, step records and an empty event log,
        then appends every emitted event and refreshes the snapshot.

        Returns:
            Function that stops mirroring (the stored state is kept).
        """

        def mutate(state: StoreState) -> None:
            state.events[graph_id] = []
            self._write(state, graph_id, graph)

        self._store.update(mutate)

        def on_event(event: Event) -> None:
            def append(state: StoreState) -> None:
                state.events.setdefault(graph_id, []).append(EventRecord.from_event(event))
                self._write(state, graph_id, graph)

            self._store.update(append)

        return graph.on(on_event)

    def sync(self, graph_id: str, graph: Graph) -> None:
        """Refresh the snapshot and step records without an event."""
        self._store.update(lambda state: self._write(state, graph_id, graph))

    def drop(self, graph_id: str) -> None:
        self._store.drop_graph(graph_id)

    @staticmethod
    def _write(state: StoreState, graph_id: str, graph: Graph) -> None:
        state.graphs[graph_id] = graph.runtime_state()
        state.states[graph_id] = {
            step_id: StepRecord.from_state(step_state) for step_id, step_state in graph.step_states().items()
        }
