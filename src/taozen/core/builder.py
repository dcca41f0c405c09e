"""Rebuild graphs from mirrored state.

A state store keeps enough to recreate a graph's shape (step ids, names
and dependency edges) but not its behaviour: step functions and results
are never persisted. GraphBuilder turns stored records back into a
graph; functions have to be bound again before running, and unbound
steps run as no-ops returning None.

Example:
    >>> builder = restore_graph(store, "graph-1700000000000-ab12")
    >>> builder.bind("fetch", fetch_data).bind("parse", parse_data)
    >>> graph = builder.build(orchestrator)
    >>> await graph.run()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from taozen.core.errors import RestoreError
from taozen.core.mirror import StateStore
from taozen.core.types import StepStatus

if TYPE_CHECKING:
    from taozen.core.graph import Graph
    from taozen.core.orchestrator import Orchestrator
    from taozen.core.step import StepFunction


@dataclass
class StepBlueprint:
    """Stored shape of one step.

    Attributes:
        id: Original step id, preserved on rebuild.
        name: Step name.
        dependencies: Ids of the steps this one depends on.
        status: Last mirrored status (informational only).
        error: Last mirrored error message, if any.
        fn: Function bound with GraphBuilder.bind().
    """

    id: str
    name: str
    dependencies: list[str] = field(default_factory=list)
    status: StepStatus = StepStatus.PENDING
    error: str | None = None
    fn: StepFunction | None = None


class GraphBuilder:
    """Collects step blueprints and builds a fresh, runnable graph."""

    def __init__(self, name: str, description: str | None = None, steps: list[StepBlueprint] | None = None) -> None:
        self.name = name
        self.description = description
        self.steps: list[StepBlueprint] = list(steps or [])

    @classmethod
    def from_store(cls, store: StateStore, graph_id: str) -> GraphBuilder:
        """Read a graph's snapshot and step records from ``store``.

        Raises:
            RestoreError: If the store holds no such graph.
        """
        state = store.current
        snapshot = state.graphs.get(graph_id)
        if snapshot is None:
            raise RestoreError(f"No mirrored graph with id {graph_id!r}")

        records = state.states.get(graph_id, {})
        # Snapshot order follows step creation order
        order = [summary.id for summary in snapshot.steps]
        order += [step_id for step_id in records if step_id not in order]

        steps = []
        for step_id in order:
            record = records.get(step_id)
            if record is None:
                raise RestoreError(f"Graph {graph_id!r} has no record for step {step_id!r}")
            steps.append(
                StepBlueprint(
                    id=record.id,
                    name=record.name,
                    dependencies=list(record.dependencies),
                    status=record.status,
                    error=record.error,
                )
            )

        return cls(snapshot.name, snapshot.description, steps)

    def bind(self, name_or_id: str, fn: StepFunction) -> GraphBuilder:
        """Attach a function to the step with this id or name.

        Returns:
            Self for chaining.

        Raises:
            RestoreError: If no step matches.
        """
        for blueprint in self.steps:
            if blueprint.id == name_or_id:
                blueprint.fn = fn
                return self
        for blueprint in self.steps:
            if blueprint.name == name_or_id:
                blueprint.fn = fn
                return self
        raise RestoreError(f"No step named {name_or_id!r} in graph {self.name!r}")

    @property
    def unbound(self) -> list[str]:
        """Names of steps that still have no function."""
        return [blueprint.name for blueprint in self.steps if blueprint.fn is None]

    def build(self, orchestrator: Orchestrator | None = None, retry_failed_only: bool = False) -> Graph:
        """Create a new pending graph with the stored ids and edges.

        Raises:
            RestoreError: If a dependency points at an unknown step.
        """
        from taozen.core.graph import Graph

        known = {blueprint.id for blueprint in self.steps}
        for blueprint in self.steps:
            for dep_id in blueprint.dependencies:
                if dep_id not in known:
                    raise RestoreError(f"Step {blueprint.name!r} depends on unknown step {dep_id!r}")

        graph = Graph(
            self.name,
            description=self.description,
            retry_failed_only=retry_failed_only,
            orchestrator=orchestrator,
        )
        for blueprint in self.steps:
            step = graph._add_step(blueprint.name, step_id=blueprint.id)
            if blueprint.fn is not None:
                step.exe(blueprint.fn)

        for blueprint in self.steps:
            step = graph.get_step(blueprint.id)
            step.after(*(graph.get_step(dep_id) for dep_id in blueprint.dependencies))

        return graph

    def __repr__(self) -> str:
        return f"GraphBuilder(name={self.name!r}, steps={[b.name for b in self.steps]})"


def restore_graph(store: StateStore, graph_id: str) -> GraphBuilder:
    """Start rebuilding a mirrored graph. See GraphBuilder.from_store()."""
    return GraphBuilder.from_store(store, graph_id)
