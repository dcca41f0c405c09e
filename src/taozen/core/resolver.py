"""Dependency resolution into concurrent batches."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from taozen.core.errors import CircularDependencyError, DependencyUnresolvedError


def resolve_batches(dependencies: Mapping[str, Iterable[str]]) -> list[list[str]]:
    """Group steps into batches by iterative topological layering.

    Each batch holds every step whose dependencies all belong to earlier
    batches, so the steps of one batch are mutually independent and can
    run concurrently. Within a batch, steps keep the mapping's order.

    Args:
        dependencies: Mapping of step id -> ids of the steps it depends on.

    Returns:
        List of batches, each a list of step ids.

    Raises:
        DependencyUnresolvedError: If a dependency names an unknown step.
        CircularDependencyError: If the edges contain a cycle.

    Example:
        >>> resolve_batches({"a": [], "b": ["a"], "c": ["a"], "d": ["b", "c"]})
        [['a'], ['b', 'c'], ['d']]
    """
    deps = {step_id: set(step_deps) for step_id, step_deps in dependencies.items()}

    for step_id, step_deps in deps.items():
        for dep_id in step_deps:
            if dep_id not in deps:
                raise DependencyUnresolvedError(step_id, dep_id)

    assigned: set[str] = set()
    batches: list[list[str]] = []

    while len(assigned) < len(deps):
        batch = [
            step_id
            for step_id, step_deps in deps.items()
            if step_id not in assigned and step_deps <= assigned
        ]
        if not batch:
            raise CircularDependencyError(step_id for step_id in deps if step_id not in assigned)

        batches.append(batch)
        assigned.update(batch)

    return batches
