"""File-based graph execution for the CLI."""

from __future__ import annotations

import asyncio
from typing import Any

from taozen.core import Event, EventType, Graph, RetryConfig, resolve_batches
from taozen.frontends.cli.output import output_json


def load_graph(filepath: str) -> Graph:
    """Execute a Python file and return the Graph bound to ``graph``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file defines no ``graph`` Graph.
    """
    namespace: dict[str, Any] = {
        "asyncio": asyncio,
        "Graph": Graph,
        "RetryConfig": RetryConfig,
        "__name__": "__taozen_file__",
    }

    with open(filepath) as f:
        code = f.read()

    exec(compile(code, filepath, "exec"), namespace)

    graph = namespace.get("graph")
    if not isinstance(graph, Graph):
        raise ValueError("No 'graph' variable found in file")
    return graph


async def run_from_file(filepath: str, dry_run: bool = False, json_output: bool = False) -> int:
    """Load and run a Graph from a Python file.

    Args:
        filepath: Path to a Python file defining ``graph``.
        dry_run: Only print the batches that would run.
        json_output: Print results (or batches) as JSON.

    Returns:
        Process exit code.
    """
    try:
        graph = load_graph(filepath)
    except FileNotFoundError:
        print(f"Error: File not found: {filepath}")
        return 1
    except Exception as e:
        print(f"Error: {e}")
        return 1

    names = {step.id: step.name for step in graph.steps}

    if dry_run:
        try:
            batches = resolve_batches({step.id: step.dependencies for step in graph.steps})
        except Exception as e:
            print(f"Error: {e}")
            return 1

        if json_output:
            output_json([[names[step_id] for step_id in batch] for batch in batches])
        else:
            print(f"[DRY RUN] {graph.name}")
            for i, batch in enumerate(batches, 1):
                print(f"  [{i}] {', '.join(names[step_id] for step_id in batch)}")
        return 0

    def on_event(event: Event) -> None:
        if event.type in (EventType.ZEN_START, EventType.ZEN_COMPLETE, EventType.ZEN_FAIL, EventType.ZEN_RETRY):
            suffix = f" ({event.error})" if event.error is not None else ""
            print(f"  {event.type.value:<14} {names.get(event.step_id or '', '')}{suffix}")

    if not json_output:
        print(f"Running: {graph.name}")
        graph.on(on_event)

    try:
        results = await graph.run()
    except Exception as e:
        if json_output:
            output_json({"status": graph.status.value, "error": str(e)})
        else:
            print(f"Error: {e}")
        return 1

    by_name = {names[step_id]: value for step_id, value in results.items()}
    if json_output:
        output_json({"status": graph.status.value, "results": by_name})
    else:
        print(f"Completed in {graph.execution_time or 0} ms")
        for name, value in by_name.items():
            print(f"  {name}: {value!r}")
    return 0
