"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import json
import sys
from datetime import datetime
from typing import Any, NoReturn

import rich_click as click
from rich.console import Console
from rich.table import Table

from taozen.core.snapshot import EventRecord, GraphSnapshot
from taozen.core.types import GraphStatus, StepStatus

STATUS_STYLES = {
    "pending": "dim",
    "running": "cyan",
    "paused": "yellow",
    "completed": "green",
    "failed": "red",
    "cancelled": "magenta",
}


def output_json(data: Any, indent: int = 2) -> None:
    """Output data as formatted JSON."""
    click.echo(json.dumps(data, indent=indent, default=repr))


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def format_status(status: GraphStatus | StepStatus) -> str:
    """Wrap a status in rich markup."""
    style = STATUS_STYLES.get(status.value, "")
    return f"[{style}]{status.value}[/{style}]" if style else status.value


def format_timestamp(timestamp: int | None) -> str:
    """Render epoch milliseconds as a local wall-clock time."""
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%H:%M:%S.%f")[:-3]


def graphs_table(graphs: dict[str, GraphSnapshot]) -> Table:
    """Build a table with one row per mirrored graph."""
    table = Table(title="Graphs", show_lines=False)
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Steps", justify="right")
    table.add_column("Time (ms)", justify="right")

    for graph_id, snapshot in graphs.items():
        table.add_row(
            graph_id,
            snapshot.name,
            format_status(snapshot.status),
            f"{snapshot.progress}%",
            str(len(snapshot.steps)),
            "-" if snapshot.execution_time is None else str(snapshot.execution_time),
        )
    return table


def steps_table(graph_id: str, snapshot: GraphSnapshot) -> Table:
    """Build a table of the steps of one graph."""
    table = Table(title=f"{snapshot.name} ({graph_id})")
    table.add_column("Step", style="bold")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Error", overflow="fold")

    for step in snapshot.steps:
        table.add_row(
            step.name,
            format_status(step.status),
            format_timestamp(step.start_time),
            step.error or "",
        )
    return table


def events_table(graph_id: str, events: list[EventRecord], step_names: dict[str, str]) -> Table:
    """Build a table of the event log of one graph."""
    table = Table(title=f"Events of {graph_id}")
    table.add_column("Time")
    table.add_column("Event", style="bold")
    table.add_column("Step")
    table.add_column("Detail", overflow="fold")

    for event in events:
        detail = event.error or ("" if event.data is None else str(event.data))
        step = step_names.get(event.step_id, event.step_id) if event.step_id else ""
        table.add_row(format_timestamp(event.timestamp), event.type.value, step, detail)
    return table


def print_renderable(renderable: Any) -> None:
    Console().print(renderable)
