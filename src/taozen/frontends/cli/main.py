"""CLI entry point."""

from __future__ import annotations

import asyncio
import os
import sys

import rich_click as click

from taozen.core.logging_config import configure_logging
from taozen.core.mirror import JsonFileStateStore
from taozen.frontends.cli.output import (
    error_exit,
    events_table,
    graphs_table,
    output_json,
    print_renderable,
    steps_table,
)

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.ERRORS_EPILOGUE = ""
click.rich_click.MAX_WIDTH = 100


def _load_store(store_file: str) -> JsonFileStateStore:
    try:
        return JsonFileStateStore(store_file)
    except ValueError as e:
        error_exit(f"Cannot read state store {store_file}: {e}")


@click.group()
@click.version_option(package_name="taozen")
@click.option("--log-level", default=None, help="Enable logging at this level (or set TAOZEN_LOG_LEVEL)")
def cli(log_level: str | None):
    """Taozen - async DAG orchestration.

    **Commands:**

        taozen run       Run a graph defined in a Python file

        taozen show      Show graphs mirrored in a JSON state store

        taozen events    Show the event log of a mirrored graph
    """
    if log_level or os.environ.get("TAOZEN_LOG_LEVEL"):
        configure_logging(level=log_level)


@cli.command()
@click.argument("file")
@click.option("--dry-run", "-d", is_flag=True, help="Show batches without running")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def run(file: str, dry_run: bool, json_output: bool):
    """Run a graph defined in a Python file.

    The file must bind a `Graph` to a variable named `graph`.

    **Examples:**

        taozen run pipeline.py

        taozen run pipeline.py --dry-run
    """
    from taozen.frontends.cli.file_runner import run_from_file

    sys.exit(asyncio.run(run_from_file(file, dry_run=dry_run, json_output=json_output)))


@cli.command()
@click.argument("store_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def show(store_file: str, json_output: bool):
    """Show graphs mirrored in a JSON state store.

    **Examples:**

        taozen show ~/.taozen/state.json
    """
    state = _load_store(store_file).current

    if json_output:
        output_json({graph_id: snapshot.model_dump(mode="json") for graph_id, snapshot in state.graphs.items()})
        return

    if not state.graphs:
        click.echo("No graphs")
        return

    print_renderable(graphs_table(state.graphs))
    for graph_id, snapshot in state.graphs.items():
        print_renderable(steps_table(graph_id, snapshot))


@cli.command()
@click.argument("store_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("graph_id")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def events(store_file: str, graph_id: str, json_output: bool):
    """Show the event log of a mirrored graph.

    **Examples:**

        taozen events ~/.taozen/state.json graph-1700000000000-ab12
    """
    state = _load_store(store_file).current
    if graph_id not in state.events:
        error_exit(f"Graph not found: {graph_id}")

    log = state.events[graph_id]
    if json_output:
        output_json([record.model_dump(mode="json") for record in log])
        return

    step_names = {step_id: record.name for step_id, record in state.states.get(graph_id, {}).items()}
    print_renderable(events_table(graph_id, log, step_names))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
