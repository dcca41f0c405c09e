"""Tests for taozen CLI commands."""

from __future__ import annotations

import asyncio
import json
import textwrap

import pytest
from click.testing import CliRunner

from taozen.core.mirror import JsonFileStateStore
from taozen.core.orchestrator import Orchestrator
from taozen.frontends.cli.main import cli, events, run, show

PIPELINE = textwrap.dedent(
    """
    graph = Graph("demo")
    fetch = graph.step("fetch").exe(lambda inputs: 21)
    double = graph.step("double").exe(lambda inputs: inputs.get(fetch) * 2).after(fetch)
    """
)


@pytest.fixture
def store_file(tmp_path):
    """JSON state store holding one completed and one failed graph."""
    path = tmp_path / "state.json"
    orchestrator = Orchestrator(store=JsonFileStateStore(path))

    ok = orchestrator.graph("good").register()
    ok.step("only").exe(lambda inputs: "fine")

    bad = orchestrator.graph("bad").register()
    bad.step("explode").exe(lambda inputs: 1 / 0)

    async def run_both():
        await ok.run()
        try:
            await bad.run()
        except Exception:
            pass

    asyncio.run(run_both())
    return path, ok.id, bad.id


class TestCommandDefinitions:
    """Tests for command wiring."""

    def test_commands_registered(self):
        """The group exposes run, show and events."""
        assert set(cli.commands) >= {"run", "show", "events"}

    def test_run_has_dry_run_option(self):
        """Run has --dry-run and --json options."""
        param_names = [p.name for p in run.params]
        assert "dry_run" in param_names
        assert "json_output" in param_names

    def test_show_and_events_accept_json(self):
        """Show and events have a --json option."""
        assert "json_output" in [p.name for p in show.params]
        assert "json_output" in [p.name for p in events.params]


class TestRunCommand:
    """Tests for taozen run."""

    def test_run_file(self, tmp_path):
        """Running a file prints step results."""
        script = tmp_path / "pipeline.py"
        script.write_text(PIPELINE)

        result = CliRunner().invoke(cli, ["run", str(script), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data == {"status": "completed", "results": {"fetch": 21, "double": 42}}

    def test_dry_run(self, tmp_path):
        """Dry run prints batches without executing."""
        script = tmp_path / "pipeline.py"
        script.write_text(PIPELINE)

        result = CliRunner().invoke(cli, ["run", str(script), "--dry-run", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [["fetch"], ["double"]]

    def test_missing_graph_variable(self, tmp_path):
        """A file without a graph fails with a message."""
        script = tmp_path / "empty.py"
        script.write_text("x = 1\n")

        result = CliRunner().invoke(cli, ["run", str(script)])

        assert result.exit_code == 1
        assert "No 'graph' variable" in result.output

    def test_failing_graph(self, tmp_path):
        """A failing graph exits non-zero."""
        script = tmp_path / "broken.py"
        script.write_text('graph = Graph("broken")\ngraph.step("a").exe(lambda inputs: 1 / 0)\n')

        result = CliRunner().invoke(cli, ["run", str(script)])

        assert result.exit_code == 1
        assert "Error: Step a failed: division by zero" in result.output


class TestShowCommand:
    """Tests for taozen show."""

    def test_show_json(self, store_file):
        """JSON output lists every mirrored graph."""
        path, ok_id, bad_id = store_file

        result = CliRunner().invoke(cli, ["show", str(path), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data[ok_id]["status"] == "completed"
        assert data[bad_id]["status"] == "failed"
        assert data[ok_id]["steps"][0]["result"] == "fine"

    def test_show_table(self, store_file):
        """Table output names graphs and steps."""
        path, _, _ = store_file

        result = CliRunner().invoke(cli, ["show", str(path)])

        assert result.exit_code == 0, result.output
        assert "good" in result.output
        assert "explode" in result.output

    def test_show_missing_file(self, tmp_path):
        """A missing store file is rejected."""
        result = CliRunner().invoke(cli, ["show", str(tmp_path / "nope.json")])
        assert result.exit_code != 0


class TestEventsCommand:
    """Tests for taozen events."""

    def test_events_json(self, store_file):
        """JSON output is the event log in order."""
        path, ok_id, _ = store_file

        result = CliRunner().invoke(cli, ["events", str(path), ok_id, "--json"])

        assert result.exit_code == 0, result.output
        types = [record["type"] for record in json.loads(result.output)]
        assert types == ["tao:start", "zen:start", "zen:complete", "tao:complete"]

    def test_events_table(self, store_file):
        """Table output shows event types."""
        path, _, bad_id = store_file

        result = CliRunner().invoke(cli, ["events", str(path), bad_id])

        assert result.exit_code == 0, result.output
        assert "zen:fail" in result.output

    def test_unknown_graph(self, store_file):
        """An unknown graph id exits with an error."""
        path, _, _ = store_file

        result = CliRunner().invoke(cli, ["events", str(path), "graph-0-none"])

        assert result.exit_code == 1
        assert "Graph not found" in result.output
