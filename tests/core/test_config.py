"""Tests for engine configuration, identifiers and logging setup."""

import json
import logging

import pytest

from taozen.core import logging_config, run_logging
from taozen.core.config import EngineConfig
from taozen.core.ids import ALPHABET, generate_graph_id, generate_step_id


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults(self):
        """Test default values."""
        config = EngineConfig()

        assert config.max_concurrent_graphs == 10
        assert config.progress_step_estimate_ms == 30_000
        assert config.store_path is None

    def test_validation(self):
        """Test invalid values are rejected."""
        with pytest.raises(ValueError):
            EngineConfig(max_concurrent_graphs=0)
        with pytest.raises(ValueError):
            EngineConfig(progress_step_estimate_ms=0)

    def test_from_env(self, monkeypatch, tmp_path):
        """Test TAOZEN_* variables override defaults."""
        store = tmp_path / "state.json"
        monkeypatch.setenv("TAOZEN_MAX_CONCURRENT_GRAPHS", "3")
        monkeypatch.setenv("TAOZEN_PROGRESS_ESTIMATE_MS", "500")
        monkeypatch.setenv("TAOZEN_STORE_PATH", str(store))

        config = EngineConfig.from_env()

        assert config.max_concurrent_graphs == 3
        assert config.progress_step_estimate_ms == 500
        assert config.store_path == str(store)

    def test_from_env_defaults(self, monkeypatch):
        """Test missing variables fall back to defaults."""
        for name in ("TAOZEN_MAX_CONCURRENT_GRAPHS", "TAOZEN_PROGRESS_ESTIMATE_MS", "TAOZEN_STORE_PATH"):
            monkeypatch.delenv(name, raising=False)

        assert EngineConfig.from_env() == EngineConfig()

    def test_from_env_invalid(self, monkeypatch):
        """Test a non-numeric limit is rejected."""
        monkeypatch.setenv("TAOZEN_MAX_CONCURRENT_GRAPHS", "many")
        with pytest.raises(ValueError):
            EngineConfig.from_env()


class TestIds:
    """Tests for identifier generation."""

    def test_step_id_shape(self):
        """Step ids are 16 alphanumeric characters."""
        step_id = generate_step_id()
        assert len(step_id) == 16
        assert all(ch in ALPHABET for ch in step_id)

    def test_step_ids_unique(self):
        """Step ids do not collide in practice."""
        ids = {generate_step_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_graph_id_shape(self):
        """Graph ids carry a prefix, a timestamp and a suffix."""
        prefix, timestamp, suffix = generate_graph_id().split("-")
        assert prefix == "graph"
        assert timestamp.isdigit()
        assert len(suffix) == 4


class TestLoggingConfig:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def _restore_root_logger(self, monkeypatch):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        monkeypatch.setattr(logging_config, "_configured", False)
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_level_from_env(self, monkeypatch):
        """Test TAOZEN_LOG_LEVEL is honoured."""
        monkeypatch.setenv("TAOZEN_LOG_LEVEL", "debug")
        logging_config.configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_once(self):
        """Test later calls are ignored unless forced."""
        logging_config.configure_logging(level="ERROR")
        logging_config.configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.ERROR

        logging_config.configure_logging(level="DEBUG", force=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level(self):
        """Test an unknown level is rejected."""
        with pytest.raises(ValueError):
            logging_config.configure_logging(level="LOUD")

    def test_file_handler(self, tmp_path):
        """Test log lines are written to the configured file."""
        log_file = tmp_path / "taozen.log"
        logging_config.configure_logging(level="INFO", file_path=str(log_file))

        logging.getLogger("taozen.test").info("[pipeline] graph_start: steps=2")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "graph_start: steps=2" in log_file.read_text()

    def test_json_formatter(self):
        """Test records are rendered as JSON objects."""
        record = logging.LogRecord("taozen.core.graph", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.graph = "pipeline"

        data = json.loads(logging_config.JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "taozen.core.graph"
        assert data["message"] == "hello world"
        assert data["extra"] == {"graph": "pipeline"}


class TestRunLogging:
    """Tests for the run logging helpers."""

    def test_truncate(self):
        """Long values are cut with a length marker."""
        assert run_logging.truncate("abc") == "abc"
        assert run_logging.truncate("x" * 150) == "x" * 100 + "... (150 chars)"

    def test_format(self, caplog):
        """Lines read [identifier] action: key=value (duration)."""
        logger = logging.getLogger("taozen.test.run_logging")
        with caplog.at_level(logging.DEBUG, logger="taozen.test.run_logging"):
            run_logging.log_start(logger, "pipeline", "graph_start", steps=3)
            run_logging.log_complete(logger, "pipeline", "step_complete", 1.25, step="fetch")
            run_logging.log_error(logger, "pipeline", "step_failed", ValueError("bad"), step="parse")

        assert caplog.messages == [
            "[pipeline] graph_start: steps=3",
            "[pipeline] step_complete: step=fetch (1.2s)",
            "[pipeline] step_failed: step=parse, error=bad",
        ]

    def test_none_logger_is_noop(self):
        """A None logger disables logging."""
        run_logging.log_warning(None, "pipeline", "step_retry", attempt=1)

    @pytest.mark.asyncio
    async def test_graph_run_logs(self, caplog, orchestrator):
        """A failing run logs the step failure with the graph name."""
        from taozen.core.errors import StepExecutionError

        graph = orchestrator.graph("logged")
        graph.step("a").exe(lambda inputs: 1 / 0)

        with caplog.at_level(logging.DEBUG, logger="taozen"):
            with pytest.raises(StepExecutionError):
                await graph.run()

        assert any(message.startswith("[logged] step_failed: step=a") for message in caplog.messages)
        assert any(message.startswith("[logged] graph_failed") for message in caplog.messages)
