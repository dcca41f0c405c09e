"""Engine configuration.

Environment Variables:
    TAOZEN_MAX_CONCURRENT_GRAPHS: Admission limit for simultaneously running graphs
    TAOZEN_PROGRESS_ESTIMATE_MS: Expected step duration used for progress estimates
    TAOZEN_STORE_PATH: Optional JSON file backing the state mirror
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_CONCURRENT_GRAPHS = 10
DEFAULT_PROGRESS_ESTIMATE_MS = 30_000


@dataclass(frozen=True)
class EngineConfig:
    """Configuration shared by every graph of an orchestrator.

    Attributes:
        max_concurrent_graphs: How many graphs may run at once. Exceeding
            it makes run() fail immediately (no queueing).
        progress_step_estimate_ms: Expected duration of a single step,
            used to estimate progress of steps still running.
        store_path: JSON file for the state mirror. None keeps the
            mirror in memory.
    """

    max_concurrent_graphs: int = DEFAULT_MAX_CONCURRENT_GRAPHS
    progress_step_estimate_ms: int = DEFAULT_PROGRESS_ESTIMATE_MS
    store_path: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_concurrent_graphs < 1:
            raise ValueError("max_concurrent_graphs must be >= 1")

        if self.progress_step_estimate_ms <= 0:
            raise ValueError("progress_step_estimate_ms must be > 0")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a configuration from TAOZEN_* environment variables.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        return cls(
            max_concurrent_graphs=int(
                os.environ.get("TAOZEN_MAX_CONCURRENT_GRAPHS", DEFAULT_MAX_CONCURRENT_GRAPHS)
            ),
            progress_step_estimate_ms=int(
                os.environ.get("TAOZEN_PROGRESS_ESTIMATE_MS", DEFAULT_PROGRESS_ESTIMATE_MS)
            ),
            store_path=os.environ.get("TAOZEN_STORE_PATH") or None,
        )
