"""Logging helpers for graph and step execution.

Log Format:
    [<identifier>] action: key=value, key=value (duration)

Examples:
    [pipeline] graph_start: steps=5, batches=3
    [pipeline] step_start: step=fetch, depends_on=[]
    [pipeline] step_complete: step=fetch (1.2s)
    [pipeline] graph_complete: steps=5 (3.5s)
"""

from __future__ import annotations

import logging
from typing import Any


def truncate(value: Any, max_length: int = 100) -> str:
    """Truncate a value for logging.

    Args:
        value: Value to truncate.
        max_length: Maximum length before truncation.

    Returns:
        Truncated string with length indicator if truncated.
    """
    s = str(value)
    if len(s) <= max_length:
        return s
    return f"{s[:max_length]}... ({len(s)} chars)"


def _format(identifier: str, action: str, kwargs: dict[str, Any]) -> str:
    kv_pairs = ", ".join(f"{k}={truncate(v)}" for k, v in kwargs.items())
    return f"[{identifier}] {action}: {kv_pairs}" if kv_pairs else f"[{identifier}] {action}"


def log_start(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    **kwargs: Any,
) -> None:
    """Log a start event.

    Args:
        logger: Logger to use. If None, this is a no-op.
        identifier: Primary identifier (graph name).
        action: Action name (e.g., "graph_start", "step_start").
        **kwargs: Additional key=value pairs to log.
    """
    if logger is None:
        return
    logger.debug(_format(identifier, action, kwargs))


def log_complete(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    duration_s: float,
    **kwargs: Any,
) -> None:
    """Log a completion event with duration.

    Args:
        logger: Logger to use. If None, this is a no-op.
        identifier: Primary identifier.
        action: Action name (e.g., "graph_complete", "step_complete").
        duration_s: Duration in seconds.
        **kwargs: Additional key=value pairs to log.
    """
    if logger is None:
        return
    kv_pairs = ", ".join(f"{k}={truncate(v)}" for k, v in kwargs.items())
    if kv_pairs:
        msg = f"[{identifier}] {action}: {kv_pairs} ({duration_s:.1f}s)"
    else:
        msg = f"[{identifier}] {action}: ({duration_s:.1f}s)"
    logger.debug(msg)


def log_error(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    error: str | BaseException,
    **kwargs: Any,
) -> None:
    """Log an error event.

    Args:
        logger: Logger to use. If None, this is a no-op.
        identifier: Primary identifier.
        action: Action name (e.g., "step_failed", "graph_failed").
        error: Error message or exception.
        **kwargs: Additional key=value pairs to log.
    """
    if logger is None:
        return
    kwargs["error"] = truncate(str(error), max_length=200)
    logger.error(_format(identifier, action, kwargs))


def log_warning(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    **kwargs: Any,
) -> None:
    """Log a warning event (retries, cancellations, aborted steps)."""
    if logger is None:
        return
    logger.warning(_format(identifier, action, kwargs))


def log_info(
    logger: logging.Logger | None,
    identifier: str,
    action: str,
    **kwargs: Any,
) -> None:
    """Log an info event (pause, resume, registration)."""
    if logger is None:
        return
    logger.info(_format(identifier, action, kwargs))
