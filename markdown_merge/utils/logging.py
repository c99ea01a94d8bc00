from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

DEBUG_ENV_VAR = "MARKDOWN_MERGE_DEBUG"
LOG_LEVEL_ENV_VAR = "MARKDOWN_MERGE_LOG_LEVEL"


def trace(self: logging.Logger, msg: str, *args, **kwargs) -> None:  # type: ignore[override]
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, msg, args, **kwargs)


logging.Logger.trace = trace  # type: ignore[attr-defined]


def configure_logging(default_level: str = "INFO") -> logging.Logger:
    fallback = "DEBUG" if debug_enabled() else default_level
    level_name = os.getenv(LOG_LEVEL_ENV_VAR, fallback).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s | %(message)s",
    )
    return logging.getLogger("markdown_merge")


def debug_enabled() -> bool:
    """Return ``True`` when engine debug output was requested via the environment."""

    raw = os.getenv(DEBUG_ENV_VAR)
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _format_context(context: dict[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" for key, value in context.items())


def log_debug(logger: logging.Logger, message: str, **context: Any) -> None:
    """Emit ``message`` with key=value context when the debug flag is set."""

    if not debug_enabled():
        return
    if context:
        logger.debug("%s | %s", message, _format_context(context))
    else:
        logger.debug("%s", message)


@contextmanager
def timed(logger: logging.Logger, label: str, **context: Any) -> Iterator[None]:
    """Log how long the wrapped block took, in milliseconds."""

    if not debug_enabled():
        yield
        return
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        log_debug(logger, f"{label} finished", elapsed_ms=round(elapsed_ms, 2), **context)


__all__ = [
    "DEBUG_ENV_VAR",
    "LOG_LEVEL_ENV_VAR",
    "TRACE_LEVEL",
    "configure_logging",
    "debug_enabled",
    "log_debug",
    "timed",
]
