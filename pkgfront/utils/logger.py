"""Structured logging for pkgfront.

structlog is configured once per process. Per-request fields (upstream
request id, Cloudflare ray id) are bound through structlog's contextvars
support, so every event logged while a request is in flight carries them.
"""

import logging
import os
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor


def add_pid(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag entries with the worker process id."""
    event_dict.setdefault("pid", os.getpid())
    return event_dict


def add_epoch(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """(Re)configure structlog for the process.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines when True, coloured console output otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_pid,
        add_epoch,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    renderer: Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True)
    )
    processors.append(renderer)

    level = getattr(logging, log_level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "pkgfront") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**fields: Optional[str]) -> None:
    """Bind non-empty request fields (e.g. request_id, cf_ray) to the current context."""
    structlog.contextvars.bind_contextvars(**{k: v for k, v in fields.items() if v})


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


class PerformanceLogger:
    """Time a block and log its duration.

    Slow blocks (over ``warn_after_ms``) log at WARNING, others at DEBUG.
    A failing block logs at ERROR; the exception is not swallowed.

        with PerformanceLogger("fetch_stats", logger=logger):
            stats = await fetch_stats()
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 1000.0,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self._started: Optional[float] = None
        self._elapsed: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._elapsed = time.perf_counter() - (self._started or 0.0)
        fields = {"operation": self.operation, "duration_ms": round(self.duration_ms, 2)}

        if exc_type is not None:
            self.logger.error(f"{self.operation}_failed", error=str(exc_val), **fields)
        elif self.duration_ms > self.warn_after_ms:
            self.logger.warning(f"{self.operation}_slow", threshold_ms=self.warn_after_ms, **fields)
        else:
            self.logger.debug(f"{self.operation}_completed", **fields)

    @property
    def duration_ms(self) -> float:
        if self._started is None:
            return 0.0
        if self._elapsed is None:
            return (time.perf_counter() - self._started) * 1000
        return self._elapsed * 1000


# JSON at INFO until run.py reconfigures from the environment.
configure_logging()
