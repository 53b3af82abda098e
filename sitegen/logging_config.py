"""structlog setup shared by the API, the workers and the CLI.

Each process calls :func:`setup_logging` once at startup with the values from
:class:`~sitegen.config.Settings`. Request and job identifiers travel in
structlog context variables, so every line logged while a job attempt or a
deployment runs carries its ``job_id``/``project_id`` and ``correlation_id``.

Usage:
    setup_logging(service_name="worker", log_format="json")

    with log_context(job_id=job.id, correlation_id=message.correlation_id):
        logger.info("job_claimed", attempt=1)
"""

from collections.abc import Iterator
from contextlib import contextmanager
import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import Processor

# Per-request loggers of the provider HTTP clients
QUIET_LOGGERS = ("httpx", "httpcore")


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)


def setup_logging(
    service_name: str = "sitegen",
    log_format: Literal["json", "console"] = "console",
    log_level: str = "INFO",
) -> None:
    """Send structlog output through stdlib logging to stdout.

    Every line is tagged with ``service``. Provider HTTP client chatter is kept
    at WARNING or above.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)
    structlog.get_logger().info("logging_initialized", log_format=log_format, log_level=log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind ids for the duration of the block; the previous values come back on exit.

    None values are skipped so optional ids don't show up as ``null``.
    """
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    ):
        yield


def get_correlation_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("correlation_id")
