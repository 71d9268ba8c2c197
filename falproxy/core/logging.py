"""Structlog configuration shared by the server, the CLI and the tests."""

import logging
import sys

import structlog
from structlog.typing import Processor


_NOISY_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer(json_logs: bool, log_format: str) -> Processor:
    if json_logs or log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format == "plain":
        return structlog.dev.ConsoleRenderer(
            colors=False, exception_formatter=structlog.dev.plain_traceback
        )
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False),
    )


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "INFO",
    log_format: str = "auto",
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        json_logs: Force JSON output regardless of ``log_format``
        log_level_name: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: One of ``auto``, ``rich``, ``json`` or ``plain``;
            ``auto`` renders for the console when attached to a TTY and JSON
            otherwise
    """
    if log_format == "auto":
        log_format = "rich" if sys.stderr.isatty() else "json"

    level = getattr(logging, log_level_name.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    final_processors: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta
    ]
    if json_logs or log_format == "json":
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(_renderer(json_logs, log_format))

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=final_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
