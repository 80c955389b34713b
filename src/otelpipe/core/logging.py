# src/otelpipe/core/logging.py
"""Configuration of otelpipe's internal diagnostic channel.

Export failures, drops and shutdown timeouts never reach producers; the
processors and readers report them through structlog instead. By default
those events go wherever the application's structlog setup sends them.

configure_logging() is for applications without a logging setup of their
own. It routes structlog and stdlib logging through one ProcessorFormatter
on stderr, so gRPC and httpx records share the format of otelpipe's own
events and never interleave with a console exporter writing to stdout.
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

from otelpipe.errors import ConfigurationError

# Transport loggers that log every frame/request at DEBUG
_TRANSPORT_LOGGERS: tuple[str, ...] = ("grpc", "hpack", "httpx", "httpcore")


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        raise ConfigurationError("logging", f"unknown log level {level!r}")
    return resolved


def configure_logging(
    *,
    json_output: bool = False,
    level: str | int = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Send structlog and stdlib records to one stream in one format.

    Replaces the root logger's handlers. Transport loggers are held at
    WARNING or the root level, whichever is stricter.

    Args:
        json_output: One JSON object per line instead of key=value console lines.
        level: Root level, by name or number.
        stream: Destination (stderr when None).

    Raises:
        ConfigurationError: If the level name is unknown.
    """
    root_level = _resolve_level(level)

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )
    render_chain: list[Any] = [ProcessorFormatter.remove_processors_meta]
    if json_output:
        render_chain.append(structlog.processors.format_exc_info)
    render_chain.append(renderer)

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must take effect for loggers already handed out
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=render_chain, foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    transport_level = max(root_level, logging.WARNING)
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger for ``name``, typed for the stdlib wrapper."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
