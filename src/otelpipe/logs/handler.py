# src/otelpipe/logs/handler.py
"""Bridge from the standard library ``logging`` module to a LoggerProvider.

Attach LoggingHandler to any stdlib logger (or the root logger) and every
record it receives becomes an otelpipe LogRecord:

    provider = new_pipeline().logging().with_exporter(...).install_batch()
    logging.getLogger().addHandler(LoggingHandler(provider))

The handler never exports anything itself. It only calls Logger.emit(),
which is non-blocking with a batch processor.
"""

import logging
import traceback
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

from otelpipe.contracts.enums import Severity
from otelpipe.contracts.logs import LogRecord

if TYPE_CHECKING:
    from otelpipe.logs.provider import Logger, LoggerProvider

# Records from these loggers would feed back into the pipeline that produced them.
_IGNORED_LOGGER_PREFIX: Final = "otelpipe"

# Attributes every stdlib LogRecord carries; anything else came from ``extra=``.
_RESERVED_ATTRS: Final = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime", "taskName"}

_EXTRA_TYPES: Final = (str, bool, int, float)


def severity_from_level(levelno: int) -> Severity:
    """Map a stdlib level number onto the OpenTelemetry severity scale.

    Levels between the standard ones map to the finer sub-levels, e.g.
    logging.INFO + 1 is INFO2.
    """
    if levelno < logging.DEBUG:
        return Severity.TRACE
    if levelno >= logging.CRITICAL:
        return Severity.FATAL
    base, offset = divmod(levelno, 10)
    # DEBUG=10 -> 5, INFO=20 -> 9, WARNING=30 -> 13, ERROR=40 -> 17
    return Severity(base * 4 + 1 + min(offset, 3))


class LoggingHandler(logging.Handler):
    """logging.Handler that forwards records to an otelpipe LoggerProvider.

    Each stdlib logger name becomes the record's ``target``; the scope is
    the handler's own (``otelpipe.logging`` unless overridden) so all
    bridged records share one Logger.
    """

    def __init__(
        self,
        logger_provider: "LoggerProvider",
        level: int = logging.NOTSET,
        scope_name: str = "otelpipe.logging",
    ) -> None:
        super().__init__(level)
        self._logger: Logger = logger_provider.logger(scope_name)

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(_IGNORED_LOGGER_PREFIX):
            return

        severity = severity_from_level(record.levelno)
        if not self._logger.event_enabled(severity, record.name):
            return

        try:
            self._logger.emit(self._translate(record, severity))
        except Exception:
            self.handleError(record)

    def _translate(self, record: logging.LogRecord, severity: Severity) -> LogRecord:
        attributes: dict[str, Any] = {
            "code.filepath": record.pathname,
            "code.lineno": record.lineno,
            "code.function": record.funcName,
        }
        if record.thread is not None:
            attributes["thread.id"] = record.thread
        if record.threadName:
            attributes["thread.name"] = record.threadName

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            attributes["exception.type"] = exc_type.__name__
            attributes["exception.message"] = str(exc_value)
            attributes["exception.stacktrace"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and isinstance(value, _EXTRA_TYPES):
                attributes[key] = value

        return LogRecord(
            body=record.getMessage(),
            severity_number=severity,
            severity_text=record.levelname,
            timestamp=datetime.fromtimestamp(record.created, UTC),
            target=record.name,
            attributes=attributes,
        )
