# src/otelpipe/logs/provider.py
"""LoggerProvider, its builder, and the Logger handed to producers.

The provider owns the processors (and through them the exporters) and,
when the caller supplied no runtime, the ThreadRuntime they run on.
Loggers are cheap handles: one per instrumentation scope, cached.
"""

import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Self

import structlog

from otelpipe.contracts.resource import InstrumentationScope, Resource
from otelpipe.logs.processor import BatchLogProcessor, SimpleLogProcessor
from otelpipe.runtime import ThreadRuntime

if TYPE_CHECKING:
    from otelpipe.contracts.config.runtime import BatchConfig
    from otelpipe.contracts.enums import Severity
    from otelpipe.contracts.logs import LogRecord
    from otelpipe.logs.protocols import LogExporter, LogProcessor
    from otelpipe.runtime import Runtime

logger = structlog.get_logger(__name__)

_ProcessorFactory = Callable[["Runtime | None"], "LogProcessor"]


class Logger:
    """Emits log records on behalf of one instrumentation scope."""

    def __init__(self, scope: InstrumentationScope, provider: "LoggerProvider") -> None:
        self._scope = scope
        self._provider = provider

    @property
    def scope(self) -> InstrumentationScope:
        return self._scope

    def emit(self, record: "LogRecord") -> None:
        """Hand the record to every processor of the provider.

        Stamps observed_timestamp when the producer left it unset. Records
        emitted after the provider shut down are ignored.
        """
        if self._provider.is_shutdown:
            return
        if record.observed_timestamp is None:
            record.observed_timestamp = datetime.now(UTC)
        for processor in self._provider.processors:
            processor.emit(record, self._scope)

    def event_enabled(self, severity: "Severity", target: str, name: str | None = None) -> bool:
        """Whether any processor wants a record with these properties."""
        if self._provider.is_shutdown:
            return False
        return any(processor.event_enabled(severity, target, name) for processor in self._provider.processors)


class LoggerProvider:
    """Entry point of the logs signal.

    Example:
        >>> provider = (
        ...     LoggerProvider.builder()
        ...     .with_resource(Resource.create({"service.name": "checkout"}))
        ...     .with_batch_exporter(exporter)
        ...     .build()
        ... )
        >>> provider.logger("checkout.payments").emit(LogRecord(body="paid"))
        >>> provider.shutdown()
    """

    def __init__(
        self,
        processors: list["LogProcessor"],
        resource: Resource,
        owned_runtime: ThreadRuntime | None = None,
    ) -> None:
        self._processors = tuple(processors)
        self._resource = resource
        self._owned_runtime = owned_runtime
        self._loggers: dict[InstrumentationScope, Logger] = {}
        self._loggers_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @classmethod
    def builder(cls) -> "LoggerProviderBuilder":
        return LoggerProviderBuilder()

    @property
    def processors(self) -> tuple["LogProcessor", ...]:
        return self._processors

    @property
    def resource(self) -> Resource:
        return self._resource

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def logger(self, name: str, version: str | None = None, schema_url: str | None = None) -> Logger:
        """Return the Logger for a scope, creating it on first use."""
        if not name:
            logger.warning("Logger requested with an empty scope name")
        scope = InstrumentationScope(name, version, schema_url)
        with self._loggers_lock:
            existing = self._loggers.get(scope)
            if existing is None:
                existing = Logger(scope, self)
                self._loggers[scope] = existing
            return existing

    def force_flush(self, timeout: float | None = None) -> None:
        """Flush every processor. Raises the first error after trying all."""
        deadline = None if timeout is None else time.monotonic() + timeout
        errors: list[Exception] = []
        for processor in self._processors:
            try:
                processor.force_flush(_remaining(deadline))
            except Exception as e:
                errors.append(e)
        if errors:
            raise errors[0]

    def shutdown(self, timeout: float | None = None) -> None:
        """Shut every processor down, then close an owned runtime.

        Idempotent. Every processor is shut down even if an earlier one
        fails; the first failure is raised afterwards.
        """
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        deadline = None if timeout is None else time.monotonic() + timeout
        errors: list[Exception] = []
        for processor in self._processors:
            try:
                processor.shutdown(_remaining(deadline))
            except Exception as e:
                logger.error(
                    "Log processor shutdown failed",
                    processor=type(processor).__name__,
                    error=str(e),
                )
                errors.append(e)

        if self._owned_runtime is not None:
            self._owned_runtime.close(_remaining(deadline))

        if errors:
            raise errors[0]


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


class LoggerProviderBuilder:
    """Assembles a LoggerProvider.

    Processors are created at build() time so they all share the runtime
    chosen for the provider.
    """

    def __init__(self) -> None:
        self._resource: Resource | None = None
        self._runtime: Runtime | None = None
        self._factories: list[_ProcessorFactory] = []
        self._needs_runtime = False

    def with_resource(self, resource: Resource) -> Self:
        self._resource = resource
        return self

    def with_runtime(self, runtime: "Runtime") -> Self:
        self._runtime = runtime
        return self

    def with_simple_exporter(self, exporter: "LogExporter") -> Self:
        """Export each record synchronously through a SimpleLogProcessor."""
        self._needs_runtime = True
        self._factories.append(lambda runtime: SimpleLogProcessor(exporter, _require(runtime)))
        return self

    def with_batch_exporter(self, exporter: "LogExporter", config: "BatchConfig | None" = None) -> Self:
        """Export through a BatchLogProcessor with the given (or default) config."""
        self._needs_runtime = True
        self._factories.append(lambda runtime: BatchLogProcessor(exporter, _require(runtime), config))
        return self

    def with_log_processor(self, processor: "LogProcessor") -> Self:
        """Attach a processor that was built by the caller."""
        self._factories.append(lambda _runtime: processor)
        return self

    def build(self) -> LoggerProvider:
        resource = self._resource if self._resource is not None else Resource.default()

        runtime = self._runtime
        owned_runtime: ThreadRuntime | None = None
        if runtime is None and self._needs_runtime:
            owned_runtime = ThreadRuntime()
            runtime = owned_runtime

        processors = [factory(runtime) for factory in self._factories]
        for processor in processors:
            processor.set_resource(resource)

        logger.debug(
            "Logger provider built",
            processors=[type(p).__name__ for p in processors],
            owns_runtime=owned_runtime is not None,
        )
        return LoggerProvider(processors, resource, owned_runtime)


def _require(runtime: "Runtime | None") -> "Runtime":
    # build() always resolves a runtime before calling a factory that needs one
    assert runtime is not None
    return runtime
