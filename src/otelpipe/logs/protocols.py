# src/otelpipe/logs/protocols.py
"""Protocol definitions for log exporters and processors.

Exporters ship batches of log records to a backend (OTLP collector, console,
in-memory store). Processors sit between the Logger and the exporter and
decide when and how records are handed over.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from otelpipe.contracts.enums import Severity
    from otelpipe.contracts.logs import LogRecord
    from otelpipe.contracts.resource import InstrumentationScope, Resource

LogBatch = Sequence[tuple["LogRecord", "InstrumentationScope"]]


@runtime_checkable
class LogExporter(Protocol):
    """Protocol for log exporters.

    Lifecycle:
        1. Construction: transport clients are created lazily
        2. set_resource(): called once when the provider is built
        3. export(): called with each batch, never concurrently with itself
        4. shutdown(): called once after the final export

    Error handling:
        - export() raises ExportError when the batch was not delivered. The
          caller logs and counts the failure; it never retries.
        - shutdown() must be idempotent.

    Thread Safety:
        export() and shutdown() always run on the runtime's event loop, owned
        by a single consumer task. set_resource() runs on the builder thread
        before any export. event_enabled() may be called from any producer
        thread and must not block.
    """

    @property
    def name(self) -> str:
        """Exporter name used in diagnostics."""
        ...

    async def export(self, batch: LogBatch) -> None:
        """Deliver a batch of records with their instrumentation scopes.

        Raises:
            ExportError: If the batch could not be delivered
        """
        ...

    async def shutdown(self) -> None:
        """Release transport resources."""
        ...

    def set_resource(self, resource: "Resource") -> None:
        """Receive the provider's resource before the first export."""
        ...

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        """Cheap pre-check letting producers skip building unwanted records."""
        ...


@runtime_checkable
class LogProcessor(Protocol):
    """Protocol for log record processors attached to a LoggerProvider."""

    def emit(self, record: "LogRecord", scope: "InstrumentationScope") -> None:
        """Accept a record. Must never block on network I/O or raise."""
        ...

    def force_flush(self, timeout: float | None = None) -> None:
        """Block until everything emitted before the call has been exported."""
        ...

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop accepting records, drain and shut the exporter down. Idempotent."""
        ...

    def set_resource(self, resource: "Resource") -> None:
        """Forward the provider's resource to the exporter."""
        ...

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        """Forward the enablement check to the exporter."""
        ...
