# src/otelpipe/metrics/protocols.py
"""Protocol definitions for metric exporters, readers and producers."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from otelpipe.contracts.enums import InstrumentKind, Temporality
    from otelpipe.metrics.aggregation import Aggregation
    from otelpipe.metrics.data import ResourceMetrics


@runtime_checkable
class MetricExporter(Protocol):
    """Protocol for push metric exporters.

    Error handling:
        - export() raises ExportError when the snapshot was not delivered;
          the reader logs it and discards the cycle.
        - shutdown() must be idempotent.

    Thread Safety:
        export(), force_flush() and shutdown() run on the runtime's event
        loop and are never called concurrently with each other.
        temporality() and aggregation() are pure and may be called anywhere.
    """

    @property
    def name(self) -> str: ...

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        """Temporality this exporter wants for instruments of ``kind``."""
        ...

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        """Aggregation this exporter wants for instruments of ``kind``."""
        ...

    async def export(self, metrics: "ResourceMetrics") -> None:
        """Deliver one collection.

        Raises:
            ExportError: If the snapshot could not be delivered
        """
        ...

    async def force_flush(self) -> None: ...

    async def shutdown(self) -> None: ...


@runtime_checkable
class MetricProducer(Protocol):
    """Something a reader can pull a snapshot from (a collection pipeline)."""

    def produce(self) -> "ResourceMetrics": ...


@runtime_checkable
class MetricReader(Protocol):
    """Protocol for readers registered with a MeterProvider.

    The provider calls register_pipeline() once at build time; the reader
    then decides when to call produce() on it.
    """

    def register_pipeline(self, producer: MetricProducer) -> None: ...

    def temporality(self, kind: "InstrumentKind") -> "Temporality": ...

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation": ...

    def force_flush(self, timeout: float | None = None) -> None: ...

    def shutdown(self, timeout: float | None = None) -> None: ...
