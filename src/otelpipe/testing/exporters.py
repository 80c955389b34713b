# src/otelpipe/testing/exporters.py
"""In-memory exporters that capture telemetry for verification.

Both exporters implement the regular exporter protocols, so they can be
wired into any provider or pipeline in place of an OTLP exporter, and both
provide assertion helpers.

Example:
    exporter = InMemoryLogExporter()
    provider = LoggerProvider.builder().with_batch_exporter(exporter).build()

    # ... emit records ...
    provider.force_flush()

    exporter.assert_record_emitted(body="order placed", target="checkout")
"""

import threading
from typing import TYPE_CHECKING, Any

from otelpipe.contracts.resource import Resource
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
)

if TYPE_CHECKING:
    from otelpipe.contracts.enums import InstrumentKind, Severity, Temporality
    from otelpipe.contracts.logs import LogRecord
    from otelpipe.contracts.resource import InstrumentationScope
    from otelpipe.logs.protocols import LogBatch
    from otelpipe.metrics.aggregation import Aggregation
    from otelpipe.metrics.data import Metric, ResourceMetrics


class InMemoryLogExporter:
    """Log exporter that keeps every exported batch in memory.

    Attributes:
        shutdown_count: Number of shutdown() calls
    """

    def __init__(self, name: str = "in-memory") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._batches: list[list[tuple[LogRecord, InstrumentationScope]]] = []
        self._resource = Resource.empty()
        self.shutdown_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def resource(self) -> Resource:
        return self._resource

    def set_resource(self, resource: Resource) -> None:
        self._resource = resource

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        return True

    async def export(self, batch: "LogBatch") -> None:
        """Capture the batch in memory."""
        with self._lock:
            self._batches.append(list(batch))

    async def shutdown(self) -> None:
        """Track shutdown calls."""
        self.shutdown_count += 1

    @property
    def batches(self) -> list[list[tuple["LogRecord", "InstrumentationScope"]]]:
        with self._lock:
            return [list(batch) for batch in self._batches]

    @property
    def records(self) -> list["LogRecord"]:
        """Every exported record, in export order."""
        with self._lock:
            return [record for batch in self._batches for record, _ in batch]

    # =========================================================================
    # Assertion Helpers
    # =========================================================================

    def assert_record_emitted(self, **filters: Any) -> "LogRecord":
        """Assert that a record matching every field filter was exported.

        Args:
            **filters: LogRecord field values to match (e.g. body="x", target="app")

        Returns:
            The first matching record

        Raises:
            AssertionError: If no matching record found
        """
        records = self.records
        for record in records:
            if all(getattr(record, key, None) == expected for key, expected in filters.items()):
                return record
        raise AssertionError(f"No record found with filters {filters}. Bodies captured: {[r.body for r in records]}")

    def assert_no_records(self) -> None:
        records = self.records
        if records:
            raise AssertionError(f"Expected no records, but {len(records)} were exported")

    def get_records_for_scope(self, scope_name: str) -> list["LogRecord"]:
        with self._lock:
            return [record for batch in self._batches for record, scope in batch if scope.name == scope_name]

    def clear(self) -> None:
        """Clear all captured batches."""
        with self._lock:
            self._batches.clear()


class InMemoryMetricExporter:
    """Metric exporter that keeps every exported snapshot in memory.

    Note that holding the snapshots defeats the usual guarantee that a
    ResourceMetrics does not outlive its export; use it in tests only.
    """

    def __init__(
        self,
        temporality_selector: TemporalitySelector = cumulative_temporality,
        aggregation_selector: AggregationSelector = default_aggregation,
        name: str = "in-memory",
    ) -> None:
        self._name = name
        self._temporality_selector = temporality_selector
        self._aggregation_selector = aggregation_selector
        self._lock = threading.Lock()
        self._snapshots: list[ResourceMetrics] = []
        self.force_flush_count = 0
        self.shutdown_count = 0

    @property
    def name(self) -> str:
        return self._name

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        return self._temporality_selector(kind)

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        return self._aggregation_selector(kind)

    async def export(self, metrics: "ResourceMetrics") -> None:
        with self._lock:
            self._snapshots.append(metrics)

    async def force_flush(self) -> None:
        self.force_flush_count += 1

    async def shutdown(self) -> None:
        self.shutdown_count += 1

    @property
    def snapshots(self) -> list["ResourceMetrics"]:
        with self._lock:
            return list(self._snapshots)

    @property
    def export_count(self) -> int:
        with self._lock:
            return len(self._snapshots)

    # =========================================================================
    # Assertion Helpers
    # =========================================================================

    def get_metrics(self, name: str) -> list["Metric"]:
        """Every exported Metric with this name, oldest first."""
        return [
            metric
            for snapshot in self.snapshots
            for scope in snapshot.scope_metrics
            for metric in scope.metrics
            if metric.name == name
        ]

    def assert_metric_exported(self, name: str) -> "Metric":
        """Assert that a metric was exported and return its latest occurrence.

        Raises:
            AssertionError: If the metric never appeared in a snapshot
        """
        metrics = self.get_metrics(name)
        if not metrics:
            raise AssertionError(f"Metric {name!r} was never exported")
        return metrics[-1]

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()
