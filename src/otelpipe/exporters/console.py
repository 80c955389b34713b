# src/otelpipe/exporters/console.py
"""Console exporters for log records and metric snapshots.

Write telemetry to stdout or stderr in JSON or human-readable format.
Primarily used for local debugging and examples.
"""

import json
import sys
from typing import TYPE_CHECKING, Any, Literal, TextIO, TypeGuard

import structlog

from otelpipe.contracts.resource import Resource
from otelpipe.errors import ConfigurationError, ExportError
from otelpipe.exporters.encoding import encode_log_record, encode_metrics, encode_scope
from otelpipe.metrics.data import Gauge, Histogram, Sum
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

logger = structlog.get_logger(__name__)

ConsoleFormat = Literal["json", "pretty"]
ConsoleOutput = Literal["stdout", "stderr"]

_VALID_FORMATS: frozenset[str] = frozenset({"json", "pretty"})
_VALID_OUTPUTS: frozenset[str] = frozenset({"stdout", "stderr"})


def _is_valid_format(v: str) -> TypeGuard[ConsoleFormat]:
    """TypeGuard for format validation - enables mypy type narrowing."""
    return v in _VALID_FORMATS


def _is_valid_output(v: str) -> TypeGuard[ConsoleOutput]:
    """TypeGuard for output validation - enables mypy type narrowing."""
    return v in _VALID_OUTPUTS


def _validate(name: str, format: str, output: str) -> tuple[ConsoleFormat, TextIO]:
    if not _is_valid_format(format):
        raise ConfigurationError(
            name,
            f"Invalid format '{format}'. Must be one of: {', '.join(sorted(_VALID_FORMATS))}",
        )
    if not _is_valid_output(output):
        raise ConfigurationError(
            name,
            f"Invalid output '{output}'. Must be one of: {', '.join(sorted(_VALID_OUTPUTS))}",
        )
    return format, sys.stdout if output == "stdout" else sys.stderr


class ConsoleLogExporter:
    """Export log records to stdout/stderr.

    Supports two output formats:
    - json: One OTLP/JSON log record per line, with resource and scope
    - pretty: ``[TIMESTAMP] SEVERITY scope: body (key=value, ...)``
    """

    _name = "console"

    def __init__(self, format: str = "json", output: str = "stdout") -> None:
        self._format, self._stream = _validate(self._name, format, output)
        self._resource = Resource.empty()

    @property
    def name(self) -> str:
        return self._name

    def set_resource(self, resource: Resource) -> None:
        self._resource = resource

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        return True

    async def export(self, batch: "LogBatch") -> None:
        try:
            for record, scope in batch:
                if self._format == "json":
                    line = json.dumps(self._serialize(record, scope))
                else:
                    line = self._format_pretty(record, scope)
                print(line, file=self._stream)
        except Exception as e:
            raise ExportError(self._name, f"failed to write log batch: {e}") from e

    def _serialize(self, record: "LogRecord", scope: "InstrumentationScope") -> dict[str, Any]:
        data = encode_log_record(record)
        data["scope"] = encode_scope(scope)
        data["resource"] = dict(self._resource.attributes)
        return data

    def _format_pretty(self, record: "LogRecord", scope: "InstrumentationScope") -> str:
        timestamp = record.timestamp or record.observed_timestamp
        timestamp_str = timestamp.isoformat() if timestamp is not None else "-"
        severity = record.severity_text or (record.severity_number.short_name if record.severity_number else "-")
        origin = record.target or scope.name
        details = ", ".join(f"{key}={value}" for key, value in sorted(record.attributes.items()))
        if details:
            return f"[{timestamp_str}] {severity} {origin}: {record.body} ({details})"
        return f"[{timestamp_str}] {severity} {origin}: {record.body}"

    async def shutdown(self) -> None:
        """Flush the stream. The exporter does not own stdout/stderr."""
        self._stream.flush()


class ConsoleMetricExporter:
    """Export metric snapshots to stdout/stderr.

    - json: One OTLP/JSON ExportMetricsServiceRequest per collection
    - pretty: One line per data point
    """

    _name = "console"

    def __init__(
        self,
        format: str = "json",
        output: str = "stdout",
        temporality_selector: TemporalitySelector = cumulative_temporality,
        aggregation_selector: AggregationSelector = default_aggregation,
    ) -> None:
        self._format, self._stream = _validate(self._name, format, output)
        self._temporality_selector = temporality_selector
        self._aggregation_selector = aggregation_selector

    @property
    def name(self) -> str:
        return self._name

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        return self._temporality_selector(kind)

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        return self._aggregation_selector(kind)

    async def export(self, metrics: "ResourceMetrics") -> None:
        try:
            if self._format == "json":
                print(json.dumps(encode_metrics(metrics)), file=self._stream)
                return
            for scope_entry in metrics.scope_metrics:
                for metric in scope_entry.metrics:
                    for line in self._format_pretty(scope_entry.scope.name, metric):
                        print(line, file=self._stream)
        except Exception as e:
            raise ExportError(self._name, f"failed to write metrics: {e}") from e

    def _format_pretty(self, scope_name: str, metric: "Metric") -> list[str]:
        unit = f" {metric.unit}" if metric.unit else ""
        lines = []
        match metric.data:
            case Sum(data_points=points, temporality=temporality):
                for point in points:
                    lines.append(
                        f"{scope_name} {metric.name} sum[{temporality}] {_attrs(point.attributes)} = {point.value}{unit}"
                    )
            case Gauge(data_points=points):
                for point in points:
                    lines.append(f"{scope_name} {metric.name} gauge {_attrs(point.attributes)} = {point.value}{unit}")
            case Histogram(data_points=points, temporality=temporality):
                for hist in points:
                    lines.append(
                        f"{scope_name} {metric.name} histogram[{temporality}] {_attrs(hist.attributes)} "
                        f"count={hist.count} sum={hist.sum}{unit}"
                    )
        return lines

    async def force_flush(self) -> None:
        self._stream.flush()

    async def shutdown(self) -> None:
        self._stream.flush()


def _attrs(attributes: Any) -> str:
    return "{" + ", ".join(f"{key}={value}" for key, value in sorted(attributes.items())) + "}"
