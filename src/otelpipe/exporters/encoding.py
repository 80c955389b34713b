# src/otelpipe/exporters/encoding.py
"""OTLP/JSON encoding of log batches and metric snapshots.

Produces the dict form of ExportLogsServiceRequest and
ExportMetricsServiceRequest as defined by the OTLP/JSON mapping:

- field names are lowerCamelCase
- 64-bit integers (timestamps, counts, intValue) are decimal strings
- enum fields are their integer values

The same dict feeds every transport. http/json serializes it directly;
http/protobuf and gRPC parse it into the generated protobuf message. The
only difference between the two is how trace and span ids are written:
the OTLP/JSON mapping wants hex, protobuf's JSON parser wants base64.
"""

import base64
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final, Literal

from otelpipe.contracts.enums import Temporality
from otelpipe.contracts.resource import InstrumentationScope
from otelpipe.metrics.data import Gauge, Histogram, HistogramDataPoint, NumberDataPoint, Sum

if TYPE_CHECKING:
    from otelpipe.contracts.logs import LogRecord
    from otelpipe.contracts.resource import Resource
    from otelpipe.logs.protocols import LogBatch
    from otelpipe.metrics.data import Metric, ResourceMetrics

IdEncoding = Literal["hex", "base64"]

EVENT_NAME_ATTRIBUTE: Final = "event.name"

_EPOCH: Final = datetime(1970, 1, 1, tzinfo=UTC)

_TEMPORALITY: Final = {
    Temporality.DELTA: 1,
    Temporality.CUMULATIVE: 2,
}


def datetime_to_unix_nano(value: datetime) -> int:
    """Convert a datetime to Unix nanoseconds without float rounding.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def encode_any_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as an OTLP AnyValue."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"intValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, bytes | bytearray):
        return {"bytesValue": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, Mapping):
        return {"kvlistValue": {"values": encode_attributes(value)}}
    if isinstance(value, Sequence):
        return {"arrayValue": {"values": [encode_any_value(item) for item in value]}}
    if value is None:
        return {}
    return {"stringValue": str(value)}


def encode_attributes(attributes: Mapping[str, Any]) -> list[dict[str, Any]]:
    return [{"key": str(key), "value": encode_any_value(value)} for key, value in attributes.items()]


def encode_resource(resource: "Resource") -> dict[str, Any]:
    return {"attributes": encode_attributes(resource.attributes)}


def encode_scope(scope: InstrumentationScope) -> dict[str, Any]:
    encoded: dict[str, Any] = {"name": scope.name}
    if scope.version:
        encoded["version"] = scope.version
    return encoded


def _encode_id(value: int, length: int, id_encoding: IdEncoding) -> str:
    raw = value.to_bytes(length, "big")
    if id_encoding == "hex":
        return raw.hex()
    return base64.b64encode(raw).decode("ascii")


def encode_log_record(record: "LogRecord", id_encoding: IdEncoding = "hex") -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    if record.timestamp is not None:
        encoded["timeUnixNano"] = str(datetime_to_unix_nano(record.timestamp))
    if record.observed_timestamp is not None:
        encoded["observedTimeUnixNano"] = str(datetime_to_unix_nano(record.observed_timestamp))
    if record.severity_number is not None:
        encoded["severityNumber"] = int(record.severity_number)
    if record.severity_text is not None:
        encoded["severityText"] = record.severity_text
    if record.body is not None:
        encoded["body"] = encode_any_value(record.body)

    attributes = dict(record.attributes)
    if record.event_name is not None:
        attributes[EVENT_NAME_ATTRIBUTE] = record.event_name
    if attributes:
        encoded["attributes"] = encode_attributes(attributes)

    if record.trace_context is not None:
        ctx = record.trace_context
        encoded["traceId"] = _encode_id(ctx.trace_id, 16, id_encoding)
        encoded["spanId"] = _encode_id(ctx.span_id, 8, id_encoding)
        encoded["flags"] = ctx.trace_flags
    return encoded


def _effective_scope(record: "LogRecord", scope: InstrumentationScope) -> InstrumentationScope:
    """A record's target, when set, names the scope it is reported under."""
    if record.target and record.target != scope.name:
        return InstrumentationScope(record.target, scope.version, scope.schema_url)
    return scope


def encode_logs(batch: "LogBatch", resource: "Resource", *, id_encoding: IdEncoding = "hex") -> dict[str, Any]:
    """Encode a batch as an ExportLogsServiceRequest dict.

    Records are grouped by their effective scope, keeping first-seen order
    between groups and batch order within each group.
    """
    groups: dict[InstrumentationScope, list[dict[str, Any]]] = {}
    for record, scope in batch:
        groups.setdefault(_effective_scope(record, scope), []).append(encode_log_record(record, id_encoding))

    scope_logs = []
    for scope, records in groups.items():
        entry: dict[str, Any] = {"scope": encode_scope(scope), "logRecords": records}
        if scope.schema_url:
            entry["schemaUrl"] = scope.schema_url
        scope_logs.append(entry)

    resource_logs: dict[str, Any] = {"resource": encode_resource(resource), "scopeLogs": scope_logs}
    if resource.schema_url:
        resource_logs["schemaUrl"] = resource.schema_url
    return {"resourceLogs": [resource_logs]}


def _encode_number_point(point: NumberDataPoint) -> dict[str, Any]:
    encoded: dict[str, Any] = {
        "attributes": encode_attributes(point.attributes),
        "startTimeUnixNano": str(point.start_time_unix_nano),
        "timeUnixNano": str(point.time_unix_nano),
    }
    if isinstance(point.value, int) and not isinstance(point.value, bool):
        encoded["asInt"] = str(point.value)
    else:
        encoded["asDouble"] = float(point.value)
    return encoded


def _encode_histogram_point(point: HistogramDataPoint) -> dict[str, Any]:
    encoded: dict[str, Any] = {
        "attributes": encode_attributes(point.attributes),
        "startTimeUnixNano": str(point.start_time_unix_nano),
        "timeUnixNano": str(point.time_unix_nano),
        "count": str(point.count),
        "sum": float(point.sum),
        "bucketCounts": [str(count) for count in point.bucket_counts],
        "explicitBounds": list(point.explicit_bounds),
    }
    if point.min is not None:
        encoded["min"] = float(point.min)
    if point.max is not None:
        encoded["max"] = float(point.max)
    return encoded


def encode_metric(metric: "Metric") -> dict[str, Any]:
    encoded: dict[str, Any] = {"name": metric.name}
    if metric.description:
        encoded["description"] = metric.description
    if metric.unit:
        encoded["unit"] = metric.unit

    match metric.data:
        case Sum(data_points=points, temporality=temporality, is_monotonic=is_monotonic):
            encoded["sum"] = {
                "dataPoints": [_encode_number_point(p) for p in points],
                "aggregationTemporality": _TEMPORALITY[temporality],
                "isMonotonic": is_monotonic,
            }
        case Gauge(data_points=points):
            encoded["gauge"] = {"dataPoints": [_encode_number_point(p) for p in points]}
        case Histogram(data_points=points, temporality=temporality):
            encoded["histogram"] = {
                "dataPoints": [_encode_histogram_point(p) for p in points],
                "aggregationTemporality": _TEMPORALITY[temporality],
            }
    return encoded


def encode_metrics(metrics: "ResourceMetrics") -> dict[str, Any]:
    """Encode a snapshot as an ExportMetricsServiceRequest dict."""
    scope_metrics = []
    for scope_entry in metrics.scope_metrics:
        entry: dict[str, Any] = {
            "scope": encode_scope(scope_entry.scope),
            "metrics": [encode_metric(metric) for metric in scope_entry.metrics],
        }
        if scope_entry.scope.schema_url:
            entry["schemaUrl"] = scope_entry.scope.schema_url
        scope_metrics.append(entry)

    resource_metrics: dict[str, Any] = {
        "resource": encode_resource(metrics.resource),
        "scopeMetrics": scope_metrics,
    }
    if metrics.resource.schema_url:
        resource_metrics["schemaUrl"] = metrics.resource.schema_url
    return {"resourceMetrics": [resource_metrics]}
