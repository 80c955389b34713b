# tests/unit/exporters/test_http_transport.py
"""Unit tests for the OTLP/HTTP transport.

Requests are served by httpx.MockTransport; nothing leaves the process.
"""

import asyncio
import gzip
import json
from datetime import UTC, datetime

import httpx
import pytest

from otelpipe.contracts.enums import Severity, Temporality
from otelpipe.contracts.logs import LogRecord, TraceContext
from otelpipe.contracts.resource import InstrumentationScope, Resource
from otelpipe.core.config import OtlpSettings
from otelpipe.errors import ExportError
from otelpipe.exporters.otlp import HttpExporterBuilder, OtlpLogExporter, OtlpMetricExporter
from otelpipe.metrics.data import Metric, NumberDataPoint, ResourceMetrics, ScopeMetrics, Sum
from tests.fixtures.collector import Collector

SCOPE = InstrumentationScope("tests.http", "1.0")


def log_exporter(collector: Collector, protocol: str = "http/json", **overrides: str) -> OtlpLogExporter:
    builder = (
        HttpExporterBuilder(protocol)
        .with_endpoint("http://collector:4318/v1/logs")
        .with_http_transport(collector.transport)
        .with_settings(OtlpSettings())
    )
    if "compression" in overrides:
        builder = builder.with_compression(overrides["compression"])
    if "api_key" in overrides:
        builder = builder.with_headers({"x-api-key": overrides["api_key"]})
    exporter = builder.build_log_exporter()
    exporter.set_resource(Resource.create({"service.name": "checkout"}))
    return exporter


def export_and_close(exporter: OtlpLogExporter, *records: LogRecord) -> None:
    async def scenario() -> None:
        try:
            await exporter.export([(record, SCOPE) for record in records])
        finally:
            await exporter.shutdown()

    asyncio.run(scenario())


class TestHttpJson:
    """Tests for http/json requests."""

    def test_posts_json_body_to_endpoint(self) -> None:
        collector = Collector()
        exporter = log_exporter(collector, api_key="secret")

        export_and_close(exporter, LogRecord(body="paid", severity_number=Severity.INFO))

        (request,) = collector.requests
        assert request.method == "POST"
        assert str(request.url) == "http://collector:4318/v1/logs"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-api-key"] == "secret"
        payload = json.loads(request.content)
        (resource_logs,) = payload["resourceLogs"]
        assert {"key": "service.name", "value": {"stringValue": "checkout"}} in resource_logs["resource"]["attributes"]
        (scope_logs,) = resource_logs["scopeLogs"]
        assert scope_logs["scope"] == {"name": "tests.http", "version": "1.0"}
        assert scope_logs["logRecords"][0]["body"] == {"stringValue": "paid"}
        assert scope_logs["logRecords"][0]["severityNumber"] == 9

    def test_trace_ids_are_hex(self) -> None:
        collector = Collector()
        exporter = log_exporter(collector)

        export_and_close(exporter, LogRecord(body="x", trace_context=TraceContext(trace_id=0xABC, span_id=0x1)))

        record = json.loads(collector.requests[0].content)["resourceLogs"][0]["scopeLogs"][0]["logRecords"][0]
        assert record["traceId"] == f"{0xABC:032x}"
        assert record["spanId"] == f"{1:016x}"

    def test_gzip_compression(self) -> None:
        collector = Collector()
        exporter = log_exporter(collector, compression="gzip")

        export_and_close(exporter, LogRecord(body="compressed"))

        (request,) = collector.requests
        assert request.headers["content-encoding"] == "gzip"
        payload = json.loads(gzip.decompress(request.content))
        assert payload["resourceLogs"][0]["scopeLogs"][0]["logRecords"][0]["body"] == {"stringValue": "compressed"}

    def test_metrics_posted_to_metrics_path(self) -> None:
        collector = Collector()
        exporter = (
            HttpExporterBuilder("http/json")
            .with_http_transport(collector.transport)
            .with_settings(OtlpSettings())
            .build_metrics_exporter()
        )
        assert isinstance(exporter, OtlpMetricExporter)
        snapshot = ResourceMetrics(
            Resource.default(),
            (
                ScopeMetrics(
                    SCOPE,
                    (Metric("jobs", "", "", Sum((NumberDataPoint({}, 1, 2, 4),), Temporality.CUMULATIVE, True)),),
                ),
            ),
        )

        async def scenario() -> None:
            await exporter.export(snapshot)
            await exporter.shutdown()

        asyncio.run(scenario())

        (request,) = collector.requests
        assert str(request.url) == "http://localhost:4318/v1/metrics"
        metric = json.loads(request.content)["resourceMetrics"][0]["scopeMetrics"][0]["metrics"][0]
        assert metric["sum"]["dataPoints"][0]["asInt"] == "4"


class TestHttpErrors:
    """Tests for failed deliveries."""

    def test_non_success_status_raises_export_error(self) -> None:
        exporter = log_exporter(Collector(status=503, body="collector overloaded"))

        with pytest.raises(ExportError, match="collector returned HTTP 503: collector overloaded"):
            export_and_close(exporter, LogRecord(body="x"))

    def test_error_body_truncated(self) -> None:
        exporter = log_exporter(Collector(status=400, body="e" * 2000))

        with pytest.raises(ExportError) as excinfo:
            export_and_close(exporter, LogRecord(body="x"))

        assert len(excinfo.value.message) < 600

    def test_transport_error_raises_export_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        exporter = (
            HttpExporterBuilder("http/json")
            .with_http_transport(httpx.MockTransport(refuse))
            .with_settings(OtlpSettings())
            .build_log_exporter()
        )

        with pytest.raises(ExportError, match="ConnectError: connection refused"):
            export_and_close(exporter, LogRecord(body="x"))

    def test_export_after_shutdown_raises(self) -> None:
        exporter = log_exporter(Collector())

        async def scenario() -> None:
            await exporter.shutdown()
            await exporter.shutdown()
            await exporter.export([(LogRecord(body="late"), SCOPE)])

        with pytest.raises(ExportError, match="shut down"):
            asyncio.run(scenario())
        assert exporter.event_enabled(Severity.INFO, "app", None) is False


class TestHttpProtobuf:
    """Tests for http/protobuf requests (requires opentelemetry-proto)."""

    def test_posts_protobuf_request(self) -> None:
        pytest.importorskip("opentelemetry.proto")
        from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import ExportLogsServiceRequest

        collector = Collector()
        exporter = log_exporter(collector, protocol="http/protobuf")
        record = LogRecord(
            body="binary",
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
            trace_context=TraceContext(trace_id=1, span_id=2),
        )

        export_and_close(exporter, record)

        (request,) = collector.requests
        assert request.headers["content-type"] == "application/x-protobuf"
        message = ExportLogsServiceRequest.FromString(request.content)
        log_record = message.resource_logs[0].scope_logs[0].log_records[0]
        assert log_record.body.string_value == "binary"
        assert log_record.time_unix_nano == 1_704_067_200_000_000_000
        assert log_record.trace_id == (1).to_bytes(16, "big")
        assert log_record.span_id == (2).to_bytes(8, "big")
        assert exporter.name == "otlp-http/protobuf"
