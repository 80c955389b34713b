# tests/unit/pipeline/test_pipeline.py
"""Tests for the typestate pipeline builders."""

from unittest.mock import patch

import pytest

from otelpipe.contracts.config import BatchConfig
from otelpipe.contracts.enums import InstrumentKind, Temporality, TransportProtocol
from otelpipe.contracts.logs import LogRecord
from otelpipe.contracts.resource import Resource
from otelpipe.core.config import OtlpSettings
from otelpipe.errors import ConfigurationError
from otelpipe.exporters.otlp import GrpcExporterBuilder, HttpExporterBuilder
from otelpipe.logs.processor import BatchLogProcessor, SimpleLogProcessor
from otelpipe.pipeline import (
    ConfiguredOtlpLogPipeline,
    ConfiguredOtlpMetricPipeline,
    OtlpLogPipeline,
    OtlpMetricPipeline,
    new_exporter,
    new_pipeline,
)
from otelpipe.runtime import ThreadRuntime
from otelpipe.testing import InMemoryLogExporter, InMemoryMetricExporter
from tests.fixtures.collector import Collector

# =============================================================================
# Entry points
# =============================================================================


class TestEntryPoints:
    """Tests for new_pipeline() / new_exporter()."""

    def test_signal_selection(self) -> None:
        assert isinstance(new_pipeline().logging(), OtlpLogPipeline)
        assert isinstance(new_pipeline().metrics(), OtlpMetricPipeline)

    def test_exporter_variants(self) -> None:
        assert isinstance(new_exporter().grpc(), GrpcExporterBuilder)
        assert new_exporter().http().protocol is TransportProtocol.HTTP_PROTOBUF
        assert new_exporter().http("http/json").protocol is TransportProtocol.HTTP_JSON


# =============================================================================
# Logs
# =============================================================================


class TestLogPipeline:
    """Tests for the log pipeline states."""

    @pytest.mark.parametrize("method", ["install_simple", "install_batch"])
    def test_install_without_exporter_rejected(self, method: str) -> None:
        pipeline = new_pipeline().logging()

        with pytest.raises(ConfigurationError, match="no exporter configured"):
            getattr(pipeline, method)()

    def test_builders_are_immutable(self) -> None:
        base = new_pipeline().logging()
        resource = Resource.create({"service.name": "svc"})

        with_resource = base.with_resource(resource)
        configured = with_resource.with_exporter(InMemoryLogExporter())

        assert base.resource is None
        assert with_resource.resource is resource
        assert isinstance(configured, ConfiguredOtlpLogPipeline)
        assert configured.resource is resource
        assert configured.with_batch_config(BatchConfig()).batch_config == BatchConfig()
        assert configured.batch_config is None

    def test_options_survive_with_exporter(self) -> None:
        config = BatchConfig(max_queue_size=16, max_export_batch_size=4)

        configured = new_pipeline().logging().with_batch_config(config).with_exporter(InMemoryLogExporter())

        assert configured.batch_config is config

    def test_install_simple(self, runtime: ThreadRuntime) -> None:
        exporter = InMemoryLogExporter()

        with patch("otelpipe.pipeline.logger") as mock_logger:
            provider = new_pipeline().logging().with_exporter(exporter).install_simple(runtime)
        try:
            provider.logger("tests.pipeline").emit(LogRecord(body="sync"))

            assert isinstance(provider.processors[0], SimpleLogProcessor)
            assert [record.body for record in exporter.records] == ["sync"]
            assert mock_logger.info.call_args.args[0] == "Log pipeline installed"
            assert mock_logger.info.call_args.kwargs["processor"] == "simple"
        finally:
            provider.shutdown()

    def test_install_batch_with_explicit_config(self, runtime: ThreadRuntime) -> None:
        exporter = InMemoryLogExporter()
        resource = Resource.create({"service.name": "svc"})

        provider = (
            new_pipeline()
            .logging()
            .with_resource(resource)
            .with_batch_config(BatchConfig(max_queue_size=16, max_export_batch_size=4, scheduled_delay=60.0))
            .with_exporter(exporter)
            .install_batch(runtime)
        )
        try:
            provider.logger("tests.pipeline").emit(LogRecord(body="batched"))
            provider.force_flush(timeout=5.0)

            (processor,) = provider.processors
            assert isinstance(processor, BatchLogProcessor)
            assert processor.health_metrics["queue_capacity"] == 16
            assert [record.body for record in exporter.records] == ["batched"]
            assert exporter.resource is resource
        finally:
            provider.shutdown()

    def test_install_batch_reads_environment(self, runtime: ThreadRuntime, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTEL_BLRP_MAX_QUEUE_SIZE", "1024")
        monkeypatch.setenv("OTEL_BLRP_SCHEDULE_DELAY", "250")

        with patch("otelpipe.pipeline.logger") as mock_logger:
            provider = new_pipeline().logging().with_exporter(InMemoryLogExporter()).install_batch(runtime)
        try:
            assert provider.processors[0].health_metrics["queue_capacity"] == 1024  # type: ignore[attr-defined]
            assert mock_logger.info.call_args.kwargs["max_queue_size"] == 1024
            assert mock_logger.info.call_args.kwargs["scheduled_delay"] == 0.25
        finally:
            provider.shutdown()

    def test_builder_exporter_resolved_at_install(self, runtime: ThreadRuntime) -> None:
        collector = Collector()
        exporter_builder = new_exporter().http("http/json").with_http_transport(collector.transport)

        provider = (
            new_pipeline()
            .logging()
            .with_resource(Resource.create({"service.name": "checkout"}))
            .with_exporter(exporter_builder.with_settings(OtlpSettings()))
            .install_batch(runtime)
        )
        try:
            provider.logger("tests.pipeline").emit(LogRecord(body="over http"))
            provider.force_flush(timeout=5.0)
        finally:
            provider.shutdown()

        assert collector.log_bodies() == [{"stringValue": "over http"}]
        assert str(collector.requests[0].url) == "http://localhost:4318/v1/logs"


# =============================================================================
# Metrics
# =============================================================================


class TestMetricPipeline:
    """Tests for the metric pipeline states."""

    def test_build_without_exporter_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="no exporter configured"):
            new_pipeline().metrics().build()

    @pytest.mark.parametrize("method", ["with_period", "with_timeout"])
    @pytest.mark.parametrize("value", [0, -1.0])
    def test_non_positive_durations_rejected(self, method: str, value: float) -> None:
        with pytest.raises(ConfigurationError, match="must be > 0"):
            getattr(new_pipeline().metrics(), method)(value)

    def test_options_survive_with_exporter(self) -> None:
        configured = (
            new_pipeline()
            .metrics()
            .with_period(5.0)
            .with_timeout(1.0)
            .with_delta_temporality()
            .with_exporter(InMemoryMetricExporter())
        )

        assert isinstance(configured, ConfiguredOtlpMetricPipeline)
        assert configured.period == 5.0
        assert configured.timeout == 1.0
        assert configured.temporality_selector(InstrumentKind.COUNTER) is Temporality.DELTA

    def test_build_exports_periodically(self, runtime: ThreadRuntime) -> None:
        exporter = InMemoryMetricExporter()
        provider = (
            new_pipeline().metrics(runtime).with_period(60.0).with_timeout(5.0).with_exporter(exporter).build()
        )
        try:
            provider.meter("tests.pipeline").create_counter("jobs").add(2)
            provider.force_flush(timeout=5.0)

            assert exporter.assert_metric_exported("jobs").data.data_points[0].value == 2
        finally:
            provider.shutdown()

    def test_unset_durations_read_from_environment(
        self, runtime: ThreadRuntime, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OTEL_METRIC_EXPORT_INTERVAL", "120000")

        with patch("otelpipe.pipeline.logger") as mock_logger:
            provider = new_pipeline().metrics(runtime).with_timeout(2.0).with_exporter(InMemoryMetricExporter()).build()
        try:
            call = mock_logger.info.call_args
            assert call.args[0] == "Metric pipeline installed"
            assert call.kwargs["interval"] == 120.0
            assert call.kwargs["timeout"] == 2.0
        finally:
            provider.shutdown()

    def test_selectors_applied_to_builder_exporters(self, runtime: ThreadRuntime) -> None:
        exporter_builder = (
            new_exporter().http("http/json").with_http_transport(Collector().transport).with_settings(OtlpSettings())
        )
        assert isinstance(exporter_builder, HttpExporterBuilder)

        provider = (
            new_pipeline()
            .metrics(runtime)
            .with_period(60.0)
            .with_timeout(5.0)
            .with_delta_temporality()
            .with_exporter(exporter_builder)
            .build()
        )
        try:
            (reader,) = provider.readers
            assert reader.temporality(InstrumentKind.COUNTER) is Temporality.DELTA
            assert reader.temporality(InstrumentKind.UP_DOWN_COUNTER) is Temporality.CUMULATIVE
        finally:
            provider.shutdown()
