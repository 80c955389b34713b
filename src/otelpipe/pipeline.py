# src/otelpipe/pipeline.py
"""Typestate builders wiring an OTLP exporter into a running provider.

    provider = (
        new_pipeline()
        .logging()
        .with_resource(Resource.create({"service.name": "checkout"}))
        .with_exporter(new_exporter().grpc().with_endpoint("http://collector:4317"))
        .install_batch()
    )

The builder moves through three states, each its own class:

    OtlpLogPipeline            no exporter configured
      .with_exporter()  ->  ConfiguredOtlpLogPipeline
      .install_batch()  ->  LoggerProvider (installed)

Only the configured class can produce a provider. The install/build
methods of the unconfigured class are typed NoReturn so a type checker
flags the call, and they raise ConfigurationError at runtime. Builders are
immutable: every with_*() call returns a new one.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, NoReturn, Self

import structlog

from otelpipe.contracts.config.runtime import BatchConfig, PeriodicReaderConfig
from otelpipe.contracts.enums import TransportProtocol
from otelpipe.core.config import load_settings
from otelpipe.errors import ConfigurationError
from otelpipe.exporters.otlp import GrpcExporterBuilder, HttpExporterBuilder, build_log_exporter, build_metrics_exporter
from otelpipe.logs.provider import LoggerProvider
from otelpipe.metrics.provider import MeterProvider
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
    delta_temporality,
)

if TYPE_CHECKING:
    from otelpipe.contracts.resource import Resource
    from otelpipe.exporters.otlp import ExporterBuilder
    from otelpipe.logs.protocols import LogExporter
    from otelpipe.logs.provider import LoggerProviderBuilder
    from otelpipe.metrics.protocols import MetricExporter
    from otelpipe.runtime import Runtime

logger = structlog.get_logger(__name__)


def new_pipeline() -> "OtlpPipeline":
    """Start building an OTLP pipeline."""
    return OtlpPipeline()


def new_exporter() -> "OtlpExporterPipeline":
    """Start building an OTLP exporter."""
    return OtlpExporterPipeline()


class OtlpPipeline:
    """Choose the signal the pipeline exports."""

    def logging(self) -> "OtlpLogPipeline":
        return OtlpLogPipeline()

    def metrics(self, runtime: "Runtime | None" = None) -> "OtlpMetricPipeline":
        return OtlpMetricPipeline(runtime=runtime)


class OtlpExporterPipeline:
    """Choose the transport variant of the exporter."""

    def grpc(self) -> GrpcExporterBuilder:
        return GrpcExporterBuilder()

    def http(self, protocol: TransportProtocol | str = TransportProtocol.HTTP_PROTOBUF) -> HttpExporterBuilder:
        return HttpExporterBuilder(protocol)


# =============================================================================
# Logs
# =============================================================================


@dataclass(frozen=True, kw_only=True, slots=True)
class _LogPipelineOptions:
    resource: "Resource | None" = None
    batch_config: BatchConfig | None = None

    def with_resource(self, resource: "Resource") -> Self:
        return replace(self, resource=resource)

    def with_batch_config(self, config: BatchConfig) -> Self:
        """Batch parameters; overrides OTEL_BLRP_* variables."""
        return replace(self, batch_config=config)


@dataclass(frozen=True, kw_only=True, slots=True)
class OtlpLogPipeline(_LogPipelineOptions):
    """Log pipeline without an exporter. Call with_exporter() next."""

    def with_exporter(self, exporter: "ExporterBuilder | LogExporter") -> "ConfiguredOtlpLogPipeline":
        return ConfiguredOtlpLogPipeline(resource=self.resource, batch_config=self.batch_config, exporter=exporter)

    def install_simple(self, runtime: "Runtime | None" = None) -> NoReturn:
        raise ConfigurationError("log_pipeline", "no exporter configured; call with_exporter() first")

    def install_batch(self, runtime: "Runtime | None" = None) -> NoReturn:
        raise ConfigurationError("log_pipeline", "no exporter configured; call with_exporter() first")


@dataclass(frozen=True, kw_only=True, slots=True)
class ConfiguredOtlpLogPipeline(_LogPipelineOptions):
    """Log pipeline with an exporter, ready to install."""

    exporter: "ExporterBuilder | LogExporter"

    def _build_exporter(self) -> "LogExporter":
        if isinstance(self.exporter, GrpcExporterBuilder | HttpExporterBuilder):
            return build_log_exporter(self.exporter)
        return self.exporter

    def _provider_builder(self, runtime: "Runtime | None") -> "LoggerProviderBuilder":
        builder = LoggerProvider.builder()
        if self.resource is not None:
            builder = builder.with_resource(self.resource)
        if runtime is not None:
            builder = builder.with_runtime(runtime)
        return builder

    def install_simple(self, runtime: "Runtime | None" = None) -> LoggerProvider:
        """Build a provider exporting every record synchronously."""
        provider = self._provider_builder(runtime).with_simple_exporter(self._build_exporter()).build()
        logger.info("Log pipeline installed", processor="simple")
        return provider

    def install_batch(self, runtime: "Runtime | None" = None) -> LoggerProvider:
        """Build a provider exporting through a BatchLogProcessor.

        The batch config set with with_batch_config() wins over OTEL_BLRP_*
        variables, which win over the built-in defaults.
        """
        config = self.batch_config
        if config is None:
            config = BatchConfig.from_settings(load_settings().batch)
        provider = self._provider_builder(runtime).with_batch_exporter(self._build_exporter(), config).build()
        logger.info(
            "Log pipeline installed",
            processor="batch",
            max_queue_size=config.max_queue_size,
            scheduled_delay=config.scheduled_delay,
            max_export_batch_size=config.max_export_batch_size,
        )
        return provider


# =============================================================================
# Metrics
# =============================================================================


@dataclass(frozen=True, kw_only=True, slots=True)
class _MetricPipelineOptions:
    runtime: "Runtime | None" = None
    resource: "Resource | None" = None
    period: float | None = None
    timeout: float | None = None
    temporality_selector: TemporalitySelector = cumulative_temporality
    aggregation_selector: AggregationSelector = default_aggregation

    def with_resource(self, resource: "Resource") -> Self:
        return replace(self, resource=resource)

    def with_period(self, period: float) -> Self:
        """Seconds between collections; overrides OTEL_METRIC_EXPORT_INTERVAL."""
        if period <= 0:
            raise ConfigurationError("metric_pipeline", f"period must be > 0, got {period}")
        return replace(self, period=period)

    def with_timeout(self, timeout: float) -> Self:
        """Deadline of one collect+export; overrides OTEL_METRIC_EXPORT_TIMEOUT."""
        if timeout <= 0:
            raise ConfigurationError("metric_pipeline", f"timeout must be > 0, got {timeout}")
        return replace(self, timeout=timeout)

    def with_temporality_selector(self, selector: TemporalitySelector) -> Self:
        return replace(self, temporality_selector=selector)

    def with_delta_temporality(self) -> Self:
        return replace(self, temporality_selector=delta_temporality)

    def with_aggregation_selector(self, selector: AggregationSelector) -> Self:
        return replace(self, aggregation_selector=selector)


@dataclass(frozen=True, kw_only=True, slots=True)
class OtlpMetricPipeline(_MetricPipelineOptions):
    """Metric pipeline without an exporter. Call with_exporter() next."""

    def with_exporter(self, exporter: "ExporterBuilder | MetricExporter") -> "ConfiguredOtlpMetricPipeline":
        return ConfiguredOtlpMetricPipeline(
            runtime=self.runtime,
            resource=self.resource,
            period=self.period,
            timeout=self.timeout,
            temporality_selector=self.temporality_selector,
            aggregation_selector=self.aggregation_selector,
            exporter=exporter,
        )

    def build(self) -> NoReturn:
        raise ConfigurationError("metric_pipeline", "no exporter configured; call with_exporter() first")


@dataclass(frozen=True, kw_only=True, slots=True)
class ConfiguredOtlpMetricPipeline(_MetricPipelineOptions):
    """Metric pipeline with an exporter, ready to build."""

    exporter: "ExporterBuilder | MetricExporter"

    def _build_exporter(self) -> "MetricExporter":
        if isinstance(self.exporter, GrpcExporterBuilder | HttpExporterBuilder):
            return build_metrics_exporter(self.exporter, self.temporality_selector, self.aggregation_selector)
        return self.exporter

    def build(self) -> MeterProvider:
        """Build a provider exporting through a PeriodicReader.

        Period and timeout set on the builder win over OTEL_METRIC_EXPORT_*
        variables, which win over the built-in defaults.
        """
        if self.period is None or self.timeout is None:
            reader_settings = load_settings().reader
            config = PeriodicReaderConfig(
                interval=self.period if self.period is not None else reader_settings.interval,
                timeout=self.timeout if self.timeout is not None else reader_settings.timeout,
            )
        else:
            config = PeriodicReaderConfig(interval=self.period, timeout=self.timeout)

        builder = MeterProvider.builder().with_periodic_exporter(self._build_exporter(), config)
        if self.resource is not None:
            builder = builder.with_resource(self.resource)
        if self.runtime is not None:
            builder = builder.with_runtime(self.runtime)
        provider = builder.build()
        logger.info("Metric pipeline installed", interval=config.interval, timeout=config.timeout)
        return provider
