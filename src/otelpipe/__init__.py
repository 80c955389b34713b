# src/otelpipe/__init__.py
"""otelpipe: batching and export pipelines for OpenTelemetry logs and metrics.

Producers hand records and measurements to a provider; background tasks on
a Runtime batch them and push them to an OTLP collector (gRPC or HTTP) or
another exporter. Producers never block on network I/O.

Quick start:
    from otelpipe import Resource, new_exporter, new_pipeline

    provider = (
        new_pipeline()
        .logging()
        .with_resource(Resource.create({"service.name": "checkout"}))
        .with_exporter(new_exporter().http())
        .install_batch()
    )
"""

__version__ = "0.1.0"

from otelpipe.contracts import (
    BatchConfig,
    Compression,
    InstrumentationScope,
    InstrumentKind,
    LogRecord,
    PeriodicReaderConfig,
    Resource,
    Severity,
    Temporality,
    TraceContext,
    TransportProtocol,
)
from otelpipe.core.config import OtlpSettings, load_settings
from otelpipe.core.logging import configure_logging
from otelpipe.errors import (
    ConfigurationError,
    ExportError,
    ExportTimeoutError,
    FlushTimeoutError,
    QueueFullError,
    ShutdownTimeoutError,
    TelemetryError,
)
from otelpipe.exporters import (
    ConsoleLogExporter,
    ConsoleMetricExporter,
    GrpcExporterBuilder,
    HttpExporterBuilder,
    OtlpLogExporter,
    OtlpMetricExporter,
)
from otelpipe.factory import create_exporter_builder, create_logger_provider, create_meter_provider
from otelpipe.logs import BatchLogProcessor, LoggerProvider, LoggingHandler, SimpleLogProcessor
from otelpipe.metrics import (
    ManualReader,
    MeterProvider,
    PeriodicReader,
    cumulative_temporality,
    default_aggregation,
    delta_temporality,
)
from otelpipe.pipeline import new_exporter, new_pipeline
from otelpipe.runtime import AsyncioRuntime, Runtime, ThreadRuntime

__all__ = [
    "AsyncioRuntime",
    "BatchConfig",
    "BatchLogProcessor",
    "Compression",
    "ConfigurationError",
    "ConsoleLogExporter",
    "ConsoleMetricExporter",
    "ExportError",
    "ExportTimeoutError",
    "FlushTimeoutError",
    "GrpcExporterBuilder",
    "HttpExporterBuilder",
    "InstrumentKind",
    "InstrumentationScope",
    "LogRecord",
    "LoggerProvider",
    "LoggingHandler",
    "ManualReader",
    "MeterProvider",
    "OtlpLogExporter",
    "OtlpMetricExporter",
    "OtlpSettings",
    "PeriodicReader",
    "PeriodicReaderConfig",
    "QueueFullError",
    "Resource",
    "Runtime",
    "Severity",
    "ShutdownTimeoutError",
    "SimpleLogProcessor",
    "Temporality",
    "TelemetryError",
    "ThreadRuntime",
    "TraceContext",
    "TransportProtocol",
    "__version__",
    "configure_logging",
    "create_exporter_builder",
    "create_logger_provider",
    "create_meter_provider",
    "cumulative_temporality",
    "default_aggregation",
    "delta_temporality",
    "load_settings",
    "new_exporter",
    "new_pipeline",
]
