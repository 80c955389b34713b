# src/otelpipe/exporters/__init__.py
"""Built-in exporters.

Available exporters:
- OtlpLogExporter / OtlpMetricExporter: Export to an OTLP collector over
  gRPC (``grpc`` extra) or HTTP (protobuf or JSON body)
- ConsoleLogExporter / ConsoleMetricExporter: Write to stdout/stderr for
  debugging

Usage:
    from otelpipe.exporters import GrpcExporterBuilder

    exporter = GrpcExporterBuilder().with_endpoint("http://collector:4317").build_log_exporter()

Plugin registration:
    Transports are registered by protocol name via the
    otelpipe_get_transports hook. BuiltinTransportsPlugin in this module
    registers grpc, http/protobuf and http/json.
"""

from otelpipe.contracts.enums import TransportProtocol
from otelpipe.exporters.console import ConsoleLogExporter, ConsoleMetricExporter
from otelpipe.exporters.hookspecs import TransportRegistration, hookimpl
from otelpipe.exporters.otlp import (
    ExportConfig,
    ExporterBuilder,
    GrpcExporterBuilder,
    HttpExporterBuilder,
    OtlpLogExporter,
    OtlpMetricExporter,
    build_log_exporter,
    build_metrics_exporter,
    resolve_export_config,
)


class BuiltinTransportsPlugin:
    """Plugin that registers the built-in OTLP transports."""

    @hookimpl
    def otelpipe_get_transports(self) -> list[TransportRegistration]:
        """Return built-in transport registrations."""
        return [
            TransportRegistration(TransportProtocol.GRPC.value, GrpcExporterBuilder),
            TransportRegistration(
                TransportProtocol.HTTP_PROTOBUF.value,
                lambda: HttpExporterBuilder(TransportProtocol.HTTP_PROTOBUF),
            ),
            TransportRegistration(
                TransportProtocol.HTTP_JSON.value,
                lambda: HttpExporterBuilder(TransportProtocol.HTTP_JSON),
            ),
        ]


__all__ = [
    "BuiltinTransportsPlugin",
    "ConsoleLogExporter",
    "ConsoleMetricExporter",
    "ExportConfig",
    "ExporterBuilder",
    "GrpcExporterBuilder",
    "HttpExporterBuilder",
    "OtlpLogExporter",
    "OtlpMetricExporter",
    "TransportRegistration",
    "build_log_exporter",
    "build_metrics_exporter",
    "resolve_export_config",
]
