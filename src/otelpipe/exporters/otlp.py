# src/otelpipe/exporters/otlp.py
"""OTLP exporters and the transport builders that create them.

The OTLP exporter is a closed union over two transport variants:

    ExporterBuilder = GrpcExporterBuilder | HttpExporterBuilder

A builder collects explicit endpoint / timeout / compression / headers
overrides. build_log_exporter() and build_metrics_exporter() resolve them
against the OTEL_EXPORTER_OTLP_* settings once, pick the transport client
for the variant, and return an exporter bound to that client. Nothing is
resolved again per export.

Precedence for every setting:
    explicit builder call > signal-specific variable > generic variable > default

A variant whose transport library is not installed fails at build time with
ConfigurationError, never at first export.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal, Protocol, Self
from urllib.parse import urlparse

import structlog

from otelpipe.contracts.config.defaults import SETTINGS_DEFAULTS
from otelpipe.contracts.enums import Compression, TransportProtocol
from otelpipe.contracts.resource import Resource
from otelpipe.errors import ConfigurationError, ExportError
from otelpipe.exporters.encoding import IdEncoding, encode_logs, encode_metrics
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
)

if TYPE_CHECKING:
    import httpx

    from otelpipe.contracts.enums import InstrumentKind, Severity, Temporality
    from otelpipe.core.config import OtlpSettings
    from otelpipe.logs.protocols import LogBatch
    from otelpipe.metrics.aggregation import Aggregation
    from otelpipe.metrics.data import ResourceMetrics

logger = structlog.get_logger(__name__)

Signal = Literal["logs", "metrics"]

_EXPORTER_DEFAULTS = SETTINGS_DEFAULTS["exporter"]


def validate_endpoint(endpoint: str) -> str:
    """Return ``endpoint`` if it is an absolute http(s) URL.

    Raises:
        ConfigurationError: If the scheme is not http/https or the host is missing.
    """
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigurationError("otlp", f"invalid endpoint {endpoint!r}: expected http(s)://host[:port][/path]")
    return endpoint


@dataclass(frozen=True, slots=True)
class ExportConfig:
    """Resolved transport configuration for one signal.

    Attributes:
        endpoint: Full collector URL (signal path included for HTTP)
        timeout: Per-request deadline in seconds
        compression: Payload compression
        headers: Extra request headers / gRPC metadata
    """

    endpoint: str
    timeout: float = float(_EXPORTER_DEFAULTS["timeout"])
    compression: Compression = Compression.NONE
    headers: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        validate_endpoint(self.endpoint)
        if self.timeout <= 0:
            raise ConfigurationError("otlp", f"timeout must be > 0, got {self.timeout}")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_export_config(
    protocol: TransportProtocol,
    signal: Signal,
    settings: "OtlpSettings",
    *,
    endpoint: str | None = None,
    timeout: float | None = None,
    compression: Compression | None = None,
    headers: Mapping[str, str] | None = None,
) -> ExportConfig:
    """Resolve one signal's ExportConfig from explicit values and settings.

    For HTTP, ``/v1/<signal>`` is appended only when the endpoint came from
    the generic variable or the default; explicit and signal-specific
    endpoints are used verbatim.
    """
    generic = settings.exporter
    specific = settings.logs if signal == "logs" else settings.metrics

    resolved_endpoint = _first(endpoint, specific.endpoint)
    if resolved_endpoint is None:
        if protocol is TransportProtocol.GRPC:
            resolved_endpoint = generic.endpoint or str(_EXPORTER_DEFAULTS["grpc_endpoint"])
        else:
            base = generic.endpoint or str(_EXPORTER_DEFAULTS["http_endpoint"])
            resolved_endpoint = f"{base.rstrip('/')}/v1/{signal}"

    resolved_headers = _first(headers, specific.headers or None, generic.headers or None) or {}

    return ExportConfig(
        endpoint=resolved_endpoint,
        timeout=_first(timeout, specific.timeout, generic.timeout, float(_EXPORTER_DEFAULTS["timeout"])),
        compression=_first(compression, specific.compression, generic.compression, Compression.NONE),
        headers=resolved_headers,
    )


class TransportClient(Protocol):
    """What OTLP exporters need from a transport: send one request dict."""

    @property
    def name(self) -> str: ...

    @property
    def id_encoding(self) -> IdEncoding: ...

    async def send(self, payload: dict[str, Any]) -> None:
        """Deliver one encoded request.

        Raises:
            ExportError: If the collector did not accept the request
        """
        ...

    async def close(self) -> None: ...


class OtlpLogExporter:
    """LogExporter that encodes batches as OTLP and sends them over a transport."""

    def __init__(self, client: TransportClient) -> None:
        self._client = client
        self._resource = Resource.empty()
        self._is_shutdown = False

    @property
    def name(self) -> str:
        return self._client.name

    def set_resource(self, resource: Resource) -> None:
        self._resource = resource

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        return not self._is_shutdown

    async def export(self, batch: "LogBatch") -> None:
        if self._is_shutdown:
            raise ExportError(self.name, "exporter is shut down")
        payload = encode_logs(batch, self._resource, id_encoding=self._client.id_encoding)
        await self._client.send(payload)

    async def shutdown(self) -> None:
        if self._is_shutdown:
            return
        self._is_shutdown = True
        await self._client.close()


class OtlpMetricExporter:
    """MetricExporter that encodes snapshots as OTLP and sends them over a transport."""

    def __init__(
        self,
        client: TransportClient,
        temporality_selector: TemporalitySelector = cumulative_temporality,
        aggregation_selector: AggregationSelector = default_aggregation,
    ) -> None:
        self._client = client
        self._temporality_selector = temporality_selector
        self._aggregation_selector = aggregation_selector
        self._is_shutdown = False

    @property
    def name(self) -> str:
        return self._client.name

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        return self._temporality_selector(kind)

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        return self._aggregation_selector(kind)

    async def export(self, metrics: "ResourceMetrics") -> None:
        if self._is_shutdown:
            raise ExportError(self.name, "exporter is shut down")
        await self._client.send(encode_metrics(metrics))

    async def force_flush(self) -> None:
        """No-op: every export is sent before export() returns."""

    async def shutdown(self) -> None:
        if self._is_shutdown:
            return
        self._is_shutdown = True
        await self._client.close()


class _OtlpBuilder:
    """Overrides shared by both transport variants."""

    def __init__(self) -> None:
        self._endpoint: str | None = None
        self._timeout: float | None = None
        self._compression: Compression | None = None
        self._headers: dict[str, str] | None = None
        self._settings: OtlpSettings | None = None

    @property
    def protocol(self) -> TransportProtocol:
        raise NotImplementedError

    def with_endpoint(self, endpoint: str) -> Self:
        self._endpoint = validate_endpoint(endpoint)
        return self

    def with_timeout(self, timeout: float) -> Self:
        if timeout <= 0:
            raise ConfigurationError("otlp", f"timeout must be > 0, got {timeout}")
        self._timeout = timeout
        return self

    def with_compression(self, compression: Compression | str) -> Self:
        try:
            self._compression = Compression(compression)
        except ValueError:
            raise ConfigurationError("otlp", f"unsupported compression {compression!r}") from None
        return self

    def with_headers(self, headers: Mapping[str, str]) -> Self:
        self._headers = dict(headers)
        return self

    def with_settings(self, settings: "OtlpSettings") -> Self:
        """Resolve against these settings instead of loading the environment."""
        self._settings = settings
        return self

    def export_config(self, signal: Signal) -> ExportConfig:
        settings = self._settings
        if settings is None:
            from otelpipe.core.config import load_settings

            settings = load_settings()
        return resolve_export_config(
            self.protocol,
            signal,
            settings,
            endpoint=self._endpoint,
            timeout=self._timeout,
            compression=self._compression,
            headers=self._headers,
        )

    def build_log_exporter(self) -> OtlpLogExporter:
        return build_log_exporter(self)  # type: ignore[arg-type]

    def build_metrics_exporter(
        self,
        temporality_selector: TemporalitySelector = cumulative_temporality,
        aggregation_selector: AggregationSelector = default_aggregation,
    ) -> OtlpMetricExporter:
        return build_metrics_exporter(self, temporality_selector, aggregation_selector)  # type: ignore[arg-type]


class GrpcExporterBuilder(_OtlpBuilder):
    """Builds OTLP exporters over gRPC (requires the ``grpc`` extra)."""

    @property
    def protocol(self) -> TransportProtocol:
        return TransportProtocol.GRPC


class HttpExporterBuilder(_OtlpBuilder):
    """Builds OTLP exporters over HTTP with a protobuf or JSON body."""

    def __init__(self, protocol: TransportProtocol | str = TransportProtocol.HTTP_PROTOBUF) -> None:
        super().__init__()
        try:
            resolved = TransportProtocol(protocol)
        except ValueError:
            raise ConfigurationError("otlp", f"unknown HTTP protocol {protocol!r}") from None
        if resolved is TransportProtocol.GRPC:
            raise ConfigurationError("otlp", "HttpExporterBuilder does not speak grpc; use GrpcExporterBuilder")
        self._protocol = resolved
        self._transport: httpx.AsyncBaseTransport | None = None

    @property
    def protocol(self) -> TransportProtocol:
        return self._protocol

    @property
    def transport(self) -> "httpx.AsyncBaseTransport | None":
        return self._transport

    def with_protocol(self, protocol: TransportProtocol | str) -> Self:
        return self.__class__(protocol)._copy_from(self)

    def with_http_transport(self, transport: "httpx.AsyncBaseTransport") -> Self:
        """Send requests through a custom httpx transport (proxies, tests)."""
        self._transport = transport
        return self

    def _copy_from(self, other: "HttpExporterBuilder") -> Self:
        self._endpoint = other._endpoint
        self._timeout = other._timeout
        self._compression = other._compression
        self._headers = other._headers
        self._settings = other._settings
        self._transport = other._transport
        return self


ExporterBuilder = GrpcExporterBuilder | HttpExporterBuilder


def _make_client(builder: ExporterBuilder, signal: Signal) -> TransportClient:
    """Pick the transport client for the builder's variant."""
    config = builder.export_config(signal)
    match builder:
        case GrpcExporterBuilder():
            try:
                from otelpipe.exporters.grpc import GrpcClient
            except ImportError as e:
                raise ConfigurationError(
                    "otlp",
                    f"gRPC transport is not available ({e.name} not installed); install otelpipe[grpc]",
                ) from e
            client: TransportClient = GrpcClient(config, signal)
        case HttpExporterBuilder():
            from otelpipe.exporters.http import HttpClient

            client = HttpClient(config, signal, builder.protocol, transport=builder.transport)
        case _:
            raise ConfigurationError("otlp", f"unsupported exporter builder {type(builder).__name__}")

    logger.debug(
        "OTLP transport resolved",
        signal=signal,
        protocol=str(builder.protocol),
        endpoint=config.endpoint,
        compression=str(config.compression),
    )
    return client


def build_log_exporter(builder: ExporterBuilder) -> OtlpLogExporter:
    """Resolve the builder into a log exporter.

    Raises:
        ConfigurationError: If the settings are invalid or the transport is unavailable.
    """
    return OtlpLogExporter(_make_client(builder, "logs"))


def build_metrics_exporter(
    builder: ExporterBuilder,
    temporality_selector: TemporalitySelector = cumulative_temporality,
    aggregation_selector: AggregationSelector = default_aggregation,
) -> OtlpMetricExporter:
    """Resolve the builder into a metric exporter with the given selectors.

    Raises:
        ConfigurationError: If the settings are invalid or the transport is unavailable.
    """
    return OtlpMetricExporter(_make_client(builder, "metrics"), temporality_selector, aggregation_selector)
