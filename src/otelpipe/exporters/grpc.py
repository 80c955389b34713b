# src/otelpipe/exporters/grpc.py
"""OTLP/gRPC transport over grpc.aio.

Importing this module requires grpcio and opentelemetry-proto (the
``grpc`` extra). otlp.py imports it only when a gRPC exporter is built,
turning a missing dependency into a ConfigurationError at build time.

The channel is opened on first send so it binds to the runtime's event
loop. http:// endpoints use an insecure channel, https:// a TLS channel
with the system root certificates.
"""

from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import grpc
import structlog
from google.protobuf.json_format import ParseDict
from opentelemetry.proto.collector.logs.v1 import logs_service_pb2, logs_service_pb2_grpc
from opentelemetry.proto.collector.metrics.v1 import metrics_service_pb2, metrics_service_pb2_grpc

from otelpipe.contracts.enums import Compression
from otelpipe.errors import ExportError

if TYPE_CHECKING:
    from otelpipe.exporters.encoding import IdEncoding
    from otelpipe.exporters.otlp import ExportConfig, Signal

logger = structlog.get_logger(__name__)


def _target(endpoint: str) -> str:
    """host:port for grpc from an http(s) URL (port defaults to 4317)."""
    parsed = urlparse(endpoint)
    return f"{parsed.hostname}:{parsed.port or 4317}"


class GrpcClient:
    """Sends OTLP requests to a collector's gRPC service."""

    def __init__(self, config: "ExportConfig", signal: "Signal") -> None:
        self._config = config
        self._signal = signal
        self._secure = urlparse(config.endpoint).scheme == "https"
        self._target = _target(config.endpoint)
        # gRPC metadata keys must be lowercase
        self._metadata = tuple((key.lower(), value) for key, value in config.headers.items())
        self._compression = (
            grpc.Compression.Gzip if config.compression is Compression.GZIP else grpc.Compression.NoCompression
        )
        self._channel: grpc.aio.Channel | None = None
        self._stub: Any = None

    @property
    def name(self) -> str:
        return "otlp-grpc"

    @property
    def id_encoding(self) -> "IdEncoding":
        return "base64"

    @property
    def target(self) -> str:
        return self._target

    def _get_stub(self) -> Any:
        if self._stub is None:
            if self._secure:
                self._channel = grpc.aio.secure_channel(
                    self._target, grpc.ssl_channel_credentials(), compression=self._compression
                )
            else:
                self._channel = grpc.aio.insecure_channel(self._target, compression=self._compression)
            if self._signal == "logs":
                self._stub = logs_service_pb2_grpc.LogsServiceStub(self._channel)
            else:
                self._stub = metrics_service_pb2_grpc.MetricsServiceStub(self._channel)
        return self._stub

    def _request(self, payload: dict[str, Any]) -> Any:
        if self._signal == "logs":
            return ParseDict(payload, logs_service_pb2.ExportLogsServiceRequest())
        return ParseDict(payload, metrics_service_pb2.ExportMetricsServiceRequest())

    async def send(self, payload: dict[str, Any]) -> None:
        request = self._request(payload)
        try:
            response = await self._get_stub().Export(
                request,
                timeout=self._config.timeout,
                metadata=self._metadata or None,
            )
        except grpc.aio.AioRpcError as e:
            raise ExportError(self.name, f"gRPC {e.code().name}: {e.details()}") from e

        partial = response.partial_success
        rejected = partial.rejected_log_records if self._signal == "logs" else partial.rejected_data_points
        if rejected:
            logger.warning(
                "Collector rejected part of the export",
                exporter=self.name,
                signal=self._signal,
                rejected=rejected,
                message=partial.error_message,
            )

    async def close(self) -> None:
        if self._channel is not None:
            await self._channel.close()
            self._channel = None
            self._stub = None
