# src/otelpipe/exporters/http.py
"""OTLP/HTTP transport over httpx.

One POST per export to the signal endpoint (``.../v1/logs`` or
``.../v1/metrics``). The body is either the OTLP/JSON dict serialized as
JSON (``http/json``) or the protobuf request message (``http/protobuf``,
requires opentelemetry-proto).

The httpx.AsyncClient is created on first send so it binds to the
runtime's event loop, not the thread that built the exporter.
"""

import gzip
import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from otelpipe.contracts.enums import Compression, TransportProtocol
from otelpipe.errors import ConfigurationError, ExportError

if TYPE_CHECKING:
    from otelpipe.exporters.encoding import IdEncoding
    from otelpipe.exporters.otlp import ExportConfig, Signal

logger = structlog.get_logger(__name__)

# Keep collector error bodies out of our own logs beyond this length
_MAX_ERROR_BODY = 512


def _protobuf_request_type(signal: "Signal") -> type[Any]:
    """Import the generated request message for ``signal``.

    Raises:
        ConfigurationError: If opentelemetry-proto is not installed.
    """
    try:
        if signal == "logs":
            from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import ExportLogsServiceRequest

            return ExportLogsServiceRequest
        from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import ExportMetricsServiceRequest

        return ExportMetricsServiceRequest
    except ImportError as e:
        raise ConfigurationError(
            "otlp",
            f"http/protobuf requires opentelemetry-proto ({e.name} not installed); install otelpipe[grpc] "
            "or use protocol http/json",
        ) from e


class HttpClient:
    """Sends OTLP requests to a collector over HTTP.

    Non-2xx responses and transport errors raise ExportError. Retrying is
    left to the caller, which does not retry.
    """

    def __init__(
        self,
        config: "ExportConfig",
        signal: "Signal",
        protocol: TransportProtocol,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._signal = signal
        self._protocol = protocol
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_type = _protobuf_request_type(signal) if protocol is TransportProtocol.HTTP_PROTOBUF else None

    @property
    def name(self) -> str:
        return f"otlp-{self._protocol}"

    @property
    def id_encoding(self) -> "IdEncoding":
        return "base64" if self._request_type is not None else "hex"

    @property
    def config(self) -> "ExportConfig":
        return self._config

    def _serialize(self, payload: dict[str, Any]) -> tuple[bytes, str]:
        if self._request_type is not None:
            from google.protobuf.json_format import ParseDict

            message = ParseDict(payload, self._request_type())
            return message.SerializeToString(), "application/x-protobuf"
        return json.dumps(payload, separators=(",", ":")).encode("utf-8"), "application/json"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=self._config.timeout)
        return self._client

    async def send(self, payload: dict[str, Any]) -> None:
        body, content_type = self._serialize(payload)
        headers = {**self._config.headers, "Content-Type": content_type}
        if self._config.compression is Compression.GZIP:
            body = gzip.compress(body)
            headers["Content-Encoding"] = "gzip"

        try:
            response = await self._get_client().post(self._config.endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise ExportError(self.name, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise ExportError(
                self.name,
                f"collector returned HTTP {response.status_code}: {response.text[:_MAX_ERROR_BODY]}",
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
