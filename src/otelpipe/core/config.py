# src/otelpipe/core/config.py
"""
Configuration schema and loading for otelpipe.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

The environment surface follows the OpenTelemetry SDK conventions, so an
application configured for any other OpenTelemetry SDK behaves the same here:

    OTEL_EXPORTER_OTLP_ENDPOINT          generic collector endpoint
    OTEL_EXPORTER_OTLP_LOGS_ENDPOINT     logs-only override (used verbatim)
    OTEL_EXPORTER_OTLP_METRICS_TIMEOUT   metrics-only export timeout (ms)
    OTEL_BLRP_MAX_QUEUE_SIZE             batch log processor queue capacity
    OTEL_METRIC_EXPORT_INTERVAL          periodic reader interval (ms)
    ...

Durations arrive in milliseconds and are stored in seconds.
"""

from pathlib import Path
from typing import Any, Final
from urllib.parse import unquote

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from otelpipe.contracts.config.defaults import SETTINGS_DEFAULTS
from otelpipe.contracts.enums import Compression, TransportProtocol
from otelpipe.errors import ConfigurationError

logger = structlog.get_logger(__name__)

_BATCH: Final = SETTINGS_DEFAULTS["batch"]
_READER: Final = SETTINGS_DEFAULTS["reader"]

# Dynaconf strips the OTEL_ prefix; map the remainder onto (section, field).
_ENV_FIELDS: Final[dict[str, tuple[str, str]]] = {
    "EXPORTER_OTLP_ENDPOINT": ("exporter", "endpoint"),
    "EXPORTER_OTLP_TIMEOUT": ("exporter", "timeout"),
    "EXPORTER_OTLP_COMPRESSION": ("exporter", "compression"),
    "EXPORTER_OTLP_HEADERS": ("exporter", "headers"),
    "EXPORTER_OTLP_PROTOCOL": ("exporter", "protocol"),
    "EXPORTER_OTLP_LOGS_ENDPOINT": ("logs", "endpoint"),
    "EXPORTER_OTLP_LOGS_TIMEOUT": ("logs", "timeout"),
    "EXPORTER_OTLP_LOGS_COMPRESSION": ("logs", "compression"),
    "EXPORTER_OTLP_LOGS_HEADERS": ("logs", "headers"),
    "EXPORTER_OTLP_METRICS_ENDPOINT": ("metrics", "endpoint"),
    "EXPORTER_OTLP_METRICS_TIMEOUT": ("metrics", "timeout"),
    "EXPORTER_OTLP_METRICS_COMPRESSION": ("metrics", "compression"),
    "EXPORTER_OTLP_METRICS_HEADERS": ("metrics", "headers"),
    "BLRP_MAX_QUEUE_SIZE": ("batch", "max_queue_size"),
    "BLRP_SCHEDULE_DELAY": ("batch", "scheduled_delay"),
    "BLRP_MAX_EXPORT_BATCH_SIZE": ("batch", "max_export_batch_size"),
    "BLRP_EXPORT_TIMEOUT": ("batch", "max_export_timeout"),
    "METRIC_EXPORT_INTERVAL": ("reader", "interval"),
    "METRIC_EXPORT_TIMEOUT": ("reader", "timeout"),
}

_MILLISECOND_FIELDS: Final = frozenset(
    {
        "EXPORTER_OTLP_TIMEOUT",
        "EXPORTER_OTLP_LOGS_TIMEOUT",
        "EXPORTER_OTLP_METRICS_TIMEOUT",
        "BLRP_SCHEDULE_DELAY",
        "BLRP_EXPORT_TIMEOUT",
        "METRIC_EXPORT_INTERVAL",
        "METRIC_EXPORT_TIMEOUT",
    }
)


def parse_headers(raw: str) -> dict[str, str]:
    """Parse a ``k1=v1,k2=v2`` header list.

    Keys and values are URL-decoded and stripped. Malformed pairs are skipped
    with a warning rather than failing the whole variable.
    """
    headers: dict[str, str] = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        key, sep, value = pair.partition("=")
        key = unquote(key).strip()
        if not sep or not key:
            logger.warning("Ignoring malformed header pair", pair=pair)
            continue
        headers[key] = unquote(value).strip()
    return headers


class SignalExporterSettings(BaseModel):
    """Exporter overrides for a single signal (logs or metrics).

    Unset fields fall back to the generic ExporterSettings values.
    """

    model_config = {"frozen": True}

    endpoint: str | None = Field(default=None, description="Collector endpoint URL")
    timeout: float | None = Field(default=None, gt=0, description="Export timeout in seconds")
    compression: Compression | None = Field(default=None, description="Payload compression")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")

    @field_validator("compression", mode="before")
    @classmethod
    def _normalize_compression(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _parse_header_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_headers(value)
        return value


class ExporterSettings(SignalExporterSettings):
    """Generic exporter settings shared by every signal."""

    protocol: TransportProtocol = Field(
        default=TransportProtocol(SETTINGS_DEFAULTS["exporter"]["protocol"]),
        description="Transport protocol: grpc, http/protobuf or http/json",
    )

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class BatchSettings(BaseModel):
    """Batch log processor settings (OTEL_BLRP_*)."""

    model_config = {"frozen": True}

    max_queue_size: int = Field(default=int(_BATCH["max_queue_size"]), gt=0, description="Queue capacity")
    scheduled_delay: float = Field(default=float(_BATCH["scheduled_delay"]), gt=0, description="Delay between exports (s)")
    max_export_batch_size: int = Field(default=int(_BATCH["max_export_batch_size"]), gt=0, description="Records per export")
    max_export_timeout: float = Field(default=float(_BATCH["max_export_timeout"]), gt=0, description="Export deadline (s)")

    @model_validator(mode="after")
    def _batch_fits_queue(self) -> "BatchSettings":
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) must be <= max_queue_size ({self.max_queue_size})"
            )
        return self


class ReaderSettings(BaseModel):
    """Periodic metric reader settings (OTEL_METRIC_EXPORT_*)."""

    model_config = {"frozen": True}

    interval: float = Field(default=float(_READER["interval"]), gt=0, description="Collection period (s)")
    timeout: float = Field(default=float(_READER["timeout"]), gt=0, description="Export deadline (s)")


class OtlpSettings(BaseModel):
    """Top-level otelpipe configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    exporter: ExporterSettings = Field(default_factory=ExporterSettings)
    logs: SignalExporterSettings = Field(default_factory=SignalExporterSettings)
    metrics: SignalExporterSettings = Field(default_factory=SignalExporterSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    reader: ReaderSettings = Field(default_factory=ReaderSettings)


def _milliseconds_to_seconds(key: str, value: Any) -> float:
    try:
        return float(value) / 1000.0
    except (TypeError, ValueError):
        raise ConfigurationError(f"OTEL_{key}", f"expected a duration in milliseconds, got {value!r}") from None


def _nest_raw_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Convert flat Dynaconf keys into the nested OtlpSettings shape."""
    nested: dict[str, dict[str, Any]] = {}
    for key, (section, field_name) in _ENV_FIELDS.items():
        if key not in raw:
            continue
        value = raw[key]
        if value is None or value == "":
            continue
        if key in _MILLISECOND_FIELDS:
            value = _milliseconds_to_seconds(key, value)
        elif field_name in ("endpoint", "headers", "compression", "protocol"):
            value = str(value)
        nested.setdefault(section, {})[field_name] = value
    return nested


def load_settings(config_path: Path | None = None) -> OtlpSettings:
    """Load settings from environment variables and an optional YAML file.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (OTEL_*) - highest priority
    2. Config file (flat keys, e.g. ``exporter_otlp_endpoint``)
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        Validated OtlpSettings instance

    Raises:
        FileNotFoundError: If config_path is given but doesn't exist
        ConfigurationError: If a duration is not numeric
        ValidationError: If configuration fails Pydantic validation
    """
    from dynaconf import Dynaconf

    settings_files: list[str] = []
    if config_path is not None:
        # Explicit check for file existence (Dynaconf silently accepts missing files)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        settings_files.append(str(config_path))

    dynaconf_settings = Dynaconf(
        envvar_prefix="OTEL",
        settings_files=settings_files,
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
    )

    # Dynaconf returns uppercase keys
    raw_config = {k.upper(): v for k, v in dynaconf_settings.as_dict().items()}
    return OtlpSettings(**_nest_raw_config(raw_config))
