# src/otelpipe/factory.py
"""Factory functions for creating providers from settings.

This module provides the glue between configuration (OtlpSettings loaded
from OTEL_* variables) and running providers. It handles:
1. Discovering transports via pluggy hooks
2. Picking the transport named by OTEL_EXPORTER_OTLP_PROTOCOL
3. Building the exporter, processor/reader and provider

Usage:
    from otelpipe.factory import create_logger_provider

    provider = create_logger_provider()
    provider.logger("app").emit(LogRecord(body="started"))
    provider.shutdown()
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from otelpipe.contracts.config.runtime import BatchConfig, PeriodicReaderConfig
from otelpipe.contracts.enums import TransportProtocol
from otelpipe.core.config import OtlpSettings, load_settings
from otelpipe.errors import ConfigurationError
from otelpipe.exporters import BuiltinTransportsPlugin
from otelpipe.exporters.hookspecs import PROJECT_NAME, OtelpipeTransportSpec, TransportRegistration
from otelpipe.exporters.otlp import GrpcExporterBuilder, HttpExporterBuilder
from otelpipe.logs.provider import LoggerProvider
from otelpipe.metrics.provider import MeterProvider
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
)

if TYPE_CHECKING:
    from otelpipe.contracts.resource import Resource
    from otelpipe.exporters.otlp import ExporterBuilder
    from otelpipe.runtime import Runtime

logger = structlog.get_logger(__name__)


def _discover_transport_registry(
    transport_plugins: Iterable[Any] = (),
) -> dict[str, TransportRegistration]:
    """Discover transports via pluggy hooks.

    Registers built-in transports plus any additional plugin objects provided
    by the caller, then calls ``otelpipe_get_transports`` hooks to build the
    protocol->registration mapping.

    Args:
        transport_plugins: Optional additional plugin objects implementing
            ``otelpipe_get_transports``.

    Returns:
        Mapping of protocol name to registration.

    Raises:
        ConfigurationError: If plugin registration fails, a hook returns
            something other than registrations, or a protocol name is
            registered twice.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(OtelpipeTransportSpec)

    plugins_to_register: list[Any] = [BuiltinTransportsPlugin(), *list(transport_plugins)]
    for plugin in plugins_to_register:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            # PluginValidationError: hook spec mismatch (wrong method names, etc.)
            # ValueError: duplicate plugin object or plugin name already registered
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise ConfigurationError(
                "transport_plugins",
                f"Invalid transport plugin {type(plugin).__name__}: {e}",
            ) from e

    registry: dict[str, TransportRegistration] = {}
    for hook_impl in plugin_manager.hook.otelpipe_get_transports.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            registrations = hook_impl.plugin.otelpipe_get_transports()
        except Exception as e:
            raise ConfigurationError(
                "transport_plugins",
                f"Transport plugin {plugin_name} failed in otelpipe_get_transports: {e}",
            ) from e

        if registrations is None or type(registrations) in (str, bytes):
            raise ConfigurationError(
                "transport_plugins",
                f"otelpipe_get_transports in plugin {plugin_name} returned {type(registrations).__name__}; "
                "expected iterable of TransportRegistration",
            )

        for registration in registrations:
            if not isinstance(registration, TransportRegistration):
                raise ConfigurationError(
                    "transport_plugins",
                    f"Plugin {plugin_name} returned {registration!r}; expected TransportRegistration",
                )
            if registration.protocol in registry:
                raise ConfigurationError(
                    registration.protocol,
                    f"Duplicate transport protocol '{registration.protocol}' registered by {plugin_name}",
                )
            registry[registration.protocol] = registration

    return registry


def create_exporter_builder(
    protocol: TransportProtocol | str | None = None,
    *,
    settings: OtlpSettings | None = None,
    transport_plugins: Iterable[Any] = (),
) -> "ExporterBuilder":
    """Create the exporter builder for a protocol name.

    Args:
        protocol: Protocol name; OTEL_EXPORTER_OTLP_PROTOCOL (default grpc) when None
        settings: Settings to resolve against; loaded from the environment when None
        transport_plugins: Additional transport plugin objects

    Raises:
        ConfigurationError: If the protocol is unknown or its factory
            returns something other than an OTLP builder.
    """
    settings = settings if settings is not None else load_settings()
    name = str(protocol) if protocol is not None else str(settings.exporter.protocol)

    registry = _discover_transport_registry(transport_plugins)
    try:
        registration = registry[name]
    except KeyError:
        available = sorted(registry.keys())
        raise ConfigurationError(name, f"Unknown transport protocol. Available protocols: {available}") from None

    builder = registration.factory()
    if not isinstance(builder, GrpcExporterBuilder | HttpExporterBuilder):
        raise ConfigurationError(
            name,
            f"Transport factory returned {type(builder).__name__}; expected GrpcExporterBuilder or HttpExporterBuilder",
        )
    logger.debug("Transport selected", protocol=name, builder=type(builder).__name__)
    return builder.with_settings(settings)


def create_logger_provider(
    settings: OtlpSettings | None = None,
    *,
    protocol: TransportProtocol | str | None = None,
    resource: "Resource | None" = None,
    runtime: "Runtime | None" = None,
    transport_plugins: Iterable[Any] = (),
) -> LoggerProvider:
    """Build a LoggerProvider with a batch OTLP exporter, entirely from settings.

    ``protocol`` overrides OTEL_EXPORTER_OTLP_PROTOCOL and may name a
    transport contributed by one of ``transport_plugins``.
    """
    settings = settings if settings is not None else load_settings()
    exporter = create_exporter_builder(
        protocol, settings=settings, transport_plugins=transport_plugins
    ).build_log_exporter()

    builder = LoggerProvider.builder().with_batch_exporter(exporter, BatchConfig.from_settings(settings.batch))
    if resource is not None:
        builder = builder.with_resource(resource)
    if runtime is not None:
        builder = builder.with_runtime(runtime)
    return builder.build()


def create_meter_provider(
    settings: OtlpSettings | None = None,
    *,
    protocol: TransportProtocol | str | None = None,
    resource: "Resource | None" = None,
    runtime: "Runtime | None" = None,
    temporality_selector: TemporalitySelector = cumulative_temporality,
    aggregation_selector: AggregationSelector = default_aggregation,
    transport_plugins: Iterable[Any] = (),
) -> MeterProvider:
    """Build a MeterProvider with a periodic OTLP exporter, entirely from settings."""
    settings = settings if settings is not None else load_settings()
    exporter = create_exporter_builder(
        protocol, settings=settings, transport_plugins=transport_plugins
    ).build_metrics_exporter(temporality_selector, aggregation_selector)

    builder = MeterProvider.builder().with_periodic_exporter(exporter, PeriodicReaderConfig.from_settings(settings.reader))
    if resource is not None:
        builder = builder.with_resource(resource)
    if runtime is not None:
        builder = builder.with_runtime(runtime)
    return builder.build()
