# src/otelpipe/exporters/hookspecs.py
"""pluggy hook specifications for OTLP transports.

Transports register themselves by protocol name (the value of
OTEL_EXPORTER_OTLP_PROTOCOL). The factory calls these hooks to build its
protocol -> builder registry.

A registration maps a protocol name to a zero-argument factory returning
one of the OTLP builder variants, typically preconfigured. This lets a
plugin add names such as ``http/json+gzip`` without widening the set of
transports the exporters know how to drive.

Usage (implementing a transport plugin):
    from otelpipe.exporters.hookspecs import TransportRegistration, hookimpl

    class GzipJsonPlugin:
        @hookimpl
        def otelpipe_get_transports(self):
            return [
                TransportRegistration(
                    "http/json+gzip",
                    lambda: HttpExporterBuilder("http/json").with_compression("gzip"),
                )
            ]
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from otelpipe.exporters.otlp import ExporterBuilder

PROJECT_NAME = "otelpipe"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for transport plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


@dataclass(frozen=True, slots=True)
class TransportRegistration:
    """A protocol name and the factory for its exporter builder."""

    protocol: str
    factory: Callable[[], "ExporterBuilder"]


class OtelpipeTransportSpec:
    """Hook specifications for transport plugins."""

    @hookspec
    def otelpipe_get_transports(self) -> list[TransportRegistration]:  # type: ignore[empty-body]
        """Return transport registrations.

        Called once per factory call to discover available transports.

        Returns:
            List of TransportRegistration, one per protocol name
        """
