# src/otelpipe/contracts/__init__.py
"""Leaf data contracts shared by every otelpipe layer.

Nothing in this package imports from processors, readers or exporters, so
exporter plugins can depend on it without pulling in the runtime.
"""

from otelpipe.contracts.config import BatchConfig, PeriodicReaderConfig
from otelpipe.contracts.enums import Compression, InstrumentKind, Severity, Temporality, TransportProtocol
from otelpipe.contracts.logs import LogRecord, TraceContext
from otelpipe.contracts.resource import InstrumentationScope, Resource

__all__ = [
    "BatchConfig",
    "Compression",
    "InstrumentKind",
    "InstrumentationScope",
    "LogRecord",
    "PeriodicReaderConfig",
    "Resource",
    "Severity",
    "Temporality",
    "TraceContext",
    "TransportProtocol",
]
