# src/otelpipe/contracts/enums.py
"""Enumerations shared across the logs, metrics and exporter layers."""

from enum import IntEnum, StrEnum


class Severity(IntEnum):
    """Log severity numbers as defined by the OpenTelemetry log data model.

    Each named level spans four numbers (e.g. INFO..INFO4) so finer
    distinctions survive the trip to the collector.
    """

    TRACE = 1
    TRACE2 = 2
    TRACE3 = 3
    TRACE4 = 4
    DEBUG = 5
    DEBUG2 = 6
    DEBUG3 = 7
    DEBUG4 = 8
    INFO = 9
    INFO2 = 10
    INFO3 = 11
    INFO4 = 12
    WARN = 13
    WARN2 = 14
    WARN3 = 15
    WARN4 = 16
    ERROR = 17
    ERROR2 = 18
    ERROR3 = 19
    ERROR4 = 20
    FATAL = 21
    FATAL2 = 22
    FATAL3 = 23
    FATAL4 = 24

    @property
    def short_name(self) -> str:
        """Level name without the numeric suffix (``WARN3`` -> ``WARN``)."""
        return self.name.rstrip("234")


class InstrumentKind(StrEnum):
    """Kind of metric instrument.

    Values:
        COUNTER: Synchronous, monotonic additions
        UP_DOWN_COUNTER: Synchronous additions that may be negative
        HISTOGRAM: Synchronous value distribution
        GAUGE: Synchronous last-value recordings
        OBSERVABLE_COUNTER: Callback-reported monotonic totals
        OBSERVABLE_UP_DOWN_COUNTER: Callback-reported non-monotonic totals
        OBSERVABLE_GAUGE: Callback-reported current values
    """

    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    HISTOGRAM = "histogram"
    GAUGE = "gauge"
    OBSERVABLE_COUNTER = "observable_counter"
    OBSERVABLE_UP_DOWN_COUNTER = "observable_up_down_counter"
    OBSERVABLE_GAUGE = "observable_gauge"


class Temporality(StrEnum):
    """Whether a reported value covers the last interval or the whole run.

    Values:
        DELTA: Change since the previous collection
        CUMULATIVE: Running total since the stream started
    """

    DELTA = "delta"
    CUMULATIVE = "cumulative"


class Compression(StrEnum):
    """Payload compression applied by a transport."""

    NONE = "none"
    GZIP = "gzip"


class TransportProtocol(StrEnum):
    """OTLP transport protocol names, as used by OTEL_EXPORTER_OTLP_PROTOCOL."""

    GRPC = "grpc"
    HTTP_PROTOBUF = "http/protobuf"
    HTTP_JSON = "http/json"
