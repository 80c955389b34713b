# src/otelpipe/contracts/logs.py
"""Log record data model.

A LogRecord is owned by the producer until it is handed to Logger.emit().
From then on processors may read it and stamp missing fields, but none of
them keeps a reference past the export attempt of the batch it sits in.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from otelpipe.contracts.enums import Severity


@dataclass(frozen=True, slots=True)
class TraceContext:
    """Trace correlation carried by a log record.

    Attributes:
        trace_id: 128-bit trace identifier
        span_id: 64-bit span identifier
        trace_flags: W3C trace flags (bit 0 = sampled)
    """

    trace_id: int
    span_id: int
    trace_flags: int = 0

    def __post_init__(self) -> None:
        if not 0 < self.trace_id < 2**128:
            raise ValueError(f"trace_id must be a non-zero 128-bit integer, got {self.trace_id}")
        if not 0 < self.span_id < 2**64:
            raise ValueError(f"span_id must be a non-zero 64-bit integer, got {self.span_id}")


@dataclass(slots=True)
class LogRecord:
    """A single log event.

    Attributes:
        body: Message body (string, number, bool, bytes, list or mapping)
        severity_number: Severity of the event
        severity_text: Original severity label from the source system
        timestamp: When the event occurred, if known
        observed_timestamp: When the SDK saw the event; stamped by emit() if unset
        target: Logical origin of the event (e.g. stdlib logger name)
        event_name: Name identifying the event type
        attributes: Additional key/value context; values may be sequences
        trace_context: Optional correlation with an active span
    """

    body: Any = None
    severity_number: Severity | None = None
    severity_text: str | None = None
    timestamp: datetime | None = None
    observed_timestamp: datetime | None = None
    target: str | None = None
    event_name: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    trace_context: TraceContext | None = None
