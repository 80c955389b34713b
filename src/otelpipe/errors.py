# src/otelpipe/errors.py
"""Exception taxonomy for the export pipeline.

Errors split by where they surface:

- ConfigurationError: raised synchronously while building a pipeline or
  provider. Always fatal to the build, never raised from emit().
- ExportError: an exporter failed to deliver a batch. Caught by the
  background consumer and logged; only force_flush() re-raises it, because
  its caller explicitly asked for delivery.
- QueueFullError: raised by BoundedChannel.send_nowait(). Processors turn it
  into a drop count, it never reaches producers.
- FlushTimeoutError / ShutdownTimeoutError: a blocking lifecycle call hit its
  deadline.
"""


class TelemetryError(Exception):
    """Base class for all otelpipe errors."""


class ConfigurationError(TelemetryError):
    """Raised when a pipeline, provider, or exporter is misconfigured.

    Attributes:
        component: Name of the component that rejected its configuration
        message: Human-readable error description
    """

    def __init__(self, component: str, message: str) -> None:
        self.component = component
        self.message = message
        super().__init__(f"Invalid configuration for '{component}': {message}")


class ExportError(TelemetryError):
    """Raised when an exporter fails to deliver a batch.

    Attributes:
        exporter_name: Name of the exporter that failed
        message: Human-readable error description
    """

    def __init__(self, exporter_name: str, message: str) -> None:
        self.exporter_name = exporter_name
        self.message = message
        super().__init__(f"Exporter '{exporter_name}' failed: {message}")


class ExportTimeoutError(ExportError):
    """Raised when an export call does not finish within its deadline."""

    def __init__(self, exporter_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(exporter_name, f"export timed out after {timeout:g}s")


class QueueFullError(TelemetryError):
    """Raised when a bounded channel is at capacity."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Channel is full (capacity={capacity})")


class FlushTimeoutError(TelemetryError):
    """Raised when force_flush() does not complete before its deadline.

    The processor keeps running; records not yet exported stay queued.
    """

    def __init__(self, timeout: float | None) -> None:
        self.timeout = timeout
        super().__init__(f"Flush did not complete within {timeout}s")


class ShutdownTimeoutError(TelemetryError):
    """Raised once when shutdown() could not drain within its deadline.

    Attributes:
        timeout: The shutdown deadline in seconds
        discarded: Number of buffered records discarded
    """

    def __init__(self, timeout: float | None, discarded: int) -> None:
        self.timeout = timeout
        self.discarded = discarded
        super().__init__(f"Shutdown did not complete within {timeout}s ({discarded} buffered records discarded)")
