# src/otelpipe/contracts/config/defaults.py
"""Default value registries for runtime configuration.

Two categories of defaults:

1. INTERNAL_DEFAULTS: Values hardcoded in runtime code, NOT exposed in
   settings or environment variables. Collected here so they are visible in
   one place instead of buried in the classes that use them.

2. SETTINGS_DEFAULTS: Defaults for values that CAN be overridden through
   OTEL_* environment variables or explicit builder calls. These mirror the
   OpenTelemetry SDK environment-variable specification.
"""

from typing import Final

# =============================================================================
# INTERNAL DEFAULTS - Values hardcoded in runtime, NOT in settings
# =============================================================================

INTERNAL_DEFAULTS: Final[dict[str, dict[str, int | float | str]]] = {
    "processor": {
        # Log a drop summary every N dropped records instead of every drop
        "drop_log_interval": 100,
        # Upper bound for shutdown() when the caller passes no timeout
        "shutdown_timeout": 5.0,
    },
    "reader": {
        # Pending ticks beyond this are coalesced into the one already queued
        "tick_capacity": 1,
        "shutdown_timeout": 5.0,
    },
    "runtime": {
        # How long ThreadRuntime waits for its loop thread to come up / stop
        "startup_timeout": 5.0,
        "join_timeout": 5.0,
        "thread_name": "otelpipe-runtime",
    },
}


# =============================================================================
# SETTINGS DEFAULTS - Overridable through OTEL_* variables
# =============================================================================

SETTINGS_DEFAULTS: Final[dict[str, dict[str, int | float | str]]] = {
    "batch": {
        "max_queue_size": 2048,
        "scheduled_delay": 1.0,
        "max_export_batch_size": 512,
        "max_export_timeout": 30.0,
    },
    "reader": {
        "interval": 60.0,
        "timeout": 30.0,
    },
    "exporter": {
        "timeout": 10.0,
        "grpc_endpoint": "http://localhost:4317",
        "http_endpoint": "http://localhost:4318",
        "protocol": "grpc",
    },
}


def get_internal_default(subsystem: str, field: str) -> int | float | str:
    """Get an internal default value.

    Args:
        subsystem: The subsystem name (e.g., "processor", "runtime")
        field: The field name within the subsystem

    Raises:
        KeyError: If subsystem or field not found
    """
    return INTERNAL_DEFAULTS[subsystem][field]
