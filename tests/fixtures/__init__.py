# tests/fixtures/__init__.py
"""Shared test doubles and helpers for otelpipe tests."""

from tests.fixtures.collector import Collector
from tests.fixtures.exporters import (
    BlockingLogExporter,
    FailingLogExporter,
    FailingMetricExporter,
    SlowMetricExporter,
    WeakRefMetricExporter,
)
from tests.fixtures.runtime import loop_in_thread, stalled_runtime, wait_until

__all__ = [
    "BlockingLogExporter",
    "Collector",
    "FailingLogExporter",
    "FailingMetricExporter",
    "SlowMetricExporter",
    "WeakRefMetricExporter",
    "loop_in_thread",
    "stalled_runtime",
    "wait_until",
]
