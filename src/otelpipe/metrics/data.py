# src/otelpipe/metrics/data.py
"""Metric snapshot data model.

A ResourceMetrics is built fresh for every collection and handed to the
exporter; nothing in the SDK keeps a reference to it afterwards. All types
are frozen so an exporter can hold on to one without copying.

Timestamps are Unix epoch nanoseconds.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from otelpipe.contracts.enums import Temporality
from otelpipe.contracts.resource import InstrumentationScope, Resource

Attributes = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class NumberDataPoint:
    """Value of a Sum or Gauge stream for one attribute set."""

    attributes: Attributes
    start_time_unix_nano: int
    time_unix_nano: int
    value: int | float


@dataclass(frozen=True, slots=True)
class HistogramDataPoint:
    """Distribution of a Histogram stream for one attribute set.

    bucket_counts has len(explicit_bounds) + 1 entries; bucket i counts
    values in (explicit_bounds[i-1], explicit_bounds[i]].
    """

    attributes: Attributes
    start_time_unix_nano: int
    time_unix_nano: int
    count: int
    sum: float
    bucket_counts: tuple[int, ...]
    explicit_bounds: tuple[float, ...]
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True, slots=True)
class Sum:
    data_points: Sequence[NumberDataPoint]
    temporality: Temporality
    is_monotonic: bool


@dataclass(frozen=True, slots=True)
class Gauge:
    data_points: Sequence[NumberDataPoint]


@dataclass(frozen=True, slots=True)
class Histogram:
    data_points: Sequence[HistogramDataPoint]
    temporality: Temporality


MetricData = Sum | Gauge | Histogram


@dataclass(frozen=True, slots=True)
class Metric:
    """One instrument's collected stream."""

    name: str
    description: str
    unit: str
    data: MetricData


@dataclass(frozen=True, slots=True)
class ScopeMetrics:
    scope: InstrumentationScope
    metrics: Sequence[Metric] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True, weakref_slot=True)
class ResourceMetrics:
    """Everything one collection produced, grouped by instrumentation scope."""

    resource: Resource
    scope_metrics: Sequence[ScopeMetrics] = field(default_factory=tuple)

    @property
    def data_point_count(self) -> int:
        return sum(len(metric.data.data_points) for scope in self.scope_metrics for metric in scope.metrics)

    def is_empty(self) -> bool:
        return not any(scope.metrics for scope in self.scope_metrics)
