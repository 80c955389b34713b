# src/otelpipe/metrics/aggregation.py
"""Aggregation variants and the aggregators that implement them.

An Aggregation is an immutable description ("sum this stream", "bucket it
with these boundaries"). An aggregator is the mutable state built from it
for one instrument in one collection pipeline.

Temporality handling lives in the aggregators:
- CUMULATIVE: state accumulates for the life of the stream
- DELTA: state resets after every collection and start time moves forward
"""

import threading
from abc import ABC, abstractmethod
from bisect import bisect_left
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from otelpipe.contracts.enums import InstrumentKind, Temporality
from otelpipe.metrics.data import (
    Gauge,
    Histogram,
    HistogramDataPoint,
    MetricData,
    NumberDataPoint,
    Sum,
)

DEFAULT_HISTOGRAM_BOUNDARIES: Final[tuple[float, ...]] = (
    0.0,
    5.0,
    10.0,
    25.0,
    50.0,
    75.0,
    100.0,
    250.0,
    500.0,
    750.0,
    1000.0,
    2500.0,
    5000.0,
    7500.0,
    10000.0,
)


@dataclass(frozen=True, slots=True)
class DropAggregation:
    """Discard every measurement of the stream."""


@dataclass(frozen=True, slots=True)
class DefaultAggregation:
    """Use the instrument kind's default aggregation."""


@dataclass(frozen=True, slots=True)
class SumAggregation:
    """Arithmetic sum of measurements."""


@dataclass(frozen=True, slots=True)
class LastValueAggregation:
    """Most recent measurement per attribute set."""


@dataclass(frozen=True, slots=True)
class ExplicitBucketHistogramAggregation:
    """Count measurements into fixed buckets.

    Attributes:
        boundaries: Strictly increasing bucket upper bounds (inclusive)
        record_min_max: Whether min and max are reported
    """

    boundaries: tuple[float, ...] = DEFAULT_HISTOGRAM_BOUNDARIES
    record_min_max: bool = True

    def __post_init__(self) -> None:
        bounds = tuple(float(b) for b in self.boundaries)
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:], strict=False)):
            raise ValueError(f"histogram boundaries must be strictly increasing, got {self.boundaries}")
        object.__setattr__(self, "boundaries", bounds)


Aggregation = (
    DropAggregation | DefaultAggregation | SumAggregation | LastValueAggregation | ExplicitBucketHistogramAggregation
)

_SUM_KINDS: Final = frozenset(
    {
        InstrumentKind.COUNTER,
        InstrumentKind.UP_DOWN_COUNTER,
        InstrumentKind.OBSERVABLE_COUNTER,
        InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER,
        InstrumentKind.HISTOGRAM,
    }
)
_HISTOGRAM_KINDS: Final = frozenset({InstrumentKind.COUNTER, InstrumentKind.HISTOGRAM})
_LAST_VALUE_KINDS: Final = frozenset({InstrumentKind.GAUGE, InstrumentKind.OBSERVABLE_GAUGE})

MONOTONIC_KINDS: Final = frozenset(
    {InstrumentKind.COUNTER, InstrumentKind.OBSERVABLE_COUNTER, InstrumentKind.HISTOGRAM}
)
OBSERVABLE_KINDS: Final = frozenset(
    {
        InstrumentKind.OBSERVABLE_COUNTER,
        InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER,
        InstrumentKind.OBSERVABLE_GAUGE,
    }
)


def is_compatible(aggregation: Aggregation, kind: InstrumentKind) -> bool:
    """Whether ``aggregation`` may be applied to instruments of ``kind``."""
    match aggregation:
        case DropAggregation() | DefaultAggregation():
            return True
        case SumAggregation():
            return kind in _SUM_KINDS
        case LastValueAggregation():
            return kind in _LAST_VALUE_KINDS
        case ExplicitBucketHistogramAggregation():
            return kind in _HISTOGRAM_KINDS


AttributesKey = tuple[tuple[str, Any], ...]


def attributes_key(attributes: Mapping[str, Any]) -> AttributesKey:
    """Hashable, order-independent identity of an attribute set."""
    return tuple(sorted((k, tuple(v) if isinstance(v, list) else v) for k, v in attributes.items()))


class Aggregator(ABC):
    """Mutable per-stream state. aggregate() may be called from any thread."""

    def __init__(self, temporality: Temporality, start_time_unix_nano: int) -> None:
        self._temporality = temporality
        self._start = start_time_unix_nano
        self._lock = threading.Lock()

    @property
    def temporality(self) -> Temporality:
        return self._temporality

    @abstractmethod
    def aggregate(self, value: int | float, attributes: Mapping[str, Any]) -> None: ...

    @abstractmethod
    def collect(self, now_unix_nano: int) -> MetricData | None:
        """Snapshot the state; None when there is nothing to report."""


class SumAggregator(Aggregator):
    """Sum of synchronous measurements per attribute set."""

    def __init__(self, temporality: Temporality, start_time_unix_nano: int, is_monotonic: bool) -> None:
        super().__init__(temporality, start_time_unix_nano)
        self._is_monotonic = is_monotonic
        self._values: dict[AttributesKey, tuple[Mapping[str, Any], int | float]] = {}

    def aggregate(self, value: int | float, attributes: Mapping[str, Any]) -> None:
        key = attributes_key(attributes)
        with self._lock:
            current = self._values.get(key)
            total = value if current is None else current[1] + value
            self._values[key] = (current[0] if current is not None else dict(attributes), total)

    def collect(self, now_unix_nano: int) -> Sum | None:
        with self._lock:
            if not self._values:
                return None
            points = [
                NumberDataPoint(attrs, self._start, now_unix_nano, total) for attrs, total in self._values.values()
            ]
            if self._temporality is Temporality.DELTA:
                self._values = {}
                self._start = now_unix_nano
        return Sum(tuple(points), self._temporality, self._is_monotonic)


class PrecomputedSumAggregator(Aggregator):
    """Sum for observable instruments, whose callbacks report running totals.

    Cumulative reports the observed totals as-is. Delta reports the change
    since the previous collection's observation of the same attribute set.
    """

    def __init__(self, temporality: Temporality, start_time_unix_nano: int, is_monotonic: bool) -> None:
        super().__init__(temporality, start_time_unix_nano)
        self._is_monotonic = is_monotonic
        self._observed: dict[AttributesKey, tuple[Mapping[str, Any], int | float]] = {}
        self._previous: dict[AttributesKey, int | float] = {}

    def aggregate(self, value: int | float, attributes: Mapping[str, Any]) -> None:
        key = attributes_key(attributes)
        with self._lock:
            self._observed[key] = (dict(attributes), value)

    def collect(self, now_unix_nano: int) -> Sum | None:
        with self._lock:
            observed, self._observed = self._observed, {}
            if not observed:
                return None
            start = self._start
            if self._temporality is Temporality.DELTA:
                points = [
                    NumberDataPoint(attrs, start, now_unix_nano, value - self._previous.get(key, 0))
                    for key, (attrs, value) in observed.items()
                ]
                self._previous = {key: value for key, (_, value) in observed.items()}
                self._start = now_unix_nano
            else:
                points = [NumberDataPoint(attrs, start, now_unix_nano, value) for attrs, value in observed.values()]
        return Sum(tuple(points), self._temporality, self._is_monotonic)


class LastValueAggregator(Aggregator):
    """Most recent value per attribute set, reported as a Gauge.

    Observable gauges and delta streams only report values recorded since
    the previous collection.
    """

    def __init__(self, temporality: Temporality, start_time_unix_nano: int, reset_on_collect: bool) -> None:
        super().__init__(temporality, start_time_unix_nano)
        self._reset = reset_on_collect or temporality is Temporality.DELTA
        self._values: dict[AttributesKey, tuple[Mapping[str, Any], int | float]] = {}

    def aggregate(self, value: int | float, attributes: Mapping[str, Any]) -> None:
        key = attributes_key(attributes)
        with self._lock:
            self._values[key] = (dict(attributes), value)

    def collect(self, now_unix_nano: int) -> Gauge | None:
        with self._lock:
            if not self._values:
                return None
            points = [NumberDataPoint(attrs, self._start, now_unix_nano, value) for attrs, value in self._values.values()]
            if self._reset:
                self._values = {}
                self._start = now_unix_nano
        return Gauge(tuple(points))


@dataclass(slots=True)
class _Buckets:
    counts: list[int]
    total: float = 0.0
    count: int = 0
    min: float = float("inf")
    max: float = float("-inf")


class HistogramAggregator(Aggregator):
    """Explicit-bucket histogram per attribute set."""

    def __init__(
        self,
        temporality: Temporality,
        start_time_unix_nano: int,
        boundaries: tuple[float, ...],
        record_min_max: bool,
    ) -> None:
        super().__init__(temporality, start_time_unix_nano)
        self._boundaries = boundaries
        self._record_min_max = record_min_max
        self._buckets: dict[AttributesKey, tuple[Mapping[str, Any], _Buckets]] = {}

    def aggregate(self, value: int | float, attributes: Mapping[str, Any]) -> None:
        key = attributes_key(attributes)
        index = bisect_left(self._boundaries, value)
        with self._lock:
            entry = self._buckets.get(key)
            if entry is None:
                entry = (dict(attributes), _Buckets([0] * (len(self._boundaries) + 1)))
                self._buckets[key] = entry
            buckets = entry[1]
            buckets.counts[index] += 1
            buckets.count += 1
            buckets.total += value
            buckets.min = min(buckets.min, value)
            buckets.max = max(buckets.max, value)

    def collect(self, now_unix_nano: int) -> Histogram | None:
        with self._lock:
            if not self._buckets:
                return None
            points = [
                HistogramDataPoint(
                    attributes=attrs,
                    start_time_unix_nano=self._start,
                    time_unix_nano=now_unix_nano,
                    count=buckets.count,
                    sum=buckets.total,
                    bucket_counts=tuple(buckets.counts),
                    explicit_bounds=self._boundaries,
                    min=buckets.min if self._record_min_max else None,
                    max=buckets.max if self._record_min_max else None,
                )
                for attrs, buckets in self._buckets.values()
            ]
            if self._temporality is Temporality.DELTA:
                self._buckets = {}
                self._start = now_unix_nano
        return Histogram(tuple(points), self._temporality)


def create_aggregator(
    aggregation: Aggregation,
    kind: InstrumentKind,
    temporality: Temporality,
    start_time_unix_nano: int,
) -> Aggregator | None:
    """Build the aggregator for a resolved (non-default) aggregation.

    Returns None for DropAggregation.
    """
    match aggregation:
        case DropAggregation():
            return None
        case SumAggregation():
            if kind in OBSERVABLE_KINDS:
                return PrecomputedSumAggregator(temporality, start_time_unix_nano, kind in MONOTONIC_KINDS)
            return SumAggregator(temporality, start_time_unix_nano, kind in MONOTONIC_KINDS)
        case LastValueAggregation():
            return LastValueAggregator(temporality, start_time_unix_nano, kind in OBSERVABLE_KINDS)
        case ExplicitBucketHistogramAggregation(boundaries=boundaries, record_min_max=record_min_max):
            return HistogramAggregator(temporality, start_time_unix_nano, boundaries, record_min_max)
        case DefaultAggregation():
            raise ValueError("DefaultAggregation must be resolved before creating an aggregator")
