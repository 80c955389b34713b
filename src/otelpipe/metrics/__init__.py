# src/otelpipe/metrics/__init__.py
"""Metrics signal: instruments, providers, readers and selection policies.

Snapshot data types (Sum, Gauge, Histogram data, ResourceMetrics, ...)
live in otelpipe.metrics.data; the names exported here are the
instruments.
"""

from otelpipe.metrics.aggregation import (
    DEFAULT_HISTOGRAM_BOUNDARIES,
    Aggregation,
    DefaultAggregation,
    DropAggregation,
    ExplicitBucketHistogramAggregation,
    LastValueAggregation,
    SumAggregation,
)
from otelpipe.metrics.data import ResourceMetrics
from otelpipe.metrics.instruments import (
    Counter,
    Gauge,
    Histogram,
    Observation,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from otelpipe.metrics.protocols import MetricExporter, MetricProducer, MetricReader
from otelpipe.metrics.provider import Meter, MeterProvider, MeterProviderBuilder
from otelpipe.metrics.reader import ManualReader, PeriodicReader
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
    delta_temporality,
)

__all__ = [
    "DEFAULT_HISTOGRAM_BOUNDARIES",
    "Aggregation",
    "AggregationSelector",
    "Counter",
    "DefaultAggregation",
    "DropAggregation",
    "ExplicitBucketHistogramAggregation",
    "Gauge",
    "Histogram",
    "LastValueAggregation",
    "ManualReader",
    "Meter",
    "MeterProvider",
    "MeterProviderBuilder",
    "MetricExporter",
    "MetricProducer",
    "MetricReader",
    "ObservableCounter",
    "ObservableGauge",
    "ObservableUpDownCounter",
    "Observation",
    "PeriodicReader",
    "ResourceMetrics",
    "SumAggregation",
    "TemporalitySelector",
    "UpDownCounter",
    "cumulative_temporality",
    "default_aggregation",
    "delta_temporality",
]
