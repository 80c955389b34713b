# src/otelpipe/metrics/selectors.py
"""Temporality and aggregation selection policies.

A selector is a pure, total function over InstrumentKind. Exporters carry
one of each; readers consult them when a collection pipeline creates the
aggregator for a new instrument. Any callable with the right signature can
be supplied instead of the built-ins.
"""

from collections.abc import Callable

from otelpipe.contracts.enums import InstrumentKind, Temporality
from otelpipe.metrics.aggregation import (
    Aggregation,
    ExplicitBucketHistogramAggregation,
    LastValueAggregation,
    SumAggregation,
)

TemporalitySelector = Callable[[InstrumentKind], Temporality]
AggregationSelector = Callable[[InstrumentKind], Aggregation]


def cumulative_temporality(kind: InstrumentKind) -> Temporality:
    """Report running totals for every instrument kind."""
    return Temporality.CUMULATIVE


def delta_temporality(kind: InstrumentKind) -> Temporality:
    """Report per-interval changes where that is meaningful.

    Up-down counters stay cumulative: their deltas cannot be summed back into
    a current value by a backend that missed an interval.
    """
    match kind:
        case (
            InstrumentKind.COUNTER
            | InstrumentKind.HISTOGRAM
            | InstrumentKind.OBSERVABLE_COUNTER
            | InstrumentKind.GAUGE
            | InstrumentKind.OBSERVABLE_GAUGE
        ):
            return Temporality.DELTA
        case InstrumentKind.UP_DOWN_COUNTER | InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER:
            return Temporality.CUMULATIVE


def default_aggregation(kind: InstrumentKind) -> Aggregation:
    """Sum for counters, last value for gauges, explicit buckets for histograms."""
    match kind:
        case (
            InstrumentKind.COUNTER
            | InstrumentKind.UP_DOWN_COUNTER
            | InstrumentKind.OBSERVABLE_COUNTER
            | InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER
        ):
            return SumAggregation()
        case InstrumentKind.GAUGE | InstrumentKind.OBSERVABLE_GAUGE:
            return LastValueAggregation()
        case InstrumentKind.HISTOGRAM:
            return ExplicitBucketHistogramAggregation()
