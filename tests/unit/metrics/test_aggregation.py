# tests/unit/metrics/test_aggregation.py
"""Unit tests for aggregations and aggregators."""

import pytest

from otelpipe.contracts.enums import InstrumentKind, Temporality
from otelpipe.metrics.aggregation import (
    DefaultAggregation,
    DropAggregation,
    ExplicitBucketHistogramAggregation,
    HistogramAggregator,
    LastValueAggregation,
    LastValueAggregator,
    PrecomputedSumAggregator,
    SumAggregation,
    SumAggregator,
    attributes_key,
    create_aggregator,
    is_compatible,
)
from otelpipe.metrics.data import Gauge, Histogram, Sum

START = 1_000
T1 = 2_000
T2 = 3_000

# =============================================================================
# Aggregation descriptions
# =============================================================================


class TestExplicitBucketHistogramAggregation:
    """Tests for boundary validation."""

    def test_boundaries_normalized_to_float(self) -> None:
        aggregation = ExplicitBucketHistogramAggregation(boundaries=(1, 2, 3))

        assert aggregation.boundaries == (1.0, 2.0, 3.0)
        assert all(isinstance(b, float) for b in aggregation.boundaries)

    @pytest.mark.parametrize("boundaries", [(1.0, 1.0), (5.0, 2.0), (0.0, 10.0, 5.0)])
    def test_non_increasing_boundaries_rejected(self, boundaries: tuple[float, ...]) -> None:
        with pytest.raises(ValueError, match="strictly increasing"):
            ExplicitBucketHistogramAggregation(boundaries=boundaries)

    def test_empty_boundaries_allowed(self) -> None:
        assert ExplicitBucketHistogramAggregation(boundaries=()).boundaries == ()


class TestCompatibility:
    """Tests for is_compatible()."""

    @pytest.mark.parametrize("kind", list(InstrumentKind))
    def test_drop_and_default_fit_everything(self, kind: InstrumentKind) -> None:
        assert is_compatible(DropAggregation(), kind)
        assert is_compatible(DefaultAggregation(), kind)

    @pytest.mark.parametrize(
        ("aggregation", "kind", "expected"),
        [
            (SumAggregation(), InstrumentKind.COUNTER, True),
            (SumAggregation(), InstrumentKind.HISTOGRAM, True),
            (SumAggregation(), InstrumentKind.GAUGE, False),
            (SumAggregation(), InstrumentKind.OBSERVABLE_GAUGE, False),
            (LastValueAggregation(), InstrumentKind.GAUGE, True),
            (LastValueAggregation(), InstrumentKind.COUNTER, False),
            (ExplicitBucketHistogramAggregation(), InstrumentKind.HISTOGRAM, True),
            (ExplicitBucketHistogramAggregation(), InstrumentKind.COUNTER, True),
            (ExplicitBucketHistogramAggregation(), InstrumentKind.UP_DOWN_COUNTER, False),
            (ExplicitBucketHistogramAggregation(), InstrumentKind.OBSERVABLE_COUNTER, False),
        ],
    )
    def test_matrix(self, aggregation: object, kind: InstrumentKind, expected: bool) -> None:
        assert is_compatible(aggregation, kind) is expected  # type: ignore[arg-type]


class TestCreateAggregator:
    """Tests for create_aggregator()."""

    def test_drop_creates_nothing(self) -> None:
        assert create_aggregator(DropAggregation(), InstrumentKind.COUNTER, Temporality.DELTA, START) is None

    def test_default_must_be_resolved_first(self) -> None:
        with pytest.raises(ValueError, match="resolved"):
            create_aggregator(DefaultAggregation(), InstrumentKind.COUNTER, Temporality.DELTA, START)

    def test_sum_on_observable_uses_precomputed(self) -> None:
        aggregator = create_aggregator(
            SumAggregation(), InstrumentKind.OBSERVABLE_COUNTER, Temporality.CUMULATIVE, START
        )

        assert isinstance(aggregator, PrecomputedSumAggregator)

    def test_sum_on_sync_instrument(self) -> None:
        aggregator = create_aggregator(SumAggregation(), InstrumentKind.COUNTER, Temporality.CUMULATIVE, START)

        assert isinstance(aggregator, SumAggregator)
        assert aggregator.temporality is Temporality.CUMULATIVE

    def test_histogram_and_last_value(self) -> None:
        histogram = create_aggregator(
            ExplicitBucketHistogramAggregation(), InstrumentKind.HISTOGRAM, Temporality.DELTA, START
        )
        last_value = create_aggregator(LastValueAggregation(), InstrumentKind.GAUGE, Temporality.DELTA, START)

        assert isinstance(histogram, HistogramAggregator)
        assert isinstance(last_value, LastValueAggregator)


# =============================================================================
# Aggregators
# =============================================================================


class TestAttributesKey:
    def test_order_independent(self) -> None:
        assert attributes_key({"a": 1, "b": 2}) == attributes_key({"b": 2, "a": 1})

    def test_list_values_hashable(self) -> None:
        key = attributes_key({"tags": ["x", "y"]})

        assert hash(key) is not None
        assert key == (("tags", ("x", "y")),)


class TestSumAggregator:
    """Tests for synchronous sums."""

    def test_sums_per_attribute_set(self) -> None:
        aggregator = SumAggregator(Temporality.CUMULATIVE, START, is_monotonic=True)
        aggregator.aggregate(1, {"route": "/a"})
        aggregator.aggregate(2, {"route": "/a"})
        aggregator.aggregate(5, {"route": "/b"})

        data = aggregator.collect(T1)

        assert isinstance(data, Sum)
        assert data.is_monotonic is True
        values = {p.attributes["route"]: p.value for p in data.data_points}
        assert values == {"/a": 3, "/b": 5}

    def test_cumulative_keeps_accumulating(self) -> None:
        aggregator = SumAggregator(Temporality.CUMULATIVE, START, is_monotonic=True)
        aggregator.aggregate(3, {})
        first = aggregator.collect(T1)
        aggregator.aggregate(2, {})
        second = aggregator.collect(T2)

        assert first is not None and second is not None
        assert [p.value for p in second.data_points] == [5]
        assert second.data_points[0].start_time_unix_nano == START
        assert second.data_points[0].time_unix_nano == T2

    def test_delta_resets_and_moves_start(self) -> None:
        aggregator = SumAggregator(Temporality.DELTA, START, is_monotonic=True)
        aggregator.aggregate(3, {})
        first = aggregator.collect(T1)
        aggregator.aggregate(2, {})
        second = aggregator.collect(T2)

        assert first is not None and second is not None
        assert [p.value for p in first.data_points] == [3]
        assert [p.value for p in second.data_points] == [2]
        assert second.data_points[0].start_time_unix_nano == T1

    def test_nothing_recorded_collects_none(self) -> None:
        aggregator = SumAggregator(Temporality.DELTA, START, is_monotonic=False)

        assert aggregator.collect(T1) is None

    def test_delta_after_collection_is_empty(self) -> None:
        aggregator = SumAggregator(Temporality.DELTA, START, is_monotonic=False)
        aggregator.aggregate(-4, {})
        aggregator.collect(T1)

        assert aggregator.collect(T2) is None


class TestPrecomputedSumAggregator:
    """Tests for callback-reported totals."""

    def test_cumulative_reports_observed_total(self) -> None:
        aggregator = PrecomputedSumAggregator(Temporality.CUMULATIVE, START, is_monotonic=True)
        aggregator.aggregate(10, {"cpu": "0"})
        aggregator.collect(T1)
        aggregator.aggregate(25, {"cpu": "0"})

        data = aggregator.collect(T2)

        assert data is not None
        assert [p.value for p in data.data_points] == [25]

    def test_delta_reports_difference(self) -> None:
        aggregator = PrecomputedSumAggregator(Temporality.DELTA, START, is_monotonic=True)
        aggregator.aggregate(10, {})
        first = aggregator.collect(T1)
        aggregator.aggregate(25, {})
        second = aggregator.collect(T2)

        assert first is not None and second is not None
        assert [p.value for p in first.data_points] == [10]
        assert [p.value for p in second.data_points] == [15]

    def test_unobserved_cycle_collects_none(self) -> None:
        aggregator = PrecomputedSumAggregator(Temporality.CUMULATIVE, START, is_monotonic=True)
        aggregator.aggregate(1, {})
        aggregator.collect(T1)

        assert aggregator.collect(T2) is None


class TestLastValueAggregator:
    """Tests for gauges."""

    def test_latest_value_wins(self) -> None:
        aggregator = LastValueAggregator(Temporality.CUMULATIVE, START, reset_on_collect=False)
        aggregator.aggregate(1.5, {})
        aggregator.aggregate(7.25, {})

        data = aggregator.collect(T1)

        assert isinstance(data, Gauge)
        assert [p.value for p in data.data_points] == [7.25]

    def test_cumulative_sync_gauge_repeats_value(self) -> None:
        aggregator = LastValueAggregator(Temporality.CUMULATIVE, START, reset_on_collect=False)
        aggregator.aggregate(4, {})
        aggregator.collect(T1)

        data = aggregator.collect(T2)

        assert data is not None
        assert [p.value for p in data.data_points] == [4]

    @pytest.mark.parametrize(
        ("temporality", "reset_on_collect"),
        [(Temporality.DELTA, False), (Temporality.CUMULATIVE, True)],
    )
    def test_reset_after_collection(self, temporality: Temporality, reset_on_collect: bool) -> None:
        aggregator = LastValueAggregator(temporality, START, reset_on_collect=reset_on_collect)
        aggregator.aggregate(4, {})
        aggregator.collect(T1)

        assert aggregator.collect(T2) is None


class TestHistogramAggregator:
    """Tests for explicit-bucket histograms."""

    def test_bucket_upper_bounds_are_inclusive(self) -> None:
        aggregator = HistogramAggregator(Temporality.CUMULATIVE, START, (0.0, 5.0, 10.0), record_min_max=True)
        for value in (0, 3, 5, 7, 100):
            aggregator.aggregate(value, {})

        data = aggregator.collect(T1)

        assert isinstance(data, Histogram)
        (point,) = data.data_points
        assert point.bucket_counts == (1, 2, 1, 1)
        assert point.explicit_bounds == (0.0, 5.0, 10.0)
        assert point.count == 5
        assert point.sum == 115
        assert point.min == 0
        assert point.max == 100

    def test_min_max_omitted_when_disabled(self) -> None:
        aggregator = HistogramAggregator(Temporality.CUMULATIVE, START, (1.0,), record_min_max=False)
        aggregator.aggregate(0.5, {})

        data = aggregator.collect(T1)

        assert data is not None
        assert data.data_points[0].min is None
        assert data.data_points[0].max is None

    def test_delta_resets_buckets(self) -> None:
        aggregator = HistogramAggregator(Temporality.DELTA, START, (1.0,), record_min_max=True)
        aggregator.aggregate(0.5, {})
        aggregator.collect(T1)
        aggregator.aggregate(2.0, {})

        data = aggregator.collect(T2)

        assert data is not None
        (point,) = data.data_points
        assert point.bucket_counts == (0, 1)
        assert point.start_time_unix_nano == T1
        assert data.temporality is Temporality.DELTA

    def test_bucket_counts_sum_to_count(self) -> None:
        aggregator = HistogramAggregator(Temporality.CUMULATIVE, START, (10.0, 20.0), record_min_max=True)
        for value in range(50):
            aggregator.aggregate(value, {"k": value % 2})

        data = aggregator.collect(T1)

        assert data is not None
        for point in data.data_points:
            assert sum(point.bucket_counts) == point.count == 25
