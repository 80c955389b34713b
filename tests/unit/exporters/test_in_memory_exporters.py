# tests/unit/exporters/test_in_memory_exporters.py
"""Unit tests for the in-memory exporters shipped in otelpipe.testing."""

import asyncio

import pytest

from otelpipe.contracts.enums import Temporality
from otelpipe.contracts.logs import LogRecord
from otelpipe.contracts.resource import InstrumentationScope, Resource
from otelpipe.metrics.data import Metric, NumberDataPoint, ResourceMetrics, ScopeMetrics, Sum
from otelpipe.testing import InMemoryLogExporter, InMemoryMetricExporter


class TestInMemoryLogExporter:
    """Tests for captured log batches and assertion helpers."""

    def test_batches_and_records_kept_in_order(self) -> None:
        exporter = InMemoryLogExporter()
        scope = InstrumentationScope("a")

        asyncio.run(exporter.export([(LogRecord(body=1), scope), (LogRecord(body=2), scope)]))
        asyncio.run(exporter.export([(LogRecord(body=3), scope)]))

        assert [len(batch) for batch in exporter.batches] == [2, 1]
        assert [record.body for record in exporter.records] == [1, 2, 3]

    def test_assert_record_emitted_matches_all_filters(self) -> None:
        exporter = InMemoryLogExporter()
        scope = InstrumentationScope("a")
        asyncio.run(
            exporter.export([(LogRecord(body="x", target="one"), scope), (LogRecord(body="x", target="two"), scope)])
        )

        assert exporter.assert_record_emitted(body="x", target="two").target == "two"
        with pytest.raises(AssertionError, match="No record found"):
            exporter.assert_record_emitted(body="x", target="three")

    def test_assert_no_records(self) -> None:
        exporter = InMemoryLogExporter()
        exporter.assert_no_records()

        asyncio.run(exporter.export([(LogRecord(body="x"), InstrumentationScope("a"))]))

        with pytest.raises(AssertionError, match="1 were exported"):
            exporter.assert_no_records()

    def test_records_by_scope_and_clear(self) -> None:
        exporter = InMemoryLogExporter()
        asyncio.run(
            exporter.export(
                [(LogRecord(body=1), InstrumentationScope("a")), (LogRecord(body=2), InstrumentationScope("b"))]
            )
        )

        assert [r.body for r in exporter.get_records_for_scope("b")] == [2]
        exporter.clear()
        assert exporter.records == []

    def test_resource_and_shutdown_tracking(self) -> None:
        exporter = InMemoryLogExporter()
        resource = Resource({"service.name": "svc"})

        exporter.set_resource(resource)
        asyncio.run(exporter.shutdown())

        assert exporter.resource is resource
        assert exporter.shutdown_count == 1


class TestInMemoryMetricExporter:
    """Tests for captured metric snapshots."""

    @staticmethod
    def _snapshot(value: int) -> ResourceMetrics:
        metric = Metric("jobs", "", "", Sum((NumberDataPoint({}, 1, 2, value),), Temporality.CUMULATIVE, True))
        return ResourceMetrics(Resource.empty(), (ScopeMetrics(InstrumentationScope("a"), (metric,)),))

    def test_latest_metric_returned(self) -> None:
        exporter = InMemoryMetricExporter()

        asyncio.run(exporter.export(self._snapshot(1)))
        asyncio.run(exporter.export(self._snapshot(5)))

        assert exporter.export_count == 2
        assert len(exporter.get_metrics("jobs")) == 2
        assert exporter.assert_metric_exported("jobs").data.data_points[0].value == 5

    def test_missing_metric_raises(self) -> None:
        exporter = InMemoryMetricExporter()

        with pytest.raises(AssertionError, match="never exported"):
            exporter.assert_metric_exported("jobs")

    def test_clear(self) -> None:
        exporter = InMemoryMetricExporter()
        asyncio.run(exporter.export(self._snapshot(1)))

        exporter.clear()

        assert exporter.snapshots == []
