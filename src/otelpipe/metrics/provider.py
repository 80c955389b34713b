# src/otelpipe/metrics/provider.py
"""MeterProvider, its builder, Meter, and the per-reader collection pipeline.

Each reader gets its own _MetricsPipeline holding one aggregator per
instrument, created with that reader's temporality and aggregation. A
synchronous instrument records into the aggregators of every pipeline, so
two readers with different temporalities see consistent data.
"""

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self, TypeVar

import structlog

from otelpipe.contracts.enums import InstrumentKind
from otelpipe.contracts.resource import InstrumentationScope, Resource
from otelpipe.metrics.aggregation import Aggregator, DefaultAggregation, create_aggregator, is_compatible
from otelpipe.metrics.data import Metric, ResourceMetrics, ScopeMetrics
from otelpipe.metrics.instruments import (
    Callback,
    Counter,
    Gauge,
    Histogram,
    InstrumentDescriptor,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
    _ObservableInstrument,
    _SyncInstrument,
    validate_instrument_name,
)
from otelpipe.metrics.reader import PeriodicReader
from otelpipe.metrics.selectors import default_aggregation
from otelpipe.runtime import ThreadRuntime

if TYPE_CHECKING:
    from otelpipe.contracts.config.runtime import PeriodicReaderConfig
    from otelpipe.metrics.protocols import MetricExporter, MetricReader
    from otelpipe.runtime import Runtime

logger = structlog.get_logger(__name__)

_SyncT = TypeVar("_SyncT", bound=_SyncInstrument)
_ObservableT = TypeVar("_ObservableT", bound=_ObservableInstrument)


@dataclass(slots=True)
class _Stream:
    descriptor: InstrumentDescriptor
    aggregator: Aggregator | None


class _MetricsPipeline:
    """Instrument state for one reader. Implements MetricProducer."""

    def __init__(self, reader: "MetricReader", resource: Resource) -> None:
        self._reader = reader
        self._resource = resource
        self._lock = threading.Lock()
        self._streams: dict[InstrumentationScope, dict[str, _Stream]] = {}
        self._observables: list[tuple[_ObservableInstrument, Aggregator]] = []

    def register(self, scope: InstrumentationScope, descriptor: InstrumentDescriptor) -> Aggregator | None:
        """Return the aggregator for an instrument, creating it on first registration.

        Returns None when the reader's aggregation drops the stream.
        """
        key = descriptor.name.lower()
        with self._lock:
            streams = self._streams.setdefault(scope, {})
            existing = streams.get(key)
            if existing is not None:
                if existing.descriptor != descriptor:
                    logger.warning(
                        "Instrument re-registered with a conflicting definition, keeping the first",
                        scope=scope.name,
                        instrument=descriptor.name,
                        kind=str(descriptor.kind),
                        existing_kind=str(existing.descriptor.kind),
                    )
                return existing.aggregator

            stream = _Stream(descriptor, self._create_aggregator(descriptor))
            streams[key] = stream
            return stream.aggregator

    def register_observable(self, scope: InstrumentationScope, instrument: _ObservableInstrument) -> None:
        aggregator = self.register(scope, instrument.descriptor)
        if aggregator is not None:
            with self._lock:
                self._observables.append((instrument, aggregator))

    def _create_aggregator(self, descriptor: InstrumentDescriptor) -> Aggregator | None:
        kind = descriptor.kind
        aggregation = self._reader.aggregation(kind)
        if isinstance(aggregation, DefaultAggregation):
            aggregation = default_aggregation(kind)
        if not is_compatible(aggregation, kind):
            logger.warning(
                "Aggregation incompatible with instrument kind, stream dropped",
                instrument=descriptor.name,
                kind=str(kind),
                aggregation=type(aggregation).__name__,
            )
            return None
        return create_aggregator(aggregation, kind, self._reader.temporality(kind), time.time_ns())

    def produce(self) -> ResourceMetrics:
        """Run observable callbacks and snapshot every stream."""
        with self._lock:
            observables = list(self._observables)
            snapshot = [(scope, list(streams.values())) for scope, streams in self._streams.items()]

        for instrument, aggregator in observables:
            for observation in instrument.observe():
                aggregator.aggregate(observation.value, observation.attributes)

        now = time.time_ns()
        scope_metrics: list[ScopeMetrics] = []
        for scope, streams in snapshot:
            metrics: list[Metric] = []
            for stream in streams:
                if stream.aggregator is None:
                    continue
                data = stream.aggregator.collect(now)
                if data is None:
                    continue
                d = stream.descriptor
                metrics.append(Metric(d.name, d.description, d.unit, data))
            if metrics:
                scope_metrics.append(ScopeMetrics(scope, tuple(metrics)))
        return ResourceMetrics(self._resource, tuple(scope_metrics))


class Meter:
    """Creates instruments for one instrumentation scope."""

    def __init__(self, scope: InstrumentationScope, provider: "MeterProvider") -> None:
        self._scope = scope
        self._provider = provider

    @property
    def scope(self) -> InstrumentationScope:
        return self._scope

    def _sync(
        self,
        factory: Callable[[InstrumentDescriptor, list[Aggregator]], _SyncT],
        kind: InstrumentKind,
        name: str,
        description: str,
        unit: str,
    ) -> _SyncT:
        validate_instrument_name(name)
        descriptor = InstrumentDescriptor(name, kind, description, unit)
        return factory(descriptor, self._provider._register(self._scope, descriptor))

    def _observable(
        self,
        factory: Callable[[InstrumentDescriptor, Iterable[Callback]], _ObservableT],
        kind: InstrumentKind,
        name: str,
        callbacks: Iterable[Callback],
        description: str,
        unit: str,
    ) -> _ObservableT:
        validate_instrument_name(name)
        instrument = factory(InstrumentDescriptor(name, kind, description, unit), callbacks)
        self._provider._register_observable(self._scope, instrument)
        return instrument

    def create_counter(self, name: str, description: str = "", unit: str = "") -> Counter:
        return self._sync(Counter, InstrumentKind.COUNTER, name, description, unit)

    def create_up_down_counter(self, name: str, description: str = "", unit: str = "") -> UpDownCounter:
        return self._sync(UpDownCounter, InstrumentKind.UP_DOWN_COUNTER, name, description, unit)

    def create_histogram(self, name: str, description: str = "", unit: str = "") -> Histogram:
        return self._sync(Histogram, InstrumentKind.HISTOGRAM, name, description, unit)

    def create_gauge(self, name: str, description: str = "", unit: str = "") -> Gauge:
        return self._sync(Gauge, InstrumentKind.GAUGE, name, description, unit)

    def create_observable_counter(
        self, name: str, callbacks: Iterable[Callback] = (), description: str = "", unit: str = ""
    ) -> ObservableCounter:
        return self._observable(
            ObservableCounter, InstrumentKind.OBSERVABLE_COUNTER, name, callbacks, description, unit
        )

    def create_observable_up_down_counter(
        self, name: str, callbacks: Iterable[Callback] = (), description: str = "", unit: str = ""
    ) -> ObservableUpDownCounter:
        return self._observable(
            ObservableUpDownCounter, InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER, name, callbacks, description, unit
        )

    def create_observable_gauge(
        self, name: str, callbacks: Iterable[Callback] = (), description: str = "", unit: str = ""
    ) -> ObservableGauge:
        return self._observable(ObservableGauge, InstrumentKind.OBSERVABLE_GAUGE, name, callbacks, description, unit)


class MeterProvider:
    """Entry point of the metrics signal.

    Example:
        >>> provider = MeterProvider.builder().with_periodic_exporter(exporter).build()
        >>> requests = provider.meter("checkout").create_counter("http.requests")
        >>> requests.add(1, {"route": "/pay"})
        >>> provider.shutdown()
    """

    def __init__(
        self,
        readers: list["MetricReader"],
        resource: Resource,
        owned_runtime: ThreadRuntime | None = None,
    ) -> None:
        self._readers = tuple(readers)
        self._resource = resource
        self._owned_runtime = owned_runtime
        self._pipelines = tuple(_MetricsPipeline(reader, resource) for reader in self._readers)
        for reader, pipeline in zip(self._readers, self._pipelines, strict=True):
            reader.register_pipeline(pipeline)
        self._meters: dict[InstrumentationScope, Meter] = {}
        self._meters_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @classmethod
    def builder(cls) -> "MeterProviderBuilder":
        return MeterProviderBuilder()

    @property
    def readers(self) -> tuple["MetricReader", ...]:
        return self._readers

    @property
    def resource(self) -> Resource:
        return self._resource

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def meter(self, name: str, version: str | None = None, schema_url: str | None = None) -> Meter:
        """Return the Meter for a scope, creating it on first use."""
        if not name:
            logger.warning("Meter requested with an empty scope name")
        scope = InstrumentationScope(name, version, schema_url)
        with self._meters_lock:
            existing = self._meters.get(scope)
            if existing is None:
                existing = Meter(scope, self)
                self._meters[scope] = existing
            return existing

    def _register(self, scope: InstrumentationScope, descriptor: InstrumentDescriptor) -> list[Aggregator]:
        aggregators = [pipeline.register(scope, descriptor) for pipeline in self._pipelines]
        return [aggregator for aggregator in aggregators if aggregator is not None]

    def _register_observable(self, scope: InstrumentationScope, instrument: _ObservableInstrument) -> None:
        for pipeline in self._pipelines:
            pipeline.register_observable(scope, instrument)

    def force_flush(self, timeout: float | None = None) -> None:
        """Collect and export on every reader. Raises the first error after trying all."""
        deadline = None if timeout is None else time.monotonic() + timeout
        errors: list[Exception] = []
        for reader in self._readers:
            try:
                reader.force_flush(_remaining(deadline))
            except Exception as e:
                errors.append(e)
        if errors:
            raise errors[0]

    def shutdown(self, timeout: float | None = None) -> None:
        """Shut every reader down, then close an owned runtime. Idempotent."""
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        deadline = None if timeout is None else time.monotonic() + timeout
        errors: list[Exception] = []
        for reader in self._readers:
            try:
                reader.shutdown(_remaining(deadline))
            except Exception as e:
                logger.error(
                    "Metric reader shutdown failed",
                    reader=type(reader).__name__,
                    error=str(e),
                )
                errors.append(e)

        if self._owned_runtime is not None:
            self._owned_runtime.close(_remaining(deadline))

        if errors:
            raise errors[0]


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


class MeterProviderBuilder:
    """Assembles a MeterProvider.

    Periodic readers added through with_periodic_exporter() are created at
    build() time on the provider's runtime.
    """

    def __init__(self) -> None:
        self._resource: Resource | None = None
        self._runtime: Runtime | None = None
        self._readers: list[MetricReader] = []
        self._periodic: list[tuple[MetricExporter, PeriodicReaderConfig | None]] = []

    def with_resource(self, resource: Resource) -> Self:
        self._resource = resource
        return self

    def with_runtime(self, runtime: "Runtime") -> Self:
        self._runtime = runtime
        return self

    def with_reader(self, reader: "MetricReader") -> Self:
        """Attach a reader that was built by the caller."""
        self._readers.append(reader)
        return self

    def with_periodic_exporter(
        self, exporter: "MetricExporter", config: "PeriodicReaderConfig | None" = None
    ) -> Self:
        """Push to ``exporter`` through a PeriodicReader."""
        self._periodic.append((exporter, config))
        return self

    def build(self) -> MeterProvider:
        resource = self._resource if self._resource is not None else Resource.default()

        readers = list(self._readers)
        owned_runtime: ThreadRuntime | None = None
        if self._periodic:
            runtime = self._runtime
            if runtime is None:
                owned_runtime = ThreadRuntime()
                runtime = owned_runtime
            readers.extend(PeriodicReader(exporter, runtime, config) for exporter, config in self._periodic)

        logger.debug(
            "Meter provider built",
            readers=[type(r).__name__ for r in readers],
            owns_runtime=owned_runtime is not None,
        )
        return MeterProvider(readers, resource, owned_runtime)
