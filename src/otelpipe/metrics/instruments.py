# src/otelpipe/metrics/instruments.py
"""Metric instruments handed out by a Meter.

Synchronous instruments (Counter, UpDownCounter, Histogram, Gauge) record
straight into the aggregators of every collection pipeline; recording is a
dict update under a short lock and never does I/O.

Observable instruments hold callbacks that the collection pipelines invoke
at collection time.
"""

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

from otelpipe.contracts.enums import InstrumentKind
from otelpipe.metrics.aggregation import MONOTONIC_KINDS

if TYPE_CHECKING:
    from otelpipe.metrics.aggregation import Aggregator

logger = structlog.get_logger(__name__)

_NAME_PATTERN: Final = re.compile(r"[A-Za-z][A-Za-z0-9_./-]{0,254}")


def validate_instrument_name(name: str) -> None:
    """Raise ValueError unless ``name`` is a valid instrument name.

    Names start with a letter, continue with letters, digits, ``_``, ``.``,
    ``-`` or ``/``, and are at most 255 characters long.
    """
    if not _NAME_PATTERN.fullmatch(name):
        raise ValueError(f"invalid instrument name {name!r}")


@dataclass(frozen=True, slots=True)
class InstrumentDescriptor:
    """Identity of an instrument within its scope."""

    name: str
    kind: InstrumentKind
    description: str = ""
    unit: str = ""


@dataclass(frozen=True, slots=True)
class Observation:
    """A value reported by an observable instrument's callback."""

    value: int | float
    attributes: Mapping[str, Any] = field(default_factory=dict)


Callback = Callable[[], Iterable[Observation]]


class _Instrument:
    def __init__(self, descriptor: InstrumentDescriptor) -> None:
        self._descriptor = descriptor

    @property
    def descriptor(self) -> InstrumentDescriptor:
        return self._descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def kind(self) -> InstrumentKind:
        return self._descriptor.kind

    def _accepts(self, value: int | float) -> bool:
        if value < 0 and self._descriptor.kind in MONOTONIC_KINDS:
            logger.warning(
                "Negative value on monotonic instrument discarded",
                instrument=self._descriptor.name,
                value=value,
            )
            return False
        return True


class _SyncInstrument(_Instrument):
    def __init__(self, descriptor: InstrumentDescriptor, aggregators: Sequence["Aggregator"]) -> None:
        super().__init__(descriptor)
        self._aggregators = tuple(aggregators)

    def _record(self, value: int | float, attributes: Mapping[str, Any] | None) -> None:
        if not self._accepts(value):
            return
        attrs = attributes if attributes is not None else {}
        for aggregator in self._aggregators:
            aggregator.aggregate(value, attrs)


class Counter(_SyncInstrument):
    """Monotonically increasing sum (requests served, bytes sent)."""

    def add(self, value: int | float, attributes: Mapping[str, Any] | None = None) -> None:
        self._record(value, attributes)


class UpDownCounter(_SyncInstrument):
    """Sum that may go down (queue length, active connections)."""

    def add(self, value: int | float, attributes: Mapping[str, Any] | None = None) -> None:
        self._record(value, attributes)


class Histogram(_SyncInstrument):
    """Distribution of non-negative values (request latency, payload size)."""

    def record(self, value: int | float, attributes: Mapping[str, Any] | None = None) -> None:
        self._record(value, attributes)


class Gauge(_SyncInstrument):
    """Current value, where only the latest recording matters."""

    def set(self, value: int | float, attributes: Mapping[str, Any] | None = None) -> None:
        self._record(value, attributes)


class _ObservableInstrument(_Instrument):
    def __init__(self, descriptor: InstrumentDescriptor, callbacks: Iterable[Callback]) -> None:
        super().__init__(descriptor)
        self._callbacks = list(callbacks)

    def observe(self) -> list[Observation]:
        """Run every callback and collect their observations.

        A callback that raises is logged and skipped; the others still run.
        """
        observations: list[Observation] = []
        for callback in self._callbacks:
            try:
                reported = list(callback())
            except Exception as e:
                logger.warning(
                    "Observable instrument callback failed",
                    instrument=self._descriptor.name,
                    error=str(e),
                )
                continue
            observations.extend(obs for obs in reported if self._accepts(obs.value))
        return observations


class ObservableCounter(_ObservableInstrument):
    """Callback-reported monotonic total (CPU time, page faults)."""


class ObservableUpDownCounter(_ObservableInstrument):
    """Callback-reported total that may go down (heap size)."""


class ObservableGauge(_ObservableInstrument):
    """Callback-reported current value (temperature, utilization)."""
