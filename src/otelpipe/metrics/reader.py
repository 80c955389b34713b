# src/otelpipe/metrics/reader.py
"""Metric readers: decide when instrument state is collected and exported.

PeriodicReader pushes on a fixed schedule:
1. A ticker task sleeps on the runtime and posts a tick every interval
2. A worker task collects a fresh ResourceMetrics per tick and exports it
3. force_flush() / shutdown() are control requests handled by the worker
4. A failed or timed-out export discards that cycle and is logged

Ticks go through a capacity-1 channel: if an export is still running when
the next tick fires, the pending tick absorbs it instead of queueing a
burst of back-to-back collections.

ManualReader collects only when its collect() method is called.
"""

import asyncio
import concurrent.futures
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from otelpipe.contracts.config.defaults import INTERNAL_DEFAULTS
from otelpipe.contracts.config.runtime import PeriodicReaderConfig
from otelpipe.errors import ExportError, ExportTimeoutError, FlushTimeoutError, QueueFullError, ShutdownTimeoutError
from otelpipe.metrics.selectors import (
    AggregationSelector,
    TemporalitySelector,
    cumulative_temporality,
    default_aggregation,
)

if TYPE_CHECKING:
    from otelpipe.contracts.enums import InstrumentKind, Temporality
    from otelpipe.metrics.aggregation import Aggregation
    from otelpipe.metrics.data import ResourceMetrics
    from otelpipe.metrics.protocols import MetricExporter, MetricProducer
    from otelpipe.runtime import BoundedChannel, Runtime

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class _Flush:
    future: "concurrent.futures.Future[None]" = field(default_factory=concurrent.futures.Future)


@dataclass(slots=True)
class _Shutdown:
    pass


_Control = _Flush | _Shutdown


class PeriodicReader:
    """Collects and exports metrics every ``config.interval`` seconds.

    The exporter's temporality() and aggregation() decide how each
    instrument is aggregated.

    Thread Safety:
        force_flush() and shutdown() block and are safe from any thread
        except the runtime's own. The exporter is only called from the
        worker task.

    Example:
        >>> reader = PeriodicReader(exporter, runtime, PeriodicReaderConfig(interval=10.0))
        >>> provider = MeterProvider.builder().with_reader(reader).build()
    """

    def __init__(
        self,
        exporter: "MetricExporter",
        runtime: "Runtime",
        config: PeriodicReaderConfig | None = None,
    ) -> None:
        self._exporter = exporter
        self._runtime = runtime
        self._config = config if config is not None else PeriodicReaderConfig.default()
        self._producer: MetricProducer | None = None
        self._ticks: BoundedChannel[None] = runtime.bounded_channel(int(INTERNAL_DEFAULTS["reader"]["tick_capacity"]))

        # Health metrics (worker task only)
        self._collections = 0
        self._export_failures = 0

        self._controls: deque[_Control] = deque()
        self._controls_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._shutdown_called = False
        self._worker: concurrent.futures.Future[None] | None = None
        self._ticker: concurrent.futures.Future[None] | None = None

    def register_pipeline(self, producer: "MetricProducer") -> None:
        """Attach the collection pipeline and start the background tasks.

        Raises:
            RuntimeError: If the reader is already registered.
        """
        if self._producer is not None:
            raise RuntimeError("PeriodicReader is already registered with a MeterProvider")
        self._producer = producer
        self._worker = self._runtime.spawn(self._run())
        self._ticker = self._runtime.spawn(self._tick())

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        return self._exporter.temporality(kind)

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        return self._exporter.aggregation(kind)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _tick(self) -> None:
        """Post a tick every interval, on a fixed schedule."""
        interval = self._config.interval
        next_tick = time.monotonic() + interval
        while True:
            await self._runtime.sleep(max(next_tick - time.monotonic(), 0.0))
            now = time.monotonic()
            next_tick += interval
            # Fell more than a whole interval behind: skip ahead rather than burst
            if next_tick <= now:
                next_tick = now + interval
            try:
                self._ticks.send_nowait(None)
            except QueueFullError:
                logger.debug("Collection still pending, tick coalesced", exporter=self._exporter.name)
            self._ticks.notify()

    async def _run(self) -> None:
        """Worker task: one collect+export per tick or control request."""
        try:
            while True:
                controls = self._take_controls()
                if controls:
                    if await self._handle_controls(controls):
                        return
                    continue
                if self._ticks.take(1):
                    await self._collect_and_export()
                    continue
                await self._ticks.wait()
        finally:
            await self._shutdown_exporter()

    def _take_controls(self) -> list[_Control]:
        with self._controls_lock:
            controls = list(self._controls)
            self._controls.clear()
        return controls

    def _submit(self, control: _Control) -> None:
        with self._controls_lock:
            self._controls.append(control)
        self._ticks.notify()

    async def _handle_controls(self, controls: list[_Control]) -> bool:
        error = await self._collect_and_export()
        if error is None:
            try:
                await asyncio.wait_for(self._exporter.force_flush(), timeout=self._config.timeout)
            except Exception as e:
                logger.warning("Metric exporter flush failed", exporter=self._exporter.name, error=str(e))

        for control in controls:
            if isinstance(control, _Flush) and not control.future.done():
                if error is not None:
                    control.future.set_exception(error)
                else:
                    control.future.set_result(None)
        return any(isinstance(control, _Shutdown) for control in controls)

    async def _collect_and_export(self) -> ExportError | None:
        """Collect a fresh snapshot and export it within ``config.timeout``.

        Returns:
            The error that discarded this cycle, if any.
        """
        if self._producer is None:
            return None

        error: ExportError
        try:
            metrics: ResourceMetrics = self._producer.produce()
        except Exception as e:
            error = ExportError(self._exporter.name, f"collection failed: {type(e).__name__}: {e}")
        else:
            self._collections += 1
            try:
                await asyncio.wait_for(self._exporter.export(metrics), timeout=self._config.timeout)
            except TimeoutError:
                error = ExportTimeoutError(self._exporter.name, self._config.timeout)
            except ExportError as e:
                error = e
            except Exception as e:
                error = ExportError(self._exporter.name, f"{type(e).__name__}: {e}")
            else:
                return None
            finally:
                # The snapshot must not outlive its export attempt
                del metrics

        self._export_failures += 1
        logger.warning(
            "Metric export failed, cycle discarded",
            exporter=self._exporter.name,
            error=str(error),
        )
        return error

    async def _shutdown_exporter(self) -> None:
        try:
            await asyncio.wait_for(self._exporter.shutdown(), timeout=self._config.timeout)
        except Exception as e:
            logger.warning(
                "Exporter shutdown failed",
                exporter=self._exporter.name,
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def force_flush(self, timeout: float | None = None) -> None:
        """Collect and export immediately, blocking until done.

        A no-op after shutdown or before the reader is registered.

        Raises:
            FlushTimeoutError: If the cycle did not finish in time.
            ExportError: If the export failed or the worker is dead.
            RuntimeError: If called from the runtime's own thread.
        """
        if self._shutdown_called or self._worker is None:
            return
        if self._runtime.in_runtime():
            raise RuntimeError("force_flush() cannot block the runtime thread it is waiting on")
        if self._worker.done():
            raise ExportError(self._exporter.name, "metric reader worker is not running")

        request = _Flush()
        self._submit(request)
        if self._worker.done():
            self._release_controls()
        try:
            request.future.result(timeout=timeout)
        except TimeoutError:
            raise FlushTimeoutError(timeout) from None

    def _release_controls(self) -> None:
        for control in self._take_controls():
            if isinstance(control, _Flush) and not control.future.done():
                control.future.set_exception(ExportError(self._exporter.name, "metric reader worker is not running"))

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the ticker, run one final collect+export, shut the exporter down.

        Idempotent: only the first call does any work.

        Raises:
            ShutdownTimeoutError: If the final cycle did not finish in time.
            RuntimeError: If called from the runtime's own thread.
        """
        if self._runtime.in_runtime():
            raise RuntimeError("shutdown() cannot block the runtime thread it is waiting on")
        with self._shutdown_lock:
            if self._shutdown_called:
                return
            self._shutdown_called = True

        if timeout is None:
            timeout = float(INTERNAL_DEFAULTS["reader"]["shutdown_timeout"])

        if self._ticker is not None:
            self._ticker.cancel()

        worker = self._worker
        if worker is None:
            # Never registered: only the exporter needs releasing
            worker = self._runtime.spawn(self._shutdown_exporter())
        else:
            self._submit(_Shutdown())

        try:
            worker.result(timeout=timeout)
        except TimeoutError:
            worker.cancel()
            logger.error(
                "Periodic reader shutdown timed out",
                exporter=self._exporter.name,
                timeout=timeout,
            )
            raise ShutdownTimeoutError(timeout, 0) from None
        except concurrent.futures.CancelledError:
            logger.warning("Periodic reader worker was cancelled before shutdown", exporter=self._exporter.name)
        except Exception as e:
            logger.error("Periodic reader worker failed", exporter=self._exporter.name, error=str(e))
        finally:
            self._release_controls()
            logger.info("Periodic reader shut down", exporter=self._exporter.name, **self.health_metrics)

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return reader health metrics for monitoring.

        Returns a snapshot of:
        - collections: Snapshots produced
        - export_failures: Cycles discarded because collection or export failed
        """
        return {
            "collections": self._collections,
            "export_failures": self._export_failures,
        }


class ManualReader:
    """Reader that collects only when asked.

    Useful in tests and for pull-based exporters that scrape on demand.
    """

    def __init__(
        self,
        temporality_selector: TemporalitySelector = cumulative_temporality,
        aggregation_selector: AggregationSelector = default_aggregation,
    ) -> None:
        self._temporality_selector = temporality_selector
        self._aggregation_selector = aggregation_selector
        self._producer: MetricProducer | None = None
        self._is_shutdown = False

    def register_pipeline(self, producer: "MetricProducer") -> None:
        if self._producer is not None:
            raise RuntimeError("ManualReader is already registered with a MeterProvider")
        self._producer = producer

    def temporality(self, kind: "InstrumentKind") -> "Temporality":
        return self._temporality_selector(kind)

    def aggregation(self, kind: "InstrumentKind") -> "Aggregation":
        return self._aggregation_selector(kind)

    def collect(self) -> "ResourceMetrics":
        """Produce a snapshot of every instrument.

        Raises:
            RuntimeError: If the reader is shut down or not registered.
        """
        if self._is_shutdown:
            raise RuntimeError("ManualReader is shut down")
        if self._producer is None:
            raise RuntimeError("ManualReader is not registered with a MeterProvider")
        return self._producer.produce()

    def force_flush(self, timeout: float | None = None) -> None:
        """No-op: nothing is buffered between collect() calls."""

    def shutdown(self, timeout: float | None = None) -> None:
        self._is_shutdown = True
