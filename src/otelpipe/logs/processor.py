# src/otelpipe/logs/processor.py
"""Log processors: the bridge between Logger.emit() and an exporter.

BatchLogProcessor is the production processor:
1. emit() pushes the record into a bounded channel (never blocks)
2. A single consumer task on the runtime exports batches when the batch
   size is reached or the scheduled delay elapses
3. force_flush() / shutdown() are control requests handled by the same task
4. Export failures are logged and counted, never retried
5. Health metrics are tracked for monitoring
6. Drops are logged in aggregate to prevent Warning Fatigue

SimpleLogProcessor exports every record synchronously and exists for
debugging and tests.

Thread Safety:
    BatchLogProcessor uses a background consumer task on the runtime.
    - emit() is called from producer threads (non-blocking)
    - _run() runs on the runtime's event loop, the only exporter caller
    - _records_dropped is protected by _dropped_lock (producers and consumer)
    - All other metrics are only modified by the consumer task
    - health_metrics reads are approximately consistent
"""

import asyncio
import concurrent.futures
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from otelpipe.contracts.config.defaults import INTERNAL_DEFAULTS, SETTINGS_DEFAULTS
from otelpipe.contracts.config.runtime import BatchConfig
from otelpipe.errors import (
    ExportError,
    ExportTimeoutError,
    FlushTimeoutError,
    QueueFullError,
    ShutdownTimeoutError,
)

if TYPE_CHECKING:
    from otelpipe.contracts.enums import Severity
    from otelpipe.contracts.logs import LogRecord
    from otelpipe.contracts.resource import InstrumentationScope, Resource
    from otelpipe.logs.protocols import LogBatch, LogExporter
    from otelpipe.runtime import BoundedChannel, Runtime

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class _Flush:
    future: "concurrent.futures.Future[None]" = field(default_factory=concurrent.futures.Future)


@dataclass(slots=True)
class _Shutdown:
    pass


_Control = _Flush | _Shutdown


class BatchLogProcessor:
    """Buffers log records and exports them in batches from a background task.

    Records are exported in the order they were accepted. A full queue drops
    the incoming record (the newest), never one already buffered.

    Triggers (whichever comes first wakes the consumer):
    - max_export_batch_size records are buffered: one full batch is exported
    - scheduled_delay elapsed: whatever is buffered (up to a batch) is exported
    - force_flush() / shutdown(): everything buffered before the call is
      exported in batch-sized chunks

    Failure handling:
    - A failed or timed-out export drops that batch, is logged and counted
    - force_flush() re-raises the first ExportError of the drain it waited on
    - shutdown() raises ShutdownTimeoutError once if it could not drain in time

    Thread Safety:
        emit(), force_flush() and shutdown() are safe from any thread except
        the runtime's own; blocking calls from there would deadlock.

    Example:
        >>> processor = BatchLogProcessor(exporter, runtime, BatchConfig(scheduled_delay=0.5))
        >>> processor.emit(record, scope)
        >>> processor.force_flush(timeout=5.0)
        >>> processor.shutdown()
    """

    _LOG_INTERVAL = int(INTERNAL_DEFAULTS["processor"]["drop_log_interval"])

    def __init__(
        self,
        exporter: "LogExporter",
        runtime: "Runtime",
        config: BatchConfig | None = None,
    ) -> None:
        """Initialize the processor and start its consumer task.

        Args:
            exporter: Destination for exported batches; owned by this processor
            runtime: Runtime that runs the consumer task
            config: Batching parameters (BatchConfig.default() when None)
        """
        self._exporter = exporter
        self._runtime = runtime
        self._config = config if config is not None else BatchConfig.default()
        self._queue: BoundedChannel[tuple[LogRecord, InstrumentationScope]] = runtime.bounded_channel(
            self._config.max_queue_size
        )

        # Health metrics
        self._records_exported = 0
        self._records_dropped = 0
        self._export_failures = 0
        self._batches_exported = 0
        self._last_logged_drop_count = 0

        # Thread coordination
        self._dropped_lock = threading.Lock()
        self._controls: deque[_Control] = deque()
        self._controls_lock = threading.Lock()
        self._shutdown_event = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shutdown_called = False

        self._consumer = runtime.spawn(self._run())
        self._consumer.add_done_callback(self._on_consumer_done)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def emit(self, record: "LogRecord", scope: "InstrumentationScope") -> None:
        """Queue a record for export.

        Never blocks and never raises. Records arriving after shutdown or
        while the queue is full are counted as dropped.
        """
        # Thread-safe shutdown check
        if self._shutdown_event.is_set():
            self._count_drop()
            return

        try:
            self._queue.send_nowait((record, scope))
        except QueueFullError:
            self._count_drop()
            return

        if len(self._queue) >= self._config.max_export_batch_size:
            self._queue.notify()

    def _count_drop(self) -> None:
        with self._dropped_lock:
            self._records_dropped += 1
            self._log_drops_if_needed()

    def _log_drops_if_needed(self) -> None:
        """Log aggregate drop message if threshold reached.

        Must be called while holding _dropped_lock.
        """
        if self._records_dropped - self._last_logged_drop_count >= self._LOG_INTERVAL:
            logger.warning(
                "Log records dropped",
                exporter=self._exporter.name,
                dropped_since_last_log=self._records_dropped - self._last_logged_drop_count,
                dropped_total=self._records_dropped,
                queue_capacity=self._queue.capacity,
            )
            self._last_logged_drop_count = self._records_dropped

    def _submit(self, control: _Control) -> None:
        with self._controls_lock:
            self._controls.append(control)
        self._queue.notify()

    # ------------------------------------------------------------------
    # Consumer task
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        """Background task: export batches until a shutdown request arrives.

        Thread Safety:
            Runs exclusively on the runtime's event loop. It is the only
            caller of the exporter, so at most one export is in flight.
        """
        next_export = time.monotonic() + self._config.scheduled_delay
        try:
            while True:
                controls = self._take_controls()
                if controls:
                    if await self._handle_controls(controls):
                        return
                    continue

                now = time.monotonic()
                if len(self._queue) >= self._config.max_export_batch_size:
                    await self._export(self._queue.take(self._config.max_export_batch_size))
                elif now >= next_export:
                    await self._export(self._queue.take(self._config.max_export_batch_size))
                    next_export = time.monotonic() + self._config.scheduled_delay
                else:
                    await self._queue.wait(next_export - now)
        finally:
            await self._shutdown_exporter()

    def _take_controls(self) -> list[_Control]:
        with self._controls_lock:
            controls = list(self._controls)
            self._controls.clear()
        return controls

    async def _handle_controls(self, controls: list[_Control]) -> bool:
        """Drain for pending flush/shutdown requests.

        Returns:
            True if a shutdown was requested and the consumer must stop.
        """
        stopping = any(isinstance(control, _Shutdown) for control in controls)
        if stopping:
            # No new records are accepted; export until the queue is empty.
            first_error = None
            while len(self._queue):
                error = await self._drain(len(self._queue))
                first_error = first_error or error
        else:
            # Only what was buffered when the request was seen; later records
            # wait for the normal triggers.
            first_error = await self._drain(len(self._queue))

        for control in controls:
            if isinstance(control, _Flush) and not control.future.done():
                if first_error is not None:
                    control.future.set_exception(first_error)
                else:
                    control.future.set_result(None)
        return stopping

    async def _drain(self, count: int) -> ExportError | None:
        """Export ``count`` records in batch-sized chunks, oldest first.

        Returns:
            The first export error encountered, if any.
        """
        first_error: ExportError | None = None
        remaining = count
        while remaining > 0:
            batch = self._queue.take(min(remaining, self._config.max_export_batch_size))
            if not batch:
                break
            remaining -= len(batch)
            error = await self._export(batch)
            if first_error is None:
                first_error = error
        return first_error

    async def _export(self, batch: "LogBatch") -> ExportError | None:
        """Export one batch with the configured deadline.

        Failures are logged and counted here; the batch is dropped either way.
        """
        if not batch:
            return None

        error: ExportError
        try:
            await asyncio.wait_for(self._exporter.export(batch), timeout=self._config.max_export_timeout)
        except TimeoutError:
            error = ExportTimeoutError(self._exporter.name, self._config.max_export_timeout)
        except ExportError as e:
            error = e
        except Exception as e:
            # Exporters should raise ExportError, but one that doesn't must not
            # kill the consumer.
            error = ExportError(self._exporter.name, f"{type(e).__name__}: {e}")
        else:
            self._records_exported += len(batch)
            self._batches_exported += 1
            return None

        self._export_failures += 1
        logger.warning(
            "Log export failed, batch dropped",
            exporter=self._exporter.name,
            batch_size=len(batch),
            error=str(error),
        )
        return error

    async def _shutdown_exporter(self) -> None:
        try:
            await asyncio.wait_for(self._exporter.shutdown(), timeout=self._config.max_export_timeout)
        except Exception as e:
            logger.warning(
                "Exporter shutdown failed",
                exporter=self._exporter.name,
                error=str(e),
            )

    def _on_consumer_done(self, future: "concurrent.futures.Future[None]") -> None:
        """Release pending flush callers once the consumer task has stopped."""
        if not future.cancelled() and future.exception() is not None:
            logger.error(
                "Batch log consumer stopped unexpectedly",
                exporter=self._exporter.name,
                error=str(future.exception()),
            )
        self._release_controls()

    def _release_controls(self) -> None:
        for control in self._take_controls():
            if isinstance(control, _Flush) and not control.future.done():
                control.future.set_exception(ExportError(self._exporter.name, "batch consumer is not running"))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def force_flush(self, timeout: float | None = None) -> None:
        """Export everything emitted before this call.

        Blocks until the drain completes. A no-op after shutdown.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Raises:
            FlushTimeoutError: If the drain did not finish in time. The
                processor keeps running.
            ExportError: If a batch of the drain failed, or the consumer is dead.
            RuntimeError: If called from the runtime's own thread.
        """
        if self._shutdown_event.is_set():
            return
        if self._runtime.in_runtime():
            raise RuntimeError("force_flush() cannot block the runtime thread it is waiting on")
        if self._consumer.done():
            raise ExportError(self._exporter.name, "batch consumer is not running")

        request = _Flush()
        self._submit(request)
        # The consumer may have stopped between the check and the submit.
        if self._consumer.done():
            self._release_controls()

        try:
            request.future.result(timeout=timeout)
        except TimeoutError:
            raise FlushTimeoutError(timeout) from None

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop accepting records, drain, then shut the exporter down.

        Idempotent: only the first call does any work.

        Shutdown Sequence:
        1. Signal shutdown so emit() rejects new records
        2. Submit the shutdown request; the consumer drains the queue and
           shuts the exporter down
        3. Wait for the consumer task to finish
        4. On timeout, cancel the task and discard what is still buffered

        Args:
            timeout: Seconds to wait (processor default when None)

        Raises:
            ShutdownTimeoutError: If the drain did not finish in time.
            RuntimeError: If called from the runtime's own thread.
        """
        if self._runtime.in_runtime():
            raise RuntimeError("shutdown() cannot block the runtime thread it is waiting on")
        with self._shutdown_lock:
            if self._shutdown_called:
                return
            self._shutdown_called = True

        if timeout is None:
            timeout = float(INTERNAL_DEFAULTS["processor"]["shutdown_timeout"])

        # 1. Signal shutdown - prevents new records from being queued
        self._shutdown_event.set()

        # 2. Ask the consumer for the final drain
        self._submit(_Shutdown())

        # 3. Wait for the consumer task to exit
        try:
            self._consumer.result(timeout=timeout)
        except TimeoutError:
            # 4. Abandon the drain
            self._consumer.cancel()
            discarded = self._queue.clear()
            logger.error(
                "Batch log processor shutdown timed out, buffered records discarded",
                exporter=self._exporter.name,
                timeout=timeout,
                discarded=discarded,
            )
            raise ShutdownTimeoutError(timeout, discarded) from None
        except concurrent.futures.CancelledError:
            logger.warning("Batch log consumer was cancelled before shutdown", exporter=self._exporter.name)
        except Exception as e:
            # Already reported by _on_consumer_done
            logger.debug("Batch log consumer had failed before shutdown", error=str(e))
        finally:
            logger.info("Batch log processor shut down", exporter=self._exporter.name, **self.health_metrics)

    def set_resource(self, resource: "Resource") -> None:
        self._exporter.set_resource(resource)

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        return self._exporter.event_enabled(severity, target, name)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    @property
    def dropped_count(self) -> int:
        with self._dropped_lock:
            return self._records_dropped

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return processor health metrics for monitoring.

        Returns a snapshot of:
        - records_exported: Records delivered by successful exports
        - records_dropped: Records rejected (queue full or after shutdown)
        - export_failures: Failed or timed-out export calls
        - batches_exported: Successful export calls
        - queue_depth: Records currently buffered
        - queue_capacity: Maximum records buffered
        """
        with self._dropped_lock:
            records_dropped = self._records_dropped
        return {
            "records_exported": self._records_exported,
            "records_dropped": records_dropped,
            "export_failures": self._export_failures,
            "batches_exported": self._batches_exported,
            "queue_depth": len(self._queue),
            "queue_capacity": self._queue.capacity,
        }


class SimpleLogProcessor:
    """Exports each record as soon as it is emitted.

    emit() blocks the producer until the export finished or timed out, and
    exports are serialized so at most one is in flight. Intended for
    debugging and tests, not for latency-sensitive code.

    Records emitted from the runtime's own thread cannot be exported without
    deadlocking and are dropped with a warning.
    """

    def __init__(
        self,
        exporter: "LogExporter",
        runtime: "Runtime",
        export_timeout: float | None = None,
    ) -> None:
        self._exporter = exporter
        self._runtime = runtime
        self._export_timeout = (
            export_timeout if export_timeout is not None else float(SETTINGS_DEFAULTS["exporter"]["timeout"])
        )
        self._export_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False
        self._export_failures = 0

    @property
    def export_failures(self) -> int:
        return self._export_failures

    def emit(self, record: "LogRecord", scope: "InstrumentationScope") -> None:
        if self._is_shutdown:
            return
        if self._runtime.in_runtime():
            logger.warning(
                "Cannot export synchronously from the runtime thread, record dropped",
                exporter=self._exporter.name,
            )
            return

        with self._export_lock:
            future = self._runtime.spawn(self._exporter.export([(record, scope)]))
            try:
                future.result(timeout=self._export_timeout)
            except TimeoutError:
                future.cancel()
                self._export_failures += 1
                logger.warning(
                    "Log export timed out, record dropped",
                    exporter=self._exporter.name,
                    timeout=self._export_timeout,
                )
            except Exception as e:
                self._export_failures += 1
                logger.warning(
                    "Log export failed, record dropped",
                    exporter=self._exporter.name,
                    error=str(e),
                )

    def force_flush(self, timeout: float | None = None) -> None:
        """No-op: every record is exported before emit() returns."""

    def shutdown(self, timeout: float | None = None) -> None:
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        # Wait for an in-flight export before closing the transport
        with self._export_lock:
            future = self._runtime.spawn(self._exporter.shutdown())
            try:
                future.result(timeout=timeout if timeout is not None else self._export_timeout)
            except Exception as e:
                logger.warning(
                    "Exporter shutdown failed",
                    exporter=self._exporter.name,
                    error=str(e),
                )

    def set_resource(self, resource: "Resource") -> None:
        self._exporter.set_resource(resource)

    def event_enabled(self, severity: "Severity", target: str, name: str | None) -> bool:
        return self._exporter.event_enabled(severity, target, name)
