# src/otelpipe/runtime.py
"""Execution abstraction for background export work.

Processors and readers never create threads or event loops themselves. They
depend only on a Runtime that can:

- spawn a coroutine as a background task (returning a thread-safe future)
- sleep for a duration inside such a task
- create a bounded multi-producer / single-consumer channel

Two implementations are provided:

- AsyncioRuntime: schedules onto an event loop the application already runs
  on another thread.
- ThreadRuntime: owns a private event loop on a dedicated background thread.
  This is what providers use when no runtime is supplied.

Thread Safety:
    BoundedChannel.send_nowait(), take(), clear() and notify() may be called
    from any thread. wait() must only be awaited by the single consumer task
    running on the channel's loop.

    Blocking on a spawned task's future from the runtime's own thread would
    deadlock; callers check in_runtime() first.
"""

import asyncio
import concurrent.futures
import threading
from collections import deque
from collections.abc import Coroutine
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import structlog

from otelpipe.contracts.config.defaults import INTERNAL_DEFAULTS
from otelpipe.errors import QueueFullError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BoundedChannel(Generic[T]):
    """Bounded FIFO channel with a coalescing wake-up signal.

    Producers push with send_nowait(), which never blocks: a full channel
    raises QueueFullError so the caller can count the drop. The consumer
    awaits wait() and then inspects the channel; notify() wakes it early.

    Multiple notify() calls before the consumer wakes collapse into one
    wake-up. The consumer must re-check channel state after wait() returns,
    since a notification can arrive between the wake-up and the reset.

    Example:
        channel = runtime.bounded_channel(1024)
        channel.send_nowait(item)        # producer thread
        channel.notify()
        ...
        await channel.wait(timeout=1.0)  # consumer task
        batch = channel.take(512)
    """

    def __init__(self, capacity: int, loop: asyncio.AbstractEventLoop) -> None:
        """Initialize the channel.

        Args:
            capacity: Maximum number of buffered items
            loop: Event loop the consumer task runs on

        Raises:
            ValueError: If capacity < 1.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._loop = loop
        self._items: deque[T] = deque()
        self._lock = threading.Lock()
        self._wakeup = asyncio.Event()
        self._notified = False

    @property
    def capacity(self) -> int:
        return self._capacity

    def send_nowait(self, item: T) -> None:
        """Append item without blocking.

        Raises:
            QueueFullError: If the channel holds ``capacity`` items.
        """
        with self._lock:
            if len(self._items) >= self._capacity:
                raise QueueFullError(self._capacity)
            self._items.append(item)

    def take(self, max_count: int) -> list[T]:
        """Pop up to max_count items in FIFO order (oldest first)."""
        with self._lock:
            count = min(max_count, len(self._items))
            return [self._items.popleft() for _ in range(count)]

    def clear(self) -> int:
        """Discard every buffered item and return how many were discarded."""
        with self._lock:
            discarded = len(self._items)
            self._items.clear()
            return discarded

    def notify(self) -> None:
        """Wake the consumer. Safe from any thread; repeated calls coalesce."""
        with self._lock:
            if self._notified:
                return
            self._notified = True
        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError:
            # Loop already closed: the consumer is gone and nothing can be woken.
            logger.debug("Channel notify after event loop closed", capacity=self._capacity)

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait for notify() or the timeout.

        Returns:
            True if woken by notify(), False on timeout.
        """
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
            return True
        except TimeoutError:
            return False
        finally:
            with self._lock:
                self._notified = False
            self._wakeup.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


@runtime_checkable
class Runtime(Protocol):
    """Capabilities the export core needs from a concurrency runtime."""

    def spawn(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Run coro as a background task; the returned future is thread-safe."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current background task."""
        ...

    def bounded_channel(self, capacity: int) -> BoundedChannel[Any]:
        """Create a channel whose consumer runs on this runtime."""
        ...

    def in_runtime(self) -> bool:
        """True when called from the thread that drives this runtime's tasks."""
        ...


class AsyncioRuntime:
    """Runtime backed by an event loop running on another thread.

    Use this when the application already owns a long-lived event loop and
    wants export work scheduled on it. The loop must be running (in a
    different thread from the producers that call blocking flush/shutdown).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def spawn(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def bounded_channel(self, capacity: int) -> BoundedChannel[Any]:
        return BoundedChannel(capacity, self._loop)

    def in_runtime(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False


class ThreadRuntime(AsyncioRuntime):
    """Runtime that owns a private event loop on a background thread.

    The thread is a daemon so a process that forgets to shut its providers
    down can still exit; records still buffered at that point are lost.
    Orderly termination goes through provider.shutdown(), which closes the
    runtime after the final drain.

    Example:
        runtime = ThreadRuntime()
        future = runtime.spawn(some_coroutine())
        future.result(timeout=5.0)
        runtime.close()
    """

    def __init__(self, name: str | None = None) -> None:
        super().__init__(asyncio.new_event_loop())
        self._closed = False
        self._close_lock = threading.Lock()
        self._ready = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=name or str(INTERNAL_DEFAULTS["runtime"]["thread_name"]),
            daemon=True,
        )
        self._thread.start()
        # Wait for the loop to run (prevents startup race on first spawn)
        if not self._ready.wait(timeout=float(INTERNAL_DEFAULTS["runtime"]["startup_timeout"])):
            logger.error("Runtime thread did not start within timeout", thread=self._thread.name)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        try:
            self._loop.run_forever()
        finally:
            self._cancel_pending_tasks()
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    def _cancel_pending_tasks(self) -> None:
        pending = asyncio.all_tasks(self._loop)
        if not pending:
            return
        for task in pending:
            task.cancel()
        self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        logger.debug("Cancelled pending runtime tasks", count=len(pending))

    @property
    def is_closed(self) -> bool:
        return self._closed

    def spawn(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        if self._closed:
            coro.close()
            raise RuntimeError("ThreadRuntime is closed")
        return super().spawn(coro)

    def in_runtime(self) -> bool:
        return threading.current_thread() is self._thread

    def close(self, timeout: float | None = None) -> None:
        """Stop the loop and join the thread. Idempotent.

        Tasks still running are cancelled; callers shut processors and
        readers down first so nothing is left in flight.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._loop.call_soon_threadsafe(self._loop.stop)
        if self.in_runtime():
            return
        join_timeout = timeout if timeout is not None else float(INTERNAL_DEFAULTS["runtime"]["join_timeout"])
        self._thread.join(timeout=join_timeout)
        if self._thread.is_alive():
            logger.error("Runtime thread did not exit cleanly within timeout", thread=self._thread.name)
