# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Background prefetching for batch iterators.

Reading a batch file from disk is slow compared to one SGD step on it, so
AsyncBatchIterator moves the reads onto a daemon thread. The worker pulls
batches from the wrapped iterator into a bounded queue; the training loop
takes them off the other end. With a queue of N the loader runs at most N
batches ahead, which caps memory.

Contract:
  - batches come out in exactly the order the wrapped iterator produces them
  - an exception raised while loading is re-raised in the consumer, at the
    position in the stream where it happened
  - reset() stops the worker, drains the queue, resets the wrapped iterator
    and starts a fresh worker
  - shutdown() stops and joins the worker; calling it twice is fine
"""

import logging
import queue
import threading
from types import TracebackType
from typing import Iterator, Optional, Protocol

from presave.data.exceptions import UnsupportedOperationError
from presave.data.minibatch.core import MiniBatch
from presave.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 8

# How often a blocked worker re-checks the stop flag.
_POLL_SECONDS = 0.05

_END = object()
_EMPTY = object()


class BatchIterator(Protocol):
    """What AsyncBatchIterator needs from the iterator it wraps."""

    reset_supported: bool

    def has_next(self) -> bool: ...

    def next(self) -> MiniBatch: ...

    def reset(self) -> None: ...


class _WorkerFailure:
    """Carries an exception from the worker thread to the consumer."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


class AsyncBatchIterator:
    """
    Wraps a batch iterator and loads its batches on a background thread.

    Args:
        base: The iterator to prefetch from.
        queue_size: Maximum number of batches held ahead of the consumer.

    Raises:
        ValueError: If queue_size < 1.
    """

    def __init__(self, base: BatchIterator, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")

        self._base = base
        self._queue_size = queue_size
        self._closed = False
        self._thread: Optional[threading.Thread] = None
        self._start_worker()

    @property
    def base(self) -> BatchIterator:
        return self._base

    @property
    def reset_supported(self) -> bool:
        return bool(getattr(self._base, "reset_supported", False))

    def _start_worker(self) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=self._queue_size)
        self._stop = threading.Event()
        self._peeked: object = _EMPTY
        self._finished = False
        self._thread = threading.Thread(
            target=self._run,
            args=(self._queue, self._stop),
            name="presave-prefetch",
            daemon=True,
        )
        self._thread.start()

    def _run(self, batches: "queue.Queue[object]", stop: threading.Event) -> None:
        try:
            while not stop.is_set() and self._base.has_next():
                batch = self._base.next()
                if not self._put(batches, stop, batch):
                    return
        except Exception as err:
            self._put(batches, stop, _WorkerFailure(err))
            return
        self._put(batches, stop, _END)

    @staticmethod
    def _put(batches: "queue.Queue[object]", stop: threading.Event, item: object) -> bool:
        while not stop.is_set():
            try:
                batches.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _stop_worker(self) -> None:
        self._stop.set()
        # Drain so a worker blocked in put() sees the stop flag promptly.
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def has_next(self) -> bool:
        """
        Block until the next batch (or end of data) is available.

        Raises:
            Exception: Whatever the wrapped iterator raised while loading.
        """
        if self._finished or self._closed:
            return False

        if self._peeked is _EMPTY:
            self._peeked = self._queue.get()

        if self._peeked is _END:
            self._finished = True
            return False

        if isinstance(self._peeked, _WorkerFailure):
            failure = self._peeked
            self._peeked = _EMPTY
            self._finished = True
            raise failure.error

        return True

    def next(self) -> MiniBatch:
        if not self.has_next():
            raise StopIteration
        batch = self._peeked
        self._peeked = _EMPTY
        return batch  # type: ignore[return-value]

    def reset(self) -> None:
        """
        Restart from the first batch.

        Raises:
            UnsupportedOperationError: If the wrapped iterator can't reset.
            RuntimeError: If the iterator has been shut down.
        """
        if not self.reset_supported:
            raise UnsupportedOperationError(
                f"{type(self._base).__name__} does not support reset"
            )
        if self._closed:
            raise RuntimeError("Cannot reset an AsyncBatchIterator after shutdown")

        self._stop_worker()
        self._base.reset()
        self._start_worker()
        logger.debug("Prefetch iterator reset")

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop_worker()

    def __enter__(self) -> "AsyncBatchIterator":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.shutdown()

    def __iter__(self) -> Iterator[MiniBatch]:
        return self

    def __next__(self) -> MiniBatch:
        return self.next()
