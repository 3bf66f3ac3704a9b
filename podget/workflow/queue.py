"""Bounded FIFO connecting the feed processor to the download worker.

One producer submits DownloadJobs and one consumer drains them in
arrival order. A full queue blocks the producer (backpressure) rather
than dropping jobs. The producer calls close() when it is done, and the
consumer's iteration ends once everything submitted before close() has
been handed out.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from podget.podcast.feed_parser import Episode

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 15

# Marks the end of input; never handed to consumers
_CLOSED = object()


class QueueClosedError(Exception):
    """Raised when submitting to a closed or cancelled queue."""


@dataclass(frozen=True)
class DownloadJob:
    """A single episode download, created by the producer and consumed once."""

    source_url: str
    destination: Path
    episode: Episode


class DownloadQueue:
    """Bounded single-producer/single-consumer job queue.

    Example:
        jobs = DownloadQueue(maxsize=15)
        jobs.put(job)        # producer, blocks while full
        jobs.close()         # producer, after the last job
        for job in jobs:     # consumer, ends when closed and empty
            ...
    """

    # How often a blocked put re-checks for cancellation
    POLL_INTERVAL = 0.25

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize <= 0:
            raise ValueError(f"maxsize must be greater than zero, got {maxsize}")
        self.maxsize = maxsize
        # One extra slot so close() never blocks behind a full queue
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize + 1)
        self._slots = threading.BoundedSemaphore(maxsize)
        self._lock = threading.Lock()
        self._closed = False
        self._cancelled = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def qsize(self) -> int:
        """Number of jobs waiting to be consumed."""
        with self._lock:
            size = self._queue.qsize()
            return size - 1 if self._closed and size else size

    def put(self, job: DownloadJob, timeout: Optional[float] = None) -> None:
        """Submit a job, blocking while the queue is at capacity.

        Args:
            job: Job to enqueue.
            timeout: Seconds to wait for a free slot, or None to wait forever.

        Raises:
            QueueClosedError: If the queue is closed or gets cancelled.
            queue.Full: If timeout elapses without a free slot.
        """
        self._check_open()

        remaining = timeout
        while True:
            wait = self.POLL_INTERVAL if remaining is None else min(
                self.POLL_INTERVAL, remaining
            )
            if self._slots.acquire(timeout=wait):
                break
            if self._cancelled.is_set():
                raise QueueClosedError("download queue was cancelled")
            if remaining is not None:
                remaining -= wait
                if remaining <= 0:
                    raise queue.Full

        with self._lock:
            if self._closed or self._cancelled.is_set():
                self._slots.release()
                raise QueueClosedError("download queue is closed")
            self._queue.put_nowait(job)

    def get(self, timeout: Optional[float] = None) -> Optional[DownloadJob]:
        """Take the next job in arrival order.

        Returns:
            The next job, or None once the queue is closed and drained.

        Raises:
            queue.Empty: If timeout elapses with no job available.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Leave the marker for any further get() calls
            self._queue.put_nowait(_CLOSED)
            return None
        self._slots.release()
        return item

    def close(self) -> None:
        """Signal that no more jobs will be submitted. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put_nowait(_CLOSED)
        logger.debug("download queue closed")

    def cancel(self) -> None:
        """Abort submission: blocked and future put() calls raise QueueClosedError."""
        self._cancelled.set()
        self.close()

    def __iter__(self) -> Iterator[DownloadJob]:
        while True:
            job = self.get()
            if job is None:
                return
            yield job

    def _check_open(self) -> None:
        if self._cancelled.is_set():
            raise QueueClosedError("download queue was cancelled")
        if self._closed:
            raise QueueClosedError("download queue is closed")
