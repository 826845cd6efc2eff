"""Per-job partition of stocks into queued, skipped, successful and failed."""

import threading
from collections import deque
from typing import Optional

from ratingtracker.models import Stock


class FetchWorkspace:
    """Shared by all workers of a fetch job.

    Every stock is in exactly one of the four partitions. All access goes
    through a single lock, so popping the head of the queue is atomic across
    workers.
    """

    def __init__(self, queued: list[Stock], failure_threshold: int = 10):
        self._lock = threading.Lock()
        self._queued: deque[Stock] = deque(queued)
        self._skipped: list[Stock] = []
        self._successful: list[Stock] = []
        self._failed: list[Stock] = []
        self._failure_threshold = failure_threshold
        self._tripped = False

    def pop(self) -> Optional[Stock]:
        """Remove and return the next queued stock, or None when the queue is empty."""
        with self._lock:
            return self._queued.popleft() if self._queued else None

    def skip(self, stock: Stock) -> None:
        with self._lock:
            self._skipped.append(stock)

    def succeed(self, stock: Stock) -> None:
        with self._lock:
            self._successful.append(stock)

    def fail(self, stock: Stock) -> bool:
        """Record a failed stock.

        When this failure reaches the threshold while stocks are still queued,
        those are moved to skipped, so no worker picks up new work.

        Returns:
            True for at most one call: the one that tripped the breaker.
        """
        with self._lock:
            self._failed.append(stock)
            if self._tripped or len(self._failed) < self._failure_threshold or not self._queued:
                return False
            self._tripped = True
            self._skipped.extend(self._queued)
            self._queued.clear()
            return True

    @property
    def tripped(self) -> bool:
        with self._lock:
            return self._tripped

    @property
    def queued(self) -> list[Stock]:
        with self._lock:
            return list(self._queued)

    @property
    def skipped(self) -> list[Stock]:
        with self._lock:
            return list(self._skipped)

    @property
    def successful(self) -> list[Stock]:
        with self._lock:
            return list(self._successful)

    @property
    def failed(self) -> list[Stock]:
        with self._lock:
            return list(self._failed)
