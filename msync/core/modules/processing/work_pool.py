"""
Bounded worker pool shared by bit-rate probing and transcoding.

Each worker repeatedly claims the next unclaimed item index under a single
lock. Claiming is cheap next to the per-item work (a probe or a transcode
takes seconds), so one coarse lock is enough. The first exception raised by
any worker is recorded under the same lock; once recorded, no further items
are claimed, workers exit cleanly, and the error is re-raised to the caller.
"""

import threading
import concurrent.futures
from typing import Callable, Optional, Sequence, TypeVar

from ....utils.logging import get_logger

logger = get_logger("work_pool")

T = TypeVar("T")


class WorkQueue:
    """Claim-next-index queue over a pre-sized sequence."""

    def __init__(self, items: Sequence[T]):
        self._items = items
        self._next = 0
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None
        self.completed = 0

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def claim(self):
        """Return (index, item) for the next item, or None when drained or failed."""
        with self._lock:
            if self._error is not None or self._next >= len(self._items):
                return None
            index = self._next
            self._next += 1
            return index, self._items[index]

    def record_error(self, exc: BaseException) -> bool:
        """Record ``exc`` if it is the first failure; returns True if it was."""
        with self._lock:
            if self._error is None:
                self._error = exc
                return True
            return False

    def mark_done(self) -> int:
        with self._lock:
            self.completed += 1
            return self.completed


def run_workers(items: Sequence[T], handle: Callable[[T], None], concurrency: int,
                on_done: Optional[Callable[[int], None]] = None,
                name: str = "worker") -> int:
    """
    Process every item with ``handle`` on at most ``concurrency`` threads.

    Args:
        items: Work items; each is handed to exactly one worker.
        handle: Per-item function. Any exception it raises is fatal.
        concurrency: Worker count (clamped to the number of items).
        on_done: Called with the running completion count after each item.
        name: Thread name prefix, for debugging.

    Returns:
        Number of items completed.

    Raises:
        The first exception recorded by any worker.
    """
    queue = WorkQueue(items)
    if not items:
        return 0
    workers = max(1, min(concurrency, len(items)))
    logger.debug(f"running {workers} {name} threads for {len(items)} items")

    def worker():
        while True:
            claimed = queue.claim()
            if claimed is None:
                return
            _, item = claimed
            try:
                handle(item)
            except Exception as exc:
                if not queue.record_error(exc):
                    logger.debug(f"{name}: additional failure after first error: {exc}")
                return
            done = queue.mark_done()
            if on_done is not None:
                on_done(done)

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name) as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
        concurrent.futures.wait(futures)

    if queue.error is not None:
        raise queue.error
    return queue.completed
