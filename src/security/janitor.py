"""Periodic sweep that reclaims memory from expired defense state.

Records normally expire logically on read; the Janitor is the backstop for
one-shot clients that never come back. Each task is a named callable taking
the current clock reading and returning how many entries it removed. Tasks
delete through ``StateStore.sweep``, which takes the same shard locks as the
request path.
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

SweepTask = Callable[[float], int]


class Janitor:
    """Runs registered sweep tasks on a fixed interval in a daemon thread."""

    def __init__(
        self,
        interval_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval_seconds
        self._clock = clock
        self._tasks: list[tuple[str, SweepTask]] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def register(self, name: str, task: SweepTask) -> None:
        self._tasks.append((name, task))

    @property
    def task_names(self) -> list[str]:
        return [name for name, _ in self._tasks]

    def run_once(self) -> dict[str, int]:
        """Run every task once and return removed counts by task name."""
        now = self._clock()
        removed: dict[str, int] = {}
        for name, task in self._tasks:
            try:
                removed[name] = task(now)
            except Exception:
                # Remaining tasks still run
                logger.exception("Janitor task %s failed", name)
                removed[name] = 0
        total = sum(removed.values())
        if total:
            logger.info("Janitor removed %d expired entries: %s", total, removed)
        return removed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()

    def start(self) -> None:
        """Start the background thread. Calling twice is a no-op."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, name="defense-janitor", daemon=True)
            self._thread.start()
        logger.info("Janitor started (interval=%ss, tasks=%s)", self.interval, self.task_names)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout=timeout)
        logger.info("Janitor stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
