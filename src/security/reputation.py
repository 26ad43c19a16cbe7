"""Per-IP suspicion tracking with escalation to a hard block.

State machine per address:

    Unknown --mark--> Suspicious(n) --n > threshold--> Blocked

Blocked is terminal; only the Janitor clears it, by expiring the whole record
once the address has been idle for the idle horizon.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable

from src.security.store import ShardedMemoryStore, StateStore

logger = logging.getLogger(__name__)


@dataclass
class ReputationRecord:
    suspicion_count: int
    last_seen: float
    blocked: bool = False


class ReputationTracker:
    """Accumulates suspicion per IP and blocks persistent offenders."""

    def __init__(
        self,
        block_threshold: int = 10,
        idle_seconds: float = 24 * 60 * 60,
        store: StateStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_block: Callable[[str, int], None] | None = None,
    ):
        self.block_threshold = block_threshold
        self.idle_seconds = idle_seconds
        self._records = store if store is not None else ShardedMemoryStore()
        self._clock = clock
        self._on_block = on_block

    def mark_suspicious(self, ip: str, weight: int = 1) -> ReputationRecord:
        """Increase the suspicion counter for ``ip``; block once past threshold."""
        if weight < 1:
            raise ValueError("weight must be >= 1")
        now = self._clock()
        threshold = self.block_threshold

        def _step(record: ReputationRecord | None):
            if record is None:
                record = ReputationRecord(suspicion_count=0, last_seen=now)
            record.suspicion_count += weight
            record.last_seen = max(record.last_seen, now)
            newly_blocked = False
            if not record.blocked and record.suspicion_count > threshold:
                record.blocked = True
                newly_blocked = True
            return record, (replace(record), newly_blocked)

        snapshot, newly_blocked = self._records.update(ip, _step)

        if newly_blocked:
            logger.warning(
                "Blocking IP %s after %d suspicious events", ip, snapshot.suspicion_count
            )
            if self._on_block is not None:
                self._on_block(ip, snapshot.suspicion_count)
        return snapshot

    def is_blocked(self, ip: str) -> bool:
        record = self._records.get(ip)
        return record is not None and record.blocked

    def suspicion_count(self, ip: str) -> int:
        record = self._records.get(ip)
        return record.suspicion_count if record is not None else 0

    def get(self, ip: str) -> ReputationRecord | None:
        record = self._records.get(ip)
        return replace(record) if record is not None else None

    def sweep(self, now: float | None = None) -> int:
        """Forget addresses idle longer than the idle horizon (blocked or not)."""
        now = self._clock() if now is None else now
        return self._records.sweep(lambda r: now - r.last_seen > self.idle_seconds)

    def __len__(self) -> int:
        return len(self._records)
