"""Key-partitioned state storage for the defense pipeline.

Every piece of mutable security state (rate windows, fingerprints, reputation
records, ...) lives in a ``StateStore``. The only read-modify-write primitive
is ``update``, which runs a caller-supplied function atomically for one key.

``ShardedMemoryStore`` is the in-process implementation: keys hash onto a
fixed number of shards, each a plain dict guarded by its own lock, so
requests for different keys almost never contend. A multi-instance deployment
can implement the same interface over a shared cache.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator

# An updater receives the current value (None if absent) and returns
# (new_value, result). Returning None as new_value deletes the key.
Updater = Callable[[Any], tuple[Any, Any]]


class StateStore(ABC):
    """Abstract key/value store with per-key atomic update."""

    @abstractmethod
    def update(self, key: str, fn: Updater) -> Any:
        """Atomically apply ``fn`` to the value at ``key`` and return its result."""
        ...

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the value at ``key`` or None. No lock is held afterwards."""
        ...

    @abstractmethod
    def sweep(self, is_expired: Callable[[Any], bool]) -> int:
        """Delete every value for which ``is_expired`` is true. Returns count."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class _Shard:
    __slots__ = ("lock", "data")

    def __init__(self):
        self.lock = threading.Lock()
        self.data: dict[str, Any] = {}


class ShardedMemoryStore(StateStore):
    """In-memory ``StateStore`` partitioned into independently locked shards."""

    def __init__(self, shards: int = 64):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [_Shard() for _ in range(shards)]

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def update(self, key: str, fn: Updater) -> Any:
        shard = self._shard_for(key)
        with shard.lock:
            new_value, result = fn(shard.data.get(key))
            if new_value is None:
                shard.data.pop(key, None)
            else:
                shard.data[key] = new_value
        return result

    def get(self, key: str) -> Any:
        shard = self._shard_for(key)
        with shard.lock:
            return shard.data.get(key)

    def sweep(self, is_expired: Callable[[Any], bool]) -> int:
        removed = 0
        # One shard lock at a time
        for shard in self._shards:
            with shard.lock:
                expired = [k for k, v in shard.data.items() if is_expired(v)]
                for k in expired:
                    del shard.data[k]
                removed += len(expired)
        return removed

    def keys(self) -> Iterator[str]:
        """Snapshot of all keys (for diagnostics and tests)."""
        for shard in self._shards:
            with shard.lock:
                snapshot = list(shard.data)
            yield from snapshot

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.data)
        return total
