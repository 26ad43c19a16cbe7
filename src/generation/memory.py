"""Per-client conversation history.

Keeps the last few turns for each client key so follow-up questions have
context. Entries idle longer than the TTL are dropped by the Janitor.
"""

import time
from dataclasses import dataclass, field
from typing import Callable

from src.security.store import ShardedMemoryStore, StateStore


@dataclass
class Conversation:
    last_seen: float
    messages: list[tuple[str, str]] = field(default_factory=list)


class ConversationMemory:
    """Bounded message history keyed by client."""

    def __init__(
        self,
        max_messages: int = 6,
        ttl_seconds: float = 3600,
        store: StateStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_messages = max_messages
        self.ttl = ttl_seconds
        self._store = store if store is not None else ShardedMemoryStore()
        self._clock = clock

    def append(self, key: str, user_message: str, assistant_message: str) -> None:
        now = self._clock()
        limit = self.max_messages

        def _step(conv: Conversation | None):
            if conv is None or now - conv.last_seen > self.ttl:
                conv = Conversation(last_seen=now)
            conv.messages.append(("user", user_message))
            conv.messages.append(("assistant", assistant_message))
            conv.messages = conv.messages[-limit:]
            conv.last_seen = now
            return conv, None

        self._store.update(key, _step)

    def history(self, key: str) -> list[tuple[str, str]]:
        """(role, content) pairs, oldest first. Empty when expired."""
        conv = self._store.get(key)
        if conv is None or self._clock() - conv.last_seen > self.ttl:
            return []
        return list(conv.messages)

    def clear(self, key: str) -> None:
        self._store.update(key, lambda _conv: (None, None))

    def sweep(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        return self._store.sweep(lambda conv: now - conv.last_seen > self.ttl)

    def __len__(self) -> int:
        return len(self._store)
