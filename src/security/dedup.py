"""Repeated-content detection.

Two independent checks run on every chat message:

1. Per-IP message frequency — caps how many messages of *any* content one
   address may send in a rolling window, catching spam that varies its text.
2. Content fingerprints — a hash of the normalized message per client key,
   rejecting short bursts of the same text and slower repeats that add up
   over a longer horizon.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from src.security.store import ShardedMemoryStore, StateStore

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_message(text: str, prefix_length: int = 100) -> str:
    """Lowercase, strip punctuation, collapse whitespace and truncate.

    Long near-duplicates that share a prefix normalize to the same string.
    """
    text = _PUNCTUATION.sub("", (text or "").lower())
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:prefix_length]


def fingerprint(text: str, prefix_length: int = 100) -> str:
    """SHA-256 hex digest of the normalized message."""
    normalized = normalize_message(text, prefix_length)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass
class MessageFingerprint:
    """Repeat counters for one normalized message from one client."""

    hash: str
    first_seen: float
    last_seen: float
    count: int = 1
    total: int = 1


@dataclass
class FrequencyWindow:
    """Message count for one IP within the current frequency window."""

    window_start: float
    count: int = 0


class DedupDecision(str, Enum):
    ALLOWED = "allowed"
    TOO_FREQUENT = "too_frequent"
    SHORT_TERM_SPAM = "short_term_spam"
    LONG_TERM_SPAM = "long_term_spam"


@dataclass
class DedupConfig:
    prefix_length: int = 100
    short_window: float = 60
    short_threshold: int = 2
    long_window: float = 600
    long_threshold: int = 5
    frequency_limit: int = 15
    frequency_window: float = 300


class ContentDeduplicator:
    """Fingerprint and frequency checks for chat messages."""

    def __init__(
        self,
        config: DedupConfig | None = None,
        fingerprints: StateStore | None = None,
        frequency: StateStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or DedupConfig()
        self._fingerprints = fingerprints if fingerprints is not None else ShardedMemoryStore()
        self._frequency = frequency if frequency is not None else ShardedMemoryStore()
        self._clock = clock

    def check(self, key: str, ip: str, message: str) -> DedupDecision:
        """Record ``message`` from ``key``/``ip`` and decide whether it is spam."""
        if not self._admit_frequency(ip):
            return DedupDecision.TOO_FREQUENT
        return self._check_fingerprint(key, message)

    def _admit_frequency(self, ip: str) -> bool:
        now = self._clock()
        cfg = self.config

        def _step(window: FrequencyWindow | None):
            if window is None or now - window.window_start >= cfg.frequency_window:
                window = FrequencyWindow(window_start=now)
            window.count += 1
            return window, window.count <= cfg.frequency_limit

        return self._frequency.update(ip, _step)

    def _check_fingerprint(self, key: str, message: str) -> DedupDecision:
        now = self._clock()
        cfg = self.config
        digest = fingerprint(message, cfg.prefix_length)

        def _step(fp: MessageFingerprint | None):
            if fp is None:
                return MessageFingerprint(hash=digest, first_seen=now, last_seen=now), DedupDecision.ALLOWED

            if now - fp.last_seen <= cfg.short_window:
                fp.count += 1
                fp.total += 1
                fp.last_seen = now
                if fp.count > cfg.short_threshold:
                    return fp, DedupDecision.SHORT_TERM_SPAM
                # A quick retry after a long-term rejection is still spam
                if now - fp.first_seen <= cfg.long_window and fp.total > cfg.long_threshold:
                    return fp, DedupDecision.LONG_TERM_SPAM
                return fp, DedupDecision.ALLOWED

            if now - fp.first_seen <= cfg.long_window:
                fp.count = 1
                fp.total += 1
                fp.last_seen = now
                if fp.total > cfg.long_threshold:
                    return fp, DedupDecision.LONG_TERM_SPAM
                return fp, DedupDecision.ALLOWED

            fp.count = 1
            fp.total = 1
            fp.first_seen = now
            fp.last_seen = now
            return fp, DedupDecision.ALLOWED

        return self._fingerprints.update(f"{key}|{digest}", _step)

    def get_fingerprint(self, key: str, message: str) -> MessageFingerprint | None:
        """Current fingerprint record for ``message`` from ``key``, if any."""
        digest = fingerprint(message, self.config.prefix_length)
        return self._fingerprints.get(f"{key}|{digest}")

    def sweep_fingerprints(self, now: float | None = None) -> int:
        """Drop fingerprints idle longer than the long horizon."""
        now = self._clock() if now is None else now
        horizon = self.config.long_window
        return self._fingerprints.sweep(lambda fp: now - fp.last_seen > horizon)

    def sweep_frequency(self, now: float | None = None) -> int:
        """Drop frequency windows that have already elapsed."""
        now = self._clock() if now is None else now
        window = self.config.frequency_window
        return self._frequency.sweep(lambda w: now - w.window_start >= window)

    @property
    def fingerprint_count(self) -> int:
        return len(self._fingerprints)

    @property
    def frequency_count(self) -> int:
        return len(self._frequency)
