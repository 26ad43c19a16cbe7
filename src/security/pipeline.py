"""Ordered request-defense pipeline.

A pipeline is a list of named stages. Each stage looks at the
``RequestContext`` and returns either None (continue) or a ``DefenseError``
(reject). The first rejection short-circuits the chain and is reported to
the security event sink. Suspicious and blocked traffic also counts against
the client's reputation.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from src.security import events
from src.security.dedup import ContentDeduplicator, DedupDecision
from src.security.errors import (
    BlockedIP,
    DefenseError,
    DuplicateContent,
    RateLimitExceeded,
    SuspiciousPattern,
    ValidationError,
)
from src.security.patterns import PatternRegistry
from src.security.rate_limit import ProgressiveSlowDown, SlidingWindowRateLimiter
from src.security.reputation import ReputationTracker
from src.security.store import ShardedMemoryStore, StateStore

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Everything the stages need to know about one inbound request."""

    ip: str
    client_key: str
    path: str
    user_agent: str | None = None
    message: str | None = None
    rate_hits: int = 0
    delay: float = 0.0


Stage = Callable[[RequestContext], DefenseError | None]


# ── Stages ───────────────────────────────────────────────────────────


class BlockedIPStage:
    """Rejects every request from a blocked address before anything else runs.

    Only the first rejection per address in each ``log_suppress_seconds``
    window is logged.
    """

    def __init__(
        self,
        reputation: ReputationTracker,
        enabled: bool = True,
        log_store: StateStore | None = None,
        log_suppress_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reputation = reputation
        self.enabled = enabled
        self.log_suppress_seconds = log_suppress_seconds
        self._log_markers = log_store if log_store is not None else ShardedMemoryStore()
        self._clock = clock

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        if self.enabled and self.reputation.is_blocked(ctx.ip):
            return BlockedIP(
                f"Request from blocked IP (further logs suppressed for "
                f"{int(self.log_suppress_seconds)}s)",
                log=self.should_log(ctx.ip),
            )
        return None

    def should_log(self, ip: str) -> bool:
        now = self._clock()
        suppress = self.log_suppress_seconds

        def _step(last_logged: float | None):
            if last_logged is not None and now - last_logged < suppress:
                return last_logged, False
            return now, True

        return self._log_markers.update(ip, _step)

    def sweep_log_markers(self, max_age: float, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        return self._log_markers.sweep(lambda last: now - last > max_age)


class ValidationStage:
    """Checks message presence and length, then normalizes whitespace."""

    def __init__(self, max_length: int = 1000):
        self.max_length = max_length

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        if ctx.message is None:
            return None
        if not isinstance(ctx.message, str) or not ctx.message.strip():
            return ValidationError("Validation failed: message must be a non-empty string")
        if len(ctx.message) > self.max_length:
            return ValidationError(
                f"Validation failed: message length {len(ctx.message)} exceeds {self.max_length}"
            )
        return None


class PatternStage:
    """Rejects content matching a known attack or spam signature."""

    def __init__(self, registry: PatternRegistry, enabled: bool = True, max_length: int = 1000):
        self.registry = registry
        self.enabled = enabled
        self.max_length = max_length

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        if ctx.message is None:
            return None
        if self.enabled:
            signature = self.registry.classify(ctx.message)
            if signature is not None:
                return SuspiciousPattern(
                    f"Suspicious pattern detected ({signature.category}/{signature.name}): "
                    f"{events.snippet(ctx.message)}",
                    severity=signature.severity,
                )
        # Sanitize what is handed on to the engine
        ctx.message = " ".join(ctx.message.split())[: self.max_length]
        return None


class RateLimitStage:
    """Counts the request against a windowed limiter."""

    def __init__(self, limiter: SlidingWindowRateLimiter, public_message: str | None = None):
        self.limiter = limiter
        self.public_message = public_message

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        decision = self.limiter.admit(ctx.client_key)
        ctx.rate_hits = decision.count
        if decision.allowed:
            return None
        return RateLimitExceeded(
            f"Rate limit exceeded ({self.limiter.name}): {decision.limit} requests "
            f"per {int(self.limiter.window)}s (further logs suppressed for "
            f"{int(self.limiter.log_suppress_seconds)}s)",
            public_message=self.public_message,
            log=self.limiter.should_log(ctx.client_key),
            retry_after=decision.retry_after,
        )


class SlowDownStage:
    """Delays bursty clients based on the hit count set by the rate-limit stage."""

    def __init__(self, slow_down: ProgressiveSlowDown):
        self.slow_down = slow_down

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        # No store lock is held here; the limiter update has already returned
        ctx.delay = self.slow_down.apply(ctx.rate_hits)
        return None


class DedupStage:
    """Rejects repeated content and over-frequent senders."""

    def __init__(self, dedup: ContentDeduplicator):
        self.dedup = dedup

    def __call__(self, ctx: RequestContext) -> DefenseError | None:
        if not ctx.message:
            return None
        decision = self.dedup.check(ctx.client_key, ctx.ip, ctx.message)
        if decision is DedupDecision.ALLOWED:
            return None
        cfg = self.dedup.config
        if decision is DedupDecision.TOO_FREQUENT:
            return DuplicateContent(
                f"Message frequency exceeded: more than {cfg.frequency_limit} messages "
                f"in {int(cfg.frequency_window)}s",
                public_message="Too many messages. Please slow down.",
            )
        if decision is DedupDecision.LONG_TERM_SPAM:
            return DuplicateContent(
                f"Long-term repeated message (>{cfg.long_threshold} in "
                f"{int(cfg.long_window)}s): {events.snippet(ctx.message)}",
                severity="high",
            )
        return DuplicateContent(
            f"Short-term repeated message (>{cfg.short_threshold} in "
            f"{int(cfg.short_window)}s): {events.snippet(ctx.message)}",
        )


# ── Orchestrator ─────────────────────────────────────────────────────


class DefensePipeline:
    """Runs stages in order and reports the first rejection."""

    def __init__(
        self,
        name: str,
        stages: list[tuple[str, Stage]],
        sink: events.SecurityEventSink,
        reputation: ReputationTracker,
    ):
        self.name = name
        self.stages = stages
        self.sink = sink
        self.reputation = reputation

    @property
    def stage_names(self) -> list[str]:
        return [name for name, _ in self.stages]

    def evaluate(self, ctx: RequestContext) -> DefenseError | None:
        """Return the first stage rejection for ``ctx``, or None if admitted."""
        for stage_name, stage in self.stages:
            error = stage(ctx)
            if error is not None:
                logger.debug(
                    "%s pipeline rejected %s at %s: %s",
                    self.name, ctx.client_key, stage_name, error.detail,
                )
                self.report(ctx, error)
                return error
        return None

    def report(self, ctx: RequestContext, error: DefenseError) -> None:
        """Emit the event for ``error`` and feed escalating events back."""
        if error.log:
            self.sink.emit(events.SecurityEvent(
                type=error.event_type,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
                message=error.detail,
                severity=error.severity,
            ))
        if error.event_type in events.ESCALATING_TYPES:
            self.reputation.mark_suspicious(ctx.ip)
