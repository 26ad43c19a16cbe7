"""Builds the shared defense state and the per-route pipelines from config.

All pipelines built here share one reputation tracker, one event sink and one
janitor, so an offence on any route counts everywhere.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from src.config import SecurityConfig
from src.security import events
from src.security.dedup import ContentDeduplicator, DedupConfig
from src.security.janitor import Janitor
from src.security.patterns import PatternRegistry
from src.security.pipeline import (
    BlockedIPStage,
    DedupStage,
    DefensePipeline,
    PatternStage,
    RateLimitStage,
    RequestContext,
    SlowDownStage,
    ValidationStage,
)
from src.security.rate_limit import ProgressiveSlowDown, SlidingWindowRateLimiter
from src.security.reputation import ReputationTracker
from src.security.store import ShardedMemoryStore

logger = logging.getLogger(__name__)

CHAT_RATE_LIMIT_MESSAGE = "Too many chat requests. Please wait a moment before trying again."
API_RATE_LIMIT_MESSAGE = "Too many API requests. Please try again later."


@dataclass
class Defense:
    """Shared defense components plus the two route pipelines."""

    config: SecurityConfig
    sink: events.SecurityEventSink
    reputation: ReputationTracker
    patterns: PatternRegistry
    chat_limiter: SlidingWindowRateLimiter
    api_limiter: SlidingWindowRateLimiter
    slow_down: ProgressiveSlowDown
    dedup: ContentDeduplicator
    janitor: Janitor
    chat: DefensePipeline
    api: DefensePipeline
    blocked: BlockedIPStage

    def escalate(self, ip: str, reason: str, user_agent: str | None = None) -> None:
        """Explicitly raise suspicion for ``ip`` (e.g. from a route's error handler)."""
        self.sink.emit(events.SecurityEvent(
            type=events.SUSPICIOUS_INPUT,
            ip=ip,
            user_agent=user_agent,
            message=reason,
            severity="medium",
        ))
        self.reputation.mark_suspicious(ip)

    def report_validation_error(self, ctx: RequestContext, detail: str) -> None:
        self.sink.emit(events.SecurityEvent(
            type=events.VALIDATION_ERROR,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            message=detail,
            severity="low",
        ))


def build_defense(
    config: SecurityConfig | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    sink: events.SecurityEventSink | None = None,
    patterns: PatternRegistry | None = None,
) -> Defense:
    """Wire every defense component from ``config``."""
    cfg = config or SecurityConfig()
    sink = sink or events.SecurityEventSink()
    patterns = patterns or PatternRegistry()

    def _store() -> ShardedMemoryStore:
        return ShardedMemoryStore(shards=cfg.store_shards)

    def _on_block(ip: str, count: int) -> None:
        sink.emit(events.SecurityEvent(
            type=events.BLOCKED_REQUEST,
            ip=ip,
            message=f"IP blocked due to {count} suspicious requests",
            severity="high",
        ))

    reputation = ReputationTracker(
        block_threshold=cfg.block_threshold,
        idle_seconds=cfg.reputation_idle_seconds,
        store=_store(),
        clock=clock,
        on_block=_on_block,
    )
    chat_limiter = SlidingWindowRateLimiter(
        name="chat",
        max_requests=cfg.max_requests_per_minute,
        window_seconds=60,
        multiplier=cfg.rate_limit_multiplier,
        store=_store(),
        log_store=_store(),
        log_suppress_seconds=cfg.rate_limit_log_suppress_seconds,
        clock=clock,
    )
    api_limiter = SlidingWindowRateLimiter(
        name="api",
        max_requests=cfg.max_requests_per_hour,
        window_seconds=60 * 60,
        multiplier=cfg.rate_limit_multiplier,
        store=_store(),
        log_store=_store(),
        log_suppress_seconds=cfg.rate_limit_log_suppress_seconds,
        clock=clock,
    )
    slow_down = ProgressiveSlowDown(
        threshold=cfg.slow_down_threshold,
        delay_per_hit_ms=cfg.slow_down_delay_ms,
        max_delay_ms=cfg.slow_down_max_delay_ms,
        sleep=sleep,
    )
    dedup = ContentDeduplicator(
        config=DedupConfig(
            prefix_length=cfg.fingerprint_prefix_length,
            short_window=cfg.dedup_short_window_seconds,
            short_threshold=cfg.dedup_short_threshold,
            long_window=cfg.dedup_long_window_seconds,
            long_threshold=cfg.dedup_long_threshold,
            frequency_limit=cfg.message_frequency_limit,
            frequency_window=cfg.message_frequency_window_seconds,
        ),
        fingerprints=_store(),
        frequency=_store(),
        clock=clock,
    )

    blocked = BlockedIPStage(
        reputation,
        enabled=cfg.enable_ip_blocking,
        log_store=_store(),
        log_suppress_seconds=cfg.rate_limit_log_suppress_seconds,
        clock=clock,
    )
    validation = ValidationStage(max_length=cfg.max_message_length)
    pattern_stage = PatternStage(
        patterns,
        enabled=cfg.enable_suspicious_pattern_detection,
        max_length=cfg.max_message_length,
    )

    chat = DefensePipeline(
        "chat",
        [
            ("blocked_ip", blocked),
            ("validation", validation),
            ("patterns", pattern_stage),
            ("rate_limit", RateLimitStage(chat_limiter, CHAT_RATE_LIMIT_MESSAGE)),
            ("slow_down", SlowDownStage(slow_down)),
            ("dedup", DedupStage(dedup)),
        ],
        sink=sink,
        reputation=reputation,
    )
    api = DefensePipeline(
        "api",
        [
            ("blocked_ip", blocked),
            ("validation", validation),
            ("patterns", pattern_stage),
            ("rate_limit", RateLimitStage(api_limiter, API_RATE_LIMIT_MESSAGE)),
        ],
        sink=sink,
        reputation=reputation,
    )

    janitor = Janitor(interval_seconds=cfg.janitor_interval_seconds, clock=clock)
    janitor.register("reputation", reputation.sweep)
    janitor.register("fingerprints", dedup.sweep_fingerprints)
    janitor.register("message_frequency", dedup.sweep_frequency)
    janitor.register("chat_windows", chat_limiter.sweep)
    janitor.register("api_windows", api_limiter.sweep)
    marker_age = cfg.rate_limit_marker_retention_seconds
    janitor.register("chat_log_markers", lambda now: chat_limiter.sweep_log_markers(marker_age, now))
    janitor.register("api_log_markers", lambda now: api_limiter.sweep_log_markers(marker_age, now))
    janitor.register("blocked_log_markers", lambda now: blocked.sweep_log_markers(marker_age, now))

    logger.info(
        "Defense pipeline ready: chat=%d/min, api=%d/h (x%d), block after %d, "
        "ip_blocking=%s, patterns=%s",
        cfg.max_requests_per_minute, cfg.max_requests_per_hour, cfg.rate_limit_multiplier,
        cfg.block_threshold, cfg.enable_ip_blocking, cfg.enable_suspicious_pattern_detection,
    )

    return Defense(
        config=cfg,
        sink=sink,
        reputation=reputation,
        patterns=patterns,
        chat_limiter=chat_limiter,
        api_limiter=api_limiter,
        slow_down=slow_down,
        dedup=dedup,
        janitor=janitor,
        chat=chat,
        api=api,
        blocked=blocked,
    )
