"""Shared pytest fixtures for the résumé chat API tests."""

import pytest

from src.config import SecurityConfig
from src.security.defense import build_defense


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class SleepRecorder:
    """Stands in for ``time.sleep`` and remembers every requested delay."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def security_config() -> SecurityConfig:
    """Default limits with environment overrides neutralized."""
    return SecurityConfig(
        max_message_length=1000,
        max_requests_per_minute=50,
        max_requests_per_hour=500,
        rate_limit_multiplier=3,
        slow_down_threshold=20,
        slow_down_delay_ms=200,
        slow_down_max_delay_ms=2000,
        enable_ip_blocking=True,
        enable_suspicious_pattern_detection=True,
        escalate_on_upstream_quota=True,
        trust_forwarded_for=False,
        block_threshold=10,
        janitor_interval_seconds=3600,
        security_log_dir=None,
    )


@pytest.fixture
def defense(security_config, clock, sleeps):
    """A fully wired defense running on the fake clock."""
    return build_defense(security_config, clock=clock, sleep=sleeps)
