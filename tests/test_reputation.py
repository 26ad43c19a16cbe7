"""Tests for per-IP suspicion tracking and blocking."""

import pytest

from src.security.reputation import ReputationTracker


@pytest.fixture
def blocks() -> list:
    return []


@pytest.fixture
def tracker(clock, blocks) -> ReputationTracker:
    return ReputationTracker(
        block_threshold=10,
        idle_seconds=86400,
        clock=clock,
        on_block=lambda ip, count: blocks.append((ip, count)),
    )


class TestReputationTracker:
    def test_unknown_ip_is_clean(self, tracker):
        assert tracker.is_blocked("1.1.1.1") is False
        assert tracker.suspicion_count("1.1.1.1") == 0
        assert tracker.get("1.1.1.1") is None

    def test_blocks_once_past_threshold(self, tracker, blocks):
        for _ in range(10):
            tracker.mark_suspicious("1.1.1.1")
        assert not tracker.is_blocked("1.1.1.1")

        record = tracker.mark_suspicious("1.1.1.1")
        assert record.blocked
        assert record.suspicion_count == 11
        assert tracker.is_blocked("1.1.1.1")
        assert blocks == [("1.1.1.1", 11)]

    def test_block_callback_fires_once(self, tracker, blocks):
        for _ in range(15):
            tracker.mark_suspicious("1.1.1.1")
        assert len(blocks) == 1

    def test_weight(self, tracker):
        tracker.mark_suspicious("1.1.1.1", weight=11)
        assert tracker.is_blocked("1.1.1.1")

    def test_rejects_non_positive_weight(self, tracker):
        with pytest.raises(ValueError):
            tracker.mark_suspicious("1.1.1.1", weight=0)

    def test_snapshot_is_a_copy(self, tracker):
        record = tracker.mark_suspicious("1.1.1.1")
        record.suspicion_count = 99
        assert tracker.suspicion_count("1.1.1.1") == 1

    def test_sweep_expires_idle_records_even_when_blocked(self, tracker, clock):
        tracker.mark_suspicious("1.1.1.1", weight=20)
        clock.advance(3600)
        tracker.mark_suspicious("2.2.2.2")
        clock.advance(86400 - 3600 + 1)

        assert tracker.sweep() == 1
        assert not tracker.is_blocked("1.1.1.1")
        assert tracker.suspicion_count("2.2.2.2") == 1
