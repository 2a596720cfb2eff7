"""Unit tests for per-target delivery stats."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from courier.stats import StatsTracker

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class TestStatsTracker:
    """Tests for StatsTracker."""

    def test_get_unknown_is_zeroed(self) -> None:
        stats = StatsTracker().get("whk_1")
        assert stats.target_id == "whk_1"
        assert stats.total_calls == 0
        assert stats.success_count == 0
        assert stats.failure_count == 0
        assert stats.average_duration_ms == 0.0
        assert stats.last_called is None

    def test_record_success_and_failure(self) -> None:
        """Averages should be computed over all recorded attempts."""
        tracker = StatsTracker(clock=lambda: FIXED_NOW)

        tracker.record("whk_1", True, 100.0)
        snapshot = tracker.record("whk_1", False, 300.0)

        assert snapshot.total_calls == 2
        assert snapshot.success_count == 1
        assert snapshot.failure_count == 1
        assert snapshot.total_duration_ms == 400.0
        assert snapshot.average_duration_ms == 200.0
        assert snapshot.last_called == FIXED_NOW
        assert tracker.get("whk_1") == snapshot

    def test_targets_tracked_separately(self) -> None:
        tracker = StatsTracker()
        tracker.record("whk_1", True, 10.0)
        tracker.record("whk_2", False, 20.0)

        assert tracker.get("whk_1").success_count == 1
        assert tracker.get("whk_2").failure_count == 1
        assert tracker.get("whk_1").failure_count == 0

    def test_snapshot_is_detached(self) -> None:
        """Returned stats should not change when later attempts are recorded."""
        tracker = StatsTracker()
        first = tracker.record("whk_1", True, 10.0)
        tracker.record("whk_1", True, 10.0)
        assert first.total_calls == 1

    def test_discard(self) -> None:
        tracker = StatsTracker()
        tracker.record("whk_1", True, 10.0)
        tracker.discard("whk_1")
        assert tracker.get("whk_1").total_calls == 0

    def test_concurrent_records_are_not_lost(self) -> None:
        """Counter updates from many threads should all be applied."""
        tracker = StatsTracker()

        def worker(success: bool) -> None:
            for _ in range(500):
                tracker.record("whk_1", success, 1.0)

        threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = tracker.get("whk_1")
        assert stats.total_calls == 4000
        assert stats.success_count == 2000
        assert stats.failure_count == 2000
        assert stats.success_count + stats.failure_count == stats.total_calls
        assert stats.total_duration_ms == 4000.0
