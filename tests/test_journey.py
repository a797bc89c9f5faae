"""
Tests for journey tracking (noise filtering, debounce, resume, lifecycle).
"""

import pytest

from sidequest.journey.tracker import JourneyTracker
from sidequest.state.event_bus import EventType
from sidequest.state.schema import JourneyPoint, JourneyStats

from conftest import offset


@pytest.fixture
def tracker(clock):
    """Tracker that has been started on the fake clock."""
    t = JourneyTracker(campaign_id="camp-1", clock=clock)
    t.start()
    return t


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

class TestLifecycle:
    """Tests for the Uninitialized -> Tracking transitions."""

    def test_new_tracker_is_uninitialized(self, clock):
        tracker = JourneyTracker(clock=clock)
        assert tracker.stats is None
        assert not tracker.is_tracking
        assert not tracker.enabled

    def test_uninitialized_operations_are_noops(self, clock, origin):
        tracker = JourneyTracker(clock=clock)
        assert tracker.record_point(origin, 5) is False
        tracker.mark_quest_complete()
        assert tracker.finalize_journey() is None
        assert tracker.stats is None

    def test_start_creates_fresh_stats(self, clock):
        tracker = JourneyTracker(clock=clock)
        stats = tracker.start()

        assert stats.start_time == clock.now
        assert stats.path_points == []
        assert stats.total_distance_traveled == 0.0
        assert stats.end_time is None

    def test_start_twice_keeps_stats(self, tracker, clock, origin):
        tracker.record_point(origin, 5)
        first = tracker.stats
        clock.advance(minutes=5)
        assert tracker.start() is first

    def test_stop_ignores_samples(self, tracker, origin):
        tracker.stop()
        assert tracker.record_point(origin, 5) is False
        assert tracker.stats.path_points == []

    def test_initial_stats_resume(self, clock, origin):
        saved = JourneyStats(
            start_time=clock.now,
            path_points=[JourneyPoint(coordinates=origin, timestamp=clock.now, accuracy=5)],
        )
        tracker = JourneyTracker(initial_stats=saved, clock=clock)
        assert tracker.is_tracking
        assert tracker.stats == saved


# -----------------------------------------------------------------------------
# Filtering
# -----------------------------------------------------------------------------

class TestRecordPoint:
    """Tests for noise rejection and the distance-or-time debounce."""

    def test_first_point_is_baseline(self, tracker, origin):
        assert tracker.record_point(origin, 10) is True
        assert len(tracker.stats.path_points) == 1
        assert tracker.stats.total_distance_traveled == 0.0

    def test_poor_accuracy_never_recorded(self, tracker, origin, clock):
        assert tracker.record_point(origin, 51) is False
        assert tracker.stats.path_points == []

        tracker.record_point(origin, 5)
        clock.advance(seconds=60)
        assert tracker.record_point(offset(origin, north_m=100), 51) is False
        assert len(tracker.stats.path_points) == 1

    def test_accuracy_at_limit_accepted(self, tracker, origin):
        assert tracker.record_point(origin, 50) is True

    def test_time_threshold(self, tracker, origin, clock):
        """P1 baseline, P2 (10s, 5m) rejected, P3 (45s, 5m) recorded."""
        assert tracker.record_point(origin, 5) is True

        clock.advance(seconds=10)
        assert tracker.record_point(offset(origin, north_m=5), 5) is False

        clock.advance(seconds=35)
        assert tracker.record_point(offset(origin, north_m=5), 5) is True

        assert len(tracker.stats.path_points) == 2

    def test_distance_threshold(self, tracker, origin, clock):
        """P1 baseline, P2 (5s, 25m) recorded on distance alone."""
        tracker.record_point(origin, 5)
        clock.advance(seconds=5)
        assert tracker.record_point(offset(origin, north_m=25), 5) is True

        assert len(tracker.stats.path_points) == 2
        assert tracker.stats.total_distance_traveled == pytest.approx(0.025, rel=1e-3)

    def test_debounce_measured_from_last_recorded_point(self, tracker, origin, clock):
        """Rejected samples do not move the cursor."""
        tracker.record_point(origin, 5)
        for _ in range(5):
            clock.advance(seconds=5)
            tracker.record_point(offset(origin, north_m=15), 5)
        # 25s since baseline, still 15m away
        assert len(tracker.stats.path_points) == 1

        clock.advance(seconds=5)
        assert tracker.record_point(offset(origin, north_m=15), 5) is True

    def test_distance_accumulates(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        for step in (1, 2, 3):
            clock.advance(seconds=5)
            tracker.record_point(offset(origin, north_m=30 * step), 5)

        assert len(tracker.stats.path_points) == 4
        assert tracker.stats.total_distance_traveled == pytest.approx(0.090, rel=1e-3)

    def test_duration_recomputed(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        clock.advance(minutes=12)
        tracker.record_point(offset(origin, north_m=500), 5)
        assert tracker.stats.duration_minutes == 12

    def test_quest_index_stamped(self, tracker, origin, clock):
        tracker.current_quest_index = 2
        tracker.record_point(origin, 5)
        clock.advance(seconds=40)
        tracker.record_point(origin, 5, quest_index=3)

        assert [p.quest_index for p in tracker.stats.path_points] == [2, 3]

    def test_points_ordered_by_timestamp(self, tracker, origin, clock):
        for step in range(4):
            tracker.record_point(offset(origin, east_m=40 * step), 5)
            clock.advance(seconds=10)

        times = [p.timestamp for p in tracker.stats.path_points]
        assert times == sorted(times)

    def test_snapshots_are_not_mutated(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        before = tracker.stats
        clock.advance(seconds=40)
        tracker.record_point(offset(origin, north_m=50), 5)

        assert len(before.path_points) == 1
        assert tracker.stats is not before


# -----------------------------------------------------------------------------
# Resume
# -----------------------------------------------------------------------------

class TestResetWithStats:
    """Tests for restoring persisted stats."""

    def _saved(self, clock, origin) -> JourneyStats:
        start = clock.now
        clock.advance(minutes=10)
        return JourneyStats(
            start_time=start,
            total_distance_traveled=1.2,
            duration_minutes=10,
            path_points=[
                JourneyPoint(coordinates=offset(origin, north_m=-100), timestamp=start, accuracy=5),
                JourneyPoint(coordinates=origin, timestamp=clock.now, accuracy=5),
            ],
        )

    def test_restored_cursor_debounces_next_sample(self, tracker, clock, origin):
        tracker.reset_with_stats(self._saved(clock, origin))
        clock.advance(seconds=10)

        assert tracker.record_point(origin, 5) is False
        assert len(tracker.stats.path_points) == 2

    def test_restored_cursor_measures_distance(self, tracker, clock, origin):
        tracker.reset_with_stats(self._saved(clock, origin))
        clock.advance(seconds=10)

        assert tracker.record_point(offset(origin, north_m=50), 5) is True
        assert tracker.stats.total_distance_traveled == pytest.approx(1.25, rel=1e-3)

    def test_restore_empty_path_takes_baseline(self, tracker, clock, origin):
        tracker.reset_with_stats(JourneyStats(start_time=clock.now))
        assert tracker.record_point(origin, 5) is True

    def test_restore_does_not_enable(self, clock, origin):
        tracker = JourneyTracker(clock=clock)
        tracker.reset_with_stats(self._saved(clock, origin))
        clock.advance(seconds=60)
        assert tracker.record_point(offset(origin, north_m=100), 5) is False

        tracker.start()
        assert tracker.record_point(offset(origin, north_m=100), 5) is True


# -----------------------------------------------------------------------------
# Completion and finalization
# -----------------------------------------------------------------------------

class TestCompletion:
    """Tests for quest completion stamps and journey finalization."""

    def test_mark_quest_complete(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        clock.advance(minutes=3)
        tracker.mark_quest_complete()

        assert tracker.stats.quest_completion_times == [clock.now]
        assert len(tracker.stats.path_points) == 1

    def test_finalize_sets_end_time(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        clock.advance(minutes=20)
        final = tracker.finalize_journey()

        assert final.end_time == clock.now
        assert final.duration_minutes == 20
        assert final.is_finalized
        assert not tracker.enabled

    def test_samples_after_finalize_ignored(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        tracker.finalize_journey()
        clock.advance(minutes=1)
        assert tracker.record_point(offset(origin, north_m=100), 5) is False

    def test_restart_after_finalize_opens_new_leg(self, tracker, origin, clock):
        tracker.record_point(origin, 5)
        tracker.finalize_journey()
        clock.advance(minutes=1)

        stats = tracker.start()
        assert stats.end_time is None
        assert tracker.record_point(offset(origin, north_m=100), 5) is True
        assert len(tracker.stats.path_points) == 2


# -----------------------------------------------------------------------------
# Observers
# -----------------------------------------------------------------------------

class TestSubscribers:
    """Tests for snapshot notification."""

    def test_update_delivers_snapshot(self, tracker, origin):
        received = []
        tracker.subscribe(lambda e: received.append(e))
        tracker.record_point(origin, 5)

        assert len(received) == 1
        assert received[0].type == EventType.JOURNEY_UPDATED
        assert received[0].data["stats"] is tracker.stats

    def test_rejected_sample_not_published(self, tracker, origin):
        received = []
        tracker.subscribe(received.append)
        tracker.record_point(origin, 80)
        assert received == []

    def test_unsubscribe(self, tracker, origin):
        received = []
        tracker.subscribe(received.append)
        tracker.unsubscribe(received.append)
        tracker.record_point(origin, 5)
        assert received == []

    def test_failing_subscriber_does_not_break_tracking(self, tracker, origin):
        def boom(event):
            raise RuntimeError("listener failed")

        tracker.subscribe(boom)
        assert tracker.record_point(origin, 5) is True

    def test_lifecycle_events(self, clock, origin):
        tracker = JourneyTracker(clock=clock)
        seen = []
        tracker.subscribe(lambda e: seen.append(e.type))

        tracker.start()
        tracker.record_point(origin, 5)
        tracker.mark_quest_complete()
        tracker.finalize_journey()

        assert seen == [
            EventType.JOURNEY_STARTED,
            EventType.JOURNEY_UPDATED,
            EventType.QUEST_COMPLETED,
            EventType.JOURNEY_FINALIZED,
        ]
