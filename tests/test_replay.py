"""
Tests for GPS trace replay.
"""

import json
from datetime import datetime, timedelta

import pytest

from sidequest.journey.replay import TraceSample, load_trace, replay_trace


T0 = datetime(2025, 6, 1, 10, 0, 0)


def sample(seconds: float, north_m: float = 0.0, accuracy: float = 5, **kwargs) -> TraceSample:
    return TraceSample(
        lat=51.5074 + north_m / 111_195,
        lng=-0.1278,
        accuracy=accuracy,
        timestamp=T0 + timedelta(seconds=seconds),
        **kwargs,
    )


class TestReplay:
    """Tests for running traces through a tracker."""

    def test_empty_trace(self):
        assert replay_trace([]) is None

    def test_debounce_follows_trace_time(self):
        stats = replay_trace([
            sample(0),
            sample(10, north_m=5),   # neither threshold
            sample(45, north_m=5),   # time threshold
            sample(50, north_m=40),  # distance threshold
            sample(55, north_m=80, accuracy=120),  # noise
        ])
        assert len(stats.path_points) == 3
        assert stats.total_distance_traveled == pytest.approx(0.040, rel=1e-3)

    def test_finalized(self):
        stats = replay_trace([sample(0), sample(600, north_m=300)])
        assert stats.end_time == T0 + timedelta(seconds=600)
        assert stats.duration_minutes == 10

    def test_unordered_samples_sorted(self):
        stats = replay_trace([sample(60, north_m=100), sample(0)])
        times = [p.timestamp for p in stats.path_points]
        assert times == sorted(times)
        assert stats.start_time == T0

    def test_quest_markers(self):
        stats = replay_trace([
            sample(0, quest_index=0),
            sample(120, north_m=200, quest_index=1, quest_completed=True),
        ])
        assert stats.quest_completion_times == [T0 + timedelta(seconds=120)]
        assert [p.quest_index for p in stats.path_points] == [0, 1]

    def test_config_thresholds(self):
        stats = replay_trace(
            [sample(0), sample(10, north_m=5)],
            config={"min_distance_meters": 2.0},
        )
        assert len(stats.path_points) == 2


class TestLoadTrace:
    """Tests for reading trace files."""

    def test_load(self, tmp_path):
        path = tmp_path / "trace.json"
        path.write_text(json.dumps([
            {"lat": 51.5, "lng": -0.12, "accuracy": 8, "timestamp": "2025-06-01T10:00:00"},
            {"lat": 51.5004, "lng": -0.12, "accuracy": 9, "timestamp": "2025-06-01T10:00:40",
             "quest_completed": True},
        ]))
        samples = load_trace(path)
        assert len(samples) == 2
        assert samples[1].quest_completed

    def test_missing_file(self, tmp_path):
        assert load_trace(tmp_path / "nope.json") == []

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "trace.json"
        path.write_text("[{")
        assert load_trace(path) == []

    def test_invalid_coordinates(self, tmp_path):
        path = tmp_path / "trace.json"
        path.write_text(json.dumps([
            {"lat": 95, "lng": 0, "accuracy": 5, "timestamp": "2025-06-01T10:00:00"},
        ]))
        assert load_trace(path) == []
