"""
Replay recorded GPS traces through a JourneyTracker.

A trace is a JSON list of samples:

    [{"lat": 51.5, "lng": -0.12, "accuracy": 8, "timestamp": "2025-06-01T10:00:00"},
     {"lat": 51.5002, "lng": -0.12, "accuracy": 9, "timestamp": "2025-06-01T10:00:40",
      "quest_completed": true}]

The tracker's clock follows the sample timestamps, so the debounce behaves
exactly as it did when the trace was captured.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..config import Config
from ..state.schema import Coordinates, JourneyStats
from .tracker import JourneyTracker

logger = logging.getLogger(__name__)


class TraceSample(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy: float
    timestamp: datetime
    quest_index: int | None = None
    quest_completed: bool = False


class _TraceClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def load_trace(path: Path | str) -> list[TraceSample]:
    """Load a trace file. Returns an empty list if it is missing or malformed."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Trace file not found: {path}")
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return TypeAdapter(list[TraceSample]).validate_python(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Could not parse trace {path}: {e}")
        return []


def replay_trace(
    samples: Iterable[TraceSample],
    config: Config | None = None,
    campaign_id: str = "",
) -> JourneyStats | None:
    """Run samples through a fresh tracker and return the finalized stats."""
    samples = sorted(samples, key=lambda s: s.timestamp)
    if not samples:
        return None

    clock = _TraceClock(samples[0].timestamp)
    tracker = JourneyTracker(campaign_id=campaign_id, config=config, clock=clock)
    tracker.start()

    for sample in samples:
        clock.now = sample.timestamp
        if sample.quest_index is not None:
            tracker.current_quest_index = sample.quest_index
        tracker.record_point(Coordinates(lat=sample.lat, lng=sample.lng), sample.accuracy)
        if sample.quest_completed:
            tracker.mark_quest_complete()

    return tracker.finalize_journey()
