"""
Pytest fixtures for SideQuest tests.

Provides in-memory stores, a controllable clock and sample campaign data
for isolated testing.
"""

import math
import pytest
from datetime import datetime, timedelta
from pathlib import Path

# Add repo root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from sidequest.state import (
    Campaign,
    Coordinates,
    Difficulty,
    GenerationReasoning,
    LocationResearch,
    MemoryKeyValueStore,
    Quest,
    QuestAttempt,
    QuestType,
    SessionContextStore,
    ThinkingStep,
)
from sidequest.state.manager import SessionContextManager


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


def offset(origin: Coordinates, north_m: float = 0.0, east_m: float = 0.0) -> Coordinates:
    """Coordinates roughly north_m / east_m meters away from origin (small offsets)."""
    lat = origin.lat + north_m / 111_195
    lng = origin.lng + east_m / (111_195 * math.cos(math.radians(origin.lat)))
    return Coordinates(lat=lat, lng=lng)


def make_attempt(
    quest_id: str = "q1",
    success: bool = True,
    quest_type: QuestType = QuestType.PHOTO,
    attempts: int = 1,
    feedback: list[str] | None = None,
    thinking_steps: list[ThinkingStep] | None = None,
    **kwargs,
) -> QuestAttempt:
    """Build a QuestAttempt with sensible defaults."""
    return QuestAttempt(
        quest_id=quest_id,
        quest_title=kwargs.pop("quest_title", f"Quest {quest_id}"),
        quest_type=quest_type,
        attempts=attempts,
        final_success=success,
        verification_feedback=feedback if feedback is not None else ["Looks good"],
        thinking_steps=thinking_steps,
        **kwargs,
    )


@pytest.fixture
def clock():
    """Controllable clock starting at 2025-06-01 10:00:00."""
    return FakeClock()


@pytest.fixture
def origin():
    """A starting point in central London."""
    return Coordinates(lat=51.5074, lng=-0.1278)


@pytest.fixture
def memory_backend():
    """In-memory key-value store for testing."""
    return MemoryKeyValueStore()


@pytest.fixture
def store(memory_backend):
    """Session context store over the in-memory backend."""
    return SessionContextStore(memory_backend)


@pytest.fixture
def campaign():
    """Three-quest campaign with research and design reasoning."""
    return Campaign(
        id="camp-1",
        location="Greenwich, London",
        type="short",
        quests=[
            Quest(id="q1", title="Meridian Line", difficulty=Difficulty.EASY,
                  place_name="Royal Observatory"),
            Quest(id="q2", title="Tall Ship", difficulty=Difficulty.MEDIUM,
                  place_name="Cutty Sark"),
            Quest(id="q3", title="Market Sounds", difficulty=Difficulty.HARD,
                  place_name="Greenwich Market"),
        ],
        current_quest_index=1,
        total_distance=2.4,
        estimated_total_time=45,
        location_research=[
            LocationResearch(
                place_name="Royal Observatory",
                historical_significance="Home of Greenwich Mean Time since 1884.",
                media_tips="Shoot the meridian line at a low angle.",
            ),
            LocationResearch(
                place_name="Cutty Sark",
                historical_significance="A tea clipper launched in 1869.",
            ),
        ],
        generation_reasoning=GenerationReasoning(
            difficulty_progression="Easy landmark first, then harder audio work.",
            location_selection=["Iconic start", "Short walk downhill", "Busy market"],
        ),
    )


@pytest.fixture
def manager(store, clock, campaign):
    """Session context manager over the in-memory store."""
    return SessionContextManager(campaign.id, store, campaign=campaign, clock=clock)
