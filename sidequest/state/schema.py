"""
Pydantic models for SideQuest session state.

Covers two families of records:
- Journey telemetry (coordinates, path points, journey stats)
- Session context (quest attempts, derived patterns, AI persona)

Campaign snapshots are read-only inputs owned by the game layer; they are
modelled here only as far as the context composer needs them.

Everything serializes to JSON via model_dump_json and restores via
model_validate.
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from uuid import uuid4


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class QuestType(str, Enum):
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DistanceRange(str, Enum):
    NEARBY = "nearby"    # 0.5-3km walks
    MEDIUM = "medium"    # 3-10km journey
    FAR = "far"          # 10-30km expedition


class EncouragementLevel(str, Enum):
    HIGH = "high"        # Player needs support
    MEDIUM = "medium"
    LOW = "low"          # Player is doing great, less cheerleading


class ReferenceStyle(str, Enum):
    DETAILED = "detailed"
    BRIEF = "brief"


def generate_session_id() -> str:
    return f"session_{int(datetime.now().timestamp() * 1000)}_{uuid4().hex[:7]}"


# -----------------------------------------------------------------------------
# Journey Telemetry
# -----------------------------------------------------------------------------

class Coordinates(BaseModel):
    """WGS-84 position in degrees."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class JourneyPoint(BaseModel):
    """A single accepted GPS sample. Never modified after recording."""
    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    timestamp: datetime
    accuracy: float       # meters
    quest_index: int = 0  # Which quest was active


class JourneyStats(BaseModel):
    """
    Aggregated journey for one campaign session.

    Owned by JourneyTracker. Each mutation produces a new instance, so a
    snapshot handed to an observer never changes underneath it.
    """
    total_distance_traveled: float = 0.0   # km (actual GPS path)
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = None
    duration_minutes: int = 0
    path_points: list[JourneyPoint] = Field(default_factory=list)
    quest_completion_times: list[datetime] = Field(default_factory=list)

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None

    @property
    def last_point(self) -> JourneyPoint | None:
        return self.path_points[-1] if self.path_points else None


# -----------------------------------------------------------------------------
# Campaign Snapshot (read-only input)
# -----------------------------------------------------------------------------

class Quest(BaseModel):
    """The slice of a generated quest the context layer cares about."""
    id: str
    title: str
    difficulty: Difficulty = Difficulty.MEDIUM
    place_name: str | None = None
    coordinates: Coordinates | None = None


class LocationResearch(BaseModel):
    """Background research on a quest location."""
    place_name: str
    historical_significance: str = ""
    architectural_details: str = ""
    cultural_context: str = ""
    media_tips: str = ""
    estimated_tokens: int = 0   # As reported by the research generator


class GenerationReasoning(BaseModel):
    """The model's reasoning captured while the campaign was generated."""
    difficulty_progression: str = ""
    location_selection: list[str] = Field(default_factory=list)
    media_type_choices: list[str] = Field(default_factory=list)
    criteria_design: list[str] = Field(default_factory=list)
    estimated_tokens: int = 0


class Campaign(BaseModel):
    """Campaign identity and configuration, as seen by the composer."""
    id: str
    location: str
    type: Literal["short", "long"] = "short"
    quests: list[Quest] = Field(default_factory=list)
    current_quest_index: int = 0
    distance_range: DistanceRange | None = None
    total_distance: float | None = None        # km
    estimated_total_time: int | None = None    # minutes (walking)
    location_research: list[LocationResearch] = Field(default_factory=list)
    generation_reasoning: GenerationReasoning | None = None

    @property
    def current_quest(self) -> Quest | None:
        if 0 <= self.current_quest_index < len(self.quests):
            return self.quests[self.current_quest_index]
        return None

    def get_quest(self, quest_id: str) -> Quest | None:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None


# -----------------------------------------------------------------------------
# Session Context
# -----------------------------------------------------------------------------

class ThinkingStep(BaseModel):
    """One criterion the verifier evaluated."""
    criterion: str
    passed: bool
    confidence: int = Field(default=0, ge=0, le=100)


class QuestAttempt(BaseModel):
    """
    Everything known about the player's attempts at one quest.

    One record per quest_id within a campaign. Later verification rounds are
    merged into it rather than appended as new records.
    """
    quest_id: str
    quest_title: str
    quest_type: QuestType
    attempts: int = Field(default=1, ge=1)
    final_success: bool = False
    verification_feedback: list[str] = Field(default_factory=list)  # One per verification call
    thinking_steps: list[ThinkingStep] | None = None
    time_spent: int = 0                       # seconds, cumulative across attempts
    distance_from_target: float | None = None  # meters
    quest_image_url: str | None = None
    image_description: str | None = None


class UserPatterns(BaseModel):
    """Behavior patterns derived from quest history. Never edited directly."""
    total_attempts: int = 0
    success_rate: float = 0.0
    average_attempts: float = 0.0
    strongest_media_type: QuestType | None = None
    weakest_media_type: QuestType | None = None
    common_issues: list[str] = Field(default_factory=list)           # From failed reasoning steps
    common_failure_reasons: list[str] = Field(default_factory=list)  # From failed-call feedback
    average_confidence: int = 0


class ThoughtSignature(BaseModel):
    """Keeps the AI's voice consistent across calls."""
    narrative_voice: str = "Friendly and encouraging guide with a sense of adventure"
    encouragement_level: EncouragementLevel = EncouragementLevel.MEDIUM
    reference_style: ReferenceStyle = ReferenceStyle.BRIEF
    running_jokes: list[str] = Field(default_factory=list)
    player_nickname: str | None = None


class SessionContext(BaseModel):
    """Per-campaign memory fed to the AI on every generation or verification."""
    session_id: str = Field(default_factory=generate_session_id)
    campaign_id: str
    quest_history: list[QuestAttempt] = Field(default_factory=list)  # Completion order
    patterns: UserPatterns = Field(default_factory=UserPatterns)
    thought_signature: ThoughtSignature = Field(default_factory=ThoughtSignature)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def get_attempt(self, quest_id: str) -> QuestAttempt | None:
        for attempt in self.quest_history:
            if attempt.quest_id == quest_id:
                return attempt
        return None
