"""Session state for SideQuest campaigns."""

from .schema import (
    Campaign,
    Coordinates,
    Difficulty,
    DistanceRange,
    EncouragementLevel,
    GenerationReasoning,
    JourneyPoint,
    JourneyStats,
    LocationResearch,
    Quest,
    QuestAttempt,
    QuestType,
    ReferenceStyle,
    SessionContext,
    ThinkingStep,
    ThoughtSignature,
    UserPatterns,
)
from .store import (
    KeyValueStore,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    SessionContextStore,
)
from .recorder import (
    AttemptCounter,
    compute_patterns,
    derive_thought_signature,
    record_attempt,
)
from .event_bus import EventBus, EventType, SessionEvent

__all__ = [
    # Schema
    "Campaign",
    "Coordinates",
    "Difficulty",
    "DistanceRange",
    "EncouragementLevel",
    "GenerationReasoning",
    "JourneyPoint",
    "JourneyStats",
    "LocationResearch",
    "Quest",
    "QuestAttempt",
    "QuestType",
    "ReferenceStyle",
    "SessionContext",
    "ThinkingStep",
    "ThoughtSignature",
    "UserPatterns",
    # Store
    "KeyValueStore",
    "JsonFileKeyValueStore",
    "MemoryKeyValueStore",
    "SessionContextStore",
    # Recorder
    "AttemptCounter",
    "compute_patterns",
    "derive_thought_signature",
    "record_attempt",
    # Events
    "EventBus",
    "EventType",
    "SessionEvent",
]
