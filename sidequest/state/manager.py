"""
Session context lifecycle for one campaign.

SessionContextManager is the single owner of a campaign's live
SessionContext. It keeps the per-quest attempt counters, persists every
mutation in the same call, and hands the current context (plus the campaign
and journey snapshots it was given) to the composer and estimator on demand.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from ..config import Config, DEFAULT_CONFIG
from ..context.composer import (
    HistoryPolicy,
    build_context_prompt,
    build_verification_context_hint,
)
from ..context.estimator import ContextTokenBreakdown, get_context_token_breakdown
from ..journey.tracker import JourneyTracker
from .event_bus import EventBus, EventType, SessionEvent
from .recorder import AttemptCounter, record_attempt
from .schema import Campaign, JourneyStats, QuestAttempt, QuestType, SessionContext, ThinkingStep
from .store import KeyValueStore, SessionContextStore

logger = logging.getLogger(__name__)


class SessionContextManager:
    """
    Manages the session context of a single campaign.

    Storage is delegated to a SessionContextStore:
    - backed by JsonFileKeyValueStore in production
    - backed by MemoryKeyValueStore in tests

    Public operations:
    - start_attempt(quest_id) -> bump the live attempt counter
    - record_attempt(...) -> merge a verification result and persist
    - get_context_prompt() / get_verification_hint() -> text for the AI
    - get_context_token_count() / get_token_breakdown() -> cost estimates
    - reset_context() -> forget everything for this campaign
    """

    def __init__(
        self,
        campaign_id: str,
        store: SessionContextStore | KeyValueStore | Path | str | None = None,
        campaign: Campaign | None = None,
        journey_stats: JourneyStats | None = None,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
        events: EventBus | None = None,
    ):
        """
        Initialize for a campaign.

        Args:
            campaign_id: Campaign whose context this manager owns
            store: SessionContextStore, a key-value backend, or a data directory
            campaign: Campaign snapshot for identity, research and reasoning
            journey_stats: Journey snapshot for analytics
            config: Overrides for DEFAULT_CONFIG
            clock: Time source (injectable for tests)
            events: Event bus to publish on (a private one by default)
        """
        if isinstance(store, SessionContextStore):
            self.store = store
        else:
            self.store = SessionContextStore(store)

        self.campaign_id = campaign_id
        self.campaign = campaign
        self.journey_stats = journey_stats
        self.config: Config = {**DEFAULT_CONFIG, **(config or {})}
        self.events = events or EventBus()

        self._clock = clock
        self._context: SessionContext | None = None
        self._attempts: dict[str, AttemptCounter] = {}
        self._tracker: JourneyTracker | None = None

    # -------------------------------------------------------------------------
    # Context lifecycle
    # -------------------------------------------------------------------------

    @property
    def context(self) -> SessionContext:
        """The live context, loaded or created on first access."""
        if self._context is None:
            self._load_or_create()
        return self._context

    @property
    def is_loaded(self) -> bool:
        return self._context is not None

    def _load_or_create(self) -> None:
        existing = self.store.load(self.campaign_id)

        if existing is not None:
            self._context = existing
            # Restore attempt counts from history
            for attempt in existing.quest_history:
                self._attempts[attempt.quest_id] = AttemptCounter(count=attempt.attempts)
            logger.info(
                f"Loaded session context for {self.campaign_id}: "
                f"{len(existing.quest_history)} quests"
            )
            self.events.emit(EventType.CONTEXT_LOADED, campaign_id=self.campaign_id)
            return

        self._context = self.store.create(self.campaign_id)
        self.store.save(self._context)
        logger.info(f"Created session context for {self.campaign_id}")
        self.events.emit(EventType.CONTEXT_CREATED, campaign_id=self.campaign_id)

    def reset_context(self) -> None:
        """Clear the persisted context, the attempt counters and the in-memory copy."""
        self.store.clear(self.campaign_id)
        self._attempts.clear()
        self._context = None
        logger.info(f"Reset session context for {self.campaign_id}")
        self.events.emit(EventType.CONTEXT_RESET, campaign_id=self.campaign_id)

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    def start_attempt(self, quest_id: str) -> int:
        """
        Begin a new capture cycle on a quest.

        Increments the quest's attempt counter and resets its timing
        baseline. History is untouched until record_attempt().

        Returns the new attempt number.
        """
        counter = self._attempts.setdefault(quest_id, AttemptCounter())
        counter.start(self._clock())
        self.events.emit(
            EventType.ATTEMPT_STARTED,
            campaign_id=self.campaign_id,
            quest_id=quest_id,
            attempt=counter.count,
        )
        return counter.count

    def attempt_count(self, quest_id: str) -> int:
        """Current attempt number for a quest (0 if never started)."""
        counter = self._attempts.get(quest_id)
        return counter.count if counter else 0

    def record_attempt(
        self,
        quest_id: str,
        quest_title: str,
        quest_type: QuestType,
        success: bool,
        feedback: str,
        thinking_steps: list[ThinkingStep] | None = None,
        distance_from_target: float | None = None,
        quest_image_url: str | None = None,
        image_description: str | None = None,
    ) -> SessionContext:
        """
        Record the outcome of one verification call and persist it.

        Time spent is measured from the last start_attempt() for this quest
        (0 if there was none); the attempt number is the live counter (1 if
        the quest was never started).
        """
        now = self._clock()
        counter = self._attempts.get(quest_id)

        time_spent = 0
        attempts = 1
        if counter is not None:
            time_spent = counter.elapsed_seconds(now)
            attempts = max(1, counter.count)
            # The baseline is consumed; a second record without a new start adds no time
            counter.started_at = None

        attempt = QuestAttempt(
            quest_id=quest_id,
            quest_title=quest_title,
            quest_type=quest_type,
            attempts=attempts,
            final_success=success,
            verification_feedback=[feedback],
            thinking_steps=thinking_steps,
            time_spent=time_spent,
            distance_from_target=distance_from_target,
            quest_image_url=quest_image_url,
            image_description=image_description,
        )

        self._context = record_attempt(self.context, attempt, now=now)
        self.store.save(self._context)

        logger.debug(
            f"Recorded attempt {attempts} on {quest_id}: "
            f"{'success' if success else 'failure'}, {time_spent}s"
        )
        self.events.emit(
            EventType.ATTEMPT_RECORDED,
            campaign_id=self.campaign_id,
            quest_id=quest_id,
            success=success,
            context=self._context,
        )
        return self._context

    # -------------------------------------------------------------------------
    # Context for the AI
    # -------------------------------------------------------------------------

    def get_context_prompt(self) -> str:
        """Full context prompt for quest-generation calls."""
        return build_context_prompt(
            self.context,
            self.campaign,
            self.journey_stats,
            HistoryPolicy.from_config(self.config),
        )

    def get_verification_hint(self, quest_id: str | None = None) -> str:
        """Short hint for verification calls (defaults to the campaign's current quest)."""
        return build_verification_context_hint(self.context, self.campaign, quest_id)

    def get_context_token_count(self) -> int:
        """Estimated tokens for the full context prompt."""
        return self.get_token_breakdown().total

    def get_token_breakdown(self) -> ContextTokenBreakdown:
        """Estimated tokens per category."""
        return get_context_token_breakdown(
            self.context,
            self.campaign,
            self.journey_stats,
            self.config,
        )

    # -------------------------------------------------------------------------
    # Journey binding
    # -------------------------------------------------------------------------

    def bind_tracker(self, tracker: JourneyTracker) -> None:
        """Follow a tracker's snapshots so journey analytics stay current."""
        self.unbind_tracker()
        self._tracker = tracker
        self.journey_stats = tracker.stats
        tracker.subscribe(self._on_journey_event)

    def unbind_tracker(self) -> None:
        if self._tracker is not None:
            self._tracker.unsubscribe(self._on_journey_event)
            self._tracker = None

    def _on_journey_event(self, event: SessionEvent) -> None:
        self.journey_stats = event.data["stats"]
