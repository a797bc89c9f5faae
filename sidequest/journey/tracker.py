"""
Journey tracking for a campaign session.

Turns a noisy stream of GPS fixes into a filtered path with cumulative
distance and per-quest timing.

Filtering rules, in order:
1. Fixes with accuracy worse than max_accuracy_meters are noise and dropped
2. The first accepted fix is always recorded (baseline)
3. Later fixes are recorded only if the player moved min_distance_meters
   from the last recorded point, or min_interval_seconds elapsed since it

Rule 3 is a debounce: it keeps GPS jitter out of the path while standing
still, and still leaves a breadcrumb every so often when moving slowly.

The tracker never mutates a JourneyStats in place; every change produces a
new snapshot and notifies subscribers with it.
"""

import logging
from datetime import datetime
from typing import Callable

from ..config import Config, DEFAULT_CONFIG
from ..state.event_bus import EventBus, EventHandler, EventType, JOURNEY_EVENTS
from ..state.schema import Coordinates, JourneyPoint, JourneyStats
from .geo import distance_meters

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _minutes_between(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)


class JourneyTracker:
    """
    Accumulates the player's physical journey.

    States:
    - Uninitialized: no stats yet, every operation is a no-op
    - Tracking: stats exist; samples are accepted while enabled

    start() enters Tracking with fresh stats; reset_with_stats() enters it
    with stats restored from a save.
    """

    def __init__(
        self,
        campaign_id: str = "",
        initial_stats: JourneyStats | None = None,
        config: Config | None = None,
        clock: Clock = datetime.now,
        events: EventBus | None = None,
    ):
        self.campaign_id = campaign_id
        self.config: Config = {**DEFAULT_CONFIG, **(config or {})}
        self.events = events or EventBus()
        self.current_quest_index = 0

        self._clock = clock
        self._stats: JourneyStats | None = None
        self._enabled = False

        # Debounce cursor
        self._last_point: JourneyPoint | None = None
        self._last_recorded_at: datetime | None = None

        if initial_stats is not None:
            self.reset_with_stats(initial_stats)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def stats(self) -> JourneyStats | None:
        """Current snapshot. Replaced, never mutated, on each change."""
        return self._stats

    @property
    def is_tracking(self) -> bool:
        return self._stats is not None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def subscribe(
        self,
        handler: EventHandler,
        event_types: tuple[EventType, ...] = JOURNEY_EVENTS,
    ) -> None:
        """Register a handler; snapshots arrive as event.data["stats"]."""
        for event_type in event_types:
            self.events.on(event_type, handler)

    def unsubscribe(
        self,
        handler: EventHandler,
        event_types: tuple[EventType, ...] = JOURNEY_EVENTS,
    ) -> None:
        for event_type in event_types:
            self.events.off(event_type, handler)

    def _publish(self, event_type: EventType) -> None:
        self.events.emit(event_type, campaign_id=self.campaign_id, stats=self._stats)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> JourneyStats:
        """
        Enable tracking.

        Creates fresh stats on first enablement. Re-enabling after
        finalize_journey() reopens the journey as a new leg on the same path.
        """
        self._enabled = True

        if self._stats is None:
            self._stats = JourneyStats(start_time=self._clock())
            logger.debug(f"Journey started for campaign {self.campaign_id!r}")
            self._publish(EventType.JOURNEY_STARTED)
        elif self._stats.is_finalized:
            self._stats = self._stats.model_copy(update={"end_time": None})
            logger.debug("Journey reopened after finalization")
            self._publish(EventType.JOURNEY_STARTED)

        return self._stats

    def stop(self) -> None:
        """Disable tracking. Stats are kept; samples are ignored until start()."""
        self._enabled = False

    def reset_with_stats(self, stats: JourneyStats) -> None:
        """
        Overwrite in-memory state with previously persisted stats.

        Restores the debounce cursor from the last recorded point so the very
        next sample is filtered against it rather than treated as a baseline.
        """
        self._stats = stats
        last = stats.last_point
        self._last_point = last
        self._last_recorded_at = last.timestamp if last else None

        logger.info(
            f"Journey restored: {stats.total_distance_traveled:.2f} km, "
            f"{len(stats.path_points)} points, {stats.duration_minutes} min"
        )
        self._publish(EventType.JOURNEY_RESTORED)

    # -------------------------------------------------------------------------
    # Samples
    # -------------------------------------------------------------------------

    def record_point(
        self,
        coordinates: Coordinates,
        accuracy: float,
        quest_index: int | None = None,
    ) -> bool:
        """
        Offer a GPS fix to the journey.

        Returns True if the fix was recorded as a new path point.
        """
        if not self._enabled or self._stats is None:
            return False

        if accuracy > self.config["max_accuracy_meters"]:
            logger.debug(f"Ignoring point with poor accuracy: {accuracy:.0f}m")
            return False

        now = self._clock()
        moved = 0.0

        if self._last_point is not None:
            moved = distance_meters(self._last_point.coordinates, coordinates)
            elapsed = (now - self._last_recorded_at).total_seconds()

            if (
                moved < self.config["min_distance_meters"]
                and elapsed < self.config["min_interval_seconds"]
            ):
                return False

        point = JourneyPoint(
            coordinates=coordinates,
            timestamp=now,
            accuracy=accuracy,
            quest_index=self.current_quest_index if quest_index is None else quest_index,
        )

        stats = self._stats
        self._stats = stats.model_copy(update={
            "total_distance_traveled": stats.total_distance_traveled + moved / 1000,
            "path_points": [*stats.path_points, point],
            "duration_minutes": _minutes_between(stats.start_time, now),
        })
        self._last_point = point
        self._last_recorded_at = now

        logger.debug(
            f"Point recorded: moved {moved:.1f}m, "
            f"total {self._stats.total_distance_traveled:.2f}km, "
            f"{len(self._stats.path_points)} points"
        )
        self._publish(EventType.JOURNEY_UPDATED)
        return True

    def mark_quest_complete(self) -> None:
        """Stamp the current time as a quest completion. The path is untouched."""
        if self._stats is None:
            return

        self._stats = self._stats.model_copy(update={
            "quest_completion_times": [*self._stats.quest_completion_times, self._clock()],
        })
        self._publish(EventType.QUEST_COMPLETED)

    def finalize_journey(self) -> JourneyStats | None:
        """
        Close the journey and return the final snapshot.

        Tracking is disabled; the caller decides whether to start() a new leg.
        """
        if self._stats is None:
            return None

        now = self._clock()
        self._stats = self._stats.model_copy(update={
            "end_time": now,
            "duration_minutes": _minutes_between(self._stats.start_time, now),
        })
        self._enabled = False

        logger.info(
            f"Journey finalized: {self._stats.total_distance_traveled:.2f} km "
            f"in {self._stats.duration_minutes} min"
        )
        self._publish(EventType.JOURNEY_FINALIZED)
        return self._stats
