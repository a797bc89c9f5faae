"""
Device location subscription.

Wraps a platform location service behind two independent operations:
- a continuous watch, started and stopped by enable() / disable()
- a one-shot high-accuracy refresh, triggered by the player

Failures (permission denied, no fix, timeout) become LocationState fields
for the UI to react to. Nothing here raises into the tracking logic.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol, runtime_checkable

from ..config import Config, DEFAULT_CONFIG
from ..state.event_bus import EventBus, EventType, SessionEvent
from ..state.schema import Coordinates
from .tracker import JourneyTracker

logger = logging.getLogger(__name__)


class LocationErrorCode(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PositionFix:
    """A position reported by the device."""
    coordinates: Coordinates
    accuracy: float                 # meters
    timestamp: datetime | None = None


@dataclass(frozen=True)
class LocationError:
    code: LocationErrorCode
    message: str = ""


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_seconds: float = 10.0
    maximum_age_seconds: float = 0.0   # 0 forces a fresh reading


FixCallback = Callable[[PositionFix], None]
ErrorCallback = Callable[[LocationError], None]


@runtime_checkable
class LocationService(Protocol):
    """
    Platform location primitives.

    Implementations:
    - a device/browser bridge (production, outside this package)
    - ManualLocationService: scripted fixes (testing, replay)
    """

    def watch_position(
        self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions
    ) -> int:
        """Start a continuous watch. Returns a watch id."""
        ...

    def clear_watch(self, watch_id: int) -> None:
        """Stop a watch started by watch_position."""
        ...

    def get_current_position(
        self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions
    ) -> None:
        """Request a single fix."""
        ...


@dataclass
class LocationState:
    """What the UI needs to render location status."""
    coordinates: Coordinates | None = None
    accuracy: float | None = None
    error: str | None = None
    error_code: LocationErrorCode | None = None
    loading: bool = True
    permission_status: PermissionStatus = PermissionStatus.UNKNOWN
    is_refreshing: bool = False


class LocationMonitor:
    """
    Owns the watch subscription and the last known position.

    Every accepted fix, from the watch or from a refresh, is published as
    EventType.LOCATION_FIX. attach_tracker() routes those into a
    JourneyTracker.
    """

    def __init__(
        self,
        service: LocationService | None,
        config: Config | None = None,
        events: EventBus | None = None,
        campaign_id: str = "",
    ):
        self.service = service
        self.config: Config = {**DEFAULT_CONFIG, **(config or {})}
        self.events = events or EventBus()
        self.campaign_id = campaign_id
        self.state = LocationState()

        self._watch_id: int | None = None
        # Bumped on every enable/disable; callbacks from older watches are ignored
        self._generation = 0
        self._tracker_handler = None

    @property
    def is_watching(self) -> bool:
        return self._watch_id is not None

    # -------------------------------------------------------------------------
    # Continuous watch
    # -------------------------------------------------------------------------

    def enable(self) -> bool:
        """Start the continuous watch. Returns False if no service is available."""
        if self._watch_id is not None:
            return True

        if self.service is None:
            self.state.coordinates = None
            self.state.accuracy = None
            self.state.error = "Geolocation not supported"
            self.state.error_code = LocationErrorCode.UNSUPPORTED
            self.state.loading = False
            logger.warning("No location service available")
            return False

        self._generation += 1
        generation = self._generation
        self.state.loading = True

        options = PositionOptions(
            high_accuracy=True,
            timeout_seconds=self.config["watch_timeout_seconds"],
            maximum_age_seconds=0,
        )
        self._watch_id = self.service.watch_position(
            lambda fix: self._on_watch_fix(generation, fix),
            lambda error: self._on_watch_error(generation, error),
            options,
        )
        logger.debug(f"Location watch {self._watch_id} started")
        return True

    def disable(self) -> None:
        """Stop the watch. Late callbacks from it are dropped."""
        self._generation += 1
        if self._watch_id is not None and self.service is not None:
            self.service.clear_watch(self._watch_id)
            logger.debug(f"Location watch {self._watch_id} cleared")
        self._watch_id = None
        self.state.loading = False

    def _on_watch_fix(self, generation: int, fix: PositionFix) -> None:
        # The service may deliver synchronously, before watch_position returns
        if generation != self._generation:
            return
        self.state.loading = False
        self._accept_fix(fix)

    def _on_watch_error(self, generation: int, error: LocationError) -> None:
        if generation != self._generation:
            return
        self.state.loading = False
        self._record_error(error)

    # -------------------------------------------------------------------------
    # One-shot refresh
    # -------------------------------------------------------------------------

    def refresh(self, on_result: Callable[[Coordinates | None], None] | None = None) -> None:
        """
        Request a fresh high-accuracy fix, independent of the watch.

        on_result receives the coordinates, or None on failure.
        """
        if self.service is None:
            if on_result:
                on_result(None)
            return

        self.state.is_refreshing = True

        def handle_fix(fix: PositionFix) -> None:
            self.state.is_refreshing = False
            self._accept_fix(fix)
            logger.info(
                f"Refreshed location: {fix.coordinates.lat:.6f}, "
                f"{fix.coordinates.lng:.6f} (±{fix.accuracy:.0f}m)"
            )
            if on_result:
                on_result(fix.coordinates)

        def handle_error(error: LocationError) -> None:
            self.state.is_refreshing = False
            self._record_error(error)
            if on_result:
                on_result(None)

        self.service.get_current_position(
            handle_fix,
            handle_error,
            PositionOptions(
                high_accuracy=True,
                timeout_seconds=self.config["refresh_timeout_seconds"],
                maximum_age_seconds=0,
            ),
        )

    # -------------------------------------------------------------------------
    # Shared handling
    # -------------------------------------------------------------------------

    def _accept_fix(self, fix: PositionFix) -> None:
        self.state.coordinates = fix.coordinates
        self.state.accuracy = fix.accuracy
        self.state.error = None
        self.state.error_code = None
        self.state.permission_status = PermissionStatus.GRANTED
        self.events.emit(EventType.LOCATION_FIX, campaign_id=self.campaign_id, fix=fix)

    def _record_error(self, error: LocationError) -> None:
        self.state.error = error.message or error.code.value
        self.state.error_code = error.code
        if error.code == LocationErrorCode.PERMISSION_DENIED:
            self.state.permission_status = PermissionStatus.DENIED
        logger.warning(f"Location error ({error.code.value}): {error.message}")
        self.events.emit(EventType.LOCATION_ERROR, campaign_id=self.campaign_id, error=error)

    def attach_tracker(self, tracker: JourneyTracker) -> None:
        """Forward every accepted fix into the tracker's record_point."""
        self.detach_tracker()

        def forward(event: SessionEvent) -> None:
            fix: PositionFix = event.data["fix"]
            tracker.record_point(fix.coordinates, fix.accuracy)

        self._tracker_handler = forward
        self.events.on(EventType.LOCATION_FIX, forward)

    def detach_tracker(self) -> None:
        if self._tracker_handler is not None:
            self.events.off(EventType.LOCATION_FIX, self._tracker_handler)
            self._tracker_handler = None


class ManualLocationService:
    """
    Location service driven by hand.

    No device access - fixes and errors are pushed by the caller. Used by
    tests and by trace replay.
    """

    def __init__(self):
        self.watchers: dict[int, tuple[FixCallback, ErrorCallback, PositionOptions]] = {}
        self.pending: list[tuple[FixCallback, ErrorCallback, PositionOptions]] = []
        self._next_id = 1

    def watch_position(
        self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions
    ) -> int:
        watch_id = self._next_id
        self._next_id += 1
        self.watchers[watch_id] = (on_fix, on_error, options)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        self.watchers.pop(watch_id, None)

    def get_current_position(
        self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions
    ) -> None:
        self.pending.append((on_fix, on_error, options))

    def push_fix(self, fix: PositionFix) -> None:
        """Deliver a fix to every active watch."""
        for on_fix, _, _ in list(self.watchers.values()):
            on_fix(fix)

    def push_error(self, error: LocationError) -> None:
        """Deliver an error to every active watch."""
        for _, on_error, _ in list(self.watchers.values()):
            on_error(error)

    def resolve_current(self, fix: PositionFix) -> None:
        """Answer every outstanding one-shot request with a fix."""
        pending, self.pending = self.pending, []
        for on_fix, _, _ in pending:
            on_fix(fix)

    def reject_current(self, error: LocationError) -> None:
        """Fail every outstanding one-shot request."""
        pending, self.pending = self.pending, []
        for _, on_error, _ in pending:
            on_error(error)
