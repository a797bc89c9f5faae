"""GPS journey tracking."""

from .geo import EARTH_RADIUS_METERS, distance_meters
from .tracker import JourneyTracker
from .location import (
    LocationError,
    LocationErrorCode,
    LocationMonitor,
    LocationService,
    LocationState,
    ManualLocationService,
    PermissionStatus,
    PositionFix,
    PositionOptions,
)
from .replay import TraceSample, load_trace, replay_trace

__all__ = [
    "EARTH_RADIUS_METERS",
    "distance_meters",
    "JourneyTracker",
    "LocationError",
    "LocationErrorCode",
    "LocationMonitor",
    "LocationService",
    "LocationState",
    "ManualLocationService",
    "PermissionStatus",
    "PositionFix",
    "PositionOptions",
    "TraceSample",
    "load_trace",
    "replay_trace",
]
