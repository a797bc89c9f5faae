"""SideQuest session context and journey telemetry engine."""

from .state.manager import SessionContextManager

__version__ = "0.1.0"

__all__ = ["SessionContextManager"]
