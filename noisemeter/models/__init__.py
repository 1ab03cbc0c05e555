"""Data models for the NoiseMeter application."""

from .session import Reading, Session, SessionStats
from .events import MonitorSnapshot, AlertEvent, SessionEvent

__all__ = [
    "Reading",
    "Session",
    "SessionStats",
    "MonitorSnapshot",
    "AlertEvent",
    "SessionEvent",
]
