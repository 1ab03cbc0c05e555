"""Session-related data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


def new_id() -> str:
    """Generate an opaque unique identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Reading:
    """A single normalized level reading (0-120 scale)."""
    timestamp: datetime
    level: float
    id: str = field(default_factory=new_id)


@dataclass
class SessionStats:
    """Statistics derived from a session's readings."""
    reading_count: int
    average_level: float
    min_level: float
    max_level: float
    duration_seconds: float
    alert_count: int


@dataclass
class Session:
    """One monitoring run from start to stop."""
    start_time: datetime
    alert_threshold: float
    id: str = field(default_factory=new_id)
    end_time: Optional[datetime] = None
    readings: List[Reading] = field(default_factory=list)
    alert_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def average_level(self) -> float:
        if not self.readings:
            return 0.0
        return sum(r.level for r in self.readings) / len(self.readings)

    @property
    def min_level(self) -> float:
        if not self.readings:
            return 0.0
        return min(r.level for r in self.readings)

    @property
    def max_level(self) -> float:
        if not self.readings:
            return 0.0
        return max(r.level for r in self.readings)

    @property
    def peak_level(self) -> float:
        return self.max_level

    def duration_seconds(self, now: Optional[datetime] = None) -> float:
        """Elapsed time from start to end (or to ``now`` while open)."""
        end = self.end_time or now or datetime.now()
        return (end - self.start_time).total_seconds()

    def formatted_duration(self, now: Optional[datetime] = None) -> str:
        """Duration as MM:SS, or H:MM:SS for runs of an hour or more."""
        duration = int(self.duration_seconds(now))
        hours = duration // 3600
        minutes = (duration % 3600) // 60
        seconds = duration % 60

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def stats(self, now: Optional[datetime] = None) -> SessionStats:
        return SessionStats(
            reading_count=len(self.readings),
            average_level=self.average_level,
            min_level=self.min_level,
            max_level=self.max_level,
            duration_seconds=self.duration_seconds(now),
            alert_count=self.alert_count,
        )

    def copy(self) -> "Session":
        """Shallow copy with its own readings list (readings are immutable)."""
        return Session(
            start_time=self.start_time,
            alert_threshold=self.alert_threshold,
            id=self.id,
            end_time=self.end_time,
            readings=list(self.readings),
            alert_count=self.alert_count,
        )
