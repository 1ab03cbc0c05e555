"""Event models for pub/sub level monitoring."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any, Dict, Tuple

from .session import Reading


@dataclass(frozen=True)
class MonitorSnapshot:
    """Immutable view of the engine state, published after every tick."""
    timestamp: datetime
    current_level: float
    raw_level: float
    peak_level: float
    category: str
    is_monitoring: bool
    is_alert_triggered: bool
    alert_enabled: bool
    alert_threshold: float
    alert_count: int
    session_id: Optional[str] = None
    recent_readings: Tuple[Reading, ...] = ()


@dataclass(frozen=True)
class AlertEvent:
    """Fired when the alert state machine crosses into the triggered state."""
    level: float
    threshold: float
    alert_count: int
    timestamp: datetime
    session_id: Optional[str] = None


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    event_type: str  # "started", "stopped", "reset"
    session_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
