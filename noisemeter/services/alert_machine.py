"""Edge-triggered alert state machine with cooldown."""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_ALERT_COOLDOWN = 2.0


class AlertState(Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"


class AlertStateMachine:
    """Tracks threshold crossings and fires rate-limited alerts.

    An alert fires only on the IDLE -> TRIGGERED edge, only while alerting is
    enabled, and only once the cooldown since the previous alert has elapsed.
    Suppressed edges still move the state to TRIGGERED. Dropping below the
    threshold returns to IDLE silently and re-arms edge detection.
    """

    def __init__(self,
                 threshold: float = 80.0,
                 enabled: bool = True,
                 cooldown_seconds: float = DEFAULT_ALERT_COOLDOWN,
                 on_alert: Optional[Callable[[float, int, datetime], None]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize the state machine.

        Args:
            threshold: Level (0-120 scale) at or above which the state is TRIGGERED
            enabled: Whether crossings fire alerts
            cooldown_seconds: Minimum time between two fired alerts
            on_alert: Called with (level, alert_count, fired_at) when an alert fires
            clock: Source of the current time
        """
        self.threshold = threshold
        self.enabled = enabled
        self.cooldown_seconds = cooldown_seconds
        self.on_alert = on_alert
        self.clock = clock

        self.state = AlertState.IDLE
        self.alert_count = 0
        self.last_alert_time: Optional[datetime] = None

    @property
    def is_triggered(self) -> bool:
        return self.state is AlertState.TRIGGERED

    def evaluate(self, level: float) -> bool:
        """Feed a new normalized level.

        Returns:
            True if an alert fired for this level
        """
        was_triggered = self.is_triggered
        self.state = AlertState.TRIGGERED if level >= self.threshold else AlertState.IDLE

        if not (self.enabled and self.is_triggered and not was_triggered):
            return False

        now = self.clock()
        if self.last_alert_time is not None:
            elapsed = (now - self.last_alert_time).total_seconds()
            if elapsed < self.cooldown_seconds:
                logger.debug(f"Alert suppressed by cooldown ({elapsed:.2f}s < {self.cooldown_seconds}s)")
                return False

        self.alert_count += 1
        self.last_alert_time = now
        logger.info(f"Alert fired: level {level:.1f} >= {self.threshold} (count {self.alert_count})")

        if self.on_alert:
            self.on_alert(level, self.alert_count, now)
        return True

    def reset(self) -> None:
        """Return to IDLE and forget previous alerts."""
        self.state = AlertState.IDLE
        self.alert_count = 0
        self.last_alert_time = None

    def clear_trigger(self) -> None:
        """Return to IDLE without touching the alert count."""
        self.state = AlertState.IDLE
