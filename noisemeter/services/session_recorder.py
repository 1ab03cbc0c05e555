"""Session recorder: appends readings to the open session and persists them."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..models.session import Reading, Session, SessionStats
from ..storage.session_store import SessionStore, close_time

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_WINDOW = 120


class SessionRecorder:
    """Owns the in-memory open session.

    Not thread-safe on its own; the monitor calls it from its serialized
    worker only.
    """

    def __init__(self,
                 store: SessionStore,
                 clock: Callable[[], datetime] = datetime.now,
                 display_window: int = DEFAULT_DISPLAY_WINDOW):
        """Initialize session recorder.

        Args:
            store: Store the session is persisted to
            clock: Source of the current time
            display_window: Number of most recent readings kept for display
        """
        self.store = store
        self.clock = clock
        self.display_window = display_window
        self.session: Optional[Session] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session else None

    @property
    def is_recording(self) -> bool:
        return self.session is not None

    def begin(self, alert_threshold: float) -> Session:
        """Open a new session in the store."""
        if self.session is not None:
            raise RuntimeError(f"Session {self.session.id} is still open")
        self.session = self.store.create_session(alert_threshold)
        logger.info(f"Recording session {self.session.id}")
        return self.session

    def record(self, level: float, alert_count: int) -> Optional[Reading]:
        """Append a reading for ``level`` and persist the session.

        Returns:
            The new reading, or None if no session is open
        """
        if self.session is None:
            return None

        reading = Reading(timestamp=self._next_timestamp(), level=level)
        self.session.readings.append(reading)
        self.session.alert_count = max(self.session.alert_count, alert_count)
        self.store.update_session(self.session.id, self.session.readings, self.session.alert_count)
        return reading

    def finish(self, alert_count: int, final_level: Optional[float] = None) -> Optional[Session]:
        """Close the open session, appending ``final_level`` first if given.

        Returns:
            The closed session, or None if no session was open
        """
        if self.session is None:
            return None

        session = self.session
        if final_level is not None:
            session.readings.append(Reading(timestamp=self._next_timestamp(), level=final_level))
        session.alert_count = max(session.alert_count, alert_count)
        session.end_time = close_time(session, self.clock())

        if not self.store.end_session(session.id, session.readings, session.alert_count, session.end_time):
            logger.warning(f"Session {session.id} was no longer in the store when closed")

        self.session = None
        logger.info(f"Finished session {session.id}: {len(session.readings)} readings, "
                    f"{session.alert_count} alerts")
        return session

    def recent_readings(self) -> List[Reading]:
        """Readings inside the display window (the last N readings)."""
        if self.session is None:
            return []
        return self.session.readings[-self.display_window:]

    def stats(self) -> Optional[SessionStats]:
        if self.session is None:
            return None
        return self.session.stats(self.clock())

    def _next_timestamp(self) -> datetime:
        # Keep readings ordered even if the wall clock steps backwards
        now = self.clock()
        if self.session and self.session.readings:
            return max(now, self.session.readings[-1].timestamp)
        return now
