"""Durable store for monitoring sessions."""

import os
import json
import logging
import tempfile
import threading
from pathlib import Path
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.session import Reading, Session


logger = logging.getLogger(__name__)


def session_to_dict(session: Session) -> Dict[str, Any]:
    """Convert a session to its JSON document form."""
    return {
        "id": session.id,
        "start_time": session.start_time.isoformat(),
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "readings": [
            {"id": r.id, "timestamp": r.timestamp.isoformat(), "level": r.level}
            for r in session.readings
        ],
        "alert_threshold": session.alert_threshold,
        "alert_count": session.alert_count,
    }


def session_from_dict(data: Dict[str, Any]) -> Session:
    """Rebuild a session from its JSON document form."""
    end_time = data.get("end_time")
    return Session(
        id=data["id"],
        start_time=datetime.fromisoformat(data["start_time"]),
        end_time=datetime.fromisoformat(end_time) if end_time else None,
        readings=[
            Reading(
                id=r["id"],
                timestamp=datetime.fromisoformat(r["timestamp"]),
                level=float(r["level"]),
            )
            for r in data.get("readings", [])
        ],
        alert_threshold=float(data["alert_threshold"]),
        alert_count=int(data.get("alert_count", 0)),
    )


def close_time(session: Session, now: datetime) -> datetime:
    """End time for ``session`` closed at ``now``, kept after its start and last reading."""
    last = session.readings[-1].timestamp if session.readings else session.start_time
    return max(now, session.start_time, last)


class SessionStore:
    """Keeps the session collection in memory and mirrors it to one JSON document.

    Every mutating call rewrites the whole document (write to a temporary file,
    then atomically replace). The in-memory collection stays authoritative when
    a write fails; the next successful write catches up.
    """

    def __init__(self,
                 data_dir: str = "./data",
                 filename: str = "noise_sessions.json",
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize the store and load any existing sessions.

        Args:
            data_dir: Directory holding the sessions document
            filename: Name of the sessions document
            clock: Source of the current time
        """
        self.data_dir = Path(data_dir)
        self.sessions_file = self.data_dir / filename
        self.clock = clock
        self.lock = threading.RLock()
        self.sessions: List[Session] = []

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.sessions = self.load()

        logger.info(f"SessionStore initialized with {len(self.sessions)} sessions from {self.sessions_file}")

    # Persistence

    def load(self) -> List[Session]:
        """Load the session collection from disk.

        Returns:
            Sessions in stored order, or an empty list if the document is
            missing or unreadable
        """
        if not self.sessions_file.exists():
            logger.debug(f"No sessions document at {self.sessions_file}")
            return []

        try:
            with open(self.sessions_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("Sessions document is not a list")
            return [session_from_dict(item) for item in data]

        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error loading sessions, starting with an empty collection: {e}")
            self._quarantine_corrupt_file()
            return []

    def save(self) -> bool:
        """Atomically rewrite the sessions document.

        Returns:
            True if the document was written, False otherwise
        """
        # Held through the replace so an older payload never lands after a newer one
        with self.lock:
            payload = [session_to_dict(s) for s in self.sessions]

            tmp_path = None
            try:
                fd, tmp_path = tempfile.mkstemp(
                    dir=str(self.data_dir), prefix=".sessions-", suffix=".tmp")
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.sessions_file)
                logger.debug(f"Saved {len(payload)} sessions to {self.sessions_file}")
                return True

            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error saving sessions: {e}")
                if tmp_path and os.path.exists(tmp_path):
                    try:
                        os.unlink(tmp_path)
                    except OSError as cleanup_error:
                        logger.warning(f"Could not remove temp file {tmp_path}: {cleanup_error}")
                return False

    def _quarantine_corrupt_file(self) -> None:
        """Move an unreadable document aside so it is not overwritten."""
        corrupt_path = self.sessions_file.with_name(self.sessions_file.name + ".corrupt")
        try:
            os.replace(self.sessions_file, corrupt_path)
            logger.warning(f"Moved unreadable sessions document to {corrupt_path}")
        except OSError as e:
            logger.error(f"Could not move unreadable sessions document: {e}")

    # Session management

    def create_session(self, alert_threshold: float) -> Session:
        """Create a new open session and put it first in the collection."""
        session = Session(start_time=self.clock(), alert_threshold=alert_threshold)
        with self.lock:
            self.sessions.insert(0, session)
        self.save()
        logger.info(f"Created session: {session.id}")
        return session.copy()

    def update_session(self, session_id: str, readings: Sequence[Reading], alert_count: int) -> bool:
        """Overwrite a session's readings and alert count.

        A missing session is not an error: it may have been deleted while
        still being recorded.

        Returns:
            True if the session was found
        """
        with self.lock:
            session = self._find(session_id)
            if session is None:
                logger.info(f"update_session: session {session_id} not found, ignoring")
                return False
            session.readings = list(readings)
            session.alert_count = alert_count
        self.save()
        return True

    def end_session(self, session_id: str, readings: Sequence[Reading], alert_count: int,
                    end_time: Optional[datetime] = None) -> bool:
        """Store final readings and alert count and close the session.

        Args:
            session_id: Session to close
            readings: Final readings
            alert_count: Final alert count
            end_time: Close time (defaults to now); never earlier than the
                      start time or the last reading

        Returns:
            True if the session was found
        """
        with self.lock:
            session = self._find(session_id)
            if session is None:
                logger.info(f"end_session: session {session_id} not found, ignoring")
                return False
            session.readings = list(readings)
            session.alert_count = alert_count
            session.end_time = close_time(session, end_time or self.clock())
        self.save()
        logger.info(f"Closed session: {session_id}")
        return True

    def delete_session(self, session_id: str) -> bool:
        """Delete one session.

        Returns:
            True if a session was removed
        """
        with self.lock:
            before = len(self.sessions)
            self.sessions = [s for s in self.sessions if s.id != session_id]
            removed = before - len(self.sessions)
        self.save()
        if removed:
            logger.info(f"Deleted session: {session_id}")
        return removed > 0

    def delete_all_sessions(self) -> int:
        """Delete every session.

        Returns:
            Number of sessions removed
        """
        with self.lock:
            removed = len(self.sessions)
            self.sessions = []
        self.save()
        logger.info(f"Deleted all sessions ({removed})")
        return removed

    def list_sessions(self, closed_only: bool = False) -> List[Session]:
        """List sessions, most recent first.

        Args:
            closed_only: Leave out sessions that are still open

        Returns:
            Copies of the stored sessions
        """
        with self.lock:
            return [s.copy() for s in self.sessions if not (closed_only and s.is_open)]

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a copy of one session, or None if not found."""
        with self.lock:
            session = self._find(session_id)
            return session.copy() if session else None

    def close_abandoned_sessions(self, keep_open: Optional[str] = None) -> int:
        """Close sessions left open by an unterminated run.

        The end time is the last reading's timestamp, or the start time for
        an empty session.

        Args:
            keep_open: Id of a session that is legitimately still recording

        Returns:
            Number of sessions closed
        """
        closed = 0
        with self.lock:
            for session in self.sessions:
                if session.is_open and session.id != keep_open:
                    session.end_time = close_time(session, session.start_time)
                    closed += 1
        if closed:
            self.save()
            logger.info(f"Closed {closed} abandoned sessions")
        return closed

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Delete closed sessions that started more than ``max_age_days`` ago.

        Returns:
            Number of sessions removed
        """
        cutoff = self.clock() - timedelta(days=max_age_days)
        with self.lock:
            before = len(self.sessions)
            self.sessions = [s for s in self.sessions if s.is_open or s.start_time >= cutoff]
            removed = before - len(self.sessions)
        if removed:
            self.save()
        logger.info(f"Cleaned up {removed} old sessions")
        return removed

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics."""
        with self.lock:
            session_count = len(self.sessions)
            open_count = sum(1 for s in self.sessions if s.is_open)
            reading_count = sum(len(s.readings) for s in self.sessions)

        size = self.sessions_file.stat().st_size if self.sessions_file.exists() else 0
        return {
            "total_size_bytes": size,
            "total_size_mb": round(size / (1024 * 1024), 2),
            "session_count": session_count,
            "open_sessions": open_count,
            "reading_count": reading_count,
            "sessions_file": str(self.sessions_file),
        }

    def _find(self, session_id: str) -> Optional[Session]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None
