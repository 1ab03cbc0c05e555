"""Noise monitoring engine: sampling loop, alerting and session recording."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..audio.base import AbstractLevelSource, LevelSourceError, CaptureUnavailableError
from ..audio.levels import LevelNormalizer, SILENT_LEVEL, SILENT_RAW_LEVEL
from ..config import MonitorSettings, check_threshold
from ..models.events import AlertEvent, MonitorSnapshot, SessionEvent
from ..models.session import Session
from ..storage.session_store import SessionStore
from .alert_machine import AlertStateMachine
from .publisher import MonitorPublisher
from .scheduler import PeriodicTicker
from .session_recorder import SessionRecorder

logger = logging.getLogger(__name__)


class NoiseMonitor:
    """Core engine that samples levels, drives alerts and records sessions.

    Every state change runs on a single worker thread, so the fast sampling
    tick, the slow recording tick and control calls are totally ordered.
    Observers receive immutable MonitorSnapshot objects, either through the
    publisher or by calling snapshot().
    """

    def __init__(self,
                 level_source: AbstractLevelSource,
                 store: SessionStore,
                 settings: Optional[MonitorSettings] = None,
                 publisher: Optional[MonitorPublisher] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 run_timers: bool = True):
        """Initialize the monitor.

        Args:
            level_source: Capture collaborator yielding raw levels
            store: Session store the recorder persists to
            settings: Engine settings (defaults if None)
            publisher: Publisher for snapshots, alerts and session events
            clock: Source of the current time
            run_timers: Start the periodic tickers on start_monitoring(). When
                        False, ticks are driven with sample_tick()/record_tick().
        """
        self.level_source = level_source
        self.store = store
        self.settings = settings or MonitorSettings()
        self.publisher = publisher
        self.clock = clock
        self.run_timers = run_timers

        self.normalizer = LevelNormalizer(self.settings.min_raw_level, self.settings.max_raw_level)
        self.alerts = AlertStateMachine(
            threshold=self.settings.alert_threshold,
            enabled=self.settings.alert_enabled,
            cooldown_seconds=self.settings.alert_cooldown,
            on_alert=self._on_alert,
            clock=clock,
        )
        self.recorder = SessionRecorder(store, clock=clock, display_window=self.settings.display_window)

        # Engine state, only touched on the worker thread
        self.is_monitoring = False
        self.raw_level = SILENT_RAW_LEVEL
        self.current_level = SILENT_LEVEL
        self.peak_level = 0.0
        self._sampled_since_record = False

        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="NoiseMonitor")
        self.sample_ticker = PeriodicTicker("sample", self.settings.sample_interval,
                                            lambda: self._post(self._on_sample_tick))
        self.record_ticker = PeriodicTicker("record", self.settings.record_interval,
                                            lambda: self._post(self._on_record_tick))

        self._snapshot = self._build_snapshot()
        logger.info(f"NoiseMonitor initialized: threshold={self.settings.alert_threshold}, "
                    f"alerts={'on' if self.settings.alert_enabled else 'off'}, "
                    f"ticks={self.settings.sample_interval}s/{self.settings.record_interval}s")

    # Public API

    def start_monitoring(self) -> Dict[str, Any]:
        """Start sampling and open a new session.

        Returns:
            Result dictionary with success status and details
        """
        result = self._call(self._start)
        if result["success"] and self.run_timers:
            self.sample_ticker.start()
            self.record_ticker.start()
        return result

    def stop_monitoring(self) -> Dict[str, Any]:
        """Halt both tickers, then close and persist the session.

        Returns:
            Result dictionary with the closed session's statistics
        """
        # Tickers must be fully stopped before the close is queued
        self.sample_ticker.stop()
        self.record_ticker.stop()
        return self._call(self._stop)

    def reset_session(self) -> Dict[str, Any]:
        """Clear peak and alert state; while monitoring, roll over to a fresh session."""
        return self._call(self._reset)

    def sample_tick(self) -> None:
        """Run one sampling tick and wait for it to finish."""
        self._call(self._on_sample_tick)

    def record_tick(self) -> None:
        """Run one recording tick and wait for it to finish."""
        self._call(self._on_record_tick)

    def set_alert_threshold(self, threshold: float) -> None:
        check_threshold(threshold)
        self._call(self._set_threshold, threshold)

    def set_alert_enabled(self, enabled: bool) -> None:
        self._call(self._set_enabled, enabled)

    def snapshot(self) -> MonitorSnapshot:
        """Latest published state."""
        return self._snapshot

    def current_session(self) -> Optional[Session]:
        """Copy of the open session, or None when not monitoring."""
        return self._call(lambda: self.recorder.session.copy() if self.recorder.session else None)

    def cleanup(self) -> None:
        """Stop monitoring if needed and release the worker thread."""
        try:
            if self.is_monitoring:
                self.stop_monitoring()
        finally:
            self.sample_ticker.stop()
            self.record_ticker.stop()
            self.executor.shutdown(wait=True)
            logger.info("NoiseMonitor cleaned up")

    # Worker-side handlers

    def _start(self) -> Dict[str, Any]:
        if self.is_monitoring:
            logger.warning("Monitoring already in progress")
            return {
                "success": False,
                "error": "Already monitoring",
                "session_id": self.recorder.session_id,
            }

        if not self.level_source.check_permission():
            logger.warning("Capture permission not granted, monitoring not started")
            return {"success": False, "error": "Capture permission not granted"}

        try:
            self.level_source.open()
        except (LevelSourceError, OSError) as e:
            logger.error(f"Error opening level source: {e}")
            return {"success": False, "error": str(e)}

        self.raw_level = SILENT_RAW_LEVEL
        self.current_level = SILENT_LEVEL
        self.peak_level = 0.0
        self._sampled_since_record = False
        self.alerts.reset()

        session = self.recorder.begin(self.alerts.threshold)
        self.is_monitoring = True
        logger.info(f"Started monitoring, session: {session.id}")

        self._publish_session_event("started", session.id)
        self._publish_snapshot()
        return {
            "success": True,
            "session_id": session.id,
            "started_at": session.start_time.isoformat(),
        }

    def _stop(self) -> Dict[str, Any]:
        if not self.is_monitoring:
            return {"success": False, "error": "Not monitoring"}

        final_level = self.current_level if self._sampled_since_record else None

        self.is_monitoring = False
        try:
            self.level_source.close()
        except (LevelSourceError, OSError) as e:
            logger.error(f"Error closing level source: {e}")

        self.raw_level = SILENT_RAW_LEVEL
        self.current_level = SILENT_LEVEL
        self._sampled_since_record = False
        self.alerts.clear_trigger()

        session = self.recorder.finish(self.alerts.alert_count, final_level)
        logger.info(f"Stopped monitoring, session: {session.id}")

        self._publish_session_event("stopped", session.id)
        self._publish_snapshot()

        stats = session.stats()
        return {
            "success": True,
            "session_id": session.id,
            "stopped_at": session.end_time.isoformat(),
            "duration_seconds": stats.duration_seconds,
            "reading_count": stats.reading_count,
            "alert_count": stats.alert_count,
            "average_level": stats.average_level,
            "min_level": stats.min_level,
            "max_level": stats.max_level,
        }

    def _reset(self) -> Dict[str, Any]:
        self.peak_level = 0.0

        if not self.is_monitoring:
            self.alerts.reset()
            self._publish_snapshot()
            return {"success": True, "session_id": None}

        # alert_count never decreases on an open session, so roll over instead
        old = self.recorder.finish(self.alerts.alert_count)
        self.alerts.reset()
        self._sampled_since_record = False
        session = self.recorder.begin(self.alerts.threshold)
        logger.info(f"Session reset: {old.id} -> {session.id}")

        self._publish_session_event("reset", session.id, {"previous_session_id": old.id})
        self._publish_snapshot()
        return {"success": True, "session_id": session.id, "previous_session_id": old.id}

    def _on_sample_tick(self) -> None:
        if not self.is_monitoring:
            return

        try:
            raw = self.level_source.read_level()
        except CaptureUnavailableError as e:
            logger.debug(f"No sample this tick: {e}")
            return
        if raw is None:
            return

        self.raw_level = raw
        self.current_level = self.normalizer.normalize(raw)
        self.peak_level = max(self.peak_level, self.current_level)
        self._sampled_since_record = True
        self.alerts.evaluate(self.current_level)
        self._publish_snapshot()

    def _on_record_tick(self) -> None:
        if not self.is_monitoring:
            return

        self.recorder.record(self.current_level, self.alerts.alert_count)
        self._sampled_since_record = False
        self._publish_snapshot()

    def _set_threshold(self, threshold: float) -> None:
        self.alerts.threshold = threshold
        self.settings.alert_threshold = threshold
        logger.info(f"Alert threshold set to {threshold}")
        self._publish_snapshot()

    def _set_enabled(self, enabled: bool) -> None:
        self.alerts.enabled = enabled
        self.settings.alert_enabled = enabled
        logger.info(f"Alerts {'enabled' if enabled else 'disabled'}")
        self._publish_snapshot()

    def _on_alert(self, level: float, alert_count: int, fired_at: datetime) -> None:
        if self.publisher:
            self.publisher.publish_alert(AlertEvent(
                level=level,
                threshold=self.alerts.threshold,
                alert_count=alert_count,
                timestamp=fired_at,
                session_id=self.recorder.session_id,
            ))

    # Helpers

    def _build_snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            timestamp=self.clock(),
            current_level=self.current_level,
            raw_level=self.raw_level,
            peak_level=self.peak_level,
            category=self.normalizer.classify(self.current_level).value,
            is_monitoring=self.is_monitoring,
            is_alert_triggered=self.alerts.is_triggered,
            alert_enabled=self.alerts.enabled,
            alert_threshold=self.alerts.threshold,
            alert_count=self.alerts.alert_count,
            session_id=self.recorder.session_id,
            recent_readings=tuple(self.recorder.recent_readings()),
        )

    def _publish_snapshot(self) -> None:
        self._snapshot = self._build_snapshot()
        if self.publisher:
            self.publisher.publish_snapshot(self._snapshot)

    def _publish_session_event(self, event_type: str, session_id: str,
                               metadata: Optional[Dict[str, Any]] = None) -> None:
        if self.publisher:
            self.publisher.publish_session_event(SessionEvent(
                event_type=event_type,
                session_id=session_id,
                timestamp=self.clock(),
                metadata=metadata or {},
            ))

    def _post(self, fn: Callable[..., Any], *args) -> Optional[Future]:
        """Queue work on the worker without waiting (ticker side)."""
        try:
            future = self.executor.submit(fn, *args)
        except RuntimeError:
            # Executor already shut down
            return None
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Error in monitor tick: {error}",
                         exc_info=(type(error), error, error.__traceback__))

    def _call(self, fn: Callable[..., Any], *args) -> Any:
        """Run work on the worker and wait for its result."""
        return self.executor.submit(fn, *args).result()
