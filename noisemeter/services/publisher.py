"""Publisher for monitor snapshots, alerts and session events."""

import logging
from pubsub import pub

from ..models.events import AlertEvent, MonitorSnapshot, SessionEvent

logger = logging.getLogger(__name__)

SNAPSHOT_TOPIC = "noise_level"
ALERT_TOPIC = "noise_alert"
SESSION_TOPIC = "noise_session"


class MonitorPublisher:
    """Publishes engine output using pubsub.pub.

    Delivery is fire-and-forget: a failing subscriber is logged and never
    interrupts monitoring.
    """

    def __init__(self,
                 snapshot_topic: str = SNAPSHOT_TOPIC,
                 alert_topic: str = ALERT_TOPIC,
                 session_topic: str = SESSION_TOPIC):
        """Initialize monitor publisher.

        Args:
            snapshot_topic: Topic for MonitorSnapshot messages
            alert_topic: Topic for AlertEvent messages
            session_topic: Topic for SessionEvent messages
        """
        self.snapshot_topic = snapshot_topic
        self.alert_topic = alert_topic
        self.session_topic = session_topic
        logger.info(f"MonitorPublisher initialized with topics: {snapshot_topic}, {alert_topic}, {session_topic}")

    def publish_snapshot(self, snapshot: MonitorSnapshot) -> None:
        self._send(self.snapshot_topic, snapshot=snapshot)

    def publish_alert(self, event: AlertEvent) -> None:
        self._send(self.alert_topic, event=event)
        logger.debug(f"Published alert: level {event.level:.1f}, count {event.alert_count}")

    def publish_session_event(self, event: SessionEvent) -> None:
        self._send(self.session_topic, event=event)
        logger.debug(f"Published session event: {event.event_type} {event.session_id}")

    def _send(self, topic: str, **kwargs) -> None:
        try:
            pub.sendMessage(topic, **kwargs)
        except Exception as e:
            logger.error(f"Subscriber error on topic {topic}: {e}", exc_info=True)
