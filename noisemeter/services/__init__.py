"""Services layer for NoiseMeter monitoring logic."""

from .alert_machine import AlertStateMachine, AlertState
from .monitor_service import NoiseMonitor
from .publisher import MonitorPublisher
from .scheduler import PeriodicTicker
from .session_recorder import SessionRecorder

__all__ = [
    "AlertStateMachine",
    "AlertState",
    "NoiseMonitor",
    "MonitorPublisher",
    "PeriodicTicker",
    "SessionRecorder",
]
