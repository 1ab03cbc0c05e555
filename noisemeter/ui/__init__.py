"""Terminal user interface."""

from .monitor_screen import MonitorScreen, render_sessions_table, render_session_detail

__all__ = [
    "MonitorScreen",
    "render_sessions_table",
    "render_session_detail",
]
