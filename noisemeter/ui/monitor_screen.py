"""Terminal display for live monitoring and session history."""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from pubsub import pub
from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..audio.levels import SCALE_MAX
from ..models.events import AlertEvent, MonitorSnapshot
from ..models.session import Reading, Session
from ..services.publisher import ALERT_TOPIC, SNAPSHOT_TOPIC

logger = logging.getLogger(__name__)

GAUGE_WIDTH = 40
SPARK_CHARS = " ▁▂▃▄▅▆▇█"

_CATEGORY_STYLES = {
    "Quiet": "green",
    "Moderate": "bright_green",
    "Loud": "yellow",
    "Very Loud": "dark_orange",
    "Dangerous": "red",
    "Extreme": "bold magenta",
}


def level_style(category: str) -> str:
    return _CATEGORY_STYLES.get(category, "white")


def render_gauge(level: float, threshold: float, width: int = GAUGE_WIDTH) -> Text:
    """Horizontal bar for a 0-120 level with a threshold marker."""
    filled = int(round(min(level, SCALE_MAX) / SCALE_MAX * width))
    marker = min(width - 1, int(round(threshold / SCALE_MAX * width)))
    bar = Text()
    for i in range(width):
        if i == marker:
            bar.append("|", style="bold white")
        elif i < filled:
            bar.append("█", style="red" if level >= threshold else "green")
        else:
            bar.append("·", style="dim")
    return bar


def render_sparkline(readings: List[Reading]) -> str:
    """One character per reading, scaled to the 0-120 range."""
    top = len(SPARK_CHARS) - 1
    return "".join(
        SPARK_CHARS[min(top, int(r.level / SCALE_MAX * top))] for r in readings
    )


class MonitorScreen:
    """Live view fed by snapshot and alert messages."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.lock = threading.Lock()
        self.snapshot: Optional[MonitorSnapshot] = None
        self.last_alert: Optional[AlertEvent] = None

        pub.subscribe(self._on_snapshot, SNAPSHOT_TOPIC)
        pub.subscribe(self._on_alert, ALERT_TOPIC)
        logger.info(f"MonitorScreen subscribed to {SNAPSHOT_TOPIC}, {ALERT_TOPIC}")

    def _on_snapshot(self, snapshot: MonitorSnapshot) -> None:
        with self.lock:
            self.snapshot = snapshot

    def _on_alert(self, event: AlertEvent) -> None:
        with self.lock:
            self.last_alert = event
        self.console.bell()

    def close(self) -> None:
        pub.unsubscribe(self._on_snapshot, SNAPSHOT_TOPIC)
        pub.unsubscribe(self._on_alert, ALERT_TOPIC)

    def render(self) -> Panel:
        with self.lock:
            snapshot = self.snapshot
            last_alert = self.last_alert

        if snapshot is None:
            return Panel(Align.center(Text("Waiting for samples...", style="dim italic")),
                         title="NoiseMeter")

        style = level_style(snapshot.category)
        header = Text.assemble(
            (f"{snapshot.current_level:5.1f} dB", f"bold {style}"),
            "  ",
            (snapshot.category, style),
            "  |  ",
            ("ALERT" if snapshot.is_alert_triggered else "ok",
             "bold red" if snapshot.is_alert_triggered else "dim"),
        )

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Peak", f"{snapshot.peak_level:.1f}")
        table.add_row("Threshold", f"{snapshot.alert_threshold:.0f}"
                      + ("" if snapshot.alert_enabled else " (alerts off)"))
        table.add_row("Alerts", str(snapshot.alert_count))
        table.add_row("Readings", str(len(snapshot.recent_readings)))
        if last_alert:
            table.add_row("Last alert", last_alert.timestamp.strftime("%H:%M:%S"))

        body = Group(
            header,
            render_gauge(snapshot.current_level, snapshot.alert_threshold),
            Text(render_sparkline(list(snapshot.recent_readings)), style="blue"),
            table,
        )
        status = "MONITORING" if snapshot.is_monitoring else "STOPPED"
        return Panel(body, title=f"NoiseMeter - {status}",
                     border_style="red" if snapshot.is_alert_triggered else "green")


def render_sessions_table(sessions: List[Session], now: Optional[datetime] = None) -> Table:
    """Table of sessions, one row each."""
    table = Table(title="Sessions", header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Readings", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Alerts", justify="right")
    table.add_column("Status")

    for session in sessions:
        table.add_row(
            session.id[:8],
            session.start_time.strftime("%Y-%m-%d %H:%M"),
            session.formatted_duration(now),
            str(len(session.readings)),
            f"{session.average_level:.1f}",
            f"{session.max_level:.1f}",
            str(session.alert_count),
            "open" if session.is_open else "closed",
        )
    return table


def render_session_detail(session: Session, now: Optional[datetime] = None) -> Panel:
    stats = session.stats(now)
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Started", session.start_time.isoformat(timespec="seconds"))
    table.add_row("Ended", session.end_time.isoformat(timespec="seconds") if session.end_time else "-")
    table.add_row("Duration", session.formatted_duration(now))
    table.add_row("Readings", str(stats.reading_count))
    table.add_row("Average", f"{stats.average_level:.1f}")
    table.add_row("Min", f"{stats.min_level:.1f}")
    table.add_row("Max", f"{stats.max_level:.1f}")
    table.add_row("Threshold", f"{session.alert_threshold:.0f}")
    table.add_row("Alerts", str(stats.alert_count))
    spark = Text(render_sparkline(session.readings[-GAUGE_WIDTH * 2:]), style="blue")
    return Panel(Group(table, spark), title=f"Session {session.id}")
