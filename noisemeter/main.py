"""Main application entry point for NoiseMeter."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live

from .audio.capture import MicrophoneLevelSource
from .config import NoiseMeterConfig, MonitorSettings
from .services.monitor_service import NoiseMonitor
from .services.publisher import MonitorPublisher
from .storage.session_store import SessionStore
from .ui.monitor_screen import MonitorScreen, render_sessions_table, render_session_detail

logger = logging.getLogger(__name__)


class Server:
    """Composition root: builds the store, level source and monitor."""

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        self.config = NoiseMeterConfig(config_path)
        # Command line overrides config
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.console = Console()
        self.should_exit = False
        self.monitor: Optional[NoiseMonitor] = None

        self.store = SessionStore(
            self.config.get_data_directory(),
            self.config.get('storage.sessions_file', 'noise_sessions.json'),
        )
        self._housekeeping()

    def _housekeeping(self) -> None:
        """Close sessions a crashed run left open and prune old ones."""
        self.store.close_abandoned_sessions()
        max_age_days = int(self.config.get('storage.max_age_days', 0))
        if max_age_days > 0:
            self.store.cleanup_old_sessions(max_age_days)

    def init_monitor(self, threshold: Optional[float] = None, alerts_enabled: Optional[bool] = None) -> None:
        logger.info("Initializing monitor...")
        settings = MonitorSettings.from_config(self.config)
        if threshold is not None:
            settings.alert_threshold = threshold
        if alerts_enabled is not None:
            settings.alert_enabled = alerts_enabled

        level_source = MicrophoneLevelSource(
            sample_rate=self.config.get('audio.sample_rate', 44100),
            chunk_size=self.config.get('audio.chunk_size', 1024),
            channels=self.config.get('audio.channels', 1),
        )
        self.monitor = NoiseMonitor(level_source, self.store, settings, MonitorPublisher())

    def run(self, duration: Optional[float]) -> int:
        screen = MonitorScreen(self.console)
        try:
            result = self.monitor.start_monitoring()
            if not result["success"]:
                self.console.print(f"Could not start monitoring: {result['error']}", style="bold red")
                return 1

            deadline = time.monotonic() + duration if duration else None
            with Live(screen.render(), console=self.console, refresh_per_second=10) as live:
                while not self.should_exit:
                    if deadline is not None and time.monotonic() >= deadline:
                        break
                    time.sleep(0.1)
                    live.update(screen.render())

            result = self.monitor.stop_monitoring()
            if result["success"]:
                self.console.print(
                    f"Session {result['session_id']}: {result['reading_count']} readings, "
                    f"avg {result['average_level']:.1f}, max {result['max_level']:.1f}, "
                    f"{result['alert_count']} alerts")
            return 0
        finally:
            screen.close()

    def cleanup(self) -> None:
        if self.monitor:
            self.monitor.cleanup()
            self.monitor = None


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/noisemeter.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("NoiseMeter starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NoiseMeter - ambient noise monitoring",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="NoiseMeter v0.1.0"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    monitor = commands.add_parser("monitor", help="Monitor the microphone level")
    monitor.add_argument("--duration", type=float,
                         help="Stop after this many seconds (default: until Ctrl+C)")
    monitor.add_argument("--threshold", type=float, help="Alert threshold on the 0-120 scale")
    monitor.add_argument("--no-alerts", action="store_true", help="Disable alerts")

    sessions = commands.add_parser("sessions", help="Review recorded sessions")
    actions = sessions.add_subparsers(dest="action", required=True)
    list_cmd = actions.add_parser("list", help="List sessions, most recent first")
    list_cmd.add_argument("--closed-only", action="store_true", help="Hide open sessions")
    show_cmd = actions.add_parser("show", help="Show one session")
    show_cmd.add_argument("session_id")
    delete_cmd = actions.add_parser("delete", help="Delete one session")
    delete_cmd.add_argument("session_id")
    actions.add_parser("clear", help="Delete all sessions")

    return parser


def _find_session_id(store: SessionStore, prefix: str) -> Optional[str]:
    """Resolve a full or abbreviated session id."""
    matches = [s.id for s in store.list_sessions() if s.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def run_sessions_command(server: Server, args: argparse.Namespace) -> int:
    store = server.store
    console = server.console

    if args.action == "list":
        sessions = store.list_sessions(closed_only=args.closed_only)
        if not sessions:
            console.print("No sessions yet", style="dim")
            return 0
        console.print(render_sessions_table(sessions))
        return 0

    if args.action == "clear":
        removed = store.delete_all_sessions()
        console.print(f"Deleted {removed} sessions")
        return 0

    session_id = _find_session_id(store, args.session_id)
    if session_id is None:
        console.print(f"No unique session matches '{args.session_id}'", style="bold red")
        return 1

    if args.action == "show":
        console.print(render_session_detail(store.get_session(session_id)))
    elif args.action == "delete":
        store.delete_session(session_id)
        console.print(f"Deleted session {session_id}")
    return 0


def main(argv=None) -> None:
    """Main entry point for NoiseMeter."""
    args = build_parser().parse_args(argv)

    server = None
    try:
        server = Server(args.config, args.log_level)
        if args.command == "monitor":
            server.init_monitor(
                threshold=args.threshold,
                alerts_enabled=False if args.no_alerts else None,
            )
            exit_code = server.run(args.duration)
        else:
            exit_code = run_sessions_command(server, args)
    except KeyboardInterrupt:
        print("\nGoodbye!")
        exit_code = 0
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        exit_code = 1
    finally:
        if server:
            server.cleanup()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
