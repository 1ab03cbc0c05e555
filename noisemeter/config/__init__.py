"""Simple YAML configuration loader for NoiseMeter."""

import copy
import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

# Recommended alert threshold domain on the 0-120 scale
MIN_RECOMMENDED_THRESHOLD = 50.0
MAX_RECOMMENDED_THRESHOLD = 110.0

DEFAULT_CONFIG: Dict[str, Any] = {
    "audio": {
        "sample_rate": 44100,
        "chunk_size": 1024,
        "channels": 1,
        "min_db": -80.0,
        "max_db": 0.0,
    },
    "monitor": {
        "sample_interval_seconds": 0.05,
        "record_interval_seconds": 0.5,
        "display_window": 120,
    },
    "alerts": {
        "enabled": True,
        "threshold": 80.0,
        "cooldown_seconds": 2.0,
    },
    "storage": {
        "data_directory": "data",
        "sessions_file": "noise_sessions.json",
        "max_age_days": 0,
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/noisemeter.log",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class NoiseMeterConfig:
    """NoiseMeter configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, the built-in
                        defaults are used.
        """
        if config_path is None:
            self.config_file: Optional[Path] = None
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            logger.info("No configuration file given, using defaults")
            return

        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not loaded:
            raise ValueError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping")

        config = _merge(DEFAULT_CONFIG, loaded)

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        data_dir = config['storage']['data_directory']
        if not os.path.isabs(data_dir):
            config['storage']['data_directory'] = str(config_dir / data_dir)

        log_path = config['logging']['file_path']
        if not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'alerts.threshold').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'alerts.enabled')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())


@dataclass
class MonitorSettings:
    """Typed engine settings."""
    sample_interval: float = 0.05
    record_interval: float = 0.5
    display_window: int = 120
    alert_enabled: bool = True
    alert_threshold: float = 80.0
    alert_cooldown: float = 2.0
    min_raw_level: float = -80.0
    max_raw_level: float = 0.0

    @classmethod
    def from_config(cls, config: NoiseMeterConfig) -> "MonitorSettings":
        settings = cls(
            sample_interval=float(config.get('monitor.sample_interval_seconds', 0.05)),
            record_interval=float(config.get('monitor.record_interval_seconds', 0.5)),
            display_window=int(config.get('monitor.display_window', 120)),
            alert_enabled=bool(config.get('alerts.enabled', True)),
            alert_threshold=float(config.get('alerts.threshold', 80.0)),
            alert_cooldown=float(config.get('alerts.cooldown_seconds', 2.0)),
            min_raw_level=float(config.get('audio.min_db', -80.0)),
            max_raw_level=float(config.get('audio.max_db', 0.0)),
        )
        check_threshold(settings.alert_threshold)
        return settings


def check_threshold(threshold: float) -> bool:
    """Warn when a threshold lies outside the recommended domain."""
    if MIN_RECOMMENDED_THRESHOLD <= threshold <= MAX_RECOMMENDED_THRESHOLD:
        return True
    logger.warning(f"Alert threshold {threshold} outside recommended range "
                   f"{MIN_RECOMMENDED_THRESHOLD}-{MAX_RECOMMENDED_THRESHOLD}")
    return False
