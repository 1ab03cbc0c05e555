"""Pytest configuration and fixtures for NoiseMeter tests."""

import pytest
import tempfile
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from unittest.mock import Mock, patch

import numpy as np
from pubsub import pub

from noisemeter.audio.base import AbstractLevelSource, CaptureUnavailableError
from noisemeter.storage.session_store import SessionStore


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without threads or hardware")
    config.addinivalue_line("markers", "integration: tests running real tick threads")


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class ScriptedLevelSource(AbstractLevelSource):
    """Level source replaying a fixed list of raw levels.

    ``None`` entries simulate a tick with no sample; ``"error"`` entries raise
    CaptureUnavailableError. Once the script is exhausted the last level is
    repeated.
    """

    def __init__(self, levels: Optional[List] = None, permission: bool = True):
        self.levels = list(levels or [])
        self.permission = permission
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.last_level: Optional[float] = None

    def check_permission(self) -> bool:
        return self.permission

    def open(self) -> None:
        self.is_open = True
        self.open_count += 1

    def close(self) -> None:
        self.is_open = False
        self.close_count += 1

    def read_level(self) -> Optional[float]:
        if not self.levels:
            return self.last_level
        level = self.levels.pop(0)
        if level == "error":
            raise CaptureUnavailableError("scripted failure")
        if level is not None:
            self.last_level = level
        return level

    def push(self, *levels) -> None:
        self.levels.extend(levels)


def raw_for_level(level: float, min_raw: float = -80.0, max_raw: float = 0.0) -> float:
    """Raw dBFS value that normalizes to ``level`` on the 0-120 scale."""
    return min_raw + level / 120.0 * (max_raw - min_raw)


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop listeners registered by a test."""
    yield
    pub.unsubAll()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store(temp_data_dir, fake_clock):
    return SessionStore(temp_data_dir, clock=fake_clock)


@pytest.fixture
def level_source():
    return ScriptedLevelSource()


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # 1024 samples of a full-scale 440 Hz sine
    sample_rate = 44100
    duration = 1024 / sample_rate
    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * 440 * t)

    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_default_input_device_info.return_value = {"name": "mock"}

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
