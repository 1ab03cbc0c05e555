"""Unit tests for MicrophoneLevelSource."""

import time
import pytest
import numpy as np

from noisemeter.audio.base import CapturePermissionError, CaptureUnavailableError
from noisemeter.audio.capture import MicrophoneLevelSource, compute_level_db


@pytest.mark.unit
class TestComputeLevelDb:
    """Test cases for compute_level_db."""

    def test_silence(self):
        """Test an all-zero chunk maps to the silence level."""
        assert compute_level_db(b'\x00' * 2048) == -160.0

    def test_empty_chunk(self):
        """Test an empty chunk maps to the silence level."""
        assert compute_level_db(b'') == -160.0

    def test_full_scale_sine(self, sample_audio_chunk):
        """Test a full-scale sine is about -3 dBFS."""
        assert compute_level_db(sample_audio_chunk) == pytest.approx(-3.01, abs=0.1)

    def test_half_amplitude_is_6db_lower(self):
        """Test halving the amplitude lowers the level by ~6 dB."""
        full = np.full(1024, 16384, dtype=np.int16).tobytes()
        half = np.full(1024, 8192, dtype=np.int16).tobytes()

        assert compute_level_db(full) - compute_level_db(half) == pytest.approx(6.02, abs=0.01)


@pytest.mark.unit
class TestMicrophoneLevelSource:
    """Test cases for MicrophoneLevelSource."""

    def test_initialization(self):
        """Test default parameters."""
        source = MicrophoneLevelSource()

        assert source.sample_rate == 44100
        assert source.chunk_size == 1024
        assert source.channels == 1
        assert source.is_recording is False
        assert source.latest_level is None

    def test_check_permission(self, mock_pyaudio):
        """Test permission is granted when a default input device exists."""
        source = MicrophoneLevelSource()

        assert source.check_permission() is True
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_check_permission_no_device(self, mock_pyaudio):
        """Test permission is refused without an input device."""
        mock_pyaudio['instance'].get_default_input_device_info.side_effect = IOError("No Default Input Device Available")
        source = MicrophoneLevelSource()

        assert source.check_permission() is False

    def test_open_without_device(self, mock_pyaudio):
        """Test open() raises when no device is usable."""
        mock_pyaudio['instance'].get_default_input_device_info.side_effect = OSError("no device")
        source = MicrophoneLevelSource()

        with pytest.raises(CapturePermissionError):
            source.open()
        assert source.is_recording is False

    def test_read_level_before_open(self):
        """Test reading while not capturing reports no sample."""
        source = MicrophoneLevelSource()

        with pytest.raises(CaptureUnavailableError):
            source.read_level()

    def test_capture_updates_latest_level(self, mock_pyaudio, sample_audio_chunk):
        """Test the capture thread publishes chunk levels."""
        mock_pyaudio['stream'].read.return_value = sample_audio_chunk
        source = MicrophoneLevelSource()

        source.open()
        try:
            deadline = time.time() + 2.0
            while source.read_level() is None and time.time() < deadline:
                time.sleep(0.01)

            assert source.read_level() == pytest.approx(-3.01, abs=0.1)
            assert source.capture_thread.daemon is True
        finally:
            source.close()

        assert source.is_recording is False
        assert source.stop_event.is_set()
        mock_pyaudio['stream'].stop_stream.assert_called()
        mock_pyaudio['stream'].close.assert_called()

    def test_read_level_after_device_failure(self, mock_pyaudio, sample_audio_chunk):
        """Test a dead capture thread reports no sample instead of a stale level."""
        mock_pyaudio['stream'].read.side_effect = [sample_audio_chunk, OSError("device unplugged")]
        source = MicrophoneLevelSource()

        source.open()
        try:
            source.capture_thread.join(timeout=2.0)
            assert not source.capture_thread.is_alive()

            with pytest.raises(CaptureUnavailableError):
                source.read_level()
            assert source.latest_level is None
        finally:
            source.close()

    def test_stream_open_failure_releases_pyaudio(self, mock_pyaudio):
        """Test the PyAudio instance is terminated when the stream cannot be opened."""
        mock_pyaudio['instance'].open.side_effect = OSError("Invalid sample rate")
        source = MicrophoneLevelSource()

        with pytest.raises(OSError):
            source.open()

        # Once for the permission check, once for the failed stream
        assert mock_pyaudio['instance'].terminate.call_count == 2
        assert source.pyaudio_instance is None
        assert source.is_recording is False

    def test_open_twice(self, mock_pyaudio):
        """Test a second open() is ignored."""
        source = MicrophoneLevelSource()
        source.open()
        try:
            first_thread = source.capture_thread
            source.open()
            assert source.capture_thread is first_thread
        finally:
            source.close()

    def test_close_when_not_open(self):
        """Test close() is safe when idle."""
        source = MicrophoneLevelSource()
        source.close()
        assert source.is_recording is False
