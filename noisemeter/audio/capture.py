"""Microphone level capture backed by PyAudio."""

import logging
import threading
from threading import Thread, Event
from typing import Optional

import numpy as np
import pyaudio

from .base import AbstractLevelSource, CapturePermissionError, CaptureUnavailableError
from .levels import SILENT_RAW_LEVEL

logger = logging.getLogger(__name__)


def compute_level_db(audio_chunk: bytes) -> float:
    """Compute the RMS level of a 16-bit PCM chunk in dBFS."""
    samples = np.frombuffer(audio_chunk, dtype=np.int16).astype(np.float32)
    if samples.size == 0:
        return SILENT_RAW_LEVEL

    samples /= 32768.0
    rms = float(np.sqrt(np.mean(samples ** 2)))
    if rms <= 0.0:
        return SILENT_RAW_LEVEL
    return max(SILENT_RAW_LEVEL, 20.0 * float(np.log10(rms)))


class MicrophoneLevelSource(AbstractLevelSource):
    """Continuous microphone capture that keeps the most recent chunk level."""

    def __init__(
        self,
        sample_rate: int = 44100,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize microphone capture.

        Args:
            sample_rate: Audio sample rate
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        # Capture thread management
        self.capture_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        self.lock = threading.Lock()
        self.latest_level: Optional[float] = None
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None

    def check_permission(self) -> bool:
        """Check that a default input device exists and can be queried."""
        probe = None
        try:
            probe = pyaudio.PyAudio()
            probe.get_default_input_device_info()
            return True
        except (IOError, OSError) as e:
            logger.warning(f"Microphone not available: {e}")
            return False
        finally:
            if probe is not None:
                probe.terminate()

    def open(self) -> None:
        """Open the input stream and start the capture thread."""
        if self.is_recording:
            logger.warning("Capture already in progress")
            return

        if not self.check_permission():
            raise CapturePermissionError("No usable input device")

        logger.info("Starting level capture")
        self.stop_event.clear()
        with self.lock:
            self.latest_level = None
            self.total_chunks = 0

        stream = self._open_audio_stream()
        self.capture_thread = Thread(target=self._capture_continuously, args=(stream,), daemon=True)
        self.capture_thread.name = "LevelCaptureThread"
        self.capture_thread.start()
        self.is_recording = True

    def close(self) -> None:
        """Stop capture and release the audio device."""
        if not self.is_recording:
            return

        logger.info("Stopping level capture")
        self.stop_event.set()

        if self.capture_thread and self.capture_thread.is_alive():
            self.capture_thread.join(timeout=2.0)
            if self.capture_thread.is_alive():
                logger.warning("Capture thread did not stop cleanly")

        self.is_recording = False
        logger.info(f"Level capture stopped. Total chunks: {self.total_chunks}")

    def read_level(self) -> Optional[float]:
        if not self.is_recording:
            raise CaptureUnavailableError("Capture is not running")
        if self.capture_thread is None or not self.capture_thread.is_alive():
            raise CaptureUnavailableError("Capture thread has stopped")
        with self.lock:
            return self.latest_level

    def _open_audio_stream(self):
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except (IOError, OSError):
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            raise
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def _capture_continuously(self, stream) -> None:
        """Capture loop running in the background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                level = compute_level_db(audio_chunk)
                with self.lock:
                    self.latest_level = level
                    self.total_chunks += 1
        except (IOError, OSError) as e:
            logger.error(f"Audio capture failed: {e}")
            with self.lock:
                self.latest_level = None
        finally:
            stream.stop_stream()
            stream.close()
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
