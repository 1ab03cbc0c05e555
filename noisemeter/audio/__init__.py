"""Audio level capture and normalization."""

from .base import (
    AbstractLevelSource,
    LevelSourceError,
    CapturePermissionError,
    CaptureUnavailableError,
)
from .capture import MicrophoneLevelSource
from .levels import LevelNormalizer, NoiseCategory, normalize_level, classify_level

__all__ = [
    "AbstractLevelSource",
    "LevelSourceError",
    "CapturePermissionError",
    "CaptureUnavailableError",
    "MicrophoneLevelSource",
    "LevelNormalizer",
    "NoiseCategory",
    "normalize_level",
    "classify_level",
]
