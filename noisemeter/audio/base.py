"""Abstract interface for level sources (the capture collaborator)."""

from abc import ABC, abstractmethod
from typing import Optional


class LevelSourceError(Exception):
    """Base class for capture errors."""


class CapturePermissionError(LevelSourceError):
    """Raised when the capture device may not be used."""


class CaptureUnavailableError(LevelSourceError):
    """Raised when no sample is available for the current tick."""


class AbstractLevelSource(ABC):
    """Yields raw instantaneous level samples on demand.

    The engine never owns hardware access; it only applies policy to the
    samples a source hands back.
    """

    @abstractmethod
    def check_permission(self) -> bool:
        """Return True if the source may be opened."""
        pass

    @abstractmethod
    def open(self) -> None:
        """Start producing samples."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop producing samples and release resources."""
        pass

    @abstractmethod
    def read_level(self) -> Optional[float]:
        """Return the latest raw level, or None when no sample is available."""
        pass
