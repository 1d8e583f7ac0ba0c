"""Abstract interface for cutting audio into time windows."""

from abc import ABC, abstractmethod


class AudioSlicer(ABC):
    """Abstract base class for audio slicing backends."""

    @abstractmethod
    def slice(self, audio_data: bytes, start: float, end: float) -> bytes:
        """
        Cuts the [start, end) range, in seconds, out of an audio buffer.

        Raises:
            AudioUnreadableError: If the buffer cannot be decoded.
        """
        pass
