"""Abstract interface for raw bot audio retrieval."""

from abc import ABC, abstractmethod


class AudioSource(ABC):
    """Abstract base class for bot audio sources."""

    @abstractmethod
    async def fetch_audio(self, legacy_id: str) -> bytes:
        """
        Downloads the current audio recording of a bot.

        Args:
            legacy_id: The bot's legacy id, used only for audio retrieval.

        Returns:
            The raw audio bytes recorded so far.

        Raises:
            AudioNotReadyError: If the recording is not available yet.
            AudioNotFoundError: If the source has no recording for the bot.
            AudioFetchError: If the download fails.
        """
        pass
