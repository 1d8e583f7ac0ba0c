"""Abstract interface for transcription provider operations."""

from abc import ABC, abstractmethod

from domain.models import MeetingSummary, TranscriptionContext


class TranscriptionService(ABC):
    """Abstract base class for AI transcription backends."""

    @abstractmethod
    async def transcribe(
        self,
        audio_data: bytes,
        context: TranscriptionContext | None,
        *,
        entity_id: str,
    ) -> str:
        """
        Transcribes audio and returns the provider's raw response text.

        Args:
            audio_data: Audio bytes of one slice or window.
            context: Continuity state from the previous call, or None for the
                first call of a meeting.
            entity_id: Bot the audio belongs to, for logging.

        Returns:
            The unparsed response body; shape validation is the caller's job.

        Raises:
            RateLimitError: If the provider signals a rate limit.
            TranscriptionError: If the call fails after retries.
        """
        pass

    @abstractmethod
    async def summarize(
        self,
        transcript: str,
        participants: list[str],
        *,
        duration: float,
        language: str,
        word_count: int,
    ) -> MeetingSummary:
        """
        Summarizes a meeting transcript.

        Raises:
            RateLimitError: If the provider signals a rate limit.
            SummaryError: If the call fails or returns nothing usable.
        """
        pass
