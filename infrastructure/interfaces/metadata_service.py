"""Abstract interface for meeting metadata lookups."""

from abc import ABC, abstractmethod

from domain.models import BotHandle, MeetingMetadata


class MetadataService(ABC):
    """Abstract base class for meeting metadata backends."""

    @abstractmethod
    async def get_metadata(self, handle: BotHandle) -> MeetingMetadata:
        """
        Resolves a bot to the meeting it is recording.

        Lookups are best-effort: failures degrade to placeholder metadata
        instead of raising.
        """
        pass
