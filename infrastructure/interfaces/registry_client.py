"""Abstract interface for the bot registry listing."""

from abc import ABC, abstractmethod

from domain.models import BotHandle


class RegistryClient(ABC):
    """Abstract base class for bot pool registries."""

    @abstractmethod
    async def list_active(self) -> list[BotHandle]:
        """
        Fetches the full listing of currently active bots.

        Returns:
            Every active bot; an empty list is a valid, successful answer.

        Raises:
            RegistryError: If the registry is unreachable or answers malformed data.
        """
        pass
