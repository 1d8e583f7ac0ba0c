"""Meeting Bot API implementation of the RegistryClient interface."""

import asyncio
from collections.abc import Awaitable, Callable

import httpx
from pydantic import ValidationError

from domain.models import BotHandle
from exceptions import RegistryError
from logging_config import setup_logging
from utils import retry_async

from .interfaces import RegistryClient

logger = setup_logging()

POOL_ACTIVE_PATH = "/api/google-meet-guest/pool/active"


def _is_transient(error: Exception) -> bool:
    if not isinstance(error, RegistryError):
        return False
    return error.status_code is None or error.status_code >= 500


class HttpRegistryClient(RegistryClient):
    """Lists active bots from the Meeting Bot API pool endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

    async def list_active(self) -> list[BotHandle]:
        payload = await retry_async(
            self._get_listing,
            attempts=self._max_retries + 1,
            delay=self._retry_delay,
            should_retry=_is_transient,
            sleep=self._sleep,
        )
        return self._parse(payload)

    async def _get_listing(self) -> dict:
        try:
            response = await self._client.get(POOL_ACTIVE_PATH)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise RegistryError(
                "Unexpected response status", status_code=e.response.status_code, cause=e
            ) from e
        except httpx.HTTPError as e:
            raise RegistryError("Meeting Bot API is unreachable", cause=e) from e
        except ValueError as e:
            raise RegistryError("Response is not valid JSON", status_code=200, cause=e) from e

        if not isinstance(payload, dict) or "count" not in payload:
            raise RegistryError("Invalid response format", status_code=200)
        return payload

    def _parse(self, payload: dict) -> list[BotHandle]:
        bots = payload.get("bots") or []
        if not isinstance(bots, list):
            raise RegistryError("Invalid response format", status_code=200)

        handles = []
        for bot in bots:
            if not isinstance(bot, dict):
                logger.warning("Skipping malformed bot entry", extra={"entry": repr(bot)[:100]})
                continue
            entity_id = bot.get("poolBotId") or bot.get("botId")
            legacy_id = bot.get("legacyBotId")
            if not entity_id or not legacy_id:
                logger.warning(
                    "Skipping bot without ids",
                    extra={"pool_bot_id": entity_id, "legacy_bot_id": legacy_id},
                )
                continue
            try:
                handle = BotHandle(
                    entity_id=str(entity_id),
                    legacy_id=str(legacy_id),
                    meeting_url=bot.get("meetingUrl") or bot.get("meeting_url"),
                    status=bot.get("status"),
                )
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed bot entry",
                    extra={"pool_bot_id": entity_id, "error": str(e)},
                )
                continue
            handles.append(handle)

        logger.debug("Fetched active bots", extra={"count": len(handles)})
        return handles
