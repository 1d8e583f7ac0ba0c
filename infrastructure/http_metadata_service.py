"""Meeting Bot API implementation of the MetadataService interface."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from domain.models import BotHandle, BotInfo, MeetingMetadata, Participant
from exceptions import CacheServiceError, MetadataError
from logging_config import setup_logging
from utils import retry_async

from .interfaces import CacheService, MetadataService

logger = setup_logging()


def _first(details: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = details.get(key)
        if value:
            return value
    return None


def extract_participants(details: dict[str, Any]) -> list[Participant]:
    """Collects participants from the shapes the bot API uses, deduped by name."""
    raw: list[Any] = []

    participants = details.get("participants")
    if isinstance(participants, dict) and isinstance(participants.get("list"), list):
        raw.extend(participants["list"])
    elif isinstance(participants, list):
        raw.extend(participants)
    elif participants:
        raw.append(participants)

    attendees = details.get("attendees")
    if attendees:
        raw.extend(attendees if isinstance(attendees, list) else [attendees])

    meeting = details.get("meeting")
    if isinstance(meeting, dict) and isinstance(meeting.get("participants"), list):
        raw.extend(meeting["participants"])

    result: list[Participant] = []
    seen: set[str] = set()
    for entry in raw:
        if isinstance(entry, str):
            participant = Participant(name=entry)
        elif isinstance(entry, dict):
            participant = Participant(
                name=entry.get("name") or entry.get("displayName") or "Unknown",
                email=entry.get("email"),
                role=entry.get("role") or "participant",
                joined_at=entry.get("joinedAt"),
                left_at=entry.get("leftAt"),
            )
        else:
            continue
        if participant.name in seen:
            continue
        seen.add(participant.name)
        result.append(participant)
    return result


class HttpMetadataService(MetadataService):
    """Resolves meeting details for a bot, caching them in the cache service."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: CacheService | None = None,
        cache_ttl_seconds: int = 300,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

    async def get_metadata(self, handle: BotHandle) -> MeetingMetadata:
        cache_key = f"metadata:{handle.entity_id}"

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                return MeetingMetadata.model_validate_json(cached)
            except ValidationError:
                logger.warning("Ignoring malformed cached metadata", extra={"key": cache_key})

        try:
            details = await self._bot_details(handle)
        except MetadataError as e:
            logger.warning(
                "Failed to fetch meeting metadata, using placeholder",
                extra={"entity_id": handle.entity_id, "error": str(e)},
            )
            return MeetingMetadata.placeholder(handle.entity_id, handle.legacy_id, str(e))

        try:
            metadata = self._build(handle, details)
        except ValidationError as e:
            logger.warning(
                "Bot details have unexpected shape, using placeholder",
                extra={"entity_id": handle.entity_id, "error": str(e)},
            )
            return MeetingMetadata.placeholder(handle.entity_id, handle.legacy_id, str(e))

        await self._cache_set(cache_key, metadata.model_dump_json())
        return metadata

    async def _bot_details(self, handle: BotHandle) -> dict[str, Any]:
        endpoints = [
            f"/api/google-meet-guest/bots/{handle.entity_id}",
            f"/api/google-meet-guest/legacy/{handle.legacy_id}",
            "/api/google-meet-guest/pool/active",
        ]
        for endpoint in endpoints:
            try:
                payload = await retry_async(
                    lambda: self._get_json(endpoint),
                    attempts=self._max_retries + 1,
                    delay=self._retry_delay,
                    should_retry=lambda e: isinstance(e, httpx.TransportError)
                    or (isinstance(e, httpx.HTTPStatusError) and e.response.status_code >= 500),
                    sleep=self._sleep,
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(
                    "Metadata endpoint failed",
                    extra={"endpoint": endpoint, "error": str(e)},
                )
                continue

            if not isinstance(payload, dict):
                continue
            if endpoint.endswith("pool/active"):
                for bot in payload.get("bots") or []:
                    if bot.get("poolBotId") == handle.entity_id or bot.get("legacyBotId") == handle.legacy_id:
                        return bot
                continue
            return payload

        raise MetadataError(handle.entity_id, Exception("Unable to fetch bot details"))

    async def _get_json(self, endpoint: str) -> Any:
        response = await self._client.get(endpoint)
        response.raise_for_status()
        return response.json()

    def _build(self, handle: BotHandle, details: dict[str, Any]) -> MeetingMetadata:
        current_meeting = details.get("currentMeeting") or {}
        return MeetingMetadata(
            event_id=_first(details, "event_id", "eventId", "meetingId") or current_meeting.get("eventId"),
            meeting_url=_first(details, "meetingUrl", "meeting_url") or handle.meeting_url,
            meeting_title=_first(details, "meetingTitle", "meeting_title") or "Untitled Meeting",
            participants=extract_participants(details),
            organizer=_first(details, "organizer", "meeting_organizer", "userEmail"),
            scheduled_start_time=_first(details, "scheduledStartTime", "scheduled_start"),
            scheduled_end_time=_first(details, "scheduledEndTime", "scheduled_end"),
            actual_start_time=_first(details, "startedAt", "joinedAt", "joined_at"),
            meeting_type=details.get("meetingType") or "scheduled",
            bot_info=BotInfo(
                bot_id=handle.entity_id,
                legacy_id=handle.legacy_id,
                bot_name=_first(details, "botName", "bot_name") or "Meeting Bot",
                status=details.get("status") or "unknown",
            ),
        )

    async def _cache_get(self, key: str) -> str | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except CacheServiceError:
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, value, self._cache_ttl)
        except CacheServiceError:
            logger.warning("Metadata cache unavailable", extra={"key": key})
