"""Handler for generating meeting summaries of transcript sessions."""

from pydantic import ValidationError

from domain import MeetingSummary, SessionStore
from exceptions import CacheServiceError, RateLimitError, SummaryError
from infrastructure.interfaces import CacheService, TranscriptionService
from logging_config import setup_logging

logger = setup_logging()


class SummaryHandler:
    """Summarizes sessions, using cache when the transcript hasn't grown."""

    def __init__(
        self,
        store: SessionStore,
        service: TranscriptionService,
        cache: CacheService,
        cache_ttl_seconds: int = 86400,
    ):
        self._store = store
        self._service = service
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds

    async def summarize(self, session_id: str) -> MeetingSummary | None:
        """
        Generates the summary of a session and stores it on the session.

        Args:
            session_id: The session to summarize.

        Returns:
            The summary, or None if the session has no transcript yet.

        Raises:
            SessionNotFoundError: If the session doesn't exist.
            RateLimitError: If the provider is rate limiting.
            SummaryError: If the summary cannot be generated.
        """
        session = self._store.get_session(session_id)
        if not session.segments:
            logger.info("Session has no transcript to summarize", extra={"session_id": session_id})
            return None

        cache_key = f"summary:{session_id}:{len(session.segments)}"

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                summary = MeetingSummary.model_validate_json(cached)
            except ValidationError:
                logger.warning("Ignoring malformed cached summary", extra={"key": cache_key})
            else:
                logger.info("Summary retrieved from cache", extra={"session_id": session_id})
                self._store.set_summary(session_id, summary, session.generation)
                return summary

        transcript = "\n".join(f"{s.speaker}: {s.text}" for s in session.segments)
        participants = session.metadata.participant_names if session.metadata else []

        try:
            summary = await self._service.summarize(
                transcript,
                participants or list(session.speakers),
                duration=session.duration,
                language=session.detected_language or "unknown",
                word_count=session.word_count,
            )
        except RateLimitError:
            raise
        except SummaryError as e:
            raise SummaryError(session_id, e.cause) from e
        except Exception as e:
            logger.exception("Summary generation failed", extra={"session_id": session_id})
            raise SummaryError(session_id, e) from e

        await self._cache_set(cache_key, summary.model_dump_json())
        self._store.set_summary(session_id, summary, session.generation)
        logger.info(
            "Summary generated",
            extra={"session_id": session_id, "segment_count": len(session.segments)},
        )
        return summary

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except CacheServiceError:
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self._cache.set(key, value, self._cache_ttl)
        except CacheServiceError:
            logger.warning("Summary cache unavailable", extra={"key": key})
