"""In-memory transcript sessions and live fan-out to subscribers."""

import asyncio
import threading

from exceptions import SessionNotFoundError
from infrastructure.interfaces import MetadataService
from logging_config import setup_logging
from utils import format_duration

from .models import (
    BotHandle,
    MeetingMetadata,
    MeetingSummary,
    MergedResult,
    SessionEvent,
    TranscriptionSession,
    TranscriptSegment,
    utc_now,
)
from .subscribers import QueueSubscriber, Subscriber

logger = setup_logging()


class SessionStore:
    """
    Owns one transcript session per active bot.

    `append_result` is the only way segments are added. Every mutation of a
    session runs under that session's lock, and subscribers are notified
    before the lock is released, so events reach them in sequence order.
    """

    def __init__(
        self,
        metadata_service: MetadataService | None = None,
        subscriber_queue_size: int = 256,
    ):
        self._metadata_service = metadata_service
        self._subscriber_queue_size = subscriber_queue_size

        self._lock = threading.RLock()
        self._sessions: dict[str, TranscriptionSession] = {}
        self._session_locks: dict[str, threading.Lock] = {}
        self._active_by_entity: dict[str, str] = {}
        self._subscribers: dict[str, dict[Subscriber, None]] = {}
        self._subscriber_sessions: dict[Subscriber, str] = {}
        self._metadata_tasks: set[asyncio.Task] = set()
        self._total_sessions = 0
        self._total_segments = 0

    @staticmethod
    def session_id_for(entity_id: str) -> str:
        return f"{entity_id}_transcript"

    def create_session(self, handle: BotHandle) -> str:
        """
        Creates the session for a bot, unless it already has an active one.

        When a metadata service is configured, meeting metadata is fetched in
        a background task on the running event loop.

        Returns:
            The session id.
        """
        session_id = self.session_id_for(handle.entity_id)
        with self._lock:
            if handle.entity_id in self._active_by_entity:
                return self._active_by_entity[handle.entity_id]

            generation = self._total_sessions + 1
            self._sessions[session_id] = TranscriptionSession(
                session_id=session_id,
                entity_id=handle.entity_id,
                legacy_id=handle.legacy_id,
                meeting_url=handle.meeting_url,
                generation=generation,
            )
            self._session_locks.setdefault(session_id, threading.Lock())
            self._active_by_entity[handle.entity_id] = session_id
            self._subscribers.setdefault(session_id, {})
            self._total_sessions += 1

        logger.info(
            "Created transcript session",
            extra={"session_id": session_id, "entity_id": handle.entity_id},
        )

        if self._metadata_service is not None:
            task = asyncio.get_running_loop().create_task(
                self._load_metadata(session_id, handle, generation)
            )
            self._metadata_tasks.add(task)
            task.add_done_callback(self._metadata_tasks.discard)

        return session_id

    async def _load_metadata(self, session_id: str, handle: BotHandle, generation: int) -> None:
        try:
            metadata = await self._metadata_service.get_metadata(handle)
        except Exception as e:
            logger.exception("Failed to fetch session metadata", extra={"session_id": session_id})
            metadata = MeetingMetadata.placeholder(handle.entity_id, handle.legacy_id, str(e))

        with self._session_lock(session_id):
            session = self._sessions.get(session_id)
            if session is None or session.generation != generation:
                return
            session.metadata = metadata

        logger.info(
            "Updated session metadata",
            extra={
                "session_id": session_id,
                "event_id": metadata.event_id,
                "participant_count": len(metadata.participants),
            },
        )

    async def wait_for_metadata(self) -> None:
        """Waits until all pending metadata lookups have finished."""
        if self._metadata_tasks:
            await asyncio.gather(*list(self._metadata_tasks), return_exceptions=True)

    def append_result(
        self,
        session_id: str,
        result: MergedResult,
        generation: int | None = None,
    ) -> list[TranscriptSegment]:
        """
        Appends a transcription result to a session and notifies subscribers.

        Calls against unknown or stopped sessions are no-ops. When a
        generation is given, a session re-created for the same bot since the
        result was started counts as stopped.

        Returns:
            The segments that were appended.
        """
        with self._session_lock(session_id):
            session = self._sessions.get(session_id)
            stale = generation is not None and session is not None and session.generation != generation
            if session is None or session.status != "active" or stale:
                logger.info(
                    "Discarding result for inactive session",
                    extra={"session_id": session_id, "generation": generation},
                )
                return []

            appended = []
            for utterance in result.utterances:
                sequence = len(session.segments) + 1
                segment = TranscriptSegment(
                    segment_id=f"{session_id}_seg_{sequence}",
                    sequence=sequence,
                    speaker=utterance.speaker,
                    text=utterance.text,
                    start_time=utterance.start_time,
                    end_time=utterance.end_time,
                    confidence=utterance.confidence,
                )
                session.segments.append(segment)
                appended.append(segment)
                session.duration = max(session.duration, segment.end_time)
                if segment.speaker and segment.speaker not in session.speakers:
                    session.speakers.append(segment.speaker)

            session.word_count += result.word_count
            if result.detected_language != "unknown":
                session.detected_language = result.detected_language
                session.language_confidence = result.language_confidence
                session.alternative_languages = list(result.alternative_languages)
            session.context = result.context.model_copy(deep=True)
            session.last_updated = utc_now()

            with self._lock:
                self._total_segments += len(appended)

            if appended:
                self._broadcast(
                    SessionEvent(
                        type="transcript_update",
                        session_id=session_id,
                        segments=appended,
                        stats=session.stats(),
                    )
                )

        logger.info(
            "Updated transcript session",
            extra={
                "session_id": session_id,
                "new_segments": len(appended),
                "total_segments": len(session.segments),
                "word_count": session.word_count,
            },
        )
        return appended

    def set_summary(
        self,
        session_id: str,
        summary: MeetingSummary,
        generation: int | None = None,
    ) -> None:
        """Stores the latest meeting summary and notifies subscribers."""
        with self._session_lock(session_id):
            session = self._require(session_id)
            if generation is not None and session.generation != generation:
                logger.info("Discarding summary for replaced session", extra={"session_id": session_id})
                return
            session.summary = summary
            session.last_updated = utc_now()
            self._broadcast(
                SessionEvent(
                    type="summary_update",
                    session_id=session_id,
                    stats=session.stats(),
                    summary=summary,
                )
            )

    def subscribe(self, session_id: str, subscriber: Subscriber | None = None) -> Subscriber:
        """
        Registers a subscriber and sends it a snapshot of the session.

        A subscriber to a stopped session receives the snapshot followed by
        the terminal event and is closed immediately.

        Raises:
            SessionNotFoundError: If the session doesn't exist.
        """
        if subscriber is None:
            subscriber = QueueSubscriber(self._subscriber_queue_size)

        with self._session_lock(session_id):
            session = self._require(session_id)
            snapshot = SessionEvent(
                type="snapshot",
                session_id=session_id,
                segments=list(session.segments),
                stats=session.stats(),
                summary=session.summary,
            )
            if not self._deliver(subscriber, snapshot):
                self._close(subscriber, session_id)
                return subscriber

            if session.status != "active":
                self._deliver(subscriber, SessionEvent(type="session_stopped", session_id=session_id))
                subscriber.close()
                return subscriber

            with self._lock:
                self._subscribers.setdefault(session_id, {})[subscriber] = None
                self._subscriber_sessions[subscriber] = session_id

        logger.debug("Subscriber added", extra={"session_id": session_id})
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> bool:
        """Removes a subscriber. Returns True if it was registered."""
        with self._lock:
            session_id = self._subscriber_sessions.pop(subscriber, None)
            if session_id is None:
                return False
            self._subscribers.get(session_id, {}).pop(subscriber, None)
        logger.debug("Subscriber removed", extra={"session_id": session_id})
        return True

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(session_id, {}))

    def stop_session(self, session_id: str) -> bool:
        """
        Stops a session, sends the terminal event and closes its subscribers.

        The session stays readable through the query methods.

        Returns:
            True if an active session was stopped.
        """
        with self._session_lock(session_id):
            session = self._sessions.get(session_id)
            if session is None or session.status != "active":
                return False

            session.status = "stopped"
            session.last_updated = utc_now()
            with self._lock:
                if self._active_by_entity.get(session.entity_id) == session_id:
                    del self._active_by_entity[session.entity_id]

            self._broadcast(
                SessionEvent(type="session_stopped", session_id=session_id, stats=session.stats())
            )

            with self._lock:
                subscribers = list(self._subscribers.pop(session_id, {}))
                for subscriber in subscribers:
                    self._subscriber_sessions.pop(subscriber, None)

        for subscriber in subscribers:
            self._close(subscriber, session_id)

        logger.info("Stopped transcript session", extra={"session_id": session_id})
        return True

    def stop_entity(self, entity_id: str) -> str | None:
        """Stops the active session of a bot, if any, and returns its id."""
        with self._lock:
            session_id = self._active_by_entity.get(entity_id)
        if session_id is None:
            return None
        self.stop_session(session_id)
        return session_id

    def stop_all(self) -> None:
        with self._lock:
            session_ids = list(self._active_by_entity.values())
        for session_id in session_ids:
            self.stop_session(session_id)

    def _broadcast(self, event: SessionEvent) -> None:
        """Delivers an event to every subscriber; failed ones are dropped."""
        with self._lock:
            subscribers = list(self._subscribers.get(event.session_id, {}))

        for subscriber in subscribers:
            if not self._deliver(subscriber, event):
                self.unsubscribe(subscriber)
                self._close(subscriber, event.session_id)

    def _close(self, subscriber: Subscriber, session_id: str) -> None:
        try:
            subscriber.close()
        except Exception:
            logger.exception("Failed to close subscriber", extra={"session_id": session_id})

    def _deliver(self, subscriber: Subscriber, event: SessionEvent) -> bool:
        try:
            subscriber.send(event)
            return True
        except Exception as e:
            logger.warning(
                "Failed to deliver event to subscriber, removing it",
                extra={"session_id": event.session_id, "event": event.type, "error": str(e)},
            )
            return False

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._lock:
            return self._session_locks.setdefault(session_id, threading.Lock())

    def _require(self, session_id: str) -> TranscriptionSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_session(self, session_id: str) -> TranscriptionSession:
        """
        Returns a copy of a session, active or stopped.

        Raises:
            SessionNotFoundError: If the session doesn't exist.
        """
        with self._session_lock(session_id):
            return self._require(session_id).model_copy(deep=True)

    def has_active_session(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._active_by_entity

    def session_for_entity(self, entity_id: str) -> TranscriptionSession | None:
        """Returns a copy of the bot's active session, or None."""
        with self._lock:
            session_id = self._active_by_entity.get(entity_id)
        if session_id is None:
            return None
        return self.get_session(session_id)

    def list_active_sessions(self) -> list[dict]:
        with self._lock:
            session_ids = list(self._active_by_entity.values())

        sessions = []
        for session_id in session_ids:
            session = self.get_session(session_id)
            sessions.append(
                {
                    "session_id": session.session_id,
                    "entity_id": session.entity_id,
                    "legacy_id": session.legacy_id,
                    "meeting_url": session.meeting_url,
                    "started_at": session.created_at.isoformat(),
                    "last_updated": session.last_updated.isoformat(),
                    "status": session.status,
                    "duration": session.duration,
                    "duration_formatted": format_duration(session.duration),
                    "transcript_length": len(session.segments),
                    "word_count": session.word_count,
                    "speaker_count": len(session.speakers),
                    "detected_language": session.detected_language,
                    "language_confidence": session.language_confidence,
                }
            )
        return sessions

    def get_transcript(self, session_id: str) -> dict:
        """
        Returns the full transcript of a session.

        Raises:
            SessionNotFoundError: If the session doesn't exist.
        """
        session = self.get_session(session_id)
        return {
            "session_id": session.session_id,
            "entity_id": session.entity_id,
            "meeting_url": session.meeting_url,
            "transcript": {
                "segments": [s.model_dump() for s in session.segments],
                "full_text": " ".join(s.text for s in session.segments),
                "word_count": session.word_count,
                "duration": session.duration,
                "detected_language": session.detected_language,
                "language_confidence": session.language_confidence,
                "alternative_languages": [a.model_dump() for a in session.alternative_languages],
                "speakers": list(session.speakers),
            },
            "metadata": session.metadata.model_dump() if session.metadata else None,
            "summary": session.summary.model_dump() if session.summary else None,
            "started_at": session.created_at.isoformat(),
            "last_updated": session.last_updated.isoformat(),
            "status": session.status,
            "duration_formatted": format_duration(session.duration),
        }

    def stats(self) -> dict:
        with self._lock:
            return {
                "total_sessions": self._total_sessions,
                "active_sessions": len(self._active_by_entity),
                "total_segments": self._total_segments,
                "subscribers": len(self._subscriber_sessions),
            }
