"""Handler that runs one acquisition and transcription cycle for a bot."""

from domain import AudioAcquisition, BotHandle, ChunkedTranscriber, SessionStore
from logging_config import setup_logging

logger = setup_logging()


class EntityHandler:
    """Moves new audio of a bot into its transcript session."""

    def __init__(
        self,
        store: SessionStore,
        acquisition: AudioAcquisition,
        transcriber: ChunkedTranscriber,
        named_speakers: bool = False,
    ):
        self._store = store
        self._acquisition = acquisition
        self._transcriber = transcriber
        self._named_speakers = named_speakers

    async def process(self, handle: BotHandle) -> int:
        """
        Fetches the bot's audio and appends whatever it holds that is new.

        Args:
            handle: The bot to process.

        Returns:
            Number of segments appended to the session.

        Raises:
            AudioFetchError: If audio cannot be downloaded.
            RateLimitError: If the transcription provider is rate limiting.
            TranscriptionError: If no part of the audio could be transcribed.
        """
        session = self._store.session_for_entity(handle.entity_id)
        if session is None:
            logger.debug("No active session for bot", extra={"entity_id": handle.entity_id})
            return 0

        acquired = await self._acquisition.fetch(handle)
        if acquired is None:
            return 0

        roster = None
        if self._named_speakers and session.metadata is not None:
            roster = session.metadata.participant_names

        result = await self._transcriber.transcribe(
            acquired.incremental_slice,
            session.context,
            entity_id=handle.entity_id,
            roster=roster,
            named_speakers=self._named_speakers,
        )

        appended = self._store.append_result(session.session_id, result, session.generation)
        if not appended:
            # The session stopped or was replaced while transcribing.
            logger.info(
                "Result discarded, audio left unmarked",
                extra={"entity_id": handle.entity_id, "session_id": session.session_id},
            )
            return 0
        self._acquisition.mark_processed(handle.entity_id, acquired.snapshot)

        logger.info(
            "Processed bot audio",
            extra={
                "entity_id": handle.entity_id,
                "session_id": session.session_id,
                "new_segments": len(appended),
                "windows": result.window_count,
                "skipped_windows": result.skipped_windows,
            },
        )
        return len(appended)
