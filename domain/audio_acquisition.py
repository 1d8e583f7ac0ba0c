"""Fetches bot audio and decides whether it holds anything new."""

import asyncio
import threading
from collections.abc import Awaitable, Callable

from exceptions import AudioFetchError, AudioNotFoundError, AudioNotReadyError
from infrastructure.interfaces import AudioSource
from logging_config import setup_logging
from utils import estimate_duration, fingerprint, retry_async

from .models import AcquisitionResult, AudioSlice, AudioSnapshot, BotHandle, utc_now

logger = setup_logging()


class _ProcessedAudio:
    """What was last handed to transcription for one bot."""

    __slots__ = ("fingerprint", "byte_length", "duration_estimate", "fetched_at")

    def __init__(self, snapshot: AudioSnapshot):
        self.fingerprint = snapshot.fingerprint
        self.byte_length = snapshot.byte_length
        self.duration_estimate = snapshot.duration_estimate
        self.fetched_at = utc_now()


class AudioAcquisition:
    """
    Downloads the current audio snapshot of a bot and dedupes it.

    Only one download per entity runs at a time; concurrent callers for the
    same entity share the pending result. A snapshot counts as new content
    when its fingerprint differs from the last *processed* one, which is
    recorded by `mark_processed` once transcription has been applied.
    """

    def __init__(
        self,
        source: AudioSource,
        min_audio_bytes: int = 1000,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._source = source
        self._min_audio_bytes = min_audio_bytes
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

        self._lock = threading.Lock()
        self._processed: dict[str, _ProcessedAudio] = {}
        self._in_flight: dict[str, asyncio.Future] = {}

    async def fetch(self, handle: BotHandle) -> AcquisitionResult | None:
        """
        Fetches audio for a bot and returns it if it holds new content.

        Args:
            handle: The bot to fetch audio for.

        Returns:
            AcquisitionResult with the slice to transcribe, or None when there
            is nothing new to process.

        Raises:
            AudioFetchError: If the download keeps failing after retries.
        """
        pending = self._in_flight.get(handle.entity_id)
        if pending is not None:
            logger.debug("Audio fetch already in flight", extra={"entity_id": handle.entity_id})
            return await asyncio.shield(pending)

        future = asyncio.ensure_future(self._fetch(handle))
        self._in_flight[handle.entity_id] = future
        try:
            return await asyncio.shield(future)
        finally:
            if self._in_flight.get(handle.entity_id) is future:
                del self._in_flight[handle.entity_id]

    async def _fetch(self, handle: BotHandle) -> AcquisitionResult | None:
        try:
            audio = await retry_async(
                lambda: self._source.fetch_audio(handle.legacy_id),
                attempts=self._max_retries + 1,
                delay=self._retry_delay,
                should_retry=lambda e: isinstance(e, AudioFetchError) and e.retryable,
                sleep=self._sleep,
            )
        except AudioNotReadyError:
            logger.info(
                "Audio not ready yet, will retry on next poll",
                extra={"entity_id": handle.entity_id, "legacy_id": handle.legacy_id},
            )
            return None
        except AudioNotFoundError:
            logger.warning(
                "Audio not found for bot",
                extra={"entity_id": handle.entity_id, "legacy_id": handle.legacy_id},
            )
            self.forget(handle.entity_id)
            return None

        if len(audio) < self._min_audio_bytes:
            logger.debug(
                "No audio content yet",
                extra={"entity_id": handle.entity_id, "size": len(audio)},
            )
            return None

        return self._evaluate(handle, audio)

    def _evaluate(self, handle: BotHandle, audio: bytes) -> AcquisitionResult | None:
        digest = fingerprint(audio)
        with self._lock:
            previous = self._processed.get(handle.entity_id)

        snapshot = AudioSnapshot(
            fingerprint=digest,
            byte_length=len(audio),
            duration_estimate=estimate_duration(len(audio)),
            previous_fingerprint=previous.fingerprint if previous else None,
        )

        if previous is not None and previous.fingerprint == digest:
            logger.debug("Audio unchanged", extra={"entity_id": handle.entity_id})
            return None

        if previous is not None and len(audio) < previous.byte_length:
            logger.warning(
                "Audio shrank since last processed snapshot, treating as unreadable",
                extra={
                    "entity_id": handle.entity_id,
                    "size": len(audio),
                    "previous_size": previous.byte_length,
                },
            )
            return None

        audio_slice = self._incremental_slice(audio, previous)

        logger.info(
            "Fetched new audio",
            extra={
                "entity_id": handle.entity_id,
                "size": len(audio),
                "duration": round(snapshot.duration_estimate, 1),
                "is_incremental": audio_slice.is_incremental,
                "slice_duration": round(audio_slice.duration_estimate, 1),
            },
        )
        return AcquisitionResult(handle=handle, snapshot=snapshot, incremental_slice=audio_slice)

    def _incremental_slice(self, audio: bytes, previous: _ProcessedAudio | None) -> AudioSlice:
        """
        Returns only the new tail when the buffer provably extends the
        processed one; otherwise the whole buffer from offset zero.
        """
        if (
            previous is not None
            and len(audio) > previous.byte_length
            and fingerprint(audio[: previous.byte_length]) == previous.fingerprint
        ):
            tail = audio[previous.byte_length :]
            return AudioSlice(
                data=tail,
                start_offset=previous.duration_estimate,
                duration_estimate=estimate_duration(len(tail)),
                is_incremental=True,
            )
        return AudioSlice(
            data=audio,
            start_offset=0.0,
            duration_estimate=estimate_duration(len(audio)),
            is_incremental=False,
        )

    def mark_processed(self, entity_id: str, snapshot: AudioSnapshot) -> bool:
        """
        Records a snapshot as transcribed.

        The update only applies if the stored fingerprint is still the one the
        snapshot was compared against, so a stale completion cannot roll the
        state back.

        Returns:
            True if the processed state was updated.
        """
        with self._lock:
            current = self._processed.get(entity_id)
            current_fingerprint = current.fingerprint if current else None
            if current_fingerprint != snapshot.previous_fingerprint:
                logger.warning(
                    "Processed audio changed concurrently, ignoring stale update",
                    extra={"entity_id": entity_id},
                )
                return False
            self._processed[entity_id] = _ProcessedAudio(snapshot)
            return True

    def forget(self, entity_id: str) -> None:
        """Drops all buffered state for a bot."""
        with self._lock:
            self._processed.pop(entity_id, None)

    def last_processed_fingerprint(self, entity_id: str) -> str | None:
        with self._lock:
            processed = self._processed.get(entity_id)
        return processed.fingerprint if processed else None

    def status(self) -> dict:
        with self._lock:
            details = [
                {
                    "entity_id": entity_id,
                    "size": processed.byte_length,
                    "duration": processed.duration_estimate,
                    "last_processed_at": processed.fetched_at.isoformat(),
                }
                for entity_id, processed in self._processed.items()
            ]
        return {
            "active_buffers": len(details),
            "in_flight": len(self._in_flight),
            "buffer_details": details,
        }
