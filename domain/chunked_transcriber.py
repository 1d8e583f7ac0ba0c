"""Transcribes audio slices, windowing long ones and merging the results."""

import asyncio
import math
from collections import Counter

from exceptions import AudioUnreadableError, RateLimitError, TranscriptionError
from infrastructure.interfaces import AudioSlicer, TranscriptionService
from logging_config import setup_logging

from .models import AudioSlice, MergedResult, TranscriptionContext, Utterance, WindowTranscript
from .speaker_reconciler import SpeakerReconciler, is_generic_speaker
from .transcript_parser import parse_transcript

logger = setup_logging()


def plan_windows(duration: float, window_seconds: float) -> list[tuple[float, float]]:
    """Splits [0, duration) into fixed windows; the last one is truncated."""
    if duration <= 0:
        return [(0.0, 0.0)]
    count = math.ceil(duration / window_seconds)
    return [
        (index * window_seconds, min((index + 1) * window_seconds, duration))
        for index in range(count)
    ]


class ChunkedTranscriber:
    """
    Sends audio to the transcription provider with rolling context.

    Slices shorter than the threshold go out in one call. Longer slices are
    cut into windows that are transcribed one after another, each call seeded
    with the context produced by the previous successful window. Utterance
    times are shifted from window-local to session time as they are merged.
    """

    def __init__(
        self,
        service: TranscriptionService,
        slicer: AudioSlicer,
        threshold_seconds: float = 300.0,
        window_seconds: float = 300.0,
    ):
        self._service = service
        self._slicer = slicer
        self._threshold = threshold_seconds
        self._window = window_seconds

    async def transcribe(
        self,
        audio_slice: AudioSlice,
        context: TranscriptionContext | None,
        *,
        entity_id: str,
        roster: list[str] | None = None,
        named_speakers: bool = False,
    ) -> MergedResult:
        """
        Transcribes one audio slice.

        Args:
            audio_slice: The audio to transcribe and its offset in the session.
            context: Continuity state from earlier transcriptions of the bot.
            entity_id: Bot the audio belongs to.
            roster: Participant names to attribute speech to.
            named_speakers: Whether placeholder labels should be replaced
                with roster names.

        Returns:
            MergedResult in session time, with the updated context.

        Raises:
            RateLimitError: If the provider signals a rate limit.
            TranscriptionError: If no window could be transcribed.
        """
        context = context.model_copy(deep=True) if context else TranscriptionContext()
        reconciler = SpeakerReconciler(roster or []) if named_speakers else None

        if audio_slice.duration_estimate < self._threshold:
            windows = [(0.0, audio_slice.duration_estimate)]
        else:
            windows = plan_windows(audio_slice.duration_estimate, self._window)
            logger.info(
                "Splitting long audio into windows",
                extra={
                    "entity_id": entity_id,
                    "duration": round(audio_slice.duration_estimate, 1),
                    "windows": len(windows),
                },
            )

        transcripts: list[WindowTranscript] = []
        utterances: list[Utterance] = []
        skipped = 0

        for index, (start, end) in enumerate(windows):
            offset = audio_slice.start_offset + start
            try:
                window = await self._transcribe_window(audio_slice, start, end, context, entity_id)
            except RateLimitError:
                raise
            except (TranscriptionError, AudioUnreadableError) as e:
                skipped += 1
                logger.exception(
                    "Failed to transcribe window, skipping",
                    extra={"entity_id": entity_id, "window": index, "error": str(e)},
                )
                continue

            shifted = self._shift(window.utterances, offset, end - start, utterances)
            if reconciler is not None:
                shifted = reconciler.reconcile(shifted)

            utterances.extend(shifted)
            transcripts.append(window)
            context = self._advance(context, shifted, offset + (end - start))

        if not transcripts:
            raise TranscriptionError(entity_id, Exception("No window could be transcribed"))

        return self._merge(transcripts, utterances, context, len(windows), skipped)

    async def _transcribe_window(
        self,
        audio_slice: AudioSlice,
        start: float,
        end: float,
        context: TranscriptionContext,
        entity_id: str,
    ) -> WindowTranscript:
        audio = await asyncio.to_thread(self._slicer.slice, audio_slice.data, start, end)
        has_history = context.total_duration > 0 or context.last_speaker is not None
        response = await self._service.transcribe(
            audio,
            context if has_history else None,
            entity_id=entity_id,
        )
        return parse_transcript(response, end - start)

    @staticmethod
    def _shift(
        utterances: list[Utterance],
        offset: float,
        window_duration: float,
        merged: list[Utterance],
    ) -> list[Utterance]:
        """Moves window-local times into session time without overlapping earlier utterances."""
        previous_end = merged[-1].end_time if merged else offset
        shifted = []
        for utterance in utterances:
            start = min(max(utterance.start_time, 0.0), window_duration) + offset
            end = min(max(utterance.end_time, 0.0), window_duration) + offset
            start = max(start, previous_end)
            end = max(end, start)
            previous_end = end
            shifted.append(utterance.model_copy(update={"start_time": start, "end_time": end}))
        return shifted

    @staticmethod
    def _advance(
        context: TranscriptionContext,
        utterances: list[Utterance],
        processed_until: float,
    ) -> TranscriptionContext:
        speakers = list(context.speakers)
        for utterance in utterances:
            if not is_generic_speaker(utterance.speaker) and utterance.speaker not in speakers:
                speakers.append(utterance.speaker)
        return TranscriptionContext(
            last_speaker=utterances[-1].speaker if utterances else context.last_speaker,
            total_duration=max(context.total_duration, processed_until),
            speakers=speakers,
        )

    @staticmethod
    def _merge(
        transcripts: list[WindowTranscript],
        utterances: list[Utterance],
        context: TranscriptionContext,
        window_count: int,
        skipped: int,
    ) -> MergedResult:
        votes = Counter(t.detected_language for t in transcripts if t.detected_language != "unknown")
        language = votes.most_common(1)[0][0] if votes else "unknown"
        confidence = sum(t.language_confidence for t in transcripts) / len(transcripts)
        full_text = " ".join(t.full_text.strip() for t in transcripts if t.full_text.strip())

        return MergedResult(
            utterances=utterances,
            full_text=full_text,
            word_count=sum(t.word_count for t in transcripts),
            detected_language=language,
            language_confidence=confidence,
            alternative_languages=transcripts[0].alternative_languages,
            context=context,
            window_count=window_count,
            skipped_windows=skipped,
        )
