"""Gemini implementation of the TranscriptionService interface."""

import asyncio
from collections.abc import Awaitable, Callable

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError

from domain.models import MeetingSummary, TranscriptionContext
from exceptions import RateLimitError, SummaryError, TranscriptionError
from logging_config import setup_logging
from utils import format_duration, retry_async

from .interfaces import TranscriptionService

logger = setup_logging()

HTTP_TOO_MANY_REQUESTS = 429

TRANSCRIPT_STRUCTURE = """{
  "detectedLanguage": "language code (e.g., 'en', 'de', 'es')",
  "languageConfidence": confidence score 0-1,
  "alternativeLanguages": [{"language": "code", "confidence": score}],
  "segments": [
    {
      "speaker": "Speaker label or 'Unknown'",
      "text": "Transcribed text",
      "startTime": start time in seconds,
      "endTime": end time in seconds,
      "confidence": confidence score 0-1
    }
  ],
  "fullText": "Complete transcription as plain text",
  "wordCount": total word count
}"""


def _is_rate_limit(error: Exception) -> bool:
    if not isinstance(error, errors.APIError):
        return False
    return error.code == HTTP_TOO_MANY_REQUESTS or error.status == "RESOURCE_EXHAUSTED"


def _is_transient(error: Exception) -> bool:
    return isinstance(error, (errors.ServerError, httpx.TimeoutException, httpx.TransportError))


class GeminiTranscriber(TranscriptionService):
    """Transcribes and summarizes meetings using Google Gemini."""

    def __init__(
        self,
        client: genai.Client,
        model_name: str,
        language_hints: tuple[str, ...] = ("en",),
        speaker_diarization: bool = False,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        rate_limit_backoff: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._model_name = model_name
        self._language_hints = language_hints
        self._speaker_diarization = speaker_diarization
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._rate_limit_backoff = rate_limit_backoff
        self._sleep = sleep

    def build_prompt(self, context: TranscriptionContext | None) -> str:
        """Builds the transcription instructions sent along with the audio."""
        prompt = (
            "Transcribe this audio with the following requirements:\n"
            "1. Auto-detect the language from these possibilities: "
            f"{', '.join(self._language_hints)}\n"
            "2. Include timestamps for each segment (relative to the audio start)\n"
            "3. Format the response as valid JSON with this structure:\n"
            f"{TRANSCRIPT_STRUCTURE}"
        )

        if self._speaker_diarization:
            prompt += (
                "\n4. Identify different speakers and label them consistently "
                '(e.g., "Speaker 1", "Speaker 2")'
            )

        if context is not None:
            prompt += (
                "\n\nThis is a continuation of a meeting. Previous context:\n"
                f"- Last speaker: {context.last_speaker or 'Unknown'}\n"
                f"- Meeting duration so far: {round(context.total_duration)} seconds\n"
                f"- Previous speakers detected: {', '.join(context.speakers) or 'none'}\n"
                "Please maintain speaker consistency with the previous context."
            )

        prompt += "\n\nIMPORTANT: Return ONLY valid JSON, no additional text or markdown."
        return prompt

    async def transcribe(
        self,
        audio_data: bytes,
        context: TranscriptionContext | None,
        *,
        entity_id: str,
    ) -> str:
        """
        Sends audio to Gemini and returns the raw response text.

        Raises:
            RateLimitError: If Gemini reports the quota is exhausted.
            TranscriptionError: If the call keeps failing after retries.
        """
        contents = [
            self.build_prompt(context),
            types.Part.from_bytes(data=audio_data, mime_type="audio/wav"),
        ]
        logger.info(
            "Starting Gemini transcription",
            extra={
                "entity_id": entity_id,
                "audio_size": len(audio_data),
                "is_continuation": context is not None,
            },
        )

        try:
            response = await retry_async(
                lambda: self._client.aio.models.generate_content(
                    model=self._model_name,
                    contents=contents,
                ),
                attempts=self._max_retries + 1,
                delay=self._retry_delay,
                should_retry=_is_transient,
                sleep=self._sleep,
            )
        except Exception as e:
            if _is_rate_limit(e):
                logger.warning("Gemini rate limit reached", extra={"entity_id": entity_id})
                raise RateLimitError("Gemini API", self._rate_limit_backoff) from e
            logger.exception("Gemini transcription failed", extra={"entity_id": entity_id})
            raise TranscriptionError(entity_id, e) from e

        text = response.text or ""
        logger.info(
            "Gemini transcription response received",
            extra={"entity_id": entity_id, "response_length": len(text)},
        )
        return text

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
        Asks Gemini for a structured summary of a meeting transcript.

        Raises:
            RateLimitError: If Gemini reports the quota is exhausted.
            SummaryError: If the call fails or the response is unusable.
        """
        prompt = (
            "Analyze this meeting transcript and provide a comprehensive summary.\n\n"
            "Meeting Information:\n"
            f"- Duration: {format_duration(duration)}\n"
            f"- Language: {language}\n"
            f"- Participants: {', '.join(participants) if participants else 'Unknown'}\n"
            f"- Total Words: {word_count}\n\n"
            f"Transcript:\n{transcript}"
        )

        try:
            response = await retry_async(
                lambda: self._client.aio.models.generate_content(
                    model=self._model_name,
                    contents=prompt,
                    config={
                        "response_mime_type": "application/json",
                        "response_schema": MeetingSummary,
                    },
                ),
                attempts=self._max_retries + 1,
                delay=self._retry_delay,
                should_retry=_is_transient,
                sleep=self._sleep,
            )
            if not response.text:
                raise SummaryError("transcript", Exception("Gemini returned empty response"))
            summary = MeetingSummary.model_validate_json(response.text)
        except SummaryError:
            raise
        except ValidationError as e:
            logger.exception("Gemini summary response is invalid")
            raise SummaryError("transcript", e) from e
        except Exception as e:
            if _is_rate_limit(e):
                raise RateLimitError("Gemini API", self._rate_limit_backoff) from e
            logger.exception("Gemini summary call failed")
            raise SummaryError("transcript", e) from e

        logger.info("Meeting summary generated", extra={"word_count": word_count})
        return summary
