"""Validates provider transcription responses."""

import json
import re

from pydantic import ValidationError

from logging_config import setup_logging

from .models import ProviderTranscript, Utterance, WindowTranscript

logger = setup_logging()

_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")

FALLBACK_TEXT = "Transcription failed"


def count_words(text: str) -> int:
    return len(text.split())


def combine_text(utterances: list[Utterance]) -> str:
    """Joins utterance texts into one plain-text transcript."""
    return " ".join(u.text.strip() for u in utterances if u.text and u.text.strip())


def parse_transcript(response_text: str, slice_duration: float) -> WindowTranscript:
    """
    Parses a provider response into utterances in slice-local time.

    The response must be a JSON object with a non-empty `segments` list.
    Anything else is replaced by a single best-effort utterance spanning the
    whole slice.

    Args:
        response_text: Raw provider output, possibly wrapped in markdown fences.
        slice_duration: Duration of the audio that was transcribed, in seconds.

    Returns:
        WindowTranscript with local timestamps.
    """
    cleaned = _FENCE_PATTERN.sub("", response_text or "").strip()
    try:
        parsed = ProviderTranscript.model_validate(json.loads(cleaned))
        if not parsed.segments:
            raise ValueError("missing segments")
    except (ValueError, ValidationError) as e:
        logger.warning(
            "Failed to parse transcription response, using fallback",
            extra={"error": str(e), "response": (response_text or "")[:200]},
        )
        return _fallback(response_text or "", slice_duration)

    utterances = [
        Utterance(
            speaker=segment.speaker or "Unknown",
            text=segment.text or "",
            start_time=segment.startTime or 0.0,
            end_time=segment.endTime or 0.0,
            confidence=segment.confidence or 0.0,
        )
        for segment in parsed.segments
    ]
    full_text = parsed.fullText or combine_text(utterances)
    return WindowTranscript(
        utterances=utterances,
        full_text=full_text,
        word_count=parsed.wordCount or count_words(full_text),
        detected_language=parsed.detectedLanguage or "unknown",
        language_confidence=parsed.languageConfidence or 0.0,
        alternative_languages=parsed.alternativeLanguages or [],
    )


def _fallback(response_text: str, slice_duration: float) -> WindowTranscript:
    text = extract_fallback_text(response_text)
    return WindowTranscript(
        utterances=[
            Utterance(
                speaker="Unknown",
                text=text,
                start_time=0.0,
                end_time=slice_duration,
                confidence=0.0,
            )
        ],
        full_text=text,
        word_count=count_words(text),
        is_fallback=True,
    )


def extract_fallback_text(response_text: str) -> str:
    """Keeps the lines of a broken response that don't look like JSON."""
    lines = [
        line.strip()
        for line in response_text.splitlines()
        if line.strip() and not any(ch in line for ch in '{}"') and not line.strip().startswith("```")
    ]
    return " ".join(lines).strip() or FALLBACK_TEXT
