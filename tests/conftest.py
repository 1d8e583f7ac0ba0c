"""Shared fakes and fixtures for the live transcript tests."""

import json

import pytest

from domain.models import BotHandle, MeetingMetadata, MeetingSummary, TranscriptionContext
from domain.subscribers import Subscriber
from exceptions import CacheServiceError
from infrastructure.interfaces import (
    AudioSlicer,
    AudioSource,
    CacheService,
    MetadataService,
    RegistryClient,
    TranscriptionService,
)
from utils import BYTES_PER_SECOND


def pcm(seconds: float, seed: int = 0) -> bytes:
    """Deterministic raw audio of the given duration."""
    length = int(seconds * BYTES_PER_SECOND)
    pattern = bytes((i * 7 + seed) % 256 for i in range(256))
    return (pattern * (length // 256 + 1))[:length]


def provider_response(segments, language="en", confidence=0.9, **extra) -> str:
    """Builds a provider JSON document from (speaker, text, start, end) tuples."""
    document = {
        "detectedLanguage": language,
        "languageConfidence": confidence,
        "segments": [
            {"speaker": s, "text": t, "startTime": a, "endTime": b, "confidence": 0.8}
            for s, t, a, b in segments
        ],
    }
    document.update(extra)
    return json.dumps(document)


def handle(entity_id: str = "b1", legacy_id: str | None = None, **kwargs) -> BotHandle:
    return BotHandle(entity_id=entity_id, legacy_id=legacy_id or f"legacy-{entity_id}", **kwargs)


class FakeRegistryClient(RegistryClient):
    """Returns queued listings; a queued exception is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    async def list_active(self):
        self.calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return list(response)


class FakeAudioSource(AudioSource):
    def __init__(self, audio: dict | None = None):
        self.audio = audio or {}
        self.calls: list[str] = []

    async def fetch_audio(self, legacy_id: str) -> bytes:
        self.calls.append(legacy_id)
        value = self.audio[legacy_id]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        return value


class FakeTranscriptionService(TranscriptionService):
    """Replays canned responses and records every call."""

    def __init__(self, *responses, summary: MeetingSummary | None = None):
        self.responses = list(responses)
        self.calls: list[dict] = []
        self.summary = summary or MeetingSummary(brief="Weekly sync")
        self.summary_calls: list[dict] = []

    async def transcribe(self, audio_data, context, *, entity_id):
        self.calls.append(
            {
                "audio": audio_data,
                "context": context.model_copy(deep=True) if context else None,
                "entity_id": entity_id,
            }
        )
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def summarize(self, transcript, participants, *, duration, language, word_count):
        self.summary_calls.append(
            {
                "transcript": transcript,
                "participants": participants,
                "duration": duration,
                "language": language,
                "word_count": word_count,
            }
        )
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


class ByteSlicer(AudioSlicer):
    """Cuts raw PCM by byte offsets, without decoding."""

    def __init__(self):
        self.calls: list[tuple[float, float]] = []

    def slice(self, audio_data: bytes, start: float, end: float) -> bytes:
        self.calls.append((start, end))
        return audio_data[int(start * BYTES_PER_SECOND) : int(end * BYTES_PER_SECOND)]


class FakeCache(CacheService):
    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise CacheServiceError(key, "get")
        return self.data.get(key)

    async def set(self, key, value, ttl_seconds):
        if self.fail:
            raise CacheServiceError(key, "set")
        self.data[key] = value
        self.ttls[key] = ttl_seconds


class FakeMetadataService(MetadataService):
    def __init__(self, participants: list[str] | None = None):
        self.participants = participants or []
        self.calls: list[str] = []

    async def get_metadata(self, bot):
        self.calls.append(bot.entity_id)
        return MeetingMetadata.model_validate(
            {
                "meeting_title": "Planning",
                "participants": [{"name": name} for name in self.participants],
                "bot_info": {"bot_id": bot.entity_id, "legacy_id": bot.legacy_id},
            }
        )


class RecordingSubscriber(Subscriber):
    """Subscriber double that stores events and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail
        self.closed = False

    def send(self, event):
        if self.fail:
            raise ConnectionError("client went away")
        self.events.append(event)

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def slicer():
    return ByteSlicer()


@pytest.fixture
def context():
    return TranscriptionContext()
