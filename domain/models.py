"""Domain models for the live transcript pipeline."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BotHandle(BaseModel, frozen=True):
    """Identity and descriptive data for one externally-managed recording bot."""

    entity_id: str
    legacy_id: str
    meeting_url: str | None = None
    status: str | None = None
    last_seen: datetime = Field(default_factory=utc_now)


class RegistryDiff(BaseModel, frozen=True):
    """Membership change between two registry observations."""

    entered: list[BotHandle] = []
    left: list[str] = []
    current: list[BotHandle] = []
    healthy: bool = True

    @property
    def has_changes(self) -> bool:
        return bool(self.entered or self.left)


class AudioSnapshot(BaseModel, frozen=True):
    """Fingerprint of one fetched audio buffer."""

    fingerprint: str
    byte_length: int
    duration_estimate: float
    previous_fingerprint: str | None = None


class AudioSlice(BaseModel, frozen=True):
    """The portion of a fetched buffer that should be transcribed."""

    data: bytes
    start_offset: float = 0.0
    duration_estimate: float
    is_incremental: bool = False


class AcquisitionResult(BaseModel, frozen=True):
    """New audio content for one bot, ready for transcription."""

    handle: BotHandle
    snapshot: AudioSnapshot
    incremental_slice: AudioSlice
    fetched_at: datetime = Field(default_factory=utc_now)


class TranscriptionContext(BaseModel):
    """Rolling continuity state passed between consecutive transcription calls."""

    last_speaker: str | None = None
    total_duration: float = 0.0
    speakers: list[str] = []


class Utterance(BaseModel, frozen=True):
    """A single attributed utterance returned by the transcription provider."""

    speaker: str = "Unknown"
    text: str = ""
    start_time: float = 0.0
    end_time: float = 0.0
    confidence: float = 0.0


class TranscriptSegment(BaseModel, frozen=True):
    """An utterance appended to a session, with its sequence number."""

    segment_id: str
    sequence: int
    speaker: str
    text: str
    start_time: float
    end_time: float
    confidence: float


class AlternativeLanguage(BaseModel, frozen=True):
    language: str
    confidence: float = 0.0


class ProviderSegment(BaseModel, coerce_numbers_to_str=True):
    """Segment shape requested from the transcription provider."""

    speaker: str | None = None
    text: str | None = None
    startTime: float | None = None
    endTime: float | None = None
    confidence: float | None = None


class ProviderTranscript(BaseModel):
    """JSON document requested from the transcription provider."""

    detectedLanguage: str | None = None
    languageConfidence: float | None = None
    alternativeLanguages: list[AlternativeLanguage] | None = None
    segments: list[ProviderSegment] = []
    fullText: str | None = None
    wordCount: int | None = None


class WindowTranscript(BaseModel, frozen=True):
    """Validated provider output for one slice or window, in local time."""

    utterances: list[Utterance]
    full_text: str
    word_count: int
    detected_language: str = "unknown"
    language_confidence: float = 0.0
    alternative_languages: list[AlternativeLanguage] = []
    is_fallback: bool = False


class MergedResult(BaseModel, frozen=True):
    """Transcription of one acquisition, merged across windows."""

    utterances: list[Utterance]
    full_text: str
    word_count: int
    detected_language: str = "unknown"
    language_confidence: float = 0.0
    alternative_languages: list[AlternativeLanguage] = []
    context: TranscriptionContext
    window_count: int = 1
    skipped_windows: int = 0


class Participant(BaseModel, frozen=True):
    name: str
    email: str | None = None
    role: str = "participant"
    joined_at: str | None = None
    left_at: str | None = None


class BotInfo(BaseModel, frozen=True):
    bot_id: str
    legacy_id: str | None = None
    bot_name: str = "Meeting Bot"
    status: str = "unknown"


class MeetingMetadata(BaseModel, frozen=True):
    """Descriptive data for the meeting a bot is recording."""

    event_id: str | None = None
    meeting_url: str | None = None
    meeting_title: str = "Untitled Meeting"
    participants: list[Participant] = []
    organizer: str | None = None
    scheduled_start_time: str | None = None
    scheduled_end_time: str | None = None
    actual_start_time: str | None = None
    meeting_type: str = "scheduled"
    bot_info: BotInfo
    error: str | None = None

    @property
    def participant_names(self) -> list[str]:
        return [p.name for p in self.participants if p.name and p.name != "Unknown"]

    @classmethod
    def placeholder(
        cls, entity_id: str, legacy_id: str | None, error: str | None = None
    ) -> "MeetingMetadata":
        """Minimal metadata used when the lookup fails."""
        return cls(
            meeting_title="Unknown Meeting",
            actual_start_time=utc_now().isoformat(),
            meeting_type="unknown",
            bot_info=BotInfo(bot_id=entity_id, legacy_id=legacy_id, status="error"),
            error=error,
        )


class ActionItem(BaseModel):
    task: str
    assignee: str | None = None
    deadline: str | None = None


class MeetingSummary(BaseModel):
    """Structured meeting summary produced by the LLM."""

    brief: str = "Summary not available"
    key_points: list[str] = []
    decisions: list[str] = []
    action_items: list[ActionItem] = []
    topics: list[str] = []
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    next_steps: list[str] = []
    meeting_type: str = "other"


SessionStatus = Literal["active", "stopped"]


class TranscriptionSession(BaseModel):
    """Aggregate root: the growing transcript of one bot's meeting."""

    session_id: str
    generation: int = 0
    entity_id: str
    legacy_id: str
    meeting_url: str | None = None
    status: SessionStatus = "active"
    segments: list[TranscriptSegment] = []
    word_count: int = 0
    duration: float = 0.0
    speakers: list[str] = []
    detected_language: str | None = None
    language_confidence: float = 0.0
    alternative_languages: list[AlternativeLanguage] = []
    context: TranscriptionContext = Field(default_factory=TranscriptionContext)
    metadata: MeetingMetadata | None = None
    summary: MeetingSummary | None = None
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)

    def stats(self) -> dict[str, Any]:
        return {
            "word_count": self.word_count,
            "duration": self.duration,
            "speaker_count": len(self.speakers),
            "segment_count": len(self.segments),
            "detected_language": self.detected_language,
            "language_confidence": self.language_confidence,
        }


EventType = Literal["snapshot", "transcript_update", "summary_update", "session_stopped"]


class SessionEvent(BaseModel, frozen=True):
    """A state change pushed to session subscribers."""

    type: EventType
    session_id: str
    segments: list[TranscriptSegment] = []
    stats: dict[str, Any] = {}
    summary: MeetingSummary | None = None
    timestamp: datetime = Field(default_factory=utc_now)
