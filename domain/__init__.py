"""Domain layer exports."""

from .models import (
    AcquisitionResult,
    AudioSlice,
    AudioSnapshot,
    BotHandle,
    MeetingMetadata,
    MeetingSummary,
    MergedResult,
    Participant,
    RegistryDiff,
    SessionEvent,
    TranscriptionContext,
    TranscriptionSession,
    TranscriptSegment,
    Utterance,
)
from .audio_acquisition import AudioAcquisition
from .chunked_transcriber import ChunkedTranscriber
from .registry_reconciler import RegistryReconciler
from .session_store import SessionStore
from .speaker_reconciler import SpeakerReconciler
from .subscribers import QueueSubscriber, Subscriber

__all__ = [
    "AcquisitionResult",
    "AudioAcquisition",
    "AudioSlice",
    "AudioSnapshot",
    "BotHandle",
    "ChunkedTranscriber",
    "MeetingMetadata",
    "MeetingSummary",
    "MergedResult",
    "Participant",
    "QueueSubscriber",
    "RegistryDiff",
    "RegistryReconciler",
    "SessionEvent",
    "SessionStore",
    "SpeakerReconciler",
    "Subscriber",
    "TranscriptionContext",
    "TranscriptionSession",
    "TranscriptSegment",
    "Utterance",
]
