"""Infrastructure interface exports."""

from .audio_slicer import AudioSlicer
from .audio_source import AudioSource
from .cache_service import CacheService
from .metadata_service import MetadataService
from .registry_client import RegistryClient
from .transcription_service import TranscriptionService

__all__ = [
    "AudioSlicer",
    "AudioSource",
    "CacheService",
    "MetadataService",
    "RegistryClient",
    "TranscriptionService",
]
