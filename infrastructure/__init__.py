"""Infrastructure layer exports."""

from infrastructure.gemini_transcriber import GeminiTranscriber
from infrastructure.http_audio_source import HttpAudioSource
from infrastructure.http_metadata_service import HttpMetadataService
from infrastructure.http_registry_client import HttpRegistryClient
from infrastructure.pydub_slicer import PydubAudioSlicer
from infrastructure.redis_cache import RedisCacheService

__all__ = [
    "GeminiTranscriber",
    "HttpAudioSource",
    "HttpMetadataService",
    "HttpRegistryClient",
    "PydubAudioSlicer",
    "RedisCacheService",
]
