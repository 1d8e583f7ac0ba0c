"""Dependency injection configuration for the live transcript service."""

import httpx
import redis.asyncio as redis
from google import genai

from config import load_config
from domain import (
    AudioAcquisition,
    ChunkedTranscriber,
    RegistryReconciler,
    SessionStore,
)
from handlers import EntityHandler, SummaryHandler
from infrastructure import (
    GeminiTranscriber,
    HttpAudioSource,
    HttpMetadataService,
    HttpRegistryClient,
    PydubAudioSlicer,
    RedisCacheService,
)
from logging_config import setup_logging
from worker import Worker

logger = setup_logging()

_config = load_config()

# Meeting Bot API
_headers = {"Authorization": f"Bearer {_config.bot_api.api_key}"} if _config.bot_api.api_key else {}
_bot_api_client = httpx.AsyncClient(
    base_url=_config.bot_api.base_url,
    headers=_headers,
    timeout=_config.bot_api.registry_timeout_seconds,
)
_registry_client = HttpRegistryClient(_bot_api_client)
_audio_source = HttpAudioSource(_bot_api_client, _config.bot_api.audio_timeout_seconds)
logger.info("Meeting Bot API client configured", extra={"base_url": _config.bot_api.base_url})

# Redis cache
_redis_client = redis.Redis(
    host=_config.redis.host,
    port=_config.redis.port,
    decode_responses=True,
)
_cache = RedisCacheService(_redis_client)
_metadata_service = HttpMetadataService(
    _bot_api_client,
    _cache,
    cache_ttl_seconds=_config.redis.metadata_ttl_seconds,
)

# Gemini transcription
_gemini_client = genai.Client(api_key=_config.gemini.api_key)
_transcription_service = GeminiTranscriber(
    _gemini_client,
    _config.gemini.model_name,
    language_hints=_config.gemini.language_hints,
    speaker_diarization=_config.gemini.speaker_diarization,
    max_retries=_config.gemini.max_retries,
    retry_delay=_config.gemini.retry_delay_seconds,
    rate_limit_backoff=_config.pipeline.rate_limit_backoff_seconds,
)

# Service composition
_store = SessionStore(_metadata_service, _config.pipeline.subscriber_queue_size)
_reconciler = RegistryReconciler(
    _registry_client,
    interval_seconds=_config.pipeline.poll_interval_seconds,
    max_backoff_seconds=_config.pipeline.max_poll_backoff_seconds,
    grace_seconds=_config.pipeline.registry_grace_seconds,
    failure_threshold=_config.pipeline.registry_failure_threshold,
)
_acquisition = AudioAcquisition(
    _audio_source,
    min_audio_bytes=_config.pipeline.min_audio_bytes,
    max_retries=_config.pipeline.audio_max_retries,
    retry_delay=_config.pipeline.audio_retry_delay_seconds,
)
_transcriber = ChunkedTranscriber(
    _transcription_service,
    PydubAudioSlicer(),
    threshold_seconds=_config.pipeline.chunk_threshold_seconds,
    window_seconds=_config.pipeline.chunk_window_seconds,
)
_handler = EntityHandler(
    _store,
    _acquisition,
    _transcriber,
    named_speakers=_config.gemini.named_speakers,
)
_summary_handler = SummaryHandler(
    _store,
    _transcription_service,
    _cache,
    cache_ttl_seconds=_config.redis.summary_ttl_seconds,
)
_worker = Worker(
    _reconciler,
    _store,
    _acquisition,
    _handler,
    rate_limit_backoff_seconds=_config.pipeline.rate_limit_backoff_seconds,
    summarizer=_summary_handler if _config.pipeline.summarize_on_leave else None,
)


def get_worker() -> Worker:
    """Returns the configured worker instance."""
    return _worker


async def close_clients() -> None:
    """Closes the network clients opened at startup."""
    await _bot_api_client.aclose()
    await _redis_client.aclose()
    logger.info("Network clients closed")
