"""Application configuration loaded from environment variables."""

import os

from pydantic import BaseModel

from exceptions import ConfigurationError


class BotApiConfig(BaseModel, frozen=True):
    """Meeting Bot API connection configuration."""

    base_url: str
    api_key: str = ""
    registry_timeout_seconds: float = 10.0
    audio_timeout_seconds: float = 30.0


class GeminiConfig(BaseModel, frozen=True):
    """Gemini transcription configuration."""

    api_key: str
    model_name: str = "gemini-2.5-flash"
    language_hints: tuple[str, ...] = ("en",)
    speaker_diarization: bool = False
    named_speakers: bool = False
    max_retries: int = 3
    retry_delay_seconds: float = 2.0


class RedisConfig(BaseModel, frozen=True):
    """Redis connection configuration."""

    host: str
    port: int = 6379
    metadata_ttl_seconds: int = 300
    summary_ttl_seconds: int = 86400  # 24 hours default


class PipelineConfig(BaseModel, frozen=True):
    """Polling, acquisition and chunking settings."""

    poll_interval_seconds: float = 5.0
    max_poll_backoff_seconds: float = 30.0
    registry_grace_seconds: float = 30.0
    registry_failure_threshold: int = 3
    min_audio_bytes: int = 1000
    audio_max_retries: int = 2
    audio_retry_delay_seconds: float = 1.0
    chunk_threshold_seconds: float = 300.0
    chunk_window_seconds: float = 300.0
    rate_limit_backoff_seconds: float = 60.0
    subscriber_queue_size: int = 256
    summarize_on_leave: bool = True


class AppConfig(BaseModel, frozen=True):
    """Root application configuration."""

    bot_api: BotApiConfig
    gemini: GeminiConfig
    redis: RedisConfig
    pipeline: PipelineConfig


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(name)
    return value


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def load_config() -> AppConfig:
    """
    Loads configuration from environment variables.

    Raises:
        ConfigurationError: If the bot API URL or the Gemini API key is missing.
    """
    language_hints = tuple(
        hint.strip()
        for hint in os.getenv("TRANSCRIPT_LANGUAGE_HINTS", "en").split(",")
        if hint.strip()
    )
    return AppConfig(
        bot_api=BotApiConfig(
            base_url=_required("MEETING_BOT_API_URL"),
            api_key=os.getenv("MEETING_BOT_API_KEY", ""),
            registry_timeout_seconds=float(os.getenv("BOT_API_TIMEOUT_SECONDS", "10")),
            audio_timeout_seconds=float(os.getenv("AUDIO_FETCH_TIMEOUT_SECONDS", "30")),
        ),
        gemini=GeminiConfig(
            api_key=_required("GOOGLE_GEMINI_API_KEY"),
            model_name=os.getenv("GOOGLE_GEMINI_MODEL", "gemini-2.5-flash"),
            language_hints=language_hints or ("en",),
            speaker_diarization=_flag("ENABLE_SPEAKER_DIARIZATION"),
            named_speakers=_flag("USE_NAMED_SPEAKERS"),
            max_retries=int(os.getenv("GEMINI_MAX_RETRIES", "3")),
            retry_delay_seconds=float(os.getenv("GEMINI_RETRY_DELAY_SECONDS", "2")),
        ),
        redis=RedisConfig(
            host=os.getenv("REDIS_HOST", "redis"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            metadata_ttl_seconds=int(os.getenv("REDIS_METADATA_TTL_SECONDS", "300")),
            summary_ttl_seconds=int(os.getenv("REDIS_SUMMARY_TTL_SECONDS", "86400")),
        ),
        pipeline=PipelineConfig(
            poll_interval_seconds=int(os.getenv("AUDIO_FETCH_INTERVAL", "5000")) / 1000,
            max_poll_backoff_seconds=float(os.getenv("MAX_POLL_BACKOFF_SECONDS", "30")),
            registry_grace_seconds=float(os.getenv("REGISTRY_GRACE_SECONDS", "30")),
            registry_failure_threshold=int(os.getenv("REGISTRY_FAILURE_THRESHOLD", "3")),
            min_audio_bytes=int(os.getenv("MIN_AUDIO_BYTES", "1000")),
            audio_max_retries=int(os.getenv("AUDIO_MAX_RETRIES", "2")),
            audio_retry_delay_seconds=float(os.getenv("AUDIO_RETRY_DELAY_SECONDS", "1")),
            chunk_threshold_seconds=float(os.getenv("CHUNK_THRESHOLD_SECONDS", "300")),
            chunk_window_seconds=float(os.getenv("CHUNK_WINDOW_SECONDS", "300")),
            rate_limit_backoff_seconds=float(os.getenv("RATE_LIMIT_BACKOFF_SECONDS", "60")),
            subscriber_queue_size=int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "256")),
            summarize_on_leave=_flag("SUMMARIZE_ON_LEAVE", "true"),
        ),
    )
