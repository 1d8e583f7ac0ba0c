"""Custom exceptions for the live transcript service."""


class ConfigurationError(Exception):
    """Raised when required configuration is missing at startup."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"Required setting '{setting}' is not configured")


class RegistryError(Exception):
    """Raised when the bot registry listing cannot be fetched or parsed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        self.status_code = status_code
        self.cause = cause
        super().__init__(f"Bot registry error: {message}")


class AudioNotReadyError(Exception):
    """Raised when the audio source answers 'too early' for a bot."""

    def __init__(self, legacy_id: str):
        self.legacy_id = legacy_id
        super().__init__(f"Audio for bot '{legacy_id}' is not available yet")


class AudioNotFoundError(Exception):
    """Raised when the audio source has no audio for a bot."""

    def __init__(self, legacy_id: str):
        self.legacy_id = legacy_id
        super().__init__(f"Audio for bot '{legacy_id}' not found")


class AudioFetchError(Exception):
    """Raised when downloading audio from the audio source fails."""

    def __init__(
        self,
        legacy_id: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        self.legacy_id = legacy_id
        self.status_code = status_code
        self.cause = cause
        super().__init__(
            f"Failed to fetch audio for bot '{legacy_id}' (status={status_code})"
        )

    @property
    def retryable(self) -> bool:
        """Transport failures and 5xx responses are worth another attempt."""
        return self.status_code is None or self.status_code >= 500


class AudioUnreadableError(Exception):
    """Raised when fetched audio cannot be decoded or sliced."""

    def __init__(self, entity_id: str, reason: str):
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Unreadable audio for bot '{entity_id}': {reason}")


class TranscriptionError(Exception):
    """Raised when audio transcription fails."""

    def __init__(self, entity_id: str, cause: Exception | None = None):
        self.entity_id = entity_id
        self.cause = cause
        super().__init__(f"Failed to transcribe audio for bot '{entity_id}'")


class RateLimitError(Exception):
    """Raised when the transcription provider signals a rate limit."""

    def __init__(self, service: str, retry_after: float | None = None):
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {service}")


class MetadataError(Exception):
    """Raised when meeting metadata cannot be resolved."""

    def __init__(self, entity_id: str, cause: Exception | None = None):
        self.entity_id = entity_id
        self.cause = cause
        super().__init__(f"Unable to fetch meeting metadata for bot '{entity_id}'")


class CacheServiceError(Exception):
    """Raised when cache operations fail."""

    def __init__(self, key: str, operation: str, cause: Exception | None = None):
        self.key = key
        self.operation = operation
        self.cause = cause
        super().__init__(f"Cache {operation} failed for key '{key}'")


class SummaryError(Exception):
    """Raised when meeting summary generation fails."""

    def __init__(self, session_id: str, cause: Exception | None = None):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Failed to summarize transcript session '{session_id}'")


class SessionNotFoundError(Exception):
    """Raised when a transcript session doesn't exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Transcript session '{session_id}' not found")
