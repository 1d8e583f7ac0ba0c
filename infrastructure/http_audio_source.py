"""Meeting Bot API implementation of the AudioSource interface."""

import httpx

from exceptions import AudioFetchError, AudioNotFoundError, AudioNotReadyError
from logging_config import setup_logging

from .interfaces import AudioSource

logger = setup_logging()

HTTP_TOO_EARLY = 425


class HttpAudioSource(AudioSource):
    """Downloads recorded audio blobs from the Meeting Bot API."""

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float | None = None):
        self._client = client
        self._timeout = httpx.USE_CLIENT_DEFAULT if timeout_seconds is None else timeout_seconds

    async def fetch_audio(self, legacy_id: str) -> bytes:
        path = f"/api/google-meet-guest/audio-blob/{legacy_id}"
        try:
            response = await self._client.get(path, timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.warning(
                "Audio download failed",
                extra={"legacy_id": legacy_id, "error": str(e)},
            )
            raise AudioFetchError(legacy_id, cause=e) from e

        if response.status_code == HTTP_TOO_EARLY:
            raise AudioNotReadyError(legacy_id)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise AudioNotFoundError(legacy_id)
        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Audio download returned unexpected status",
                extra={"legacy_id": legacy_id, "status": response.status_code},
            )
            raise AudioFetchError(legacy_id, status_code=response.status_code)

        logger.info(
            "Audio downloaded",
            extra={"legacy_id": legacy_id, "size": len(response.content)},
        )
        return response.content
