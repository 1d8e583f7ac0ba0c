"""Small helpers shared across the pipeline."""

import asyncio
import hashlib
from collections.abc import Awaitable, Callable
from typing import TypeVar

from logging_config import setup_logging

logger = setup_logging()

T = TypeVar("T")

# Raw bot audio is 16 kHz, 16-bit mono.
BYTES_PER_SECOND = 16000 * 2


def fingerprint(data: bytes) -> str:
    """Returns the SHA-256 hex digest used to detect changed audio."""
    return hashlib.sha256(data).hexdigest()


def estimate_duration(byte_length: int) -> float:
    """Estimates audio duration in seconds from its byte length."""
    return byte_length / BYTES_PER_SECOND


def format_duration(seconds: float) -> str:
    """Formats seconds as HH:MM:SS."""
    if not seconds or seconds < 0:
        return "00:00:00"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay: float,
    backoff: float = 2.0,
    should_retry: Callable[[Exception], bool] = lambda error: True,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Calls `func` until it succeeds or the attempts are exhausted.

    Args:
        func: Zero-argument coroutine factory to call.
        attempts: Total number of calls, including the first.
        delay: Wait before the first retry, in seconds.
        backoff: Multiplier applied to the wait after each retry.
        should_retry: Predicate deciding whether an error is transient.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        Whatever `func` returns on its first successful call.

    Raises:
        Exception: The last error raised by `func`, or the first error
            `should_retry` rejects.
    """
    for attempt in range(attempts):
        try:
            return await func()
        except Exception as e:
            if attempt == attempts - 1 or not should_retry(e):
                raise
            wait = delay * (backoff**attempt)
            logger.info(
                "Retrying after transient failure",
                extra={"attempt": attempt + 1, "wait_seconds": wait, "error": str(e)},
            )
            await sleep(wait)
    raise ValueError("attempts must be at least 1")
