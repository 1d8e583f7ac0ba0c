import pytest

from conftest import no_sleep
from utils import estimate_duration, fingerprint, format_duration, retry_async


def test_format_duration():
    assert format_duration(0) == "00:00:00"
    assert format_duration(59.9) == "00:00:59"
    assert format_duration(3725) == "01:02:05"


def test_duration_estimate_for_16khz_mono():
    assert estimate_duration(32000 * 620) == 620


def test_fingerprint_changes_with_content():
    assert fingerprint(b"abc") == fingerprint(b"abc")
    assert fingerprint(b"abc") != fingerprint(b"abd")


@pytest.mark.asyncio
async def test_retry_async_backs_off_until_success():
    waits = []
    attempts = iter([ValueError("a"), ValueError("b"), "done"])

    async def flaky():
        outcome = next(attempts)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def record(seconds):
        waits.append(seconds)

    assert await retry_async(flaky, attempts=3, delay=1.0, sleep=record) == "done"
    assert waits == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_async_stops_on_permanent_error():
    calls = []

    async def failing():
        calls.append(1)
        raise KeyError("permanent")

    with pytest.raises(KeyError):
        await retry_async(
            failing,
            attempts=5,
            delay=0,
            should_retry=lambda e: not isinstance(e, KeyError),
            sleep=no_sleep,
        )
    assert len(calls) == 1
