"""Turns successive bot registry listings into membership diffs."""

import time
from collections.abc import Callable

from exceptions import RegistryError
from infrastructure.interfaces import RegistryClient
from logging_config import setup_logging

from .models import BotHandle, RegistryDiff

logger = setup_logging()


class RegistryReconciler:
    """
    Polls the bot registry and reports which bots entered or left.

    A failed poll does not tear down sessions right away: the last good
    listing stays current until the failures have both outlasted the grace
    period and reached the failure threshold. Only then is the registry
    considered empty and every known bot reported as left.
    """

    def __init__(
        self,
        client: RegistryClient,
        interval_seconds: float = 5.0,
        max_backoff_seconds: float = 30.0,
        grace_seconds: float = 30.0,
        failure_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._interval = interval_seconds
        self._max_backoff = max_backoff_seconds
        self._grace = grace_seconds
        self._failure_threshold = failure_threshold
        self._clock = clock

        self._observed: dict[str, BotHandle] = {}
        self._consecutive_failures = 0
        self._last_success: float | None = None
        self._last_poll: float | None = None

    @property
    def next_delay(self) -> float:
        """Seconds to wait before the next scheduled poll."""
        if self._consecutive_failures == 0:
            return self._interval
        return min(self._interval * 2**self._consecutive_failures, self._max_backoff)

    @property
    def current(self) -> list[BotHandle]:
        return list(self._observed.values())

    async def poll(self) -> RegistryDiff:
        """
        Fetches the registry listing and diffs it against the last observation.

        Returns:
            RegistryDiff with entered handles, left entity ids and the full
            current listing.
        """
        self._last_poll = self._clock()
        try:
            listing = await self._client.list_active()
        except RegistryError as e:
            return self._on_failure(e)
        except Exception as e:
            logger.exception("Unexpected error while listing bots")
            return self._on_failure(RegistryError("Unexpected registry client failure", cause=e))

        self._consecutive_failures = 0
        self._last_success = self._clock()
        return self._reconcile(listing)

    def _reconcile(self, listing: list[BotHandle]) -> RegistryDiff:
        current: dict[str, BotHandle] = {}
        for handle in listing:
            current[handle.entity_id] = handle

        entered = [h for eid, h in current.items() if eid not in self._observed]
        left = [eid for eid in self._observed if eid not in current]

        # Descriptive fields are refreshed even when membership is unchanged.
        self._observed = current

        if entered or left:
            logger.info(
                "Bot pool update detected",
                extra={
                    "entered": [h.entity_id for h in entered],
                    "left": left,
                    "active": len(current),
                },
            )

        return RegistryDiff(entered=entered, left=left, current=list(current.values()))

    def _on_failure(self, error: RegistryError) -> RegistryDiff:
        self._consecutive_failures += 1
        now = self._clock()
        outage = now - self._last_success if self._last_success is not None else None

        grace_expired = outage is None or outage > self._grace
        threshold_reached = self._consecutive_failures >= self._failure_threshold

        if self._observed and grace_expired and threshold_reached:
            logger.warning(
                "Bot registry unreachable past grace period, clearing active bots",
                extra={
                    "consecutive_failures": self._consecutive_failures,
                    "left": list(self._observed),
                },
            )
            left = list(self._observed)
            self._observed = {}
            return RegistryDiff(left=left, current=[], healthy=False)

        logger.warning(
            "Bot registry poll failed, keeping last known bots",
            extra={
                "consecutive_failures": self._consecutive_failures,
                "retry_in_seconds": self.next_delay,
                "error": str(error),
            },
        )
        return RegistryDiff(current=self.current, healthy=False)

    def status(self) -> dict:
        return {
            "active_bot_count": len(self._observed),
            "consecutive_failures": self._consecutive_failures,
            "last_success": self._last_success,
            "last_poll": self._last_poll,
            "poll_interval": self._interval,
        }
