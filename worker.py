"""Worker that polls the bot registry and drives per-bot transcription."""

import asyncio
import time
from collections.abc import Callable

from domain import AudioAcquisition, BotHandle, RegistryDiff, RegistryReconciler, SessionStore
from exceptions import RateLimitError
from handlers import EntityHandler, SummaryHandler
from logging_config import setup_logging

logger = setup_logging()


class Worker:
    """
    Runs the poll loop and schedules one processing task per active bot.

    A bot never has more than one task in flight; a poll that finds the
    previous task still running skips that bot. When the provider signals a
    rate limit, no new tasks are started for any bot until the pause ends.
    With a summary handler, the transcript of a bot that left is summarized
    in the background.
    """

    def __init__(
        self,
        reconciler: RegistryReconciler,
        store: SessionStore,
        acquisition: AudioAcquisition,
        handler: EntityHandler,
        rate_limit_backoff_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        summarizer: SummaryHandler | None = None,
    ):
        self._reconciler = reconciler
        self._store = store
        self._acquisition = acquisition
        self._handler = handler
        self._rate_limit_backoff = rate_limit_backoff_seconds
        self._clock = clock
        self._summarizer = summarizer

        self._tasks: dict[str, asyncio.Task] = {}
        self._summary_tasks: set[asyncio.Task] = set()
        self._paused_until: float | None = None
        self._wake = asyncio.Event()
        self._running = False
        self._polls = 0

    async def run(self) -> None:
        """Polls until `stop()` is called."""
        self._running = True
        logger.info("Worker started, polling bot registry")
        while self._running:
            await self.tick()
            if not self._running:
                break
            await self._wait(self._reconciler.next_delay)
        logger.info("Worker loop finished")

    async def tick(self) -> RegistryDiff:
        """Runs one poll: applies the registry diff and schedules bot tasks."""
        diff = await self._reconciler.poll()
        self._polls += 1
        self._apply(diff)
        self._schedule(diff.current)
        return diff

    def _apply(self, diff: RegistryDiff) -> None:
        for entity_id in diff.left:
            session_id = self._store.stop_entity(entity_id)
            self._acquisition.forget(entity_id)
            logger.info(
                "Bot left, session stopped",
                extra={"entity_id": entity_id, "session_id": session_id},
            )
            if session_id is not None and self._summarizer is not None:
                task = asyncio.get_running_loop().create_task(self._summarize(session_id))
                self._summary_tasks.add(task)
                task.add_done_callback(self._summary_tasks.discard)

        for handle in diff.entered:
            self._store.create_session(handle)

        # Covers bots that were already active when the service started.
        for handle in diff.current:
            if not self._store.has_active_session(handle.entity_id):
                self._store.create_session(handle)

    def _schedule(self, handles: list[BotHandle]) -> None:
        if self._paused_until is not None:
            remaining = self._paused_until - self._clock()
            if remaining > 0:
                logger.info(
                    "Processing paused by rate limit",
                    extra={"resume_in_seconds": round(remaining, 1)},
                )
                return
            self._paused_until = None

        for handle in handles:
            task = self._tasks.get(handle.entity_id)
            if task is not None and not task.done():
                logger.debug(
                    "Previous cycle still running, skipping bot",
                    extra={"entity_id": handle.entity_id},
                )
                continue

            task = asyncio.get_running_loop().create_task(self._process(handle))
            self._tasks[handle.entity_id] = task
            task.add_done_callback(lambda t, entity_id=handle.entity_id: self._release(entity_id, t))

    def _release(self, entity_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(entity_id) is task:
            del self._tasks[entity_id]

    async def _process(self, handle: BotHandle) -> None:
        try:
            await self._handler.process(handle)
        except RateLimitError as e:
            self._pause(e, entity_id=handle.entity_id)
        except Exception:
            logger.exception(
                "Bot processing cycle failed, will retry on next poll",
                extra={"entity_id": handle.entity_id},
            )

    async def _summarize(self, session_id: str) -> None:
        try:
            await self._summarizer.summarize(session_id)
        except RateLimitError as e:
            self._pause(e, session_id=session_id)
        except Exception:
            logger.exception("Final summary failed", extra={"session_id": session_id})

    def _pause(self, error: RateLimitError, **context) -> None:
        pause = error.retry_after or self._rate_limit_backoff
        resume_at = self._clock() + pause
        self._paused_until = max(self._paused_until or 0.0, resume_at)
        logger.warning(
            "Rate limit hit, pausing all bots",
            extra={**context, "pause_seconds": pause},
        )

    async def _wait(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wake.clear()

    def force_poll(self) -> None:
        """Wakes the loop so the next poll happens immediately."""
        self._wake.set()

    def stop(self) -> None:
        """
        Ends the loop and stops every active session.

        Tasks already in flight are left to finish; their results are
        discarded because the sessions are no longer active.
        """
        if not self._running:
            self._store.stop_all()
            return
        logger.info("Stopping worker", extra={"in_flight": len(self._tasks)})
        self._running = False
        self._wake.set()
        self._store.stop_all()

    async def wait_idle(self) -> None:
        """Waits for all in-flight bot and summary tasks to finish."""
        pending = [*self._tasks.values(), *self._summary_tasks]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def status(self) -> dict:
        paused_for = 0.0
        if self._paused_until is not None:
            paused_for = max(self._paused_until - self._clock(), 0.0)
        return {
            "running": self._running,
            "polls": self._polls,
            "in_flight": sorted(self._tasks),
            "paused_for_seconds": round(paused_for, 1),
            "registry": self._reconciler.status(),
            "audio": self._acquisition.status(),
            "sessions": self._store.stats(),
        }
