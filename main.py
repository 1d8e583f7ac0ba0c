"""Entry point for the live transcript service."""

import asyncio
import signal

from ddtrace import patch_all

from logging_config import setup_logging

logger = setup_logging()
patch_all()

from dependencies import close_clients, get_worker  # noqa: E402


async def _serve() -> None:
    worker = get_worker()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    try:
        await worker.run()
        await worker.wait_idle()
    finally:
        await close_clients()


def main():
    """Starts the live transcript worker."""
    logger.info("Starting live-transcript service")
    asyncio.run(_serve())
    logger.info("Live-transcript service stopped")


if __name__ == "__main__":
    main()
