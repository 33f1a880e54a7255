"""Standalone runner for the reminder dispatch loop.

Runs the scheduler outside the API process, e.g. as its own container.

Usage: python -m daybook.workers.reminder_runner
"""

from __future__ import annotations

import asyncio
import logging
import signal

from daybook.config import get_settings
from daybook.database import close_db, get_session_factory, init_db
from daybook.redis_client import close_redis, get_redis, init_redis
from daybook.reminders.bootstrap import build_scheduler
from daybook.reminders.scheduler import start_scheduler

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the reminder scheduler until SIGINT/SIGTERM."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    scheduler = build_scheduler(settings, get_session_factory(), get_redis())
    handle = start_scheduler(scheduler)

    # Handle graceful shutdown
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    logger.info(
        "Starting reminder scheduler (interval=%ss, concurrency=%d)",
        settings.scheduler_interval_seconds,
        settings.scheduler_concurrency,
    )

    try:
        await stop_requested.wait()
    finally:
        await handle.stop()
        await close_redis()
        await close_db()
        logger.info("Reminder scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
