"""arq worker for reminder dispatch.

Runs the dispatch tick as a once-a-minute cron job instead of the
in-process loop. Use it with ``DAYBOOK_SCHEDULER_ENABLED=false`` on the
API so only one trigger drives ticks.

Import path for arq CLI: arq daybook.workers.reminder_worker.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from daybook.config import get_settings
from daybook.database import close_db, get_session_factory, init_db
from daybook.errors import EnumerationError
from daybook.redis_client import close_redis, get_redis, init_redis
from daybook.reminders.bootstrap import build_scheduler

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB, Redis and the scheduler on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    ctx["scheduler"] = build_scheduler(settings, get_session_factory(), get_redis())
    logger.info("Reminder worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Drain the scheduler and close connections."""
    scheduler = ctx.get("scheduler")
    if scheduler is not None:
        await scheduler.stop()
    await close_redis()
    await close_db()
    logger.info("Reminder worker stopped")


async def dispatch_reminders(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Run one dispatch tick. Returns the tick counts as the job result."""
    try:
        report = await ctx["scheduler"].run_tick()
    except EnumerationError:
        logger.exception("Reminder tick aborted: users could not be listed")
        raise
    logger.info("Reminder tick: %s", report.as_dict())
    return report.as_dict()


class WorkerSettings:
    """arq worker settings for reminder dispatch."""

    functions = [dispatch_reminders]
    cron_jobs = [
        # Every minute at :00; unique so a slow tick is never doubled up
        cron(dispatch_reminders, second=0, unique=True, run_at_startup=False),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 1
