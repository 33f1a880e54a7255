"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from daybook.config import get_settings
from daybook.database import close_db, get_session_factory, init_db
from daybook.health.router import router as health_router
from daybook.middleware import setup_middleware
from daybook.redis_client import close_redis, get_redis, init_redis
from daybook.reminders.bootstrap import build_scheduler
from daybook.reminders.router import router as reminders_router
from daybook.reminders.scheduler import start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle.

    The scheduler handle lives on ``app.state`` for the life of the
    process and is stopped (draining any in-flight tick) on shutdown.
    """
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    scheduler = build_scheduler(settings, get_session_factory(), get_redis())
    app.state.scheduler = scheduler
    app.state.scheduler_handle = None
    if settings.scheduler_enabled:
        app.state.scheduler_handle = start_scheduler(scheduler)
    else:
        logger.info("Reminder scheduler disabled; dispatch only via the admin trigger")

    yield

    if app.state.scheduler_handle is not None:
        await app.state.scheduler_handle.stop()
    else:
        await scheduler.stop()

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Daybook Reminders API",
        description="Reminder scheduling and activity streaks for the Daybook voice journal",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(reminders_router)

    return app


app = create_app()
