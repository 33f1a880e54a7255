"""Wire a DispatchScheduler from application settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from daybook.config import Settings
from daybook.reminders.delivery import DeliveryAdapter, create_delivery_adapter
from daybook.reminders.policy import PolicyConfig, ReminderPolicyEngine
from daybook.reminders.repository import (
    SqlActivityLedger,
    SqlGoalStore,
    SqlNotificationLog,
    SqlSettingsStore,
    SqlUserDirectory,
)
from daybook.reminders.scheduler import DispatchScheduler
from daybook.reminders.types import ReminderSettings

if TYPE_CHECKING:
    from redis.asyncio import Redis


def build_scheduler(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    redis: Redis | None = None,
    delivery: DeliveryAdapter | None = None,
) -> DispatchScheduler:
    """Scheduler backed by the SQL stores and the configured delivery channels."""
    return DispatchScheduler(
        directory=SqlUserDirectory(session_factory),
        settings_store=SqlSettingsStore(
            session_factory, defaults=ReminderSettings(timezone=settings.default_timezone)
        ),
        ledger=SqlActivityLedger(session_factory),
        goal_store=SqlGoalStore(session_factory),
        log=SqlNotificationLog(session_factory),
        delivery=delivery or create_delivery_adapter(settings, redis),
        policy=ReminderPolicyEngine(PolicyConfig.from_settings(settings)),
        app_url=settings.frontend_base_url,
        interval_seconds=settings.scheduler_interval_seconds,
        concurrency=settings.scheduler_concurrency,
        default_timezone=settings.default_timezone,
    )
