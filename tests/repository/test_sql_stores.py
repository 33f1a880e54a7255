"""SQL store tests against an in-memory SQLite database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from daybook.db.base import Base
from daybook.db.models import ActivityRecord, Goal, NotificationSettings, User
from daybook.errors import DataAccessError
from daybook.reminders.delivery import DeliveryAdapter
from daybook.reminders.log import LogStatus, NotificationLogEntry
from daybook.reminders.repository import (
    SqlActivityLedger,
    SqlGoalStore,
    SqlNotificationLog,
    SqlSettingsStore,
    SqlUserDirectory,
)
from daybook.reminders.scheduler import DispatchScheduler
from daybook.reminders.types import Channel, RecordKind, ReminderType
from tests.conftest import SEOUL, RecordingSender, local

NOW = datetime(2026, 3, 10, 0, 0, tzinfo=timezone.utc)
DAY = date(2026, 3, 10)


def _engine():
    return create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = _engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as db:
        db.add_all(
            [
                User(id=1, email="kim@example.com", name="Kim"),
                User(id=2, email="lee@example.com", name="Lee"),
                User(id=3, email="park@example.com", name="Park"),
            ]
        )
        await db.flush()
        db.add_all(
            [
                NotificationSettings(user_id=2, email_enabled=False, push_enabled=False),
                NotificationSettings(user_id=3, email_enabled=False, push_enabled=True, timezone="UTC"),
            ]
        )
        await db.commit()

    yield factory
    await engine.dispose()


class TestSqlUserDirectory:
    async def test_eligible_users(self, session_factory):
        users = await SqlUserDirectory(session_factory).eligible_users()
        # 1 has no settings row (defaults: email on), 2 has every channel off
        assert [u.id for u in users] == [1, 3]

    async def test_get_user(self, session_factory):
        directory = SqlUserDirectory(session_factory)
        user = await directory.get_user(1)
        assert (user.email, user.name) == ("kim@example.com", "Kim")
        assert await directory.get_user(99) is None


class TestSqlSettingsStore:
    async def test_defaults_without_row(self, session_factory):
        settings = await SqlSettingsStore(session_factory).get(1)
        assert settings.timezone == "Asia/Seoul"
        assert settings.email_enabled is True

    async def test_configured_defaults(self, session_factory):
        from daybook.reminders.types import ReminderSettings

        store = SqlSettingsStore(session_factory, defaults=ReminderSettings(timezone="Europe/Berlin"))
        assert (await store.get(1)).timezone == "Europe/Berlin"

    async def test_stored_row(self, session_factory):
        settings = await SqlSettingsStore(session_factory).get(3)
        assert settings.timezone == "UTC"
        assert settings.channels == [Channel.PUSH]

    async def test_update_creates_then_patches(self, session_factory):
        store = SqlSettingsStore(session_factory)

        await store.update(1, {"plan_reminder_time": "22:30"})
        updated = await store.update(1, {"push_enabled": True, "unknown": "ignored"})

        assert updated.plan_reminder_time == "22:30"
        assert updated.push_enabled is True
        reread = await store.get(1)
        assert reread.plan_reminder_time == "22:30"
        assert reread.push_enabled is True

    async def test_update_clears_push_subscription(self, session_factory):
        store = SqlSettingsStore(session_factory)
        await store.update(1, {"push_enabled": True, "push_subscription": {"endpoint": "https://push.test/abc"}})

        await store.update(1, {"push_enabled": False, "push_subscription": None})

        reread = await store.get(1)
        assert reread.push_subscription is None
        assert reread.push_enabled is False


class TestSqlActivityLedger:
    async def test_record_days(self, session_factory):
        async with session_factory() as db:
            db.add_all(
                [
                    ActivityRecord(user_id=1, kind="plan", day=DAY),
                    ActivityRecord(user_id=1, kind="reflection", day=DAY),
                    ActivityRecord(user_id=1, kind="plan", day=DAY - timedelta(days=1)),
                    ActivityRecord(user_id=2, kind="plan", day=DAY),
                ]
            )
            await db.commit()
        ledger = SqlActivityLedger(session_factory)

        assert await ledger.record_days_for_user(1) == {DAY, DAY - timedelta(days=1)}
        assert await ledger.record_days_for_user(1, RecordKind.REFLECTION) == {DAY}
        records = await ledger.records_for_user(1)
        assert len(records) == 3
        assert records[0].day == DAY
        assert {r.kind for r in records} == {RecordKind.PLAN, RecordKind.REFLECTION}


class TestSqlGoalStore:
    async def test_due_within_window(self, session_factory):
        async with session_factory() as db:
            db.add_all(
                [
                    Goal(user_id=1, title="soon", target_date=NOW + timedelta(hours=3)),
                    Goal(user_id=1, title="done", target_date=NOW + timedelta(hours=3), completed=True),
                    Goal(user_id=1, title="later", target_date=NOW + timedelta(hours=30)),
                    Goal(user_id=1, title="past", target_date=NOW - timedelta(hours=1)),
                ]
            )
            await db.commit()

        goals = await SqlGoalStore(session_factory).incomplete_goals_due_within(1, timedelta(hours=24), NOW)

        assert [g.title for g in goals] == ["soon"]
        assert goals[0].target_date == NOW + timedelta(hours=3)

    async def test_accepts_local_now(self, session_factory):
        async with session_factory() as db:
            db.add(Goal(user_id=1, title="soon", target_date=NOW + timedelta(hours=3)))
            await db.commit()
        goals = await SqlGoalStore(session_factory).incomplete_goals_due_within(
            1, timedelta(hours=24), NOW.astimezone(SEOUL)
        )
        assert len(goals) == 1


class TestSqlNotificationLog:
    async def test_has_sent(self, session_factory):
        log = SqlNotificationLog(session_factory)
        await log.append(
            NotificationLogEntry.failed(1, ReminderType.PLAN, Channel.EMAIL, "s", DAY, NOW, "bounced")
        )
        assert not await log.has_sent(1, ReminderType.PLAN, DAY)

        await log.append(NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.EMAIL, "s", DAY, NOW))
        assert await log.has_sent(1, ReminderType.PLAN, DAY)
        assert not await log.has_sent(1, ReminderType.PLAN, DAY + timedelta(days=1))
        assert not await log.has_sent(1, ReminderType.REFLECTION, DAY)

    async def test_second_sent_row_rejected(self, session_factory):
        log = SqlNotificationLog(session_factory)
        await log.append(NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.EMAIL, "s", DAY, NOW))
        with pytest.raises(DataAccessError):
            await log.append(NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.PUSH, "s", DAY, NOW))

    async def test_entries_newest_first(self, session_factory):
        log = SqlNotificationLog(session_factory)
        for minutes in range(3):
            await log.append(
                NotificationLogEntry.failed(
                    1, ReminderType.PLAN, Channel.EMAIL, f"try {minutes}", DAY,
                    NOW + timedelta(minutes=minutes), "bounced",
                )
            )

        entries = await log.entries_for_user(1, limit=2)

        assert [e.subject for e in entries] == ["try 2", "try 1"]
        assert entries[0].status == LogStatus.FAILED
        assert entries[0].created_at.tzinfo is not None

    async def test_long_subject_truncated(self, session_factory):
        log = SqlNotificationLog(session_factory)
        await log.append(NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.EMAIL, "x" * 400, DAY, NOW))
        (entry,) = await log.entries_for_user(1)
        assert len(entry.subject) == 256


class TestDataAccessErrors:
    async def test_missing_tables_raise_data_access_error(self):
        engine = _engine()
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        try:
            with pytest.raises(DataAccessError):
                await SqlActivityLedger(factory).record_days_for_user(1)
            with pytest.raises(DataAccessError):
                await SqlNotificationLog(factory).has_sent(1, ReminderType.PLAN, DAY)
        finally:
            await engine.dispose()


class TestSchedulerOverSql:
    async def test_tick_twice_sends_once(self, session_factory):
        sender = RecordingSender()
        scheduler = DispatchScheduler(
            directory=SqlUserDirectory(session_factory),
            settings_store=SqlSettingsStore(session_factory),
            ledger=SqlActivityLedger(session_factory),
            goal_store=SqlGoalStore(session_factory),
            log=SqlNotificationLog(session_factory),
            delivery=DeliveryAdapter({Channel.EMAIL: sender}),
        )
        morning = local(SEOUL, 2026, 3, 10, 7, 2)

        first = await scheduler.run_tick(morning)
        second = await scheduler.run_tick(morning + timedelta(minutes=2))

        # user 1 gets email; user 3 is push-only with no push sender and is in UTC
        assert first.sent == 1
        assert second.sent == 0
        assert second.suppressed == 1
        assert [d for d, _ in sender.delivered] == ["kim@example.com"]
        entries = await scheduler.log.entries_for_user(1)
        assert [(e.reminder_type, e.status, e.local_day) for e in entries] == [
            (ReminderType.REFLECTION, LogStatus.SENT, DAY)
        ]
