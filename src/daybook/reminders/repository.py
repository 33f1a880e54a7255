"""SQLAlchemy-backed stores.

Every store opens a short-lived session per call and translates
SQLAlchemyError into DataAccessError, so one unreachable query only
aborts the unit of work that issued it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import exists, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from daybook.db.models import ActivityRecord as ActivityRecordRow
from daybook.db.models import Goal as GoalRow
from daybook.db.models import NotificationLog, NotificationSettings, User
from daybook.errors import DataAccessError
from daybook.reminders.log import LogStatus, NotificationLogEntry
from daybook.reminders.types import (
    SETTINGS_FIELDS,
    ActivityRecord,
    Channel,
    Goal,
    RecordKind,
    ReminderSettings,
    ReminderType,
    ReminderUser,
    apply_settings_patch,
)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            msg = f"{type(self).__name__}: {exc}"
            raise DataAccessError(msg) from exc


def _to_settings(row: NotificationSettings) -> ReminderSettings:
    return ReminderSettings(**{name: getattr(row, name) for name in SETTINGS_FIELDS})


class SqlUserDirectory(_SqlStore):
    async def eligible_users(self) -> list[ReminderUser]:
        """Users with email or push enabled; users without a settings row get the defaults."""
        defaults = ReminderSettings()
        no_row_eligible = bool(defaults.channels)
        conditions = [NotificationSettings.email_enabled.is_(True), NotificationSettings.push_enabled.is_(True)]
        if no_row_eligible:
            conditions.append(NotificationSettings.user_id.is_(None))

        async with self._session() as db:
            result = await db.execute(
                select(User)
                .outerjoin(NotificationSettings, NotificationSettings.user_id == User.id)
                .where(or_(*conditions))
                .order_by(User.id)
            )
            return [ReminderUser(u.id, u.email, u.name) for u in result.scalars()]

    async def get_user(self, user_id: int) -> ReminderUser | None:
        async with self._session() as db:
            user = await db.get(User, user_id)
            if user is None:
                return None
            return ReminderUser(user.id, user.email, user.name)


class SqlSettingsStore(_SqlStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        defaults: ReminderSettings | None = None,
    ) -> None:
        super().__init__(session_factory)
        self._defaults = defaults or ReminderSettings()

    async def get(self, user_id: int) -> ReminderSettings:
        async with self._session() as db:
            row = await db.get(NotificationSettings, user_id)
            return _to_settings(row) if row is not None else self._defaults

    async def update(self, user_id: int, patch: dict[str, Any]) -> ReminderSettings:
        async with self._session() as db:
            row = await db.get(NotificationSettings, user_id)
            current = _to_settings(row) if row is not None else self._defaults
            updated = apply_settings_patch(current, patch)
            if row is None:
                row = NotificationSettings(user_id=user_id)
                db.add(row)
            for name in SETTINGS_FIELDS:
                setattr(row, name, getattr(updated, name))
            row.updated_at = datetime.now(timezone.utc)
            await db.commit()
            return updated


class SqlActivityLedger(_SqlStore):
    async def record_days_for_user(self, user_id: int, kind: RecordKind | None = None) -> set[date]:
        stmt = select(ActivityRecordRow.day).where(ActivityRecordRow.user_id == user_id).distinct()
        if kind is not None:
            stmt = stmt.where(ActivityRecordRow.kind == kind.value)
        async with self._session() as db:
            result = await db.execute(stmt)
            return set(result.scalars())

    async def records_for_user(self, user_id: int) -> list[ActivityRecord]:
        async with self._session() as db:
            result = await db.execute(
                select(ActivityRecordRow)
                .where(ActivityRecordRow.user_id == user_id)
                .order_by(ActivityRecordRow.day.desc())
            )
            return [
                ActivityRecord(
                    r.id,
                    r.user_id,
                    RecordKind(r.kind),
                    r.day,
                    _as_utc(r.created_at) if r.created_at else None,
                )
                for r in result.scalars()
            ]


class SqlGoalStore(_SqlStore):
    async def incomplete_goals_due_within(self, user_id: int, window: timedelta, now: datetime) -> list[Goal]:
        start = now.astimezone(timezone.utc)
        async with self._session() as db:
            result = await db.execute(
                select(GoalRow)
                .where(
                    GoalRow.user_id == user_id,
                    GoalRow.completed.is_(False),
                    GoalRow.target_date >= start,
                    GoalRow.target_date < start + window,
                )
                .order_by(GoalRow.target_date)
            )
            return [
                Goal(g.id, g.user_id, g.title, _as_utc(g.target_date), g.completed)
                for g in result.scalars()
            ]


class SqlNotificationLog(_SqlStore):
    async def append(self, entry: NotificationLogEntry) -> None:
        async with self._session() as db:
            db.add(
                NotificationLog(
                    id=entry.id,
                    user_id=entry.user_id,
                    reminder_type=entry.reminder_type.value,
                    channel=entry.channel.value,
                    subject=entry.subject[:256],
                    status=entry.status.value,
                    local_day=entry.local_day,
                    created_at=entry.created_at,
                    error=entry.error,
                )
            )
            await db.commit()

    async def has_sent(self, user_id: int, reminder_type: ReminderType, day: date) -> bool:
        async with self._session() as db:
            result = await db.execute(
                select(
                    exists().where(
                        NotificationLog.user_id == user_id,
                        NotificationLog.reminder_type == reminder_type.value,
                        NotificationLog.local_day == day,
                        NotificationLog.status == LogStatus.SENT.value,
                    )
                )
            )
            return bool(result.scalar())

    async def entries_for_user(self, user_id: int, limit: int = 50) -> list[NotificationLogEntry]:
        async with self._session() as db:
            result = await db.execute(
                select(NotificationLog)
                .where(NotificationLog.user_id == user_id)
                .order_by(NotificationLog.created_at.desc())
                .limit(limit)
            )
            return [
                NotificationLogEntry(
                    user_id=row.user_id,
                    reminder_type=ReminderType(row.reminder_type),
                    channel=Channel(row.channel),
                    subject=row.subject,
                    status=LogStatus(row.status),
                    local_day=row.local_day,
                    created_at=_as_utc(row.created_at),
                    error=row.error,
                    id=row.id,
                )
                for row in result.scalars()
            ]
