"""Contracts for the collaborators the reminder engine reads from and writes to.

Implementations raise DataAccessError when their backing store is
unreachable. Only the NotificationLogStore is written by the engine.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Protocol

from daybook.reminders.log import NotificationLogEntry
from daybook.reminders.types import (
    ActivityRecord,
    Goal,
    RecordKind,
    ReminderSettings,
    ReminderType,
    ReminderUser,
)


class UserDirectory(Protocol):
    async def eligible_users(self) -> list[ReminderUser]:
        """Users with at least one delivery channel enabled."""
        ...

    async def get_user(self, user_id: int) -> ReminderUser | None: ...


class SettingsStore(Protocol):
    async def get(self, user_id: int) -> ReminderSettings:
        """Stored settings, or the defaults when the user has none."""
        ...

    async def update(self, user_id: int, patch: dict[str, Any]) -> ReminderSettings: ...


class ActivityLedger(Protocol):
    async def record_days_for_user(self, user_id: int, kind: RecordKind | None = None) -> set[date]: ...

    async def records_for_user(self, user_id: int) -> list[ActivityRecord]: ...


class GoalStore(Protocol):
    async def incomplete_goals_due_within(
        self, user_id: int, window: timedelta, now: datetime
    ) -> list[Goal]: ...


class NotificationLogStore(Protocol):
    async def append(self, entry: NotificationLogEntry) -> None: ...

    async def has_sent(self, user_id: int, reminder_type: ReminderType, day: date) -> bool: ...

    async def entries_for_user(self, user_id: int, limit: int = 50) -> list[NotificationLogEntry]: ...
