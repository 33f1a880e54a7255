"""In-process store implementations.

Used by the test suite and for running the engine without a database.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any

from daybook.reminders.log import LogStatus, NotificationLogEntry
from daybook.reminders.types import (
    ActivityRecord,
    Goal,
    RecordKind,
    ReminderSettings,
    ReminderType,
    ReminderUser,
    apply_settings_patch,
)


class InMemorySettingsStore:
    def __init__(self, defaults: ReminderSettings | None = None) -> None:
        self._defaults = defaults or ReminderSettings()
        self._settings: dict[int, ReminderSettings] = {}

    async def get(self, user_id: int) -> ReminderSettings:
        return self._settings.get(user_id, self._defaults)

    async def update(self, user_id: int, patch: dict[str, Any]) -> ReminderSettings:
        updated = apply_settings_patch(await self.get(user_id), patch)
        self._settings[user_id] = updated
        return updated

    def put(self, user_id: int, settings: ReminderSettings) -> None:
        self._settings[user_id] = settings

    def all(self) -> dict[int, ReminderSettings]:
        return dict(self._settings)


class InMemoryUserDirectory:
    """Users plus the settings store that decides which of them are eligible."""

    def __init__(self, settings_store: InMemorySettingsStore) -> None:
        self._users: dict[int, ReminderUser] = {}
        self._settings = settings_store

    def add(self, user: ReminderUser, settings: ReminderSettings | None = None) -> ReminderUser:
        self._users[user.id] = user
        if settings is not None:
            self._settings.put(user.id, settings)
        return user

    async def eligible_users(self) -> list[ReminderUser]:
        eligible = []
        for user in self._users.values():
            settings = await self._settings.get(user.id)
            if settings.channels:
                eligible.append(user)
        return eligible

    async def get_user(self, user_id: int) -> ReminderUser | None:
        return self._users.get(user_id)


class InMemoryActivityLedger:
    def __init__(self) -> None:
        self._records: dict[int, list[ActivityRecord]] = defaultdict(list)
        self._next_id = 1

    def add(self, user_id: int, kind: RecordKind, day: date, created_at: datetime | None = None) -> ActivityRecord:
        record = ActivityRecord(self._next_id, user_id, kind, day, created_at)
        self._next_id += 1
        self._records[user_id].append(record)
        return record

    async def record_days_for_user(self, user_id: int, kind: RecordKind | None = None) -> set[date]:
        return {r.day for r in self._records.get(user_id, []) if kind is None or r.kind == kind}

    async def records_for_user(self, user_id: int) -> list[ActivityRecord]:
        return list(self._records.get(user_id, []))


class InMemoryGoalStore:
    def __init__(self) -> None:
        self._goals: dict[int, list[Goal]] = defaultdict(list)
        self._next_id = 1

    def add(self, user_id: int, title: str, target_date: datetime, completed: bool = False) -> Goal:
        goal = Goal(self._next_id, user_id, title, target_date, completed)
        self._next_id += 1
        self._goals[user_id].append(goal)
        return goal

    async def incomplete_goals_due_within(self, user_id: int, window: timedelta, now: datetime) -> list[Goal]:
        horizon = now + window
        return [
            g for g in self._goals.get(user_id, [])
            if not g.completed and now <= g.target_date < horizon
        ]


class InMemoryNotificationLog:
    def __init__(self) -> None:
        self._entries: list[NotificationLogEntry] = []

    async def append(self, entry: NotificationLogEntry) -> None:
        self._entries.append(entry)

    async def has_sent(self, user_id: int, reminder_type: ReminderType, day: date) -> bool:
        return any(
            e.user_id == user_id
            and e.reminder_type == reminder_type
            and e.local_day == day
            and e.status == LogStatus.SENT
            for e in self._entries
        )

    async def entries_for_user(self, user_id: int, limit: int = 50) -> list[NotificationLogEntry]:
        entries = [e for e in self._entries if e.user_id == user_id]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    @property
    def entries(self) -> list[NotificationLogEntry]:
        return list(self._entries)
