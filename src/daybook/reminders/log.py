"""Notification log entries: one per delivery attempt, append-only."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from daybook.reminders.types import Channel, ReminderType


class LogStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationLogEntry:
    user_id: int
    reminder_type: ReminderType
    channel: Channel
    subject: str
    status: LogStatus
    local_day: date
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @classmethod
    def sent(
        cls,
        user_id: int,
        reminder_type: ReminderType,
        channel: Channel,
        subject: str,
        local_day: date,
        created_at: datetime,
    ) -> NotificationLogEntry:
        return cls(user_id, reminder_type, channel, subject, LogStatus.SENT, local_day, created_at)

    @classmethod
    def failed(
        cls,
        user_id: int,
        reminder_type: ReminderType,
        channel: Channel,
        subject: str,
        local_day: date,
        created_at: datetime,
        error: str,
    ) -> NotificationLogEntry:
        return cls(user_id, reminder_type, channel, subject, LogStatus.FAILED, local_day, created_at, error)
