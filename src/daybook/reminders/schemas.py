"""Pydantic schemas for reminder and streak endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from daybook.errors import ConfigurationError
from daybook.reminders.types import parse_time_of_day, resolve_timezone

# --- Admin ---


class DispatchResponse(BaseModel):
    evaluated: int
    sent: int
    suppressed: int
    failed: int


class SchedulerStatusResponse(BaseModel):
    running: bool
    interval_seconds: float
    concurrency: int
    current_time: datetime
    last_tick_at: datetime | None = None
    last_tick: DispatchResponse | None = None


# --- Streaks ---


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_record_day: date | None = None
    status: str


class ActivitySummaryResponse(StreakResponse):
    total_records: int
    unique_days: int
    this_week_records: int
    this_month_records: int
    recent_days: list[date] = []


# --- Notification settings ---


class NotificationSettingsResponse(BaseModel):
    timezone: str
    plan_reminder_enabled: bool
    plan_reminder_time: str
    reflection_reminder_enabled: bool
    reflection_reminder_time: str
    streak_alerts_enabled: bool
    goal_deadline_alerts_enabled: bool
    email_enabled: bool
    push_enabled: bool
    push_subscription: dict[str, Any] | None = None


class NotificationSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    timezone: str | None = Field(None, max_length=64)
    plan_reminder_enabled: bool | None = None
    plan_reminder_time: str | None = None
    reflection_reminder_enabled: bool | None = None
    reflection_reminder_time: str | None = None
    streak_alerts_enabled: bool | None = None
    goal_deadline_alerts_enabled: bool | None = None
    email_enabled: bool | None = None
    push_enabled: bool | None = None
    push_subscription: dict[str, Any] | None = None

    @field_validator("timezone")
    @classmethod
    def _valid_timezone(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                resolve_timezone(value)
            except ConfigurationError as exc:
                raise ValueError(str(exc)) from exc
        return value

    @field_validator("plan_reminder_time", "reflection_reminder_time")
    @classmethod
    def _valid_time(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                parse_time_of_day(value)
            except ConfigurationError as exc:
                raise ValueError(str(exc)) from exc
        return value


# --- Notification log ---


class NotificationLogResponse(BaseModel):
    id: uuid.UUID
    reminder_type: str
    channel: str
    subject: str
    status: str
    local_day: date
    timestamp: datetime
    error: str | None = None


class NotificationLogListResponse(BaseModel):
    notifications: list[NotificationLogResponse]
    total: int
