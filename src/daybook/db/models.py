"""ORM models for the reminder engine.

users, activity_records and goals are owned by the capture flow and are
only read here. notification_log is append-only.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from daybook.db.base import Base, BigIntId

JSONType = JSON().with_variant(JSONB, "postgresql")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class NotificationSettings(Base):
    """Per-user reminder preferences. Column defaults mirror the product defaults."""

    __tablename__ = "notification_settings"

    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, server_default="Asia/Seoul")
    plan_reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    plan_reminder_time: Mapped[str] = mapped_column(String(5), nullable=False, server_default="21:00")
    reflection_reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    reflection_reminder_time: Mapped[str] = mapped_column(String(5), nullable=False, server_default="07:00")
    streak_alerts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    goal_deadline_alerts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    push_subscription: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Capture flow (read-only here)
# ---------------------------------------------------------------------------


class ActivityRecord(Base):
    """A plan or reflection entry. ``day`` is the calendar day it represents."""

    __tablename__ = "activity_records"
    __table_args__ = (Index("ix_activity_records_user_day", "user_id", "day"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Goal(Base):
    """User goal with a target instant."""

    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    target_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))


# ---------------------------------------------------------------------------
# Notification log
# ---------------------------------------------------------------------------


class NotificationLog(Base):
    """One row per delivery attempt. Never updated."""

    __tablename__ = "notification_log"
    __table_args__ = (
        Index("ix_notification_log_user_day", "user_id", "local_day"),
        Index(
            "uq_notification_log_sent_once",
            "user_id",
            "reminder_type",
            "local_day",
            unique=True,
            postgresql_where=text("status = 'sent'"),
            sqlite_where=text("status = 'sent'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(32), nullable=False)
    channel: Mapped[str] = mapped_column(String(16), nullable=False)
    subject: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    local_day: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
