"""Reminder engine tables.

Creates users, notification_settings, activity_records, goals and
notification_log, plus the partial unique index that backs the
one-sent-per-day rule.

Revision ID: 001_reminder_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_reminder_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create reminder tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True, postgresql_where=sa.text("email IS NOT NULL"))

    # --- notification_settings ---
    op.create_table(
        "notification_settings",
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("timezone", sa.String(64), server_default="Asia/Seoul", nullable=False),
        sa.Column("plan_reminder_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("plan_reminder_time", sa.String(5), server_default="21:00", nullable=False),
        sa.Column("reflection_reminder_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("reflection_reminder_time", sa.String(5), server_default="07:00", nullable=False),
        sa.Column("streak_alerts_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("goal_deadline_alerts_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("email_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("push_enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("push_subscription", postgresql.JSONB(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute(
        "ALTER TABLE notification_settings ADD CONSTRAINT ck_notification_settings_times "
        "CHECK (plan_reminder_time ~ '^([01][0-9]|2[0-3]):[0-5][0-9]$' "
        "AND reflection_reminder_time ~ '^([01][0-9]|2[0-3]):[0-5][0-9]$')"
    )

    # --- activity_records ---
    op.create_table(
        "activity_records",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_activity_records_user_day", "activity_records", ["user_id", "day"])
    op.execute(
        "ALTER TABLE activity_records ADD CONSTRAINT ck_activity_records_kind "
        "CHECK (kind IN ('plan', 'reflection'))"
    )

    # --- goals ---
    op.create_table(
        "goals",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("target_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
    )
    op.create_index(
        "ix_goals_user_open_target",
        "goals",
        ["user_id", "target_date"],
        postgresql_where=sa.text("completed = false"),
    )

    # --- notification_log ---
    op.create_table(
        "notification_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reminder_type", sa.String(32), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("subject", sa.String(256), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("local_day", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
    )
    op.create_index("ix_notification_log_user_day", "notification_log", ["user_id", "local_day"])
    op.execute(
        "CREATE UNIQUE INDEX uq_notification_log_sent_once "
        "ON notification_log (user_id, reminder_type, local_day) "
        "WHERE status = 'sent'"
    )
    op.execute(
        "ALTER TABLE notification_log ADD CONSTRAINT ck_notification_log_status "
        "CHECK (status IN ('sent', 'failed'))"
    )


def downgrade() -> None:
    """Drop reminder tables."""
    op.execute("DROP INDEX IF EXISTS uq_notification_log_sent_once")
    op.drop_index("ix_notification_log_user_day", table_name="notification_log")
    op.drop_table("notification_log")
    op.drop_index("ix_goals_user_open_target", table_name="goals")
    op.drop_table("goals")
    op.drop_index("ix_activity_records_user_day", table_name="activity_records")
    op.drop_table("activity_records")
    op.drop_table("notification_settings")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
