"""Reminder admin, streak and notification-settings endpoints."""

from __future__ import annotations

import secrets
from dataclasses import asdict
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from daybook.config import get_settings
from daybook.errors import EnumerationError
from daybook.reminders.scheduler import DispatchScheduler, SchedulerHandle
from daybook.reminders.schemas import (
    ActivitySummaryResponse,
    DispatchResponse,
    NotificationLogListResponse,
    NotificationLogResponse,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    SchedulerStatusResponse,
    StreakResponse,
)
from daybook.reminders.types import ReminderUser
from daybook.streaks.calculator import StreakSnapshot

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Reminders"])


def get_scheduler(request: Request) -> DispatchScheduler:
    """The DispatchScheduler built in the app lifespan."""
    scheduler: DispatchScheduler | None = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Reminder engine not initialized")
    return scheduler


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    """Admin routes require ``Authorization: Bearer <cron secret>``."""
    expected = get_settings().cron_secret
    if not expected or not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not secrets.compare_digest(authorization, f"Bearer {expected}"):
        logger.warning("unauthorized_cron_request")
        raise HTTPException(status_code=401, detail="Unauthorized")


async def get_existing_user(
    user_id: int,
    scheduler: DispatchScheduler = Depends(get_scheduler),
) -> ReminderUser:
    user = await scheduler.directory.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _streak_fields(snapshot: StreakSnapshot) -> dict[str, object]:
    return {
        "current_streak": snapshot.current_streak,
        "longest_streak": snapshot.longest_streak,
        "last_record_day": snapshot.last_record_day,
        "status": snapshot.status.value,
    }


# --- Admin ---


@router.post(
    "/admin/reminders/dispatch",
    response_model=DispatchResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def force_dispatch(scheduler: DispatchScheduler = Depends(get_scheduler)):
    """Run one dispatch cycle now and return its counts."""
    try:
        report = await scheduler.run_tick()
    except EnumerationError as exc:
        logger.exception("forced_dispatch_aborted")
        raise HTTPException(status_code=503, detail="Could not enumerate users") from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return DispatchResponse(**report.as_dict())


@router.get(
    "/admin/reminders/status",
    response_model=SchedulerStatusResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def scheduler_status(request: Request, scheduler: DispatchScheduler = Depends(get_scheduler)):
    """Scheduler loop state and the most recent tick."""
    handle: SchedulerHandle | None = getattr(request.app.state, "scheduler_handle", None)
    last = scheduler.last_report
    return SchedulerStatusResponse(
        running=handle is not None and handle.running,
        interval_seconds=scheduler.interval_seconds,
        concurrency=scheduler.concurrency,
        current_time=datetime.now(timezone.utc),
        last_tick_at=last.started_at if last else None,
        last_tick=DispatchResponse(**last.as_dict()) if last else None,
    )


# --- Streaks ---


@router.get("/users/{user_id}/streak", response_model=StreakResponse)
async def get_streak(
    user: ReminderUser = Depends(get_existing_user),
    scheduler: DispatchScheduler = Depends(get_scheduler),
):
    """Current streak snapshot in the user's timezone."""
    snapshot = await scheduler.get_streak(user.id)
    return StreakResponse(**_streak_fields(snapshot))


@router.get("/users/{user_id}/streak/summary", response_model=ActivitySummaryResponse)
async def get_streak_summary(
    user: ReminderUser = Depends(get_existing_user),
    scheduler: DispatchScheduler = Depends(get_scheduler),
):
    """Streak snapshot plus record counts."""
    summary = await scheduler.get_activity_summary(user.id)
    return ActivitySummaryResponse(
        **_streak_fields(summary.streak),
        total_records=summary.total_records,
        unique_days=summary.unique_days,
        this_week_records=summary.this_week_records,
        this_month_records=summary.this_month_records,
        recent_days=summary.recent_days,
    )


# --- Notification settings ---


@router.get("/users/{user_id}/notification-settings", response_model=NotificationSettingsResponse)
async def read_notification_settings(
    user: ReminderUser = Depends(get_existing_user),
    scheduler: DispatchScheduler = Depends(get_scheduler),
):
    settings = await scheduler.settings_store.get(user.id)
    return NotificationSettingsResponse(**asdict(settings))


@router.put("/users/{user_id}/notification-settings", response_model=NotificationSettingsResponse)
async def update_notification_settings(
    body: NotificationSettingsUpdate,
    user: ReminderUser = Depends(get_existing_user),
    scheduler: DispatchScheduler = Depends(get_scheduler),
):
    """Partially update reminder settings. Unknown timezones and bad HH:MM values are rejected (422)."""
    settings = await scheduler.settings_store.update(user.id, body.model_dump(exclude_unset=True))
    return NotificationSettingsResponse(**asdict(settings))


@router.get("/users/{user_id}/notifications", response_model=NotificationLogListResponse)
async def list_notification_log(
    limit: int = Query(50, ge=1, le=200),
    user: ReminderUser = Depends(get_existing_user),
    scheduler: DispatchScheduler = Depends(get_scheduler),
):
    """Most recent delivery attempts, newest first."""
    entries = await scheduler.log.entries_for_user(user.id, limit=limit)
    return NotificationLogListResponse(
        notifications=[
            NotificationLogResponse(
                id=e.id,
                reminder_type=e.reminder_type.value,
                channel=e.channel.value,
                subject=e.subject,
                status=e.status.value,
                local_day=e.local_day,
                timestamp=e.created_at,
                error=e.error,
            )
            for e in entries
        ],
        total=len(entries),
    )
