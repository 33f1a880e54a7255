"""Reminder policy: which reminder types are due for a user at an instant.

Time-window reminders (plan, reflection) and the daily checkpoints
(streak risk/celebration, goal deadline) are matched against the user's
local wall clock. Conversion goes through ``zoneinfo`` so DST transitions
are handled by the tz database, never by manual offsets.

The engine reads a StreakSnapshot; it never recomputes streaks. Firing at
most once per day is the IdempotencyGuard's job, not this module's.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from daybook.config import Settings
from daybook.reminders.types import (
    Goal,
    ReminderSettings,
    ReminderType,
    ReminderUser,
    parse_time_of_day,
    resolve_timezone,
)
from daybook.streaks.calculator import StreakSnapshot, StreakStatus

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class PolicyConfig:
    window: timedelta = timedelta(minutes=5)
    streak_checkpoint: time = time(21, 30)
    goal_checkpoint: time = time(9, 0)
    celebration_milestone: int = 7
    goal_window: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls, settings: Settings) -> PolicyConfig:
        return cls(
            window=timedelta(minutes=settings.reminder_window_minutes),
            streak_checkpoint=parse_time_of_day(settings.streak_checkpoint),
            goal_checkpoint=parse_time_of_day(settings.goal_checkpoint),
            celebration_milestone=settings.celebration_milestone_days,
            goal_window=timedelta(hours=settings.goal_deadline_window_hours),
        )


def within_window(local_now: datetime, target: time, window: timedelta) -> bool:
    """True when the wall-clock time of ``local_now`` is within ±window of ``target``.

    Compared in minutes of the day with wrap-around, so 23:58 is within
    five minutes of 00:02.
    """
    now_minutes = local_now.hour * 60 + local_now.minute + local_now.second / 60
    target_minutes = target.hour * 60 + target.minute
    delta = abs(now_minutes - target_minutes) % MINUTES_PER_DAY
    delta = min(delta, MINUTES_PER_DAY - delta)
    return delta <= window.total_seconds() / 60


class ReminderPolicyEngine:
    """Decides the set of reminder types due for one user."""

    def __init__(self, config: PolicyConfig | None = None) -> None:
        self.config = config or PolicyConfig()

    def evaluate(
        self,
        user: ReminderUser,
        settings: ReminderSettings,
        streak: StreakSnapshot,
        goals: Iterable[Goal],
        now: datetime,
    ) -> set[ReminderType]:
        """Return every reminder type due at ``now``.

        Raises:
            ConfigurationError: stored timezone or time-of-day is invalid.
        """
        tz = resolve_timezone(settings.timezone)
        local_now = now.astimezone(tz)
        window = self.config.window
        due: set[ReminderType] = set()

        if settings.plan_reminder_enabled and within_window(
            local_now, parse_time_of_day(settings.plan_reminder_time), window
        ):
            due.add(ReminderType.PLAN)

        if settings.reflection_reminder_enabled and within_window(
            local_now, parse_time_of_day(settings.reflection_reminder_time), window
        ):
            due.add(ReminderType.REFLECTION)

        if settings.streak_alerts_enabled and within_window(local_now, self.config.streak_checkpoint, window):
            recorded_today = streak.last_record_day == local_now.date()
            if streak.status == StreakStatus.BROKEN or not recorded_today:
                due.add(ReminderType.STREAK_RISK)
            elif self._is_milestone(streak):
                due.add(ReminderType.STREAK_CELEBRATION)

        if settings.goal_deadline_alerts_enabled and within_window(local_now, self.config.goal_checkpoint, window):
            if self.goals_due_soon(goals, now):
                due.add(ReminderType.GOAL_DEADLINE)

        return due

    def _is_milestone(self, streak: StreakSnapshot) -> bool:
        milestone = self.config.celebration_milestone
        return milestone > 0 and streak.current_streak > 0 and streak.current_streak % milestone == 0

    def goals_due_soon(self, goals: Iterable[Goal], now: datetime) -> list[Goal]:
        """Incomplete goals whose target falls in ``[now, now + goal_window)``."""
        horizon = now + self.config.goal_window
        return [g for g in goals if not g.completed and now <= g.target_date < horizon]
