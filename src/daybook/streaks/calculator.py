"""Consecutive-day streak arithmetic.

Everything here is pure: no I/O, and identical inputs give identical output.
Day gaps are computed on ``date`` values, never on timestamps, so records
made late at night or early in the morning cannot produce off-by-one gaps.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from daybook.reminders.types import ActivityRecord

RECENT_DAYS_LIMIT = 30


class StreakStatus(str, enum.Enum):
    ACTIVE = "active"
    BROKEN = "broken"
    NONE = "none"


@dataclass(frozen=True)
class StreakSnapshot:
    """Derived streak statistics. Never persisted."""

    current_streak: int
    longest_streak: int
    last_record_day: date | None
    status: StreakStatus

    @classmethod
    def empty(cls) -> StreakSnapshot:
        return cls(0, 0, None, StreakStatus.NONE)


@dataclass(frozen=True)
class ActivitySummary:
    """Streak snapshot plus record counts for the stats view."""

    streak: StreakSnapshot
    total_records: int
    unique_days: int
    this_week_records: int
    this_month_records: int
    recent_days: list[date] = field(default_factory=list)


def local_today(now: datetime, tz: tzinfo | None = None) -> date:
    """Calendar day of ``now`` in ``tz`` (or in ``now``'s own zone)."""
    if tz is not None:
        return now.astimezone(tz).date()
    return now.date()


def compute_streak(
    record_days: Iterable[date],
    now: datetime,
    tz: tzinfo | None = None,
) -> StreakSnapshot:
    """Compute current and longest streak from a set of record days.

    The streak is active only when the most recent day is today or yesterday
    in ``tz``. A broken streak still reports its last record day.
    """
    days = sorted(set(record_days), reverse=True)
    if not days:
        return StreakSnapshot.empty()

    today = local_today(now, tz)
    latest = days[0]
    is_active = latest in (today, today - timedelta(days=1))

    current = 0
    if is_active:
        current = 1
        for newer, older in zip(days, days[1:]):
            if (newer - older).days != 1:
                break
            current += 1

    longest = 1
    run = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return StreakSnapshot(
        current_streak=current,
        longest_streak=longest,
        last_record_day=latest,
        status=StreakStatus.ACTIVE if current > 0 else StreakStatus.BROKEN,
    )


def get_monday(d: date) -> date:
    """Get the Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())


def summarize_activity(
    records: Iterable[ActivityRecord],
    now: datetime,
    tz: tzinfo | None = None,
) -> ActivitySummary:
    """Streak snapshot plus weekly/monthly counts over raw records.

    Weeks start on Monday. Record counts use every record; ``unique_days``
    collapses records on the same day.
    """
    records = list(records)
    today = local_today(now, tz)
    week_start = get_monday(today)
    month_start = today.replace(day=1)

    days = {r.day for r in records}
    return ActivitySummary(
        streak=compute_streak(days, now, tz),
        total_records=len(records),
        unique_days=len(days),
        this_week_records=sum(1 for r in records if week_start <= r.day <= today),
        this_month_records=sum(1 for r in records if month_start <= r.day <= today),
        recent_days=sorted(days, reverse=True)[:RECENT_DAYS_LIMIT],
    )
