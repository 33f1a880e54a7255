"""Domain types shared by the policy engine, guard, scheduler and stores."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daybook.errors import ConfigurationError

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class ReminderType(str, enum.Enum):
    PLAN = "plan"
    REFLECTION = "reflection"
    STREAK_RISK = "streak_risk"
    STREAK_CELEBRATION = "streak_celebration"
    GOAL_DEADLINE = "goal_deadline"


class Channel(str, enum.Enum):
    EMAIL = "email"
    PUSH = "push"


class RecordKind(str, enum.Enum):
    PLAN = "plan"
    REFLECTION = "reflection"


@dataclass(frozen=True)
class ReminderUser:
    id: int
    email: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class ReminderSettings:
    """Stored reminder preferences.

    Values are kept as stored; ``timezone`` and the ``*_time`` strings are
    only interpreted at evaluation time, where a bad value raises
    ConfigurationError for that user alone.
    """

    timezone: str = "Asia/Seoul"
    plan_reminder_enabled: bool = True
    plan_reminder_time: str = "21:00"
    reflection_reminder_enabled: bool = True
    reflection_reminder_time: str = "07:00"
    streak_alerts_enabled: bool = True
    goal_deadline_alerts_enabled: bool = True
    email_enabled: bool = True
    push_enabled: bool = False
    push_subscription: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def channels(self) -> list[Channel]:
        enabled = []
        if self.email_enabled:
            enabled.append(Channel.EMAIL)
        if self.push_enabled:
            enabled.append(Channel.PUSH)
        return enabled


@dataclass(frozen=True)
class ActivityRecord:
    id: int
    user_id: int
    kind: RecordKind
    day: date
    created_at: datetime | None = None


@dataclass(frozen=True)
class Goal:
    id: int
    user_id: int
    title: str
    target_date: datetime
    completed: bool = False


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` 24-hour string."""
    match = _TIME_RE.match(value or "")
    if match is None:
        msg = f"Invalid time of day: {value!r} (expected HH:MM)"
        raise ConfigurationError(msg)
    return time(int(match.group(1)), int(match.group(2)))


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone identifier."""
    if not name:
        raise ConfigurationError("Missing timezone")
    # Region names like "America" resolve to a tzdata directory (IsADirectoryError).
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        msg = f"Unknown timezone: {name!r}"
        raise ConfigurationError(msg) from exc


SETTINGS_FIELDS = frozenset(f.name for f in fields(ReminderSettings))
NULLABLE_SETTINGS = frozenset({"push_subscription"})


def apply_settings_patch(current: ReminderSettings, patch: dict[str, Any]) -> ReminderSettings:
    """Return ``current`` with the known keys of ``patch`` applied.

    ``None`` clears a nullable field (unsubscribing from push) and is ignored
    for every other field.
    """
    changes = {
        k: v for k, v in patch.items() if k in SETTINGS_FIELDS and (v is not None or k in NULLABLE_SETTINGS)
    }
    return replace(current, **changes)
