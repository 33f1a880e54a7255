"""Idempotency guard: drops due reminders that are moot or already sent.

Both checks are read-only queries made fresh on every call. Ticks are
serialized by the scheduler, so no lock table is needed.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

import structlog

from daybook.reminders.stores import ActivityLedger, NotificationLogStore
from daybook.reminders.types import RecordKind, ReminderType

logger = structlog.get_logger()

# Reminder type -> record kind whose presence for the day makes it moot.
# None means any record kind.
PROMPTED_BY: dict[ReminderType, RecordKind | None] = {
    ReminderType.PLAN: RecordKind.PLAN,
    ReminderType.REFLECTION: RecordKind.REFLECTION,
    ReminderType.STREAK_RISK: None,
}


class IdempotencyGuard:
    def __init__(self, ledger: ActivityLedger, log: NotificationLogStore) -> None:
        self.ledger = ledger
        self.log = log

    async def filter(
        self,
        user_id: int,
        candidates: Iterable[ReminderType],
        day: date,
    ) -> set[ReminderType]:
        """Return the subset of ``candidates`` not yet satisfied for ``day``.

        ``day`` is the user's local calendar day; ledger records are matched
        on the day they represent, not on when they were created.
        """
        surviving: set[ReminderType] = set()
        for reminder_type in candidates:
            if await self._already_acted(user_id, reminder_type, day):
                logger.debug("reminder_moot", user_id=user_id, type=reminder_type.value, day=day.isoformat())
                continue
            if await self.log.has_sent(user_id, reminder_type, day):
                logger.debug("reminder_already_sent", user_id=user_id, type=reminder_type.value, day=day.isoformat())
                continue
            surviving.add(reminder_type)
        return surviving

    async def _already_acted(self, user_id: int, reminder_type: ReminderType, day: date) -> bool:
        if reminder_type not in PROMPTED_BY:
            return False
        days = await self.ledger.record_days_for_user(user_id, PROMPTED_BY[reminder_type])
        return day in days
