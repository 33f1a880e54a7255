"""Idempotency guard tests — moot reminders and already-sent keys."""

from datetime import date, datetime, timezone

from daybook.reminders.guard import IdempotencyGuard
from daybook.reminders.log import NotificationLogEntry
from daybook.reminders.memory import InMemoryActivityLedger, InMemoryNotificationLog
from daybook.reminders.types import Channel, RecordKind, ReminderType

DAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
ALL_TYPES = set(ReminderType)


def _guard() -> tuple[IdempotencyGuard, InMemoryActivityLedger, InMemoryNotificationLog]:
    ledger = InMemoryActivityLedger()
    log = InMemoryNotificationLog()
    return IdempotencyGuard(ledger, log), ledger, log


class TestLedgerChecks:
    async def test_nothing_recorded_keeps_everything(self):
        guard, _, _ = _guard()
        assert await guard.filter(1, ALL_TYPES, DAY) == ALL_TYPES

    async def test_plan_recorded_drops_plan_only(self):
        guard, ledger, _ = _guard()
        ledger.add(1, RecordKind.PLAN, DAY)
        surviving = await guard.filter(1, {ReminderType.PLAN, ReminderType.REFLECTION}, DAY)
        assert surviving == {ReminderType.REFLECTION}

    async def test_any_record_drops_streak_risk(self):
        guard, ledger, _ = _guard()
        ledger.add(1, RecordKind.REFLECTION, DAY)
        assert await guard.filter(1, {ReminderType.STREAK_RISK}, DAY) == set()

    async def test_celebration_and_goal_ignore_ledger(self):
        guard, ledger, _ = _guard()
        ledger.add(1, RecordKind.PLAN, DAY)
        ledger.add(1, RecordKind.REFLECTION, DAY)
        candidates = {ReminderType.STREAK_CELEBRATION, ReminderType.GOAL_DEADLINE}
        assert await guard.filter(1, candidates, DAY) == candidates

    async def test_record_for_other_day_is_ignored(self):
        guard, ledger, _ = _guard()
        ledger.add(1, RecordKind.PLAN, date(2026, 3, 9), created_at=NOW)
        assert await guard.filter(1, {ReminderType.PLAN}, DAY) == {ReminderType.PLAN}

    async def test_other_user_record_is_ignored(self):
        guard, ledger, _ = _guard()
        ledger.add(2, RecordKind.PLAN, DAY)
        assert await guard.filter(1, {ReminderType.PLAN}, DAY) == {ReminderType.PLAN}


class TestLogChecks:
    async def test_sent_entry_suppresses(self):
        guard, _, log = _guard()
        await log.append(NotificationLogEntry.sent(1, ReminderType.REFLECTION, Channel.EMAIL, "s", DAY, NOW))
        assert await guard.filter(1, {ReminderType.REFLECTION}, DAY) == set()

    async def test_sent_on_push_satisfies_key(self):
        guard, _, log = _guard()
        await log.append(NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.PUSH, "s", DAY, NOW))
        assert await guard.filter(1, {ReminderType.PLAN}, DAY) == set()

    async def test_failed_entry_does_not_suppress(self):
        guard, _, log = _guard()
        await log.append(
            NotificationLogEntry.failed(1, ReminderType.REFLECTION, Channel.EMAIL, "s", DAY, NOW, "bounced")
        )
        assert await guard.filter(1, {ReminderType.REFLECTION}, DAY) == {ReminderType.REFLECTION}

    async def test_sent_yesterday_does_not_suppress_today(self):
        guard, _, log = _guard()
        await log.append(
            NotificationLogEntry.sent(1, ReminderType.PLAN, Channel.EMAIL, "s", date(2026, 3, 9), NOW)
        )
        assert await guard.filter(1, {ReminderType.PLAN}, DAY) == {ReminderType.PLAN}

    async def test_guard_is_read_only(self):
        guard, ledger, log = _guard()
        await guard.filter(1, ALL_TYPES, DAY)
        await guard.filter(1, ALL_TYPES, DAY)
        assert log.entries == []
        assert await ledger.records_for_user(1) == []
