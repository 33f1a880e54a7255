"""Dispatch scheduler — the recurring reminder tick.

Each tick:
1. Lists users with at least one channel enabled.
2. Per user (at most ``concurrency`` at once): settings -> streak snapshot
   in the user's timezone -> goals -> policy -> idempotency guard.
3. For every surviving type: render, then try the enabled channels in
   order until one delivers. Each attempt appends exactly one log entry
   (``sent`` or ``failed``).

Ticks never overlap: the periodic loop and the admin trigger both run
under one lock. Per-user failures stay inside that user's unit of work;
only EnumerationError aborts a tick.

A failure before the policy has produced reminder types (bad settings,
unreachable ledger) writes no log row, because the log is keyed by
(user, type, day) and no type exists yet. Such users are counted in
``TickReport.skipped`` or ``TickReport.errors`` instead. Once a type is
known, every failure is logged as a ``failed`` attempt.

Per reminder instance: PENDING -> DUE -> SUPPRESSED, or
DUE -> ATTEMPTED -> SENT | FAILED. A FAILED key stays unsatisfied, so a
later tick the same day may try again.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog

from daybook.errors import ConfigurationError, DataAccessError, EnumerationError
from daybook.reminders.delivery import DeliveryAdapter, DeliveryResult
from daybook.reminders.guard import IdempotencyGuard
from daybook.reminders.log import NotificationLogEntry
from daybook.reminders.policy import ReminderPolicyEngine
from daybook.reminders.stores import (
    ActivityLedger,
    GoalStore,
    NotificationLogStore,
    SettingsStore,
    UserDirectory,
)
from daybook.reminders.templates import ReminderContext, render
from daybook.reminders.types import (
    Channel,
    ReminderType,
    ReminderUser,
    resolve_timezone,
)
from daybook.streaks.calculator import (
    ActivitySummary,
    StreakSnapshot,
    compute_streak,
    local_today,
    summarize_activity,
)

logger = structlog.get_logger()

TYPE_ORDER = list(ReminderType)


class ReminderState(str, enum.Enum):
    PENDING = "pending"
    DUE = "due"
    SUPPRESSED = "suppressed"
    ATTEMPTED = "attempted"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class ReminderOutcome:
    user_id: int
    reminder_type: ReminderType
    state: ReminderState
    channel: Channel | None = None
    error: str | None = None


@dataclass
class TickReport:
    started_at: datetime
    evaluated: int = 0
    sent: int = 0
    suppressed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    outcomes: list[ReminderOutcome] = field(default_factory=list)

    def record(self, outcome: ReminderOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.state == ReminderState.SENT:
            self.sent += 1
        elif outcome.state == ReminderState.FAILED:
            self.failed += 1
        elif outcome.state == ReminderState.SUPPRESSED:
            self.suppressed += 1

    def as_dict(self) -> dict[str, int]:
        return {
            "evaluated": self.evaluated,
            "sent": self.sent,
            "suppressed": self.suppressed,
            "failed": self.failed,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchScheduler:
    """Owns the recurring trigger and orchestrates one dispatch cycle per tick."""

    def __init__(
        self,
        *,
        directory: UserDirectory,
        settings_store: SettingsStore,
        ledger: ActivityLedger,
        goal_store: GoalStore,
        log: NotificationLogStore,
        delivery: DeliveryAdapter,
        policy: ReminderPolicyEngine | None = None,
        app_url: str = "https://daybook.app",
        interval_seconds: float = 60.0,
        concurrency: int = 8,
        default_timezone: str = "Asia/Seoul",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if concurrency < 1:
            msg = "concurrency must be at least 1"
            raise ValueError(msg)
        self.directory = directory
        self.settings_store = settings_store
        self.ledger = ledger
        self.goal_store = goal_store
        self.log = log
        self.delivery = delivery
        self.policy = policy or ReminderPolicyEngine()
        self.guard = IdempotencyGuard(ledger, log)
        self.app_url = app_url
        self.interval_seconds = interval_seconds
        self.concurrency = concurrency
        self.default_timezone = default_timezone
        self._clock = clock
        self._tick_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._stopping = asyncio.Event()
        self._closed = False
        self.last_report: TickReport | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    async def run_forever(self) -> None:
        """Tick every ``interval_seconds`` until stop() is called."""
        loop = asyncio.get_running_loop()
        logger.info("scheduler_started", interval_seconds=self.interval_seconds, concurrency=self.concurrency)
        while not self._stopping.is_set():
            started = loop.time()
            try:
                await self.run_tick()
            except EnumerationError:
                logger.exception("tick_aborted")
            except Exception:
                logger.exception("tick_failed")
            remaining = max(self.interval_seconds - (loop.time() - started), 0.0)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass
        logger.info("scheduler_stopped")

    async def stop(self) -> None:
        """Stop accepting ticks and wait for any in-flight tick to drain."""
        self._closed = True
        self._stopping.set()
        async with self._tick_lock:
            pass

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def run_tick(self, now: datetime | None = None) -> TickReport:
        """Run one full dispatch cycle.

        Raises:
            EnumerationError: the eligible user set could not be listed.
            RuntimeError: the scheduler has been stopped.
        """
        if self._closed:
            msg = "Scheduler is stopped"
            raise RuntimeError(msg)

        async with self._tick_lock:
            now = now or self._clock()
            report = TickReport(started_at=now)

            try:
                users = await self.directory.eligible_users()
            except EnumerationError:
                raise
            except Exception as exc:
                msg = f"Failed to list eligible users: {exc}"
                raise EnumerationError(msg) from exc

            await asyncio.gather(*(self._process_user(user, now, report) for user in users))

            self.last_report = report
            logger.info(
                "tick_complete",
                users=len(users),
                skipped=report.skipped,
                errors=report.errors,
                **report.as_dict(),
            )
            return report

    async def _process_user(self, user: ReminderUser, now: datetime, report: TickReport) -> None:
        """One user's unit of work. Never raises."""
        async with self._semaphore:
            report.evaluated += 1
            log = logger.bind(user_id=user.id)
            try:
                await self._dispatch_for_user(user, now, report)
            except ConfigurationError as exc:
                report.skipped += 1
                log.warning("user_skipped_bad_configuration", error=str(exc))
            except DataAccessError:
                report.errors += 1
                log.exception("user_data_unavailable")
            except Exception:
                report.errors += 1
                log.exception("user_evaluation_failed")

    async def _dispatch_for_user(self, user: ReminderUser, now: datetime, report: TickReport) -> None:
        settings = await self.settings_store.get(user.id)
        tz = resolve_timezone(settings.timezone)
        local_day = local_today(now, tz)
        streak = compute_streak(await self.ledger.record_days_for_user(user.id), now, tz)
        goals = await self.goal_store.incomplete_goals_due_within(user.id, self.policy.config.goal_window, now)
        due = self.policy.evaluate(user, settings, streak, goals, now)
        if not due:
            return
        surviving = await self.guard.filter(user.id, due, local_day)

        for reminder_type in sorted(due - surviving, key=TYPE_ORDER.index):
            report.record(ReminderOutcome(user.id, reminder_type, ReminderState.SUPPRESSED))

        context = ReminderContext(
            local_day=local_day,
            streak=streak,
            app_url=self.app_url,
            goals=self.policy.goals_due_soon(goals, now),
        )
        for reminder_type in sorted(surviving, key=TYPE_ORDER.index):
            # Channels are a failover chain: one delivery satisfies the key.
            for channel in settings.channels:
                outcome = await self._attempt(user, reminder_type, channel, context, now)
                report.record(outcome)
                if outcome.state == ReminderState.ATTEMPTED:
                    report.errors += 1
                if outcome.state != ReminderState.FAILED:
                    break

    async def _attempt(
        self,
        user: ReminderUser,
        reminder_type: ReminderType,
        channel: Channel,
        context: ReminderContext,
        now: datetime,
    ) -> ReminderOutcome:
        """Deliver one reminder on one channel and log the attempt.

        The log row is only written after the delivery outcome is known.
        If that write fails the outcome stays ATTEMPTED: nothing claims
        ``sent``, so a later tick may deliver again.
        """
        log = logger.bind(user_id=user.id, type=reminder_type.value, channel=channel.value)
        subject = reminder_type.value

        try:
            message = render(reminder_type, user, context)
        except Exception as exc:
            log.exception("reminder_render_failed")
            result = DeliveryResult.failed(f"Render failed: {exc!r}")
        else:
            subject = message.subject
            try:
                result = await self.delivery.send(channel, self._destination(user, channel), message)
            except Exception as exc:
                result = DeliveryResult.failed(str(exc) or type(exc).__name__)

        if result.success:
            entry = NotificationLogEntry.sent(user.id, reminder_type, channel, subject, context.local_day, now)
            state = ReminderState.SENT
        else:
            entry = NotificationLogEntry.failed(
                user.id, reminder_type, channel, subject, context.local_day, now,
                result.error or "unknown error",
            )
            state = ReminderState.FAILED

        try:
            await self.log.append(entry)
        except Exception:
            log.exception("notification_log_append_failed", delivered=result.success)
            return ReminderOutcome(user.id, reminder_type, ReminderState.ATTEMPTED, channel, result.error)

        if result.success:
            log.info("reminder_sent")
        else:
            log.warning("reminder_failed", error=result.error)
        return ReminderOutcome(user.id, reminder_type, state, channel, result.error)

    @staticmethod
    def _destination(user: ReminderUser, channel: Channel) -> str | None:
        if channel == Channel.EMAIL:
            return user.email
        return str(user.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _user_timezone(self, user_id: int) -> ZoneInfo:
        settings = await self.settings_store.get(user_id)
        try:
            return resolve_timezone(settings.timezone)
        except ConfigurationError:
            logger.warning("streak_query_default_timezone", user_id=user_id, timezone=settings.timezone)
            return resolve_timezone(self.default_timezone)

    async def get_streak(self, user_id: int, now: datetime | None = None) -> StreakSnapshot:
        """Streak snapshot in the user's own timezone."""
        tz = await self._user_timezone(user_id)
        days = await self.ledger.record_days_for_user(user_id)
        return compute_streak(days, now or self._clock(), tz)

    async def get_activity_summary(self, user_id: int, now: datetime | None = None) -> ActivitySummary:
        tz = await self._user_timezone(user_id)
        records = await self.ledger.records_for_user(user_id)
        return summarize_activity(records, now or self._clock(), tz)


@dataclass
class SchedulerHandle:
    """Running scheduler plus the task driving it.

    Held by whoever owns the process lifecycle (FastAPI lifespan, worker
    context); there is no global "already started" state.
    """

    scheduler: DispatchScheduler
    task: asyncio.Task[None]

    @property
    def running(self) -> bool:
        return not self.task.done()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.task


def start_scheduler(scheduler: DispatchScheduler) -> SchedulerHandle:
    """Start the periodic loop on the running event loop and return its handle."""
    task = asyncio.create_task(scheduler.run_forever(), name="reminder-dispatch")
    return SchedulerHandle(scheduler=scheduler, task=task)
