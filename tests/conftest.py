"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from daybook.config import get_settings
from daybook.errors import DeliveryError
from daybook.reminders.delivery import ChannelSender, DeliveryAdapter
from daybook.reminders.memory import (
    InMemoryActivityLedger,
    InMemoryGoalStore,
    InMemoryNotificationLog,
    InMemorySettingsStore,
    InMemoryUserDirectory,
)
from daybook.reminders.policy import ReminderPolicyEngine
from daybook.reminders.scheduler import DispatchScheduler
from daybook.reminders.templates import RenderedMessage
from daybook.reminders.types import Channel, ReminderSettings, ReminderUser

SEOUL = ZoneInfo("Asia/Seoul")
CRON_SECRET = "test-cron-secret"


def local(tz: ZoneInfo, *args: int) -> datetime:
    """Build a wall-clock time in ``tz`` and return it as a UTC instant."""
    return datetime(*args, tzinfo=tz).astimezone(timezone.utc)


class RecordingSender(ChannelSender):
    """Channel sender that remembers what it delivered.

    Destinations in ``failing`` raise DeliveryError; destinations in
    ``exploding`` raise a plain RuntimeError, like a buggy transport.
    """

    def __init__(self) -> None:
        self.delivered: list[tuple[str, RenderedMessage]] = []
        self.failing: set[str] = set()
        self.exploding: set[str] = set()

    async def send(self, destination: str, message: RenderedMessage) -> None:
        if destination in self.exploding:
            raise RuntimeError(f"transport crashed for {destination}")
        if destination in self.failing:
            raise DeliveryError(f"mailbox unavailable: {destination}")
        self.delivered.append((destination, message))


class ReminderWorld:
    """In-memory stores, recording senders and a scheduler on a settable clock."""

    def __init__(self, concurrency: int = 8) -> None:
        self.now = local(SEOUL, 2026, 3, 10, 7, 2)
        self.settings_store = InMemorySettingsStore()
        self.directory = InMemoryUserDirectory(self.settings_store)
        self.ledger = InMemoryActivityLedger()
        self.goals = InMemoryGoalStore()
        self.log = InMemoryNotificationLog()
        self.email = RecordingSender()
        self.push = RecordingSender()
        self.delivery = DeliveryAdapter({Channel.EMAIL: self.email, Channel.PUSH: self.push})
        self.scheduler = DispatchScheduler(
            directory=self.directory,
            settings_store=self.settings_store,
            ledger=self.ledger,
            goal_store=self.goals,
            log=self.log,
            delivery=self.delivery,
            policy=ReminderPolicyEngine(),
            app_url="https://daybook.test",
            interval_seconds=0.01,
            concurrency=concurrency,
            clock=lambda: self.now,
        )

    def add_user(self, user_id: int, name: str | None = None, **overrides: object) -> ReminderUser:
        user = ReminderUser(user_id, f"user{user_id}@example.com", name or f"User {user_id}")
        return self.directory.add(user, ReminderSettings(**overrides))  # type: ignore[arg-type]


@pytest.fixture
def world() -> ReminderWorld:
    return ReminderWorld()


@pytest.fixture
def cron_secret(monkeypatch: pytest.MonkeyPatch):
    """Configure the admin secret for the duration of one test."""
    monkeypatch.setenv("DAYBOOK_CRON_SECRET", CRON_SECRET)
    get_settings.cache_clear()
    yield CRON_SECRET
    get_settings.cache_clear()


@pytest.fixture
def app(world: ReminderWorld):
    """Application wired to the in-memory world; lifespan is not run."""
    from daybook.main import create_app

    application = create_app()
    application.state.scheduler = world.scheduler
    application.state.scheduler_handle = None
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client against the in-memory app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers(cron_secret: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {cron_secret}"}
