"""
Delivery adapter with channel routing.

Each channel has one ChannelSender. Email goes out over SMTP (default) or
the Resend HTTP API; push is published over Redis to ``push:user:{id}``
for whatever transport subscribes. The transports live outside this
service.

A sender either returns normally (delivered) or raises DeliveryError.
DeliveryAdapter.send folds both into a DeliveryResult.
"""

from __future__ import annotations

import json
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING

import aiosmtplib
import httpx
import structlog

from daybook.config import Settings
from daybook.errors import ConfigurationError, DeliveryError
from daybook.reminders.templates import RenderedMessage
from daybook.reminders.types import Channel

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

RESEND_ENDPOINT = "https://api.resend.com/emails"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> DeliveryResult:
        return cls(True)

    @classmethod
    def failed(cls, error: str) -> DeliveryResult:
        return cls(False, error)


class ChannelSender(ABC):
    @abstractmethod
    async def send(self, destination: str, message: RenderedMessage) -> None:
        """Deliver ``message`` to ``destination``. Raises DeliveryError."""


class SmtpSender(ChannelSender):
    """Multipart (text + html) reminder mail over SMTP."""

    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username or None
        self.password = settings.smtp_password or None
        self.use_tls = settings.smtp_use_tls
        self.sender = formataddr((settings.email_from_name, settings.email_from_address))

    def build(self, destination: str, message: RenderedMessage) -> EmailMessage:
        mail = EmailMessage()
        mail["From"] = self.sender
        mail["To"] = destination
        mail["Subject"] = message.subject
        mail.set_content(message.text_body)
        mail.add_alternative(message.html_body, subtype="html")
        return mail

    async def send(self, destination: str, message: RenderedMessage) -> None:
        try:
            await aiosmtplib.send(
                self.build(destination, message),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except aiosmtplib.SMTPException as exc:
            msg = f"SMTP delivery failed: {exc}"
            raise DeliveryError(msg) from exc
        except OSError as exc:
            msg = f"SMTP connection failed: {exc}"
            raise DeliveryError(msg) from exc
        logger.debug("email_delivered", provider="smtp", subject=message.subject)


class ResendSender(ChannelSender):
    def __init__(self, settings: Settings, timeout: float = 10.0) -> None:
        self.api_key = settings.resend_api_key
        self.sender = formataddr((settings.email_from_name, settings.email_from_address))
        self.timeout = timeout

    async def send(self, destination: str, message: RenderedMessage) -> None:
        body = {
            "from": self.sender,
            "to": [destination],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.text_body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    RESEND_ENDPOINT,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Resend delivery failed: {exc}"
            raise DeliveryError(msg) from exc
        logger.debug("email_delivered", provider="resend", subject=message.subject)


EMAIL_SENDERS: dict[str, type[SmtpSender] | type[ResendSender]] = {
    "smtp": SmtpSender,
    "resend": ResendSender,
}


def create_email_sender(settings: Settings) -> ChannelSender:
    """Email sender for ``settings.email_provider`` (case-insensitive)."""
    name = settings.email_provider.lower()
    try:
        sender_cls = EMAIL_SENDERS[name]
    except KeyError:
        msg = f"Unsupported email provider: {settings.email_provider}"
        raise ConfigurationError(msg) from None
    return sender_cls(settings)


class PushSender(ChannelSender):
    """Publish a push payload to ``push:user:{destination}``."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def send(self, destination: str, message: RenderedMessage) -> None:
        payload = {
            "event": "reminder",
            "data": {
                "title": message.subject,
                "body": message.text_body,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }
        try:
            await self.redis.publish(f"push:user:{destination}", json.dumps(payload))
        except Exception as exc:
            msg = f"Push publish failed: {exc}"
            raise DeliveryError(msg) from exc


class DeliveryAdapter:
    """Routes a rendered message to the sender registered for its channel."""

    def __init__(self, senders: dict[Channel, ChannelSender]) -> None:
        self.senders = senders

    async def send(self, channel: Channel, destination: str | None, message: RenderedMessage) -> DeliveryResult:
        sender = self.senders.get(channel)
        if sender is None:
            return DeliveryResult.failed(f"No sender configured for channel {channel.value}")
        if not destination:
            return DeliveryResult.failed(f"No {channel.value} destination for user")
        try:
            await sender.send(destination, message)
        except DeliveryError as exc:
            logger.warning("delivery_failed", channel=channel.value, error=str(exc))
            return DeliveryResult.failed(str(exc))
        return DeliveryResult.ok()


def create_delivery_adapter(settings: Settings, redis: Redis | None = None) -> DeliveryAdapter:
    """Email is always wired; push only when a Redis client is available."""
    senders: dict[Channel, ChannelSender] = {Channel.EMAIL: create_email_sender(settings)}
    if redis is not None:
        senders[Channel.PUSH] = PushSender(redis)
    return DeliveryAdapter(senders)
