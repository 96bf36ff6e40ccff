"""Outbound email providers.

All mailers implement the Mailer protocol. ResendMailer talks to the
Resend REST API; LoggingMailer is the local-development stand-in.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Protocol

import httpx

from timesheet_engine.config import Settings, get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address: str | None) -> bool:
    """Loose shape check: something@something.tld with no whitespace."""
    return bool(address) and _EMAIL_PATTERN.match(address) is not None


@dataclass(frozen=True)
class EmailMessage:
    """A rendered message ready to hand to a provider."""

    to: str
    subject: str
    html: str
    sender_name: str = "Timesheets"


@dataclass(frozen=True)
class SendResult:
    """Result of handing a message to a provider."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class Mailer(Protocol):
    """Protocol for outbound email providers."""

    provider_name: str

    async def send(self, message: EmailMessage) -> SendResult:
        """Deliver one message.

        Delivery problems are reported in the result, never raised.
        """
        ...


class ResendMailer:
    """Mailer backed by the Resend HTTP API."""

    provider_name = "resend"

    def __init__(
        self,
        api_key: str,
        from_email: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self._client = client
        self._timeout = timeout

    async def send(self, message: EmailMessage) -> SendResult:
        if not is_valid_email(message.to):
            return SendResult(success=False, error="Invalid recipient email address")

        payload = {
            "from": f"{message.sender_name} <{self.from_email}>",
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(RESEND_API_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Resend rejected message to %s: %s %s",
                message.to,
                e.response.status_code,
                e.response.text,
            )
            return SendResult(success=False, error=f"Email provider returned {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error("Could not reach Resend for message to %s: %s", message.to, e)
            return SendResult(success=False, error=f"Email provider unreachable: {e}")

        message_id = response.json().get("id")
        logger.info("Sent %r to %s (id=%s)", message.subject, message.to, message_id)
        return SendResult(success=True, message_id=message_id)


class LoggingMailer:
    """Mailer stub for development and tests.

    Messages are logged and kept in memory instead of being delivered.
    """

    provider_name = "logging"

    def __init__(self, fail: bool = False):
        """Initialize stub mailer.

        Args:
            fail: If True, every send reports a delivery failure.
        """
        self.fail = fail
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> SendResult:
        if not is_valid_email(message.to):
            return SendResult(success=False, error="Invalid recipient email address")
        if self.fail:
            logger.warning("Stub mailer dropping %r to %s", message.subject, message.to)
            return SendResult(success=False, error="Stub mailer configured to fail")

        self.sent.append(message)
        message_id = f"log-{uuid.uuid4()}"
        logger.info("Stub mailer: %r to %s (id=%s)", message.subject, message.to, message_id)
        return SendResult(success=True, message_id=message_id)


def build_mailer(settings: Settings | None = None) -> Mailer:
    """Resend when an API key is configured, otherwise the logging stub."""
    settings = settings or get_settings()
    if settings.resend_api_key:
        return ResendMailer(settings.resend_api_key, settings.from_email)
    logger.info("RESEND_API_KEY not set; emails will only be logged")
    return LoggingMailer()
