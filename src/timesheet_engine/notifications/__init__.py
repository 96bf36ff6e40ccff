"""Outbound email: providers, templates and the event dispatcher."""

from timesheet_engine.notifications.dispatcher import NotificationDispatcher
from timesheet_engine.notifications.mailer import (
    EmailMessage,
    LoggingMailer,
    Mailer,
    ResendMailer,
    SendResult,
    build_mailer,
    is_valid_email,
)

__all__ = [
    "EmailMessage",
    "LoggingMailer",
    "Mailer",
    "NotificationDispatcher",
    "ResendMailer",
    "SendResult",
    "build_mailer",
    "is_valid_email",
]
