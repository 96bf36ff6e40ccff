"""Audit trail for dispatched domain events.

Every event that leaves an outbox is written to the ``timesheet_engine.audit``
logger with its id, category and JSON payload, so the log doubles as a
record of what the service announced.
"""

from __future__ import annotations

import logging

from timesheet_engine.events.emitter import AsyncEventEmitter
from timesheet_engine.events.types import DomainEvent

audit_logger = logging.getLogger("timesheet_engine.audit")


def log_event(event: DomainEvent) -> None:
    audit_logger.info(
        "%s [%s] event_id=%s tenant_id=%s payload=%s",
        event.event_type,
        event.category.value,
        event.metadata.event_id,
        event.metadata.tenant_id,
        event.to_json(),
    )


def register_audit_log(emitter: AsyncEventEmitter) -> None:
    """Log every event the emitter dispatches."""
    emitter.on_all(log_event)
