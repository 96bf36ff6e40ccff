"""Domain event types for timesheet operations.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for logging and replay

Events are appended while a command runs and dispatched only after the
write has committed, so a failing notification can never undo the write.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    TIME_ENTRY = "time_entry"
    VACATION = "vacation"
    EMPLOYEE = "employee"
    REPORTING = "reporting"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    tenant_id: UUID
    correlation_id: UUID  # Links events raised by one command
    actor_id: UUID | None  # Employee who triggered, None for system
    actor_type: str  # 'employee', 'admin', 'system'
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        tenant_id: UUID,
        correlation_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_type: str = "system",
        source_service: str = "timesheets",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            tenant_id=tenant_id,
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        return _serialize_dict(data)

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Time Entry Events
# =============================================================================


@dataclass(frozen=True)
class ChangeRequestSubmitted(DomainEvent):
    """An employee proposed a correction to one of their entries."""

    entry_id: UUID
    employee_id: UUID
    employee_name: str
    entry_date: str
    request_summary: str
    admin_email: str | None
    admin_name: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.TIME_ENTRY


@dataclass(frozen=True)
class ChangeRequestResolved(DomainEvent):
    """An admin approved (directly or by editing) or rejected a change request."""

    entry_id: UUID
    employee_id: UUID
    employee_name: str
    employee_email: str | None
    entry_date: str
    status: str  # 'approved' | 'rejected'
    admin_notes: str | None

    @property
    def category(self) -> EventCategory:
        return EventCategory.TIME_ENTRY


@dataclass(frozen=True)
class MissingClockOutDetected(DomainEvent):
    """A past working day was found without a clock-out."""

    entry_id: UUID
    employee_id: UUID
    employee_name: str
    employee_email: str | None
    entry_date: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.TIME_ENTRY


# =============================================================================
# Vacation Events
# =============================================================================


@dataclass(frozen=True)
class VacationRequested(DomainEvent):
    """An employee requested a range of vacation days."""

    employee_id: UUID
    employee_name: str
    start_date: str
    end_date: str
    days_count: int
    admin_email: str | None
    admin_name: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.VACATION


@dataclass(frozen=True)
class VacationRequestResolved(DomainEvent):
    """An admin approved or denied one day of a vacation request."""

    entry_id: UUID
    employee_id: UUID
    employee_name: str
    employee_email: str | None
    entry_date: str
    status: str  # 'approved' | 'rejected'

    @property
    def category(self) -> EventCategory:
        return EventCategory.VACATION


# =============================================================================
# Employee Events
# =============================================================================


@dataclass(frozen=True)
class EmployeeInvited(DomainEvent):
    """A new (or re-invited) employee should receive an invitation."""

    employee_id: UUID
    employee_name: str
    employee_email: str
    role: str
    company_name: str
    company_logo_url: str | None
    invitation_token: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.EMPLOYEE


# =============================================================================
# Reporting Events
# =============================================================================


@dataclass(frozen=True)
class ReportLine:
    """One employee's row in a period report."""

    name: str
    role: str
    hours: str
    days_worked: int
    sick_days: Decimal
    vacation_days: int
    total_pay: Decimal


@dataclass(frozen=True)
class PeriodReportRequested(DomainEvent):
    """A payroll summary should be sent to the bookkeeper."""

    bookkeeper_email: str
    owner_email: str | None
    company_name: str
    period_start: str
    period_end: str
    lines: tuple[ReportLine, ...]
    total_payroll: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPORTING
