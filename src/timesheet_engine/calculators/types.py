"""Type definitions for the timesheet calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class IssueType(str, Enum):
    """Derived anomaly codes attached to a day's stats."""

    MISSING_CLOCK_OUT = "MISSING_CLOCK_OUT"
    LONG_SHIFT_NO_BREAK = "LONG_SHIFT_NO_BREAK"
    OPEN_BREAK = "OPEN_BREAK"
    OVERTIME_WARNING = "OVERTIME_WARNING"
    SICK_DAY = "SICK_DAY"
    VACATION_DAY = "VACATION_DAY"
    CHANGE_REQUESTED = "CHANGE_REQUESTED"
    VACATION_REQUEST_PENDING = "VACATION_REQUEST_PENDING"


class OffDayKind(str, Enum):
    """Off-day flags on a time entry."""

    SICK = "sick"
    HALF_SICK = "half_sick"
    VACATION = "vacation"


@dataclass(frozen=True)
class Break:
    """A single unpaid interval within one time entry."""

    start_time: datetime
    end_time: datetime | None = None  # None = still open
    id: UUID = field(default_factory=uuid4)
    type: str = "unpaid"

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Break:
        return cls(
            id=UUID(str(data["id"])) if data.get("id") else uuid4(),
            start_time=_parse_dt(data["start_time"]),
            end_time=_parse_dt(data.get("end_time")),
            type=data.get("type") or "unpaid",
        )


@dataclass(frozen=True)
class EntryFields:
    """The mutable fields of a time entry.

    Used both for the settled values of an entry and for a pending change
    request, so the two versions always have the same shape.
    """

    clock_in: datetime | None = None
    clock_out: datetime | None = None
    breaks: tuple[Break, ...] = ()
    admin_notes: str | None = None
    is_sick_day: bool = False
    is_half_sick_day: bool = False
    is_vacation_day: bool = False
    pending_approval: bool = False

    @property
    def is_full_off_day(self) -> bool:
        """Sick or vacation; half-sick still carries work data."""
        return self.is_sick_day or self.is_vacation_day

    @property
    def open_break(self) -> Break | None:
        for b in self.breaks:
            if b.is_open:
                return b
        return None

    def sorted_breaks(self) -> list[Break]:
        return sorted(self.breaks, key=lambda b: b.start_time)

    def with_changes(self, **changes: Any) -> EntryFields:
        if "breaks" in changes:
            changes["breaks"] = tuple(changes["breaks"] or ())
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "clock_in": self.clock_in.isoformat() if self.clock_in else None,
            "clock_out": self.clock_out.isoformat() if self.clock_out else None,
            "breaks": [b.to_dict() for b in self.breaks],
            "admin_notes": self.admin_notes,
            "is_sick_day": self.is_sick_day,
            "is_half_sick_day": self.is_half_sick_day,
            "is_vacation_day": self.is_vacation_day,
            "pending_approval": self.pending_approval,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntryFields:
        """Build fields from a stored payload; missing keys keep their defaults."""
        changes: dict[str, Any] = {}
        if "clock_in" in data:
            changes["clock_in"] = _parse_dt(data["clock_in"])
        if "clock_out" in data:
            changes["clock_out"] = _parse_dt(data["clock_out"])
        if "breaks" in data:
            changes["breaks"] = tuple(
                b if isinstance(b, Break) else Break.from_dict(b)
                for b in data["breaks"] or ()
            )
        for key in (
            "admin_notes",
            "is_sick_day",
            "is_half_sick_day",
            "is_vacation_day",
            "pending_approval",
        ):
            if key in data:
                value = data[key]
                changes[key] = value if key == "admin_notes" else bool(value)
        return cls().with_changes(**changes)


@dataclass(frozen=True)
class TimeEntry:
    """One employee's record for one calendar day.

    ``current`` holds the settled values; ``pending`` holds an
    employee-proposed replacement awaiting admin review.
    """

    employee_id: UUID
    date: str  # YYYY-MM-DD in the business timezone
    current: EntryFields = field(default_factory=EntryFields)
    pending: EntryFields | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def has_change_request(self) -> bool:
        return self.pending is not None

    @property
    def is_pending_vacation_request(self) -> bool:
        return self.current.pending_approval and not self.current.is_vacation_day

    def with_current(self, fields: EntryFields) -> TimeEntry:
        return replace(self, current=fields)

    def with_pending(self, fields: EntryFields | None) -> TimeEntry:
        return replace(self, pending=fields)

    def settled(self) -> TimeEntry:
        """The entry with no change request attached."""
        return replace(self, pending=None)


@dataclass(frozen=True)
class Employee:
    """Identity and compensation/policy record."""

    name: str
    role: str = ""
    email: str | None = None
    hourly_rate: Decimal | None = None
    vacation_days_total: int = 10
    is_admin: bool = False
    is_bookkeeper: bool = False
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)
    user_id: UUID | None = None
    invitation_token: str | None = None
    invitation_expires_at: datetime | None = None
    invitation_accepted_at: datetime | None = None

    @property
    def is_tracked_worker(self) -> bool:
        """Admins and bookkeepers do not clock in."""
        return not (self.is_admin or self.is_bookkeeper)


@dataclass(frozen=True)
class AppSettings:
    """Per-tenant configuration."""

    company_name: str = "My Company"
    bookkeeper_email: str = ""
    owner_name: str = ""
    owner_email: str = ""
    company_logo_url: str | None = None
    half_day_sick_cutoff_time: str = "12:00"


@dataclass(frozen=True)
class DerivedStats:
    """Computed worked/break minutes and issues for one day."""

    total_worked_minutes: int = 0
    total_break_minutes: int = 0
    issues: tuple[IssueType, ...] = ()


@dataclass
class PeriodSummary:
    """Payroll totals for one employee over a period."""

    employee: Employee
    total_minutes: int = 0
    days_worked: int = 0
    sick_days: Decimal = Decimal("0")
    vacation_days: int = 0
    has_issues: bool = False
    total_pay: Decimal = Decimal("0.00")

    @property
    def total_hours(self) -> Decimal:
        return (Decimal(self.total_minutes) / Decimal(60)).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class DailySummary:
    """One employee's entry and stats for a single day."""

    employee: Employee
    entry: TimeEntry | None
    stats: DerivedStats


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
