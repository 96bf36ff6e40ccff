"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from timesheet_engine.calculators.types import (
    AppSettings,
    Break,
    EntryFields,
    IssueType,
    OffDayKind,
    TimeEntry,
)
from timesheet_engine.services.state_machine import DayAction, DayStatus, day_status
from timesheet_engine.services.timesheet_service import CommandResult

T = TypeVar("T")


# ============================================================================
# Base schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str


class CommandResponse(BaseModel, Generic[T]):
    """Value written by a command plus notification warnings."""

    value: T
    warnings: list[str] = Field(default_factory=list)


# ============================================================================
# Time entry schemas
# ============================================================================


class BreakSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    start_time: datetime
    end_time: datetime | None = None
    type: str = "unpaid"

    def to_break(self) -> Break:
        if self.id is None:
            return Break(start_time=self.start_time, end_time=self.end_time, type=self.type)
        return Break(
            id=self.id, start_time=self.start_time, end_time=self.end_time, type=self.type
        )


class EntryFieldsSchema(BaseModel):
    """Settled values of an entry, or a proposed replacement."""

    model_config = ConfigDict(from_attributes=True)

    clock_in: datetime | None = None
    clock_out: datetime | None = None
    breaks: list[BreakSchema] = Field(default_factory=list)
    admin_notes: str | None = None
    is_sick_day: bool = False
    is_half_sick_day: bool = False
    is_vacation_day: bool = False
    pending_approval: bool = False

    def to_fields(self) -> EntryFields:
        return EntryFields(
            clock_in=self.clock_in,
            clock_out=self.clock_out,
            breaks=tuple(b.to_break() for b in self.breaks),
            admin_notes=self.admin_notes,
            is_sick_day=self.is_sick_day,
            is_half_sick_day=self.is_half_sick_day,
            is_vacation_day=self.is_vacation_day,
            pending_approval=self.pending_approval,
        )


class EntrySave(BaseModel):
    """Admin direct edit or backfill; omit ``id`` to create."""

    id: UUID | None = None
    employee_id: UUID
    date: date
    current: EntryFieldsSchema

    def to_entry(self) -> TimeEntry:
        entry = TimeEntry(
            employee_id=self.employee_id,
            date=self.date.isoformat(),
            current=self.current.to_fields(),
        )
        if self.id is not None:
            return TimeEntry(
                id=self.id, employee_id=entry.employee_id, date=entry.date, current=entry.current
            )
        return entry


class EntryResponse(BaseModel):
    """Schema for time entry response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    date: str
    current: EntryFieldsSchema
    pending: EntryFieldsSchema | None = None
    status: DayStatus

    @classmethod
    def from_entry(cls, entry: TimeEntry) -> EntryResponse:
        return cls(
            id=entry.id,
            employee_id=entry.employee_id,
            date=entry.date,
            current=EntryFieldsSchema.model_validate(entry.current),
            pending=(
                EntryFieldsSchema.model_validate(entry.pending) if entry.pending else None
            ),
            status=day_status(entry),
        )


class StatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_worked_minutes: int
    total_break_minutes: int
    issues: list[IssueType]


class TodayResponse(BaseModel):
    """The actor's own day: status, allowed actions and any blocker."""

    date: str
    status: DayStatus
    allowed_actions: list[DayAction]
    entry: EntryResponse | None = None
    stats: StatsResponse
    blocking_entry: EntryResponse | None = None


class OffDayRequest(BaseModel):
    kind: OffDayKind
    on: bool = True


class VacationRequestCreate(BaseModel):
    start_date: date
    end_date: date


class ChangeRequestCreate(BaseModel):
    """Proposed values for one of the actor's days, recorded or not."""

    date: date
    proposed: EntryFieldsSchema


# ============================================================================
# Employee schemas
# ============================================================================


class EmployeeCreate(BaseModel):
    """Schema for adding an employee."""

    name: str = Field(min_length=1)
    email: str | None = None
    role: str = ""
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    vacation_days_total: int = Field(default=10, ge=0)
    is_admin: bool = False
    is_bookkeeper: bool = False


class EmployeeUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""

    name: str | None = None
    email: str | None = None
    role: str | None = None
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    vacation_days_total: int | None = Field(default=None, ge=0)
    is_admin: bool | None = None
    is_bookkeeper: bool | None = None
    is_active: bool | None = None


class EmployeeResponse(BaseModel):
    """Schema for employee response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str
    email: str | None = None
    hourly_rate: Decimal | None = None
    vacation_days_total: int
    is_admin: bool
    is_bookkeeper: bool
    is_active: bool
    user_id: UUID | None = None
    invitation_expires_at: datetime | None = None
    invitation_accepted_at: datetime | None = None


class InvitationAccept(BaseModel):
    """Schema for accepting an invitation from its emailed link."""

    token: str = Field(..., min_length=1)
    user_id: UUID


class VacationBalanceResponse(BaseModel):
    employee_id: UUID
    year: int
    total: int
    remaining: int


# ============================================================================
# Review and reporting schemas
# ============================================================================


class PendingReviewResponse(BaseModel):
    kind: str
    entry: EntryResponse
    employee: EmployeeResponse | None = None
    minutes_delta: int = 0
    delta_label: str = ""


class DailySummaryResponse(BaseModel):
    employee: EmployeeResponse
    entry: EntryResponse | None = None
    stats: StatsResponse


class PeriodSummaryResponse(BaseModel):
    """Schema for one employee's period totals."""

    model_config = ConfigDict(from_attributes=True)

    employee: EmployeeResponse
    total_minutes: int
    total_hours: Decimal
    days_worked: int
    sick_days: Decimal
    vacation_days: int
    has_issues: bool
    total_pay: Decimal


class PeriodReportResponse(BaseModel):
    period_start: date
    period_end: date
    summaries: list[PeriodSummaryResponse]
    total_payroll: Decimal


class MissingClockOutResponse(BaseModel):
    alerted: list[EntryResponse]


# ============================================================================
# Settings schemas
# ============================================================================


class SettingsSchema(BaseModel):
    """Per-tenant settings."""

    model_config = ConfigDict(from_attributes=True)

    company_name: str = "My Company"
    bookkeeper_email: str = ""
    owner_name: str = ""
    owner_email: str = ""
    company_logo_url: str | None = None
    half_day_sick_cutoff_time: str = "12:00"

    def to_settings(self) -> AppSettings:
        return AppSettings(**self.model_dump())


# ============================================================================
# Email endpoint schemas
# ============================================================================


class EmailPayload(BaseModel):
    """Camel-case request bodies; presence is checked by the route."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def missing(self, *names: str) -> list[str]:
        return [name for name in names if getattr(self, name) in (None, "")]


class ReportLinePayload(EmailPayload):
    name: str
    role: str = ""
    hours: str = "0:00"
    days_worked: int = 0
    sick_days: Decimal = Decimal("0")
    vacation_days: int = 0
    total_pay: Decimal = Decimal("0")


class BookkeeperEmailRequest(EmailPayload):
    bookkeeper_email: str | None = None
    owner_email: str | None = None
    company_name: str | None = None
    period_start: str | None = None
    period_end: str | None = None
    employees: list[ReportLinePayload] | None = None
    total_payroll: Decimal | None = None


class InviteEmailRequest(EmailPayload):
    employee_email: str | None = None
    employee_name: str | None = None
    company_name: str | None = None
    role: str | None = None
    app_url: str | None = None
    company_logo_url: str | None = None
    invitation_token: str | None = None


class MissingClockoutEmailRequest(EmailPayload):
    employee_email: str | None = None
    employee_name: str | None = None
    date: str | None = None
    app_url: str | None = None


class ChangeRequestEmailRequest(EmailPayload):
    admin_email: str | None = None
    admin_name: str | None = None
    employee_name: str | None = None
    date: str | None = None
    request_summary: str | None = None
    app_url: str | None = None


class ChangeApprovalEmailRequest(EmailPayload):
    employee_email: str | None = None
    employee_name: str | None = None
    date: str | None = None
    status: str | None = None
    admin_notes: str | None = None


class EmailResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message_id: str | None = None
    error: str | None = None


# ============================================================================
# Command result helpers
# ============================================================================


def entry_result(result: CommandResult[TimeEntry]) -> CommandResponse[EntryResponse]:
    return CommandResponse[EntryResponse](
        value=EntryResponse.from_entry(result.value), warnings=list(result.warnings)
    )


def id_result(result: CommandResult[UUID]) -> CommandResponse[UUID]:
    return CommandResponse[UUID](value=result.value, warnings=list(result.warnings))
