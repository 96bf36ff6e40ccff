"""Timesheet service - command/query orchestrator over one tenant's data.

Every command follows the same sequence:

1. validate against the cached state (raises before any write)
2. write through the repository (PersistenceError leaves state untouched)
3. update the cached state from the value that was written
4. queue domain events in an outbox that is drained after the write

Notification failures come back as ``CommandResult.warnings``; they never
undo the write. Role checks happen at the API boundary, not here.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from timesheet_engine.calculators.aggregation import (
    entries_in_period,
    generate_csv,
    summarize_period,
    total_payroll,
    vacation_days_remaining,
)
from timesheet_engine.calculators.stats import calculate_stats
from timesheet_engine.calculators.time_math import (
    format_date_for_display,
    format_duration,
    generate_date_range,
    is_before_cutoff,
    is_date_in_past,
    local_date_key,
    now_in_business_tz,
    parse_clock_time,
    shift_date_key,
)
from timesheet_engine.calculators.types import (
    AppSettings,
    Break,
    DailySummary,
    Employee,
    EntryFields,
    OffDayKind,
    PeriodSummary,
    TimeEntry,
)
from timesheet_engine.config import Settings, get_settings
from timesheet_engine.events import (
    AsyncEventBatch,
    AsyncEventEmitter,
    ChangeRequestResolved,
    ChangeRequestSubmitted,
    EmployeeInvited,
    EventMetadata,
    MissingClockOutDetected,
    PeriodReportRequested,
    ReportLine,
    VacationRequested,
    VacationRequestResolved,
)
from timesheet_engine.notifications.mailer import is_valid_email
from timesheet_engine.services.errors import (
    EmployeeNotFoundError,
    EntryNotFoundError,
    EntryValidationError,
    InvalidInputError,
    InvalidTransitionError,
    NoPendingRequestError,
)
from timesheet_engine.services.reconciliation import (
    change_request_summary,
    classify_pending,
    format_minutes_delta,
    worked_minutes_delta,
)
from timesheet_engine.services.repository import TimesheetRepository
from timesheet_engine.services.state_machine import (
    DayAction,
    DayStatus,
    DayStatusMachine,
    day_status,
    find_blocking_entry,
    is_blocking_entry,
)
from timesheet_engine.services.validation import prepare_for_save, set_off_day

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MARK_ACTIONS = {
    OffDayKind.SICK: DayAction.MARK_SICK,
    OffDayKind.HALF_SICK: DayAction.MARK_HALF_SICK,
    OffDayKind.VACATION: DayAction.MARK_VACATION,
}

_STATUS_FOR_KIND = {
    OffDayKind.SICK: DayStatus.SICK,
    OffDayKind.HALF_SICK: DayStatus.HALF_SICK,
    OffDayKind.VACATION: DayStatus.VACATION,
}

DENIED_CHANGE_NOTE = "Your change request has been denied."


def _reject_pending_vacation(
    entry: TimeEntry | None, status: DayStatus, action: DayAction
) -> None:
    if entry is not None and entry.is_pending_vacation_request:
        raise InvalidTransitionError(
            status.value, action.value, reason="today has a pending vacation request"
        )


@dataclass
class TimesheetState:
    """In-memory mirror of the tenant's records.

    Only ever updated from values the repository has accepted.
    """

    employees: dict[UUID, Employee] = field(default_factory=dict)
    entries: dict[UUID, TimeEntry] = field(default_factory=dict)
    settings: AppSettings = field(default_factory=AppSettings)
    # (entry_id, day the alert went out)
    alerted_missing_clock_outs: set[tuple[UUID, str]] = field(default_factory=set)
    since: str | None = None  # first date key covered by ``entries``
    loaded: bool = False

    def entry_for(self, employee_id: UUID, date: str) -> TimeEntry | None:
        for entry in self.entries.values():
            if entry.employee_id == employee_id and entry.date == date:
                return entry
        return None

    def entries_for(self, employee_id: UUID) -> list[TimeEntry]:
        return sorted(
            (e for e in self.entries.values() if e.employee_id == employee_id),
            key=lambda e: e.date,
        )

    def put_entry(self, entry: TimeEntry) -> None:
        self.entries[entry.id] = entry

    def drop_entry(self, entry_id: UUID) -> None:
        self.entries.pop(entry_id, None)


@dataclass(frozen=True)
class CommandResult(Generic[T]):
    """Value written by a command plus any non-fatal notification warnings."""

    value: T
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass(frozen=True)
class PendingReview:
    """An entry awaiting an admin decision."""

    entry: TimeEntry
    employee: Employee | None
    kind: str  # 'vacation_request' | 'change_request'
    minutes_delta: int = 0
    delta_label: str = ""


class TimesheetService:
    """Commands and queries for one tenant.

    Operations:
    - clock_in / clock_out / start_break / end_break: employee's own day
    - set_off_day: mark or clear sick, half-sick or vacation for today
    - save_entry: admin direct edit (resolves any change request)
    - submit/approve/deny change requests (by entry, or by date for a
      day with nothing recorded), request/approve/deny vacation
    - employee lifecycle and invitations, settings, payroll reports,
      missing clock-out alerts
    """

    def __init__(
        self,
        repository: TimesheetRepository,
        emitter: AsyncEventEmitter | None = None,
        *,
        actor_id: UUID | None = None,
        actor_type: str = "employee",
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
        state: TimesheetState | None = None,
    ):
        self.repository = repository
        self.emitter = emitter or AsyncEventEmitter()
        self.tenant_id = repository.tenant_id
        self.actor_id = actor_id
        self.actor_type = actor_type
        self.config = settings or get_settings()
        self._clock = clock or (lambda: now_in_business_tz(self.config.tz))
        self.state = state or TimesheetState()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> str:
        return local_date_key(self.now(), self.config.tz)

    def _metadata(self, correlation_id: UUID) -> EventMetadata:
        return EventMetadata.create(
            tenant_id=self.tenant_id,
            correlation_id=correlation_id,
            actor_id=self.actor_id,
            actor_type=self.actor_type,
        )

    def _outbox(self) -> AsyncEventBatch:
        return self.emitter.batch()

    @staticmethod
    def _result(value: T, outbox: AsyncEventBatch) -> CommandResult[T]:
        warnings = tuple(
            f"Saved, but a notification failed: {error}" for error in outbox.errors
        )
        for warning in warnings:
            logger.warning(warning)
        return CommandResult(value=value, warnings=warnings)

    async def _ensure_loaded(self) -> None:
        if not self.state.loaded:
            await self.load()

    def _employee(self, employee_id: UUID) -> Employee:
        employee = self.state.employees.get(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(f"Employee {employee_id} not found")
        return employee

    def _entry(self, entry_id: UUID) -> TimeEntry:
        entry = self.state.entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Time entry {entry_id} not found")
        return entry

    def _admin_contact(self) -> tuple[str | None, str]:
        app_settings = self.state.settings
        return app_settings.owner_email or None, app_settings.owner_name or "Admin"

    async def _entries_since(self, since: str) -> Iterable[TimeEntry]:
        """Cached entries, or a store read when ``since`` predates the cache."""
        if self.state.since is not None and since < self.state.since:
            return await self.repository.list_entries(since=since)
        return list(self.state.entries.values())

    async def _write_entry(self, entry: TimeEntry) -> TimeEntry:
        await self.repository.save_entry(entry)
        self.state.put_entry(entry)
        return entry

    def _reject_if_blocked(self, employee_id: UUID, status: DayStatus, action: str) -> None:
        """Refuse own-day commands while a past day is missing its clock-out."""
        blocking = find_blocking_entry(self.state.entries.values(), employee_id, self.today())
        if blocking is not None:
            raise InvalidTransitionError(
                status.value,
                action,
                reason=(
                    f"the entry for {format_date_for_display(blocking.date)} has no "
                    "clock-out; submit a change request for it first"
                ),
            )

    def _open_day(self, employee_id: UUID, action: DayAction) -> TimeEntry:
        """Today's entry, once ``action`` is known to be allowed on it."""
        entry = self.state.entry_for(employee_id, self.today())
        status = day_status(entry)
        self._reject_if_blocked(employee_id, status, action.value)
        DayStatusMachine.validate_action(status, action)
        if entry is None:
            raise InvalidTransitionError(
                status.value, action.value, reason="nothing recorded today"
            )
        return entry

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, since: str | None = None) -> TimesheetState:
        """Load employees, settings and the bounded entry history."""
        since = since or shift_date_key(self.today(), -self.config.history_days)
        employees = await self.repository.list_employees()
        entries = await self.repository.list_entries(since=since)
        app_settings = await self.repository.get_settings()

        self.state.employees = {e.id: e for e in employees}
        self.state.entries = {e.id: e for e in entries}
        self.state.settings = app_settings
        self.state.since = since
        self.state.loaded = True
        logger.info(
            "Loaded %d employees and %d entries since %s for tenant %s",
            len(employees),
            len(entries),
            since,
            self.tenant_id,
        )
        return self.state

    # ------------------------------------------------------------------
    # Employee's own day
    # ------------------------------------------------------------------

    async def clock_in(self, employee_id: UUID) -> CommandResult[TimeEntry]:
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        today = self.today()
        existing = self.state.entry_for(employee_id, today)
        status = day_status(existing)

        self._reject_if_blocked(employee_id, status, DayAction.CLOCK_IN.value)
        DayStatusMachine.validate_action(status, DayAction.CLOCK_IN)
        _reject_pending_vacation(existing, status, DayAction.CLOCK_IN)

        now = self.now()
        if existing is not None:
            # Row left behind by a cleared off-day toggle
            fields = existing.current.with_changes(
                clock_in=now, is_sick_day=False, is_vacation_day=False
            )
            entry = existing.with_current(prepare_for_save(fields))
        else:
            entry = TimeEntry(
                employee_id=employee_id,
                date=today,
                current=prepare_for_save(EntryFields(clock_in=now)),
            )

        async with self._outbox() as outbox:
            await self._write_entry(entry)
        logger.info("%s clocked in on %s", employee.name, today)
        return self._result(entry, outbox)

    async def clock_out(self, employee_id: UUID) -> CommandResult[TimeEntry]:
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        entry = self._open_day(employee_id, DayAction.CLOCK_OUT)

        fields = prepare_for_save(entry.current.with_changes(clock_out=self.now()))
        updated = entry.with_current(fields)
        async with self._outbox() as outbox:
            await self._write_entry(updated)
        logger.info("%s clocked out on %s", employee.name, updated.date)
        return self._result(updated, outbox)

    async def start_break(self, employee_id: UUID) -> CommandResult[TimeEntry]:
        await self._ensure_loaded()
        self._employee(employee_id)
        entry = self._open_day(employee_id, DayAction.START_BREAK)

        breaks = list(entry.current.breaks) + [Break(start_time=self.now())]
        fields = prepare_for_save(entry.current.with_changes(breaks=breaks))
        updated = entry.with_current(fields)
        async with self._outbox() as outbox:
            await self._write_entry(updated)
        return self._result(updated, outbox)

    async def end_break(self, employee_id: UUID) -> CommandResult[TimeEntry]:
        await self._ensure_loaded()
        self._employee(employee_id)
        entry = self._open_day(employee_id, DayAction.END_BREAK)

        now = self.now()
        breaks = [
            replace(b, end_time=now) if b.is_open else b for b in entry.current.breaks
        ]
        fields = prepare_for_save(entry.current.with_changes(breaks=breaks))
        updated = entry.with_current(fields)
        async with self._outbox() as outbox:
            await self._write_entry(updated)
        return self._result(updated, outbox)

    async def set_off_day(
        self, employee_id: UUID, kind: OffDayKind, on: bool = True
    ) -> CommandResult[TimeEntry]:
        """Mark or clear today's sick, half-sick or vacation flag.

        Marking half-sick while working closes the shift at the current
        time. Half-sick changes are only allowed before the tenant's
        cutoff time.
        """
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        kind = OffDayKind(kind)
        today = self.today()
        now = self.now()
        existing = self.state.entry_for(employee_id, today)
        status = day_status(existing)
        action = _MARK_ACTIONS[kind] if on else DayAction.CLEAR_OFF_DAY

        self._reject_if_blocked(employee_id, status, action.value)
        DayStatusMachine.validate_action(status, action)
        _reject_pending_vacation(existing, status, action)
        if not on and status != _STATUS_FOR_KIND[kind]:
            raise InvalidTransitionError(
                status.value, action.value, reason=f"today is not marked {kind.value}"
            )
        if kind == OffDayKind.HALF_SICK:
            cutoff = self.state.settings.half_day_sick_cutoff_time
            if not is_before_cutoff(cutoff, now, self.config.tz):
                raise InvalidTransitionError(
                    status.value,
                    action.value,
                    reason=f"half-day sick leave is only available before {cutoff}",
                )

        base = existing.current if existing is not None else EntryFields()
        if on and kind == OffDayKind.HALF_SICK and status == DayStatus.WORKING:
            base = base.with_changes(clock_out=now)
        fields = prepare_for_save(set_off_day(base, kind, on))
        if existing is not None:
            entry = existing.with_current(fields)
        else:
            entry = TimeEntry(employee_id=employee_id, date=today, current=fields)

        async with self._outbox() as outbox:
            await self._write_entry(entry)
        logger.info(
            "%s %s %s for %s", employee.name, "marked" if on else "cleared", kind.value, today
        )
        return self._result(entry, outbox)

    # ------------------------------------------------------------------
    # Admin edits and change requests
    # ------------------------------------------------------------------

    async def save_entry(self, entry: TimeEntry) -> CommandResult[TimeEntry]:
        """Admin direct edit or backfill.

        Any pending change request is cleared; if one existed the employee
        is told it was approved.
        """
        await self._ensure_loaded()
        employee = self._employee(entry.employee_id)
        clash = self.state.entry_for(entry.employee_id, entry.date)
        if clash is not None and clash.id != entry.id:
            raise EntryValidationError("An entry already exists for this employee and date.")

        previous = self.state.entries.get(entry.id)
        saved = TimeEntry(
            id=entry.id,
            employee_id=entry.employee_id,
            date=entry.date,
            current=prepare_for_save(entry.current),
            pending=None,
        )

        async with self._outbox() as outbox:
            await self._write_entry(saved)
            if previous is not None and previous.has_change_request:
                outbox.add(
                    ChangeRequestResolved(
                        metadata=self._metadata(saved.id),
                        entry_id=saved.id,
                        employee_id=employee.id,
                        employee_name=employee.name,
                        employee_email=employee.email,
                        entry_date=saved.date,
                        status="approved",
                        admin_notes=saved.current.admin_notes,
                    )
                )
        logger.info("Entry %s for %s on %s saved", saved.id, employee.name, saved.date)
        return self._result(saved, outbox)

    async def submit_change_request(
        self, entry_id: UUID, proposed: EntryFields
    ) -> CommandResult[TimeEntry]:
        """Attach a proposed replacement to an existing entry.

        Submitting is enough to lift a missing clock-out block.
        """
        await self._ensure_loaded()
        return await self._attach_proposal(self._entry(entry_id), proposed)

    async def request_change_for_date(
        self, employee_id: UUID, date: str, proposed: EntryFields
    ) -> CommandResult[TimeEntry]:
        """Propose values for a day, whether or not anything was recorded.

        A day with no entry gets one with empty settled values and the
        proposal attached, so a fully forgotten day can still be claimed.
        """
        await self._ensure_loaded()
        self._employee(employee_id)
        if date > self.today():
            raise InvalidInputError("Cannot request changes for future dates")
        existing = self.state.entry_for(employee_id, date)
        if existing is None:
            existing = TimeEntry(employee_id=employee_id, date=date)
        return await self._attach_proposal(existing, proposed)

    async def _attach_proposal(
        self, entry: TimeEntry, proposed: EntryFields
    ) -> CommandResult[TimeEntry]:
        employee = self._employee(entry.employee_id)
        # Only an admin-created vacation row may carry pending_approval
        proposal = prepare_for_save(proposed.with_changes(pending_approval=False))
        updated = entry.with_pending(proposal)
        admin_email, admin_name = self._admin_contact()

        async with self._outbox() as outbox:
            await self._write_entry(updated)
            outbox.add(
                ChangeRequestSubmitted(
                    metadata=self._metadata(entry.id),
                    entry_id=entry.id,
                    employee_id=employee.id,
                    employee_name=employee.name,
                    entry_date=entry.date,
                    request_summary=change_request_summary(proposal, self.config.tz),
                    admin_email=admin_email,
                    admin_name=admin_name,
                )
            )
        logger.info("Change request submitted for entry %s (%s)", entry.id, entry.date)
        return self._result(updated, outbox)

    async def approve_change_request(
        self, entry_id: UUID, adjusted: EntryFields | None = None
    ) -> CommandResult[TimeEntry]:
        """Apply the proposal (optionally as adjusted by the admin)."""
        await self._ensure_loaded()
        entry = self._entry(entry_id)
        if entry.pending is None:
            raise NoPendingRequestError(f"Entry {entry_id} has no change request")
        employee = self._employee(entry.employee_id)

        approved = prepare_for_save(adjusted if adjusted is not None else entry.pending)
        updated = TimeEntry(
            id=entry.id, employee_id=entry.employee_id, date=entry.date, current=approved
        )
        async with self._outbox() as outbox:
            await self._write_entry(updated)
            outbox.add(
                ChangeRequestResolved(
                    metadata=self._metadata(entry.id),
                    entry_id=entry.id,
                    employee_id=employee.id,
                    employee_name=employee.name,
                    employee_email=employee.email,
                    entry_date=entry.date,
                    status="approved",
                    admin_notes=approved.admin_notes,
                )
            )
        logger.info("Change request approved for entry %s", entry.id)
        return self._result(updated, outbox)

    async def deny_change_request(self, entry_id: UUID) -> CommandResult[TimeEntry]:
        """Drop the proposal and keep the original values."""
        await self._ensure_loaded()
        entry = self._entry(entry_id)
        if entry.pending is None:
            raise NoPendingRequestError(f"Entry {entry_id} has no change request")
        employee = self._employee(entry.employee_id)

        updated = entry.settled()
        async with self._outbox() as outbox:
            await self._write_entry(updated)
            outbox.add(
                ChangeRequestResolved(
                    metadata=self._metadata(entry.id),
                    entry_id=entry.id,
                    employee_id=employee.id,
                    employee_name=employee.name,
                    employee_email=employee.email,
                    entry_date=entry.date,
                    status="rejected",
                    admin_notes=DENIED_CHANGE_NOTE,
                )
            )
        logger.info("Change request denied for entry %s", entry.id)
        return self._result(updated, outbox)

    async def delete_entry(self, entry_id: UUID) -> CommandResult[UUID]:
        await self._ensure_loaded()
        entry = self._entry(entry_id)
        async with self._outbox() as outbox:
            await self.repository.delete_entry(entry.id)
            self.state.drop_entry(entry.id)
        logger.info("Entry %s (%s) deleted", entry.id, entry.date)
        return self._result(entry.id, outbox)

    # ------------------------------------------------------------------
    # Vacation requests
    # ------------------------------------------------------------------

    async def request_vacation(
        self, employee_id: UUID, start_date: str, end_date: str
    ) -> CommandResult[list[TimeEntry]]:
        """Create one pending entry per day in [start_date, end_date]."""
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        if end_date < start_date:
            raise InvalidInputError("End date must be on or after start date")
        if is_date_in_past(start_date, self.today()):
            raise InvalidInputError("Cannot request vacation for past dates")
        today_status = day_status(self.state.entry_for(employee_id, self.today()))
        self._reject_if_blocked(employee_id, today_status, "request_vacation")

        dates = generate_date_range(start_date, end_date)
        existing = {
            e.date: e for e in self.state.entries_for(employee_id) if e.date in set(dates)
        }
        conflicts = [
            e
            for e in existing.values()
            if e.current.clock_in is not None
            or e.current.is_sick_day
            or e.current.is_half_sick_day
            or e.current.is_vacation_day
            or e.current.pending_approval
        ]
        if conflicts:
            listed = ", ".join(format_date_for_display(e.date) for e in conflicts)
            raise InvalidInputError(f"You already have entries for: {listed}")

        note = (
            f"Vacation request: {format_date_for_display(start_date)} - "
            f"{format_date_for_display(end_date)}"
        )
        requested = EntryFields(pending_approval=True, admin_notes=note)
        entries = [
            existing[day].with_current(requested)
            if day in existing
            else TimeEntry(employee_id=employee_id, date=day, current=requested)
            for day in dates
        ]
        admin_email, admin_name = self._admin_contact()

        async with self._outbox() as outbox:
            await self.repository.save_entries(entries)
            for entry in entries:
                self.state.put_entry(entry)
            outbox.add(
                VacationRequested(
                    metadata=self._metadata(uuid4()),
                    employee_id=employee.id,
                    employee_name=employee.name,
                    start_date=start_date,
                    end_date=end_date,
                    days_count=len(dates),
                    admin_email=admin_email,
                    admin_name=admin_name,
                )
            )
        logger.info(
            "%s requested vacation %s..%s (%d days)", employee.name, start_date, end_date, len(dates)
        )
        return self._result(entries, outbox)

    def _pending_vacation(self, entry_id: UUID) -> TimeEntry:
        entry = self._entry(entry_id)
        if not entry.is_pending_vacation_request:
            raise NoPendingRequestError("This is not a pending vacation request")
        return entry

    def _vacation_resolved(self, entry: TimeEntry, status: str) -> VacationRequestResolved:
        employee = self._employee(entry.employee_id)
        return VacationRequestResolved(
            metadata=self._metadata(entry.id),
            entry_id=entry.id,
            employee_id=employee.id,
            employee_name=employee.name,
            employee_email=employee.email,
            entry_date=entry.date,
            status=status,
        )

    async def approve_vacation_request(self, entry_id: UUID) -> CommandResult[TimeEntry]:
        await self._ensure_loaded()
        entry = self._pending_vacation(entry_id)
        fields = prepare_for_save(
            entry.current.with_changes(
                pending_approval=False,
                is_vacation_day=True,
                is_sick_day=False,
                is_half_sick_day=False,
            )
        )
        updated = entry.with_current(fields)
        async with self._outbox() as outbox:
            await self._write_entry(updated)
            outbox.add(self._vacation_resolved(updated, "approved"))
        logger.info("Vacation approved for entry %s (%s)", entry.id, entry.date)
        return self._result(updated, outbox)

    async def deny_vacation_request(self, entry_id: UUID) -> CommandResult[UUID]:
        """Denial removes the pending entry entirely."""
        await self._ensure_loaded()
        entry = self._pending_vacation(entry_id)
        event = self._vacation_resolved(entry, "rejected")
        async with self._outbox() as outbox:
            await self.repository.delete_entry(entry.id)
            self.state.drop_entry(entry.id)
            outbox.add(event)
        logger.info("Vacation denied for entry %s (%s)", entry.id, entry.date)
        return self._result(entry.id, outbox)

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    @staticmethod
    def _check_employee(employee: Employee) -> None:
        if not employee.name.strip():
            raise InvalidInputError("Employee name is required")
        if employee.is_admin and employee.is_bookkeeper:
            raise InvalidInputError("An employee cannot be both admin and bookkeeper")
        if employee.hourly_rate is not None and employee.hourly_rate < 0:
            raise InvalidInputError("Hourly rate cannot be negative")
        if employee.vacation_days_total < 0:
            raise InvalidInputError("Vacation days cannot be negative")
        if employee.email and not is_valid_email(employee.email):
            raise InvalidInputError(f"Invalid email address: {employee.email}")

    def _invited(self, employee: Employee) -> EmployeeInvited:
        app_settings = self.state.settings
        return EmployeeInvited(
            metadata=self._metadata(employee.id),
            employee_id=employee.id,
            employee_name=employee.name,
            employee_email=employee.email or "",
            role=employee.role,
            company_name=app_settings.company_name,
            company_logo_url=app_settings.company_logo_url,
            invitation_token=employee.invitation_token or "",
        )

    async def add_employee(
        self,
        name: str,
        *,
        email: str | None = None,
        role: str = "",
        hourly_rate: Decimal | None = None,
        vacation_days_total: int = 10,
        is_admin: bool = False,
        is_bookkeeper: bool = False,
    ) -> CommandResult[Employee]:
        """Create an employee; one with an email gets an invitation."""
        await self._ensure_loaded()
        employee = Employee(
            name=name.strip(),
            email=(email or "").strip() or None,
            role=role,
            hourly_rate=hourly_rate,
            vacation_days_total=vacation_days_total,
            is_admin=is_admin,
            is_bookkeeper=is_bookkeeper,
            invitation_token=secrets.token_urlsafe(32),
            invitation_expires_at=self.now() + timedelta(days=self.config.invitation_ttl_days),
        )
        self._check_employee(employee)

        async with self._outbox() as outbox:
            await self.repository.save_employee(employee)
            self.state.employees[employee.id] = employee
            if employee.email:
                outbox.add(self._invited(employee))
        logger.info("Employee %s added", employee.name)
        return self._result(employee, outbox)

    async def update_employee(self, employee_id: UUID, **changes: Any) -> CommandResult[Employee]:
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        allowed = {
            "name",
            "email",
            "role",
            "hourly_rate",
            "vacation_days_total",
            "is_admin",
            "is_bookkeeper",
            "is_active",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidInputError(f"Cannot update employee fields: {', '.join(sorted(unknown))}")
        if "email" in changes:
            changes["email"] = (changes["email"] or "").strip() or None
        updated = replace(employee, **changes)
        self._check_employee(updated)

        async with self._outbox() as outbox:
            await self.repository.save_employee(updated)
            self.state.employees[updated.id] = updated
        logger.info("Employee %s updated", updated.name)
        return self._result(updated, outbox)

    async def toggle_employee_status(self, employee_id: UUID) -> CommandResult[Employee]:
        """Archive or restore; archived employees keep their history."""
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        return await self.update_employee(employee_id, is_active=not employee.is_active)

    async def resend_invitation(self, employee_id: UUID) -> CommandResult[Employee]:
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        if not employee.email:
            raise InvalidInputError("Employee has no email address")
        if employee.user_id is not None or employee.invitation_accepted_at is not None:
            raise InvalidInputError("Employee has already accepted the invitation")

        refreshed = replace(
            employee,
            invitation_token=employee.invitation_token or secrets.token_urlsafe(32),
            invitation_expires_at=self.now() + timedelta(days=self.config.invitation_ttl_days),
        )
        async with self._outbox() as outbox:
            await self.repository.save_employee(refreshed)
            self.state.employees[refreshed.id] = refreshed
            outbox.add(self._invited(refreshed))
        logger.info("Invitation re-sent to %s", refreshed.email)
        return self._result(refreshed, outbox)

    async def accept_invitation(self, token: str, user_id: UUID) -> CommandResult[Employee]:
        """Link a login account to the employee the token was issued for."""
        await self._ensure_loaded()
        employee = await self.repository.get_employee_by_token(token) if token else None
        if employee is None:
            raise InvalidInputError("Invalid or expired invitation link")
        if employee.invitation_accepted_at is not None:
            raise InvalidInputError("This invitation has already been used.")
        if employee.invitation_expires_at is not None and employee.invitation_expires_at < self.now():
            raise InvalidInputError(
                "This invitation has expired. Please contact your employer for a new invitation."
            )

        accepted = replace(employee, user_id=user_id, invitation_accepted_at=self.now())
        async with self._outbox() as outbox:
            await self.repository.save_employee(accepted)
            self.state.employees[accepted.id] = accepted
        logger.info("%s accepted their invitation", accepted.name)
        return self._result(accepted, outbox)

    # ------------------------------------------------------------------
    # Settings and reporting
    # ------------------------------------------------------------------

    async def update_settings(self, app_settings: AppSettings) -> CommandResult[AppSettings]:
        await self._ensure_loaded()
        try:
            parse_clock_time(app_settings.half_day_sick_cutoff_time)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        for label, address in (
            ("bookkeeper", app_settings.bookkeeper_email),
            ("owner", app_settings.owner_email),
        ):
            if address and not is_valid_email(address):
                raise InvalidInputError(f"Invalid {label} email address")

        async with self._outbox() as outbox:
            await self.repository.save_settings(app_settings)
            self.state.settings = app_settings
        logger.info("Settings updated for tenant %s", self.tenant_id)
        return self._result(app_settings, outbox)

    async def send_period_report(
        self, period_start: str, period_end: str
    ) -> CommandResult[list[PeriodSummary]]:
        """Email the period's payroll summary to the bookkeeper."""
        await self._ensure_loaded()
        app_settings = self.state.settings
        if not is_valid_email(app_settings.bookkeeper_email):
            raise InvalidInputError("Set a valid bookkeeper email in settings first")

        summaries = await self.period_summaries(period_start, period_end)
        lines = tuple(
            ReportLine(
                name=s.employee.name,
                role=s.employee.role,
                hours=format_duration(s.total_minutes),
                days_worked=s.days_worked,
                sick_days=s.sick_days,
                vacation_days=s.vacation_days,
                total_pay=s.total_pay,
            )
            for s in summaries
        )
        async with self._outbox() as outbox:
            outbox.add(
                PeriodReportRequested(
                    metadata=self._metadata(uuid4()),
                    bookkeeper_email=app_settings.bookkeeper_email,
                    owner_email=app_settings.owner_email or None,
                    company_name=app_settings.company_name,
                    period_start=period_start,
                    period_end=period_end,
                    lines=lines,
                    total_payroll=total_payroll(summaries),
                )
            )
        logger.info("Period report %s..%s requested", period_start, period_end)
        return self._result(summaries, outbox)

    async def check_missing_clock_outs(
        self, today: str | None = None
    ) -> CommandResult[list[TimeEntry]]:
        """Alert employees about past entries left open.

        Each entry is alerted at most once per day.
        """
        await self._ensure_loaded()
        today = today or self.today()
        alerted: list[TimeEntry] = []
        async with self._outbox() as outbox:
            for entry in sorted(self.state.entries.values(), key=lambda e: (e.date, str(e.id))):
                if not is_blocking_entry(entry, today):
                    continue
                key = (entry.id, today)
                if key in self.state.alerted_missing_clock_outs:
                    continue
                employee = self.state.employees.get(entry.employee_id)
                if employee is None or not employee.is_active or not employee.email:
                    continue
                outbox.add(
                    MissingClockOutDetected(
                        metadata=self._metadata(entry.id),
                        entry_id=entry.id,
                        employee_id=employee.id,
                        employee_name=employee.name,
                        employee_email=employee.email,
                        entry_date=entry.date,
                    )
                )
                self.state.alerted_missing_clock_outs.add(key)
                alerted.append(entry)
        if alerted:
            logger.info("Missing clock-out alerts queued for %d entries", len(alerted))
        return self._result(alerted, outbox)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_entry(self, entry_id: UUID) -> TimeEntry:
        await self._ensure_loaded()
        entry = self.state.entries.get(entry_id)
        if entry is None:
            entry = await self.repository.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Time entry {entry_id} not found")
        return entry

    async def get_employee(self, employee_id: UUID) -> Employee:
        await self._ensure_loaded()
        return self._employee(employee_id)

    async def list_employees(self, include_archived: bool = True) -> list[Employee]:
        await self._ensure_loaded()
        employees = sorted(self.state.employees.values(), key=lambda e: e.name.casefold())
        if include_archived:
            return employees
        return [e for e in employees if e.is_active]

    async def app_settings(self) -> AppSettings:
        await self._ensure_loaded()
        return self.state.settings

    async def entries_between(
        self, period_start: str, period_end: str, employee_id: UUID | None = None
    ) -> list[TimeEntry]:
        await self._ensure_loaded()
        entries = entries_in_period(
            await self._entries_since(period_start), period_start, period_end
        )
        if employee_id is not None:
            entries = [e for e in entries if e.employee_id == employee_id]
        return sorted(entries, key=lambda e: (e.date, str(e.employee_id)))

    async def entry_for(self, employee_id: UUID, date: str | None = None) -> TimeEntry | None:
        await self._ensure_loaded()
        return self.state.entry_for(employee_id, date or self.today())

    async def day_status_for(self, employee_id: UUID) -> DayStatus:
        return day_status(await self.entry_for(employee_id))

    async def allowed_actions_for(self, employee_id: UUID) -> frozenset[DayAction]:
        """Actions available today; none while a past entry is blocking."""
        if await self.blocking_entry_for(employee_id) is not None:
            return frozenset()
        return DayStatusMachine.allowed_actions(await self.day_status_for(employee_id))

    async def blocking_entry_for(self, employee_id: UUID) -> TimeEntry | None:
        await self._ensure_loaded()
        return find_blocking_entry(self.state.entries.values(), employee_id, self.today())

    async def pending_reviews(self) -> list[PendingReview]:
        """Vacation and change requests awaiting an admin, oldest first."""
        await self._ensure_loaded()
        reviews = []
        for entry in sorted(self.state.entries.values(), key=lambda e: (e.date, str(e.id))):
            kind = classify_pending(entry)
            if kind is not None:
                delta = (
                    worked_minutes_delta(entry, now=self.now(), today=self.today())
                    if kind == "change_request"
                    else 0
                )
                reviews.append(
                    PendingReview(
                        entry=entry,
                        employee=self.state.employees.get(entry.employee_id),
                        kind=kind,
                        minutes_delta=delta,
                        delta_label=format_minutes_delta(delta),
                    )
                )
        return reviews

    async def period_summaries(self, period_start: str, period_end: str) -> list[PeriodSummary]:
        await self._ensure_loaded()
        return summarize_period(
            self.state.employees.values(),
            await self._entries_since(period_start),
            period_start,
            period_end,
            now=self.now(),
            today=self.today(),
        )

    async def daily_summaries(self, date: str | None = None) -> list[DailySummary]:
        """One row per active tracked employee for the day."""
        await self._ensure_loaded()
        date = date or self.today()
        now, today = self.now(), self.today()
        rows = []
        for employee in sorted(self.state.employees.values(), key=lambda e: e.name.casefold()):
            if not employee.is_active or not employee.is_tracked_worker:
                continue
            entry = self.state.entry_for(employee.id, date)
            rows.append(
                DailySummary(
                    employee=employee,
                    entry=entry,
                    stats=calculate_stats(entry, now=now, today=today),
                )
            )
        return rows

    async def export_csv(self, period_start: str, period_end: str) -> str:
        """Daily timesheet CSV for every recorded entry in the period."""
        await self._ensure_loaded()
        now, today = self.now(), self.today()
        rows = []
        for entry in entries_in_period(
            await self._entries_since(period_start), period_start, period_end
        ):
            employee = self.state.employees.get(entry.employee_id)
            if employee is None or not employee.is_tracked_worker:
                continue
            rows.append(
                DailySummary(
                    employee=employee,
                    entry=entry,
                    stats=calculate_stats(entry, now=now, today=today),
                )
            )
        rows.sort(key=lambda r: (r.entry.date if r.entry else "", r.employee.name.casefold()))
        return generate_csv(rows, self.config.tz)

    async def vacation_balance(self, employee_id: UUID) -> int:
        """Vacation days left in the current calendar year."""
        await self._ensure_loaded()
        employee = self._employee(employee_id)
        year = self.today()[:4]
        this_year = await self.repository.list_entries(
            since=f"{year}-01-01", employee_id=employee_id
        )
        return vacation_days_remaining(
            employee, [e for e in this_year if e.date.startswith(year)]
        )
