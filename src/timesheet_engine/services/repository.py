"""Tenant-scoped persistence for employees, time entries and settings.

Rows are converted to the frozen domain types at this boundary so the
rest of the package never touches ORM objects. All timestamps are written
in UTC; SQLite hands them back naive, so reads re-attach UTC.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.calculators.time_math import business_tz
from timesheet_engine.calculators.types import (
    AppSettings,
    Break,
    Employee,
    EntryFields,
    TimeEntry,
)
from timesheet_engine.models import (
    BreakRecord,
    EmployeeRecord,
    SettingsRecord,
    TimeEntryRecord,
)
from timesheet_engine.services.errors import PersistenceError

logger = logging.getLogger(__name__)


def _to_storage(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=business_tz())
    return moment.astimezone(timezone.utc)


def _from_storage(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _fields_to_json(fields: EntryFields) -> dict:
    data = fields.to_dict()
    data["clock_in"] = _iso(fields.clock_in)
    data["clock_out"] = _iso(fields.clock_out)
    data["breaks"] = [
        {
            "id": str(b.id),
            "start_time": _iso(b.start_time),
            "end_time": _iso(b.end_time),
            "type": b.type,
        }
        for b in fields.breaks
    ]
    return data


def _iso(moment: datetime | None) -> str | None:
    stored = _to_storage(moment)
    return stored.isoformat() if stored else None


def _employee_from_record(row: EmployeeRecord) -> Employee:
    return Employee(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        email=row.email,
        role=row.role or "",
        hourly_rate=row.hourly_rate,
        vacation_days_total=row.vacation_days_total,
        is_admin=row.is_admin,
        is_bookkeeper=row.is_bookkeeper,
        is_active=row.is_active,
        invitation_token=row.invitation_token,
        invitation_expires_at=_from_storage(row.invitation_expires_at),
        invitation_accepted_at=_from_storage(row.invitation_accepted_at),
    )


def _entry_from_record(row: TimeEntryRecord) -> TimeEntry:
    current = EntryFields(
        clock_in=_from_storage(row.clock_in),
        clock_out=_from_storage(row.clock_out),
        breaks=tuple(
            Break(
                id=b.id,
                start_time=_from_storage(b.start_time),
                end_time=_from_storage(b.end_time),
                type=b.break_type,
            )
            for b in row.breaks
        ),
        admin_notes=row.admin_notes,
        is_sick_day=row.is_sick_day,
        is_half_sick_day=row.is_half_sick_day,
        is_vacation_day=row.is_vacation_day,
        pending_approval=row.pending_approval,
    )
    pending = EntryFields.from_dict(row.change_request) if row.change_request else None
    return TimeEntry(
        id=row.id,
        employee_id=row.employee_id,
        date=row.date,
        current=current,
        pending=pending,
    )


def _settings_from_record(row: SettingsRecord) -> AppSettings:
    return AppSettings(
        company_name=row.company_name,
        bookkeeper_email=row.bookkeeper_email,
        owner_name=row.owner_name,
        owner_email=row.owner_email,
        company_logo_url=row.company_logo_url,
        half_day_sick_cutoff_time=row.half_day_sick_cutoff_time,
    )


class TimesheetRepository:
    """Reads and writes one tenant's records.

    Every write commits on success and rolls back on failure; store
    failures surface as PersistenceError.
    """

    def __init__(self, session: AsyncSession, tenant_id: UUID):
        self.session = session
        self.tenant_id = tenant_id

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Write failed during %s: %s", operation, e)
            raise PersistenceError(f"Could not {operation}") from e

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def list_employees(self) -> list[Employee]:
        result = await self.session.execute(
            select(EmployeeRecord)
            .where(EmployeeRecord.tenant_id == self.tenant_id)
            .order_by(EmployeeRecord.name)
        )
        return [_employee_from_record(row) for row in result.scalars().all()]

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        row = await self._employee_row(employee_id)
        return _employee_from_record(row) if row else None

    async def get_employee_by_token(self, token: str) -> Employee | None:
        result = await self.session.execute(
            select(EmployeeRecord).where(
                EmployeeRecord.tenant_id == self.tenant_id,
                EmployeeRecord.invitation_token == token,
            )
        )
        row = result.scalar_one_or_none()
        return _employee_from_record(row) if row else None

    async def _employee_row(self, employee_id: UUID) -> EmployeeRecord | None:
        result = await self.session.execute(
            select(EmployeeRecord).where(
                EmployeeRecord.tenant_id == self.tenant_id,
                EmployeeRecord.id == employee_id,
            )
        )
        return result.scalar_one_or_none()

    async def save_employee(self, employee: Employee) -> Employee:
        """Insert or update an employee."""
        try:
            row = await self._employee_row(employee.id)
            if row is None:
                row = EmployeeRecord(id=employee.id, tenant_id=self.tenant_id)
                self.session.add(row)
            row.user_id = employee.user_id
            row.name = employee.name
            row.email = employee.email
            row.role = employee.role
            row.hourly_rate = employee.hourly_rate
            row.vacation_days_total = employee.vacation_days_total
            row.is_admin = employee.is_admin
            row.is_bookkeeper = employee.is_bookkeeper
            row.is_active = employee.is_active
            row.invitation_token = employee.invitation_token
            row.invitation_expires_at = _to_storage(employee.invitation_expires_at)
            row.invitation_accepted_at = _to_storage(employee.invitation_accepted_at)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError("Could not save employee") from e
        await self._commit("save employee")
        return employee

    # ------------------------------------------------------------------
    # Time entries
    # ------------------------------------------------------------------

    async def list_entries(
        self,
        since: str | None = None,
        employee_id: UUID | None = None,
    ) -> list[TimeEntry]:
        """Entries ordered by date, optionally from ``since`` onward."""
        stmt = select(TimeEntryRecord).where(TimeEntryRecord.tenant_id == self.tenant_id)
        if since is not None:
            stmt = stmt.where(TimeEntryRecord.date >= since)
        if employee_id is not None:
            stmt = stmt.where(TimeEntryRecord.employee_id == employee_id)
        result = await self.session.execute(
            stmt.order_by(TimeEntryRecord.date).execution_options(populate_existing=True)
        )
        return [_entry_from_record(row) for row in result.scalars().all()]

    async def get_entry(self, entry_id: UUID) -> TimeEntry | None:
        row = await self._entry_row(entry_id)
        return _entry_from_record(row) if row else None

    async def _entry_row(self, entry_id: UUID) -> TimeEntryRecord | None:
        result = await self.session.execute(
            select(TimeEntryRecord).where(
                TimeEntryRecord.tenant_id == self.tenant_id,
                TimeEntryRecord.id == entry_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _stage_entry(self, entry: TimeEntry) -> None:
        fields = entry.current
        row = await self._entry_row(entry.id)
        if row is None:
            row = TimeEntryRecord(
                id=entry.id,
                tenant_id=self.tenant_id,
                employee_id=entry.employee_id,
                date=entry.date,
            )
            self.session.add(row)
        row.clock_in = _to_storage(fields.clock_in)
        row.clock_out = _to_storage(fields.clock_out)
        row.admin_notes = fields.admin_notes
        row.is_sick_day = fields.is_sick_day
        row.is_half_sick_day = fields.is_half_sick_day
        row.is_vacation_day = fields.is_vacation_day
        row.pending_approval = fields.pending_approval
        row.change_request = _fields_to_json(entry.pending) if entry.pending else None

        # Replace the break set: drop rows no longer present, upsert the rest
        existing = {b.id: b for b in row.breaks}
        wanted = {b.id for b in fields.breaks}
        for break_id, record in existing.items():
            if break_id not in wanted:
                row.breaks.remove(record)
        for b in fields.breaks:
            record = existing.get(b.id)
            if record is None:
                record = BreakRecord(id=b.id, tenant_id=self.tenant_id)
                row.breaks.append(record)
            record.start_time = _to_storage(b.start_time)
            record.end_time = _to_storage(b.end_time)
            record.break_type = b.type
        await self.session.flush()

    async def save_entry(self, entry: TimeEntry) -> TimeEntry:
        """Upsert the entry row together with its breaks."""
        await self.save_entries([entry])
        return entry

    async def save_entries(self, entries: list[TimeEntry]) -> list[TimeEntry]:
        """Upsert several entries in one transaction."""
        try:
            for entry in entries:
                await self._stage_entry(entry)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Saving %d entries failed: %s", len(entries), e)
            raise PersistenceError("Could not save time entry") from e
        await self._commit("save time entry")
        return entries

    async def delete_entry(self, entry_id: UUID) -> None:
        try:
            await self.session.execute(
                delete(BreakRecord).where(
                    BreakRecord.tenant_id == self.tenant_id,
                    BreakRecord.time_entry_id == entry_id,
                )
            )
            await self.session.execute(
                delete(TimeEntryRecord).where(
                    TimeEntryRecord.tenant_id == self.tenant_id,
                    TimeEntryRecord.id == entry_id,
                )
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError("Could not delete time entry") from e
        await self._commit("delete time entry")
        self.session.expire_all()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> AppSettings:
        row = await self.session.get(SettingsRecord, self.tenant_id)
        return _settings_from_record(row) if row else AppSettings()

    async def save_settings(self, app_settings: AppSettings) -> AppSettings:
        try:
            row = await self.session.get(SettingsRecord, self.tenant_id)
            if row is None:
                row = SettingsRecord(tenant_id=self.tenant_id)
                self.session.add(row)
            row.company_name = app_settings.company_name
            row.bookkeeper_email = app_settings.bookkeeper_email
            row.owner_name = app_settings.owner_name
            row.owner_email = app_settings.owner_email
            row.company_logo_url = app_settings.company_logo_url
            row.half_day_sick_cutoff_time = app_settings.half_day_sick_cutoff_time
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError("Could not save settings") from e
        await self._commit("save settings")
        return app_settings
