"""Tests for the timesheet service commands and queries."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from timesheet_engine.calculators.stats import calculate_stats
from timesheet_engine.calculators.types import (
    AppSettings,
    EntryFields,
    IssueType,
    OffDayKind,
    TimeEntry,
)
from timesheet_engine.events import AsyncEventEmitter
from timesheet_engine.notifications import LoggingMailer, NotificationDispatcher
from timesheet_engine.services.errors import (
    EmployeeNotFoundError,
    EntryNotFoundError,
    EntryValidationError,
    InvalidInputError,
    InvalidTransitionError,
    NoPendingRequestError,
    PersistenceError,
)
from timesheet_engine.services.state_machine import DayStatus
from timesheet_engine.services.timesheet_service import TimesheetService

UTC = timezone.utc


def _jan(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


@pytest.fixture
async def configured(service):
    """Tenant settings with owner and bookkeeper contacts."""
    result = await service.update_settings(
        AppSettings(
            company_name="Acme",
            owner_name="Olive",
            owner_email="owner@example.com",
            bookkeeper_email="books@example.com",
        )
    )
    return result.value


class TestClockFlow:
    """Test an employee's own day."""

    async def test_full_day(self, service, worker, clock):
        await service.clock_in(worker.id)
        assert await service.day_status_for(worker.id) == DayStatus.WORKING

        clock.advance(hours=3)
        await service.start_break(worker.id)
        assert await service.day_status_for(worker.id) == DayStatus.BREAK

        clock.advance(minutes=30)
        await service.end_break(worker.id)
        assert await service.day_status_for(worker.id) == DayStatus.WORKING

        clock.advance(hours=4)
        result = await service.clock_out(worker.id)

        assert result.ok
        assert await service.day_status_for(worker.id) == DayStatus.DONE
        [row] = await service.daily_summaries()
        assert row.stats.total_worked_minutes == 420
        assert row.stats.total_break_minutes == 30

    async def test_clock_in_twice(self, service, worker):
        await service.clock_in(worker.id)
        with pytest.raises(InvalidTransitionError):
            await service.clock_in(worker.id)

    async def test_clock_out_while_idle(self, service, worker):
        with pytest.raises(InvalidTransitionError):
            await service.clock_out(worker.id)

    @pytest.mark.parametrize("command", ["clock_out", "start_break", "end_break"])
    async def test_day_actions_need_an_entry(self, service, worker, command):
        with pytest.raises(InvalidTransitionError, match="idle"):
            await getattr(service, command)(worker.id)
        assert await service.entry_for(worker.id) is None

    async def test_clock_out_during_break(self, service, worker, clock):
        await service.clock_in(worker.id)
        clock.advance(hours=1)
        await service.start_break(worker.id)
        with pytest.raises(InvalidTransitionError):
            await service.clock_out(worker.id)

    async def test_unknown_employee(self, service):
        with pytest.raises(EmployeeNotFoundError):
            await service.clock_in(uuid4())

    async def test_state_unchanged_when_write_fails(self, service, worker, monkeypatch):
        async def failing(entry):
            raise PersistenceError("Could not save time entry")

        monkeypatch.setattr(service.repository, "save_entry", failing)

        with pytest.raises(PersistenceError):
            await service.clock_in(worker.id)
        assert await service.entry_for(worker.id) is None


class TestOffDays:
    """Test sick, half-sick and vacation toggles for today."""

    async def test_mark_and_clear_sick(self, service, worker):
        result = await service.set_off_day(worker.id, OffDayKind.SICK)
        assert result.value.current.is_sick_day is True
        assert await service.day_status_for(worker.id) == DayStatus.SICK

        await service.set_off_day(worker.id, OffDayKind.SICK, on=False)
        assert await service.day_status_for(worker.id) == DayStatus.IDLE

    async def test_clock_in_after_cleared_toggle(self, service, worker):
        """The empty row left by a cleared toggle is reused."""
        marked = await service.set_off_day(worker.id, OffDayKind.VACATION)
        await service.set_off_day(worker.id, OffDayKind.VACATION, on=False)
        result = await service.clock_in(worker.id)
        assert result.value.id == marked.value.id

    async def test_sick_not_allowed_mid_shift(self, service, worker):
        await service.clock_in(worker.id)
        with pytest.raises(InvalidTransitionError):
            await service.set_off_day(worker.id, OffDayKind.SICK)

    async def test_half_sick_closes_shift(self, service, worker, clock):
        await service.clock_in(worker.id)
        clock.advance(hours=2)
        result = await service.set_off_day(worker.id, OffDayKind.HALF_SICK)

        fields = result.value.current
        assert fields.is_half_sick_day is True
        assert fields.clock_out == _jan(15, 11)
        assert await service.day_status_for(worker.id) == DayStatus.HALF_SICK

        await service.set_off_day(worker.id, OffDayKind.HALF_SICK, on=False)
        assert await service.day_status_for(worker.id) == DayStatus.DONE

    async def test_half_sick_after_cutoff(self, service, worker, clock):
        clock.set(_jan(15, 13))
        with pytest.raises(InvalidTransitionError, match="12:00"):
            await service.set_off_day(worker.id, OffDayKind.HALF_SICK)

    async def test_clear_wrong_kind(self, service, worker):
        await service.set_off_day(worker.id, OffDayKind.SICK)
        with pytest.raises(InvalidTransitionError):
            await service.set_off_day(worker.id, OffDayKind.VACATION, on=False)


class TestBlockingAndChangeRequests:
    """Test the missing clock-out block and change request review."""

    async def _forgotten_clock_out(self, service, worker, clock) -> TimeEntry:
        result = await service.clock_in(worker.id)
        clock.set(_jan(16, 9))
        return result.value

    async def test_open_yesterday_blocks_today(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)

        assert (await service.blocking_entry_for(worker.id)).id == forgotten.id
        assert await service.allowed_actions_for(worker.id) == frozenset()
        with pytest.raises(InvalidTransitionError, match="Mon, Jan 15"):
            await service.clock_in(worker.id)

    @pytest.mark.parametrize(
        "command, args",
        [
            ("set_off_day", (OffDayKind.SICK,)),
            ("set_off_day", (OffDayKind.HALF_SICK,)),
            ("set_off_day", (OffDayKind.VACATION,)),
            ("start_break", ()),
            ("end_break", ()),
            ("clock_out", ()),
            ("request_vacation", ("2024-01-20", "2024-01-22")),
        ],
    )
    async def test_open_yesterday_blocks_every_own_day_action(
        self, service, worker, clock, command, args
    ):
        await self._forgotten_clock_out(service, worker, clock)

        with pytest.raises(InvalidTransitionError, match="Mon, Jan 15"):
            await getattr(service, command)(worker.id, *args)
        assert await service.entry_for(worker.id) is None

    async def test_change_request_unblocks_off_days(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        await service.submit_change_request(
            forgotten.id, EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))
        )

        result = await service.set_off_day(worker.id, OffDayKind.SICK)

        assert result.value.date == "2024-01-16"
        assert await service.day_status_for(worker.id) == DayStatus.SICK

    async def test_change_request_unblocks(self, service, worker, clock, configured, mailer):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        proposal = EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))

        result = await service.submit_change_request(forgotten.id, proposal)

        assert result.value.pending == proposal
        assert result.value.current.clock_out is None
        assert await service.blocking_entry_for(worker.id) is None
        await service.clock_in(worker.id)

        notice = mailer.sent[-1]
        assert notice.to == "owner@example.com"
        assert notice.subject == "Timecard Change Request from Dana Fox"
        assert "Clock in: 9:00 am, Clock out: 5:00 pm" in notice.html

    async def test_invalid_proposal_rejected(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        proposal = EntryFields(clock_in=_jan(15, 17), clock_out=_jan(15, 9))

        with pytest.raises(EntryValidationError):
            await service.submit_change_request(forgotten.id, proposal)
        assert (await service.get_entry(forgotten.id)).pending is None

    async def test_approve(self, service, worker, clock, mailer):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        proposal = EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))
        await service.submit_change_request(forgotten.id, proposal)

        [review] = await service.pending_reviews()
        assert review.kind == "change_request"
        # The open shift counted up to now, so approving shortens it
        assert review.delta_label == "-16 hours"

        result = await service.approve_change_request(forgotten.id)

        assert result.value.current == proposal
        assert result.value.pending is None
        assert mailer.sent[-1].subject == "Timecard Approved for Mon, Jan 15"
        assert await service.pending_reviews() == []

    async def test_approve_with_adjustment(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        await service.submit_change_request(
            forgotten.id, EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))
        )
        adjusted = EntryFields(
            clock_in=_jan(15, 9), clock_out=_jan(15, 16), admin_notes="Left at four"
        )

        result = await service.approve_change_request(forgotten.id, adjusted)

        assert result.value.current.clock_out == _jan(15, 16)
        assert result.value.current.admin_notes == "Left at four"

    async def test_deny(self, service, worker, clock, mailer):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        await service.submit_change_request(
            forgotten.id, EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))
        )

        result = await service.deny_change_request(forgotten.id)

        assert result.value.pending is None
        assert result.value.current.clock_out is None
        assert mailer.sent[-1].subject == "Timecard Update for Mon, Jan 15"
        # Denied, so the day blocks again
        assert await service.blocking_entry_for(worker.id) is not None

    async def test_nothing_to_review(self, service, worker):
        entry = (await service.clock_in(worker.id)).value
        with pytest.raises(NoPendingRequestError):
            await service.approve_change_request(entry.id)
        with pytest.raises(NoPendingRequestError):
            await service.deny_change_request(entry.id)

    async def test_proposal_cannot_become_vacation_request(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        proposal = EntryFields(
            clock_in=_jan(15, 9), clock_out=_jan(15, 17), pending_approval=True
        )

        submitted = await service.submit_change_request(forgotten.id, proposal)
        assert submitted.value.pending.pending_approval is False

        approved = await service.approve_change_request(forgotten.id)

        assert approved.value.current.pending_approval is False
        assert not approved.value.is_pending_vacation_request
        assert await service.pending_reviews() == []

    async def test_change_request_for_unrecorded_day(
        self, service, worker, configured, mailer
    ):
        proposal = EntryFields(clock_in=_jan(12, 9), clock_out=_jan(12, 17))

        result = await service.request_change_for_date(worker.id, "2024-01-12", proposal)

        entry = result.value
        assert entry.date == "2024-01-12"
        assert entry.current == EntryFields()
        assert entry.pending == proposal
        stats = calculate_stats(entry, now=service.now(), today=service.today())
        assert stats.issues == (IssueType.CHANGE_REQUESTED,)
        assert mailer.sent[-1].subject == "Timecard Change Request from Dana Fox"

        [review] = await service.pending_reviews()
        assert review.kind == "change_request"
        approved = await service.approve_change_request(entry.id)
        assert approved.value.current == proposal

    async def test_change_request_by_date_reuses_entry(self, service, worker, clock):
        forgotten = await self._forgotten_clock_out(service, worker, clock)
        proposal = EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))

        result = await service.request_change_for_date(worker.id, "2024-01-15", proposal)

        assert result.value.id == forgotten.id
        assert result.value.current.clock_in == forgotten.current.clock_in
        assert result.value.pending == proposal
        assert await service.blocking_entry_for(worker.id) is None

    async def test_change_request_for_future_day(self, service, worker):
        with pytest.raises(InvalidInputError, match="future"):
            await service.request_change_for_date(
                worker.id, "2024-01-20", EntryFields(is_sick_day=True)
            )


class TestAdminEdits:
    """Test direct saves and deletes."""

    async def test_backfill(self, service, worker):
        entry = TimeEntry(
            employee_id=worker.id,
            date="2024-01-12",
            current=EntryFields(clock_in=_jan(12, 9), clock_out=_jan(12, 17)),
        )
        result = await service.save_entry(entry)
        assert (await service.get_entry(entry.id)).current == result.value.current

    async def test_one_entry_per_day(self, service, worker):
        await service.clock_in(worker.id)
        duplicate = TimeEntry(employee_id=worker.id, date="2024-01-15")
        with pytest.raises(EntryValidationError):
            await service.save_entry(duplicate)

    async def test_edit_resolves_change_request(self, service, worker, clock, mailer):
        forgotten = (await service.clock_in(worker.id)).value
        clock.set(_jan(16, 9))
        await service.submit_change_request(
            forgotten.id, EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 17))
        )
        edited = forgotten.with_current(
            EntryFields(clock_in=_jan(15, 9), clock_out=_jan(15, 15))
        )

        result = await service.save_entry(edited)

        assert result.value.pending is None
        assert mailer.sent[-1].subject == "Timecard Approved for Mon, Jan 15"

    async def test_sick_edit_drops_clock_data(self, service, worker):
        entry = TimeEntry(
            employee_id=worker.id,
            date="2024-01-12",
            current=EntryFields(is_sick_day=True, clock_in=_jan(12, 9)),
        )
        result = await service.save_entry(entry)
        assert result.value.current.clock_in is None

    async def test_delete(self, service, worker):
        entry = (await service.clock_in(worker.id)).value
        await service.delete_entry(entry.id)

        with pytest.raises(EntryNotFoundError):
            await service.get_entry(entry.id)
        assert await service.day_status_for(worker.id) == DayStatus.IDLE


class TestVacation:
    """Test vacation requests and their review."""

    async def test_request_approve_deny(self, service, worker, configured, mailer):
        result = await service.request_vacation(worker.id, "2024-01-20", "2024-01-22")

        assert [e.date for e in result.value] == ["2024-01-20", "2024-01-21", "2024-01-22"]
        assert mailer.sent[-1].subject == "Vacation Request from Dana Fox"
        reviews = await service.pending_reviews()
        assert [r.kind for r in reviews] == ["vacation_request"] * 3

        first, second, _ = result.value
        approved = await service.approve_vacation_request(first.id)
        assert approved.value.current.is_vacation_day is True
        assert approved.value.current.pending_approval is False
        assert mailer.sent[-1].subject == "Vacation Approved for Sat, Jan 20"

        await service.deny_vacation_request(second.id)
        with pytest.raises(EntryNotFoundError):
            await service.get_entry(second.id)
        assert mailer.sent[-1].subject == "Vacation Request Update for Sun, Jan 21"

        assert await service.vacation_balance(worker.id) == 9

    async def test_past_dates(self, service, worker):
        with pytest.raises(InvalidInputError):
            await service.request_vacation(worker.id, "2024-01-14", "2024-01-16")

    async def test_reversed_range(self, service, worker):
        with pytest.raises(InvalidInputError):
            await service.request_vacation(worker.id, "2024-01-22", "2024-01-20")

    async def test_conflicting_entry(self, service, worker):
        await service.clock_in(worker.id)
        with pytest.raises(InvalidInputError, match="Mon, Jan 15"):
            await service.request_vacation(worker.id, "2024-01-15", "2024-01-16")

    async def test_pending_today_blocks_clock_in(self, service, worker):
        await service.request_vacation(worker.id, "2024-01-15", "2024-01-15")
        with pytest.raises(InvalidTransitionError, match="pending vacation"):
            await service.clock_in(worker.id)

    async def test_approve_non_request(self, service, worker):
        entry = (await service.clock_in(worker.id)).value
        with pytest.raises(NoPendingRequestError):
            await service.approve_vacation_request(entry.id)


class TestEmployees:
    """Test employee lifecycle."""

    async def test_invitation_sent(self, worker, mailer):
        invite = mailer.sent[0]
        assert invite.to == "dana@example.com"
        assert invite.subject == "Welcome to My Company - Get Started with Timesheets"
        assert worker.invitation_token in invite.html
        assert worker.invitation_expires_at == datetime(2024, 1, 22, 9, 0, tzinfo=UTC)

    async def test_no_email_no_invitation(self, service, mailer):
        await service.add_employee("Walk In")
        assert mailer.sent == []

    @pytest.mark.parametrize(
        ("name", "kwargs"),
        [
            ("  ", {}),
            ("Dana", {"email": "not-an-email"}),
            ("Dana", {"is_admin": True, "is_bookkeeper": True}),
            ("Dana", {"hourly_rate": Decimal("-1")}),
        ],
    )
    async def test_invalid_employee(self, service, name, kwargs):
        with pytest.raises(InvalidInputError):
            await service.add_employee(name, **kwargs)

    async def test_update(self, service, worker):
        result = await service.update_employee(worker.id, role="Lead", hourly_rate=None)
        assert result.value.role == "Lead"
        assert result.value.hourly_rate is None

    async def test_update_unknown_field(self, service, worker):
        with pytest.raises(InvalidInputError):
            await service.update_employee(worker.id, invitation_token="x")

    async def test_toggle_status(self, service, worker):
        archived = await service.toggle_employee_status(worker.id)
        assert archived.value.is_active is False
        assert [e.name for e in await service.list_employees(include_archived=False)] == []

        restored = await service.toggle_employee_status(worker.id)
        assert restored.value.is_active is True

    async def test_resend_invitation(self, service, worker, mailer, clock):
        clock.advance(days=3)
        result = await service.resend_invitation(worker.id)

        assert result.value.invitation_token == worker.invitation_token
        assert result.value.invitation_expires_at == _jan(25, 9)
        assert len(mailer.sent) == 2

    async def test_resend_needs_email(self, service):
        walk_in = (await service.add_employee("Walk In")).value
        with pytest.raises(InvalidInputError):
            await service.resend_invitation(walk_in.id)

    async def test_accept_invitation(self, service, worker):
        user_id = uuid4()
        result = await service.accept_invitation(worker.invitation_token, user_id)

        assert result.value.user_id == user_id
        assert result.value.invitation_accepted_at == _jan(15, 9)
        with pytest.raises(InvalidInputError, match="already been used"):
            await service.accept_invitation(worker.invitation_token, uuid4())
        with pytest.raises(InvalidInputError):
            await service.resend_invitation(worker.id)

    async def test_expired_invitation(self, service, worker, clock):
        clock.advance(days=8)
        with pytest.raises(InvalidInputError, match="expired"):
            await service.accept_invitation(worker.invitation_token, uuid4())

    async def test_unknown_token(self, service):
        with pytest.raises(InvalidInputError, match="Invalid"):
            await service.accept_invitation("bogus", uuid4())


class TestSettingsAndReports:
    """Test tenant settings, payroll reports and alerts."""

    async def test_invalid_cutoff(self, service):
        with pytest.raises(InvalidInputError):
            await service.update_settings(AppSettings(half_day_sick_cutoff_time="25:00"))

    async def test_invalid_bookkeeper_email(self, service):
        with pytest.raises(InvalidInputError):
            await service.update_settings(AppSettings(bookkeeper_email="books"))

    async def test_period_summaries_exclude_admin(self, service, worker, admin, clock):
        await service.clock_in(worker.id)
        await service.clock_in(admin.id)
        clock.advance(hours=4)
        await service.clock_out(worker.id)

        [summary] = await service.period_summaries("2024-01-15", "2024-01-21")

        assert summary.employee.id == worker.id
        assert summary.total_minutes == 240
        assert summary.total_pay == Decimal("80.00")

    async def test_send_period_report(self, service, worker, configured, clock, mailer):
        await service.clock_in(worker.id)
        clock.advance(hours=4)
        await service.clock_out(worker.id)

        result = await service.send_period_report("2024-01-15", "2024-01-21")

        assert result.ok
        report = mailer.sent[-1]
        assert report.to == "books@example.com"
        assert report.sender_name == "Acme Timesheets"
        assert report.subject == "Acme: Timesheet Report (Mon, Jan 15 - Sun, Jan 21)"
        assert "$80.00" in report.html

    async def test_report_needs_bookkeeper(self, service, worker):
        with pytest.raises(InvalidInputError):
            await service.send_period_report("2024-01-15", "2024-01-21")

    async def test_export_csv(self, service, worker, clock):
        await service.clock_in(worker.id)
        clock.advance(hours=8)
        await service.clock_out(worker.id)

        csv_text = await service.export_csv("2024-01-15", "2024-01-21")
        header, row = csv_text.strip().splitlines()

        assert header.startswith("Date,Employee,Role")
        assert row.startswith("2024-01-15,Dana Fox,Barista,9:00 am,5:00 pm")
        assert IssueType.LONG_SHIFT_NO_BREAK.value in row

    async def test_missing_clock_out_alerts_once(self, service, worker, clock, mailer):
        await service.clock_in(worker.id)
        clock.set(_jan(16, 8))

        first = await service.check_missing_clock_outs()
        second = await service.check_missing_clock_outs()

        assert len(first.value) == 1
        assert second.value == []
        assert mailer.sent[-1].subject == "Action Required: Missing Clock Out for Mon, Jan 15"

    async def test_notification_failure_is_a_warning(
        self, repository, clock, settings
    ):
        emitter = AsyncEventEmitter()
        NotificationDispatcher(LoggingMailer(fail=True), settings.frontend_url).register(emitter)
        service = TimesheetService(repository, emitter, clock=clock, settings=settings)

        result = await service.add_employee("Dana Fox", email="dana@example.com")

        assert not result.ok
        assert "notification failed" in result.warnings[0]
        assert await repository.get_employee(result.value.id) is not None


class TestLoading:
    """Test the cached history window."""

    async def test_old_entries_outside_window(self, service, worker, repository, clock):
        old = TimeEntry(
            employee_id=worker.id,
            date="2023-09-01",
            current=EntryFields(clock_in=datetime(2023, 9, 1, 9, tzinfo=UTC)),
        )
        await repository.save_entry(old)

        state = await service.load()

        assert old.id not in state.entries
        assert state.since == "2023-10-17"
        # Reports reaching back past the window still read the store
        rows = await service.entries_between("2023-09-01", "2023-09-30")
        assert [e.id for e in rows] == [old.id]
