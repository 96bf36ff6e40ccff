"""Tests for domain events and the outbox emitter."""

import json
from decimal import Decimal
from uuid import uuid4

import pytest

from timesheet_engine.events import (
    AsyncEventEmitter,
    ChangeRequestSubmitted,
    EventCategory,
    EventMetadata,
    MissingClockOutDetected,
    PeriodReportRequested,
    ReportLine,
    VacationRequested,
    register_audit_log,
)


def _metadata() -> EventMetadata:
    return EventMetadata.create(tenant_id=uuid4(), actor_type="employee")


def _missing_clock_out() -> MissingClockOutDetected:
    return MissingClockOutDetected(
        metadata=_metadata(),
        entry_id=uuid4(),
        employee_id=uuid4(),
        employee_name="Dana Fox",
        employee_email="dana@example.com",
        entry_date="2024-01-12",
    )


def _vacation_requested() -> VacationRequested:
    return VacationRequested(
        metadata=_metadata(),
        employee_id=uuid4(),
        employee_name="Dana Fox",
        start_date="2024-02-01",
        end_date="2024-02-02",
        days_count=2,
        admin_email="owner@example.com",
        admin_name="Olive",
    )


class TestDomainEvents:
    """Test event identity and serialization."""

    def test_event_type_and_category(self):
        event = _missing_clock_out()
        assert event.event_type == "MissingClockOutDetected"
        assert event.category == EventCategory.TIME_ENTRY
        assert _vacation_requested().category == EventCategory.VACATION

    def test_to_json(self):
        line = ReportLine(
            name="Dana",
            role="Barista",
            hours="7.50",
            days_worked=1,
            sick_days=Decimal("0.5"),
            vacation_days=0,
            total_pay=Decimal("150.00"),
        )
        event = PeriodReportRequested(
            metadata=_metadata(),
            bookkeeper_email="books@example.com",
            owner_email=None,
            company_name="Acme",
            period_start="2024-01-01",
            period_end="2024-01-15",
            lines=(line,),
            total_payroll=Decimal("150.00"),
        )
        data = json.loads(event.to_json())

        assert data["event_type"] == "PeriodReportRequested"
        assert data["total_payroll"] == "150.00"
        assert data["lines"][0]["sick_days"] == "0.5"
        assert data["metadata"]["actor_type"] == "employee"


class TestAsyncEventEmitter:
    """Test handler routing and error isolation."""

    async def test_routes_by_type(self):
        emitter = AsyncEventEmitter()
        seen = []
        emitter.on(MissingClockOutDetected, seen.append)

        await emitter.emit(_missing_clock_out())
        await emitter.emit(_vacation_requested())

        assert [e.event_type for e in seen] == ["MissingClockOutDetected"]

    async def test_failing_handler_does_not_stop_others(self):
        emitter = AsyncEventEmitter()
        seen = []

        def broken(event):
            raise RuntimeError("smtp down")

        emitter.on_all(broken)
        emitter.on_all(seen.append)

        errors = await emitter.emit(_missing_clock_out())

        assert len(seen) == 1
        assert [str(e) for e in errors] == ["smtp down"]


class TestOutbox:
    """Test post-commit dispatch through batches."""

    async def test_dispatch_on_clean_exit(self):
        emitter = AsyncEventEmitter()
        seen = []
        emitter.on_all(seen.append)

        async with emitter.batch() as outbox:
            outbox.add(_missing_clock_out())
            assert seen == []

        assert len(seen) == 1
        assert outbox.errors == []

    async def test_nothing_dispatched_when_block_raises(self):
        emitter = AsyncEventEmitter()
        seen = []
        emitter.on_all(seen.append)

        with pytest.raises(ValueError):
            async with emitter.batch() as outbox:
                outbox.add(_missing_clock_out())
                raise ValueError("write failed")

        assert seen == []
        assert outbox.errors == []

    async def test_handler_errors_collected(self):
        emitter = AsyncEventEmitter()

        async def broken(event):
            raise RuntimeError("bounced")

        emitter.on(ChangeRequestSubmitted, broken)
        emitter.on(MissingClockOutDetected, broken)

        async with emitter.batch() as outbox:
            outbox.add(_missing_clock_out())
            outbox.add(_missing_clock_out())

        assert len(outbox.errors) == 2


class TestAuditLog:
    """Test the audit trail of dispatched events."""

    async def test_logs_every_dispatched_event(self, caplog):
        emitter = AsyncEventEmitter()
        register_audit_log(emitter)
        event = _vacation_requested()

        with caplog.at_level("INFO", logger="timesheet_engine.audit"):
            async with emitter.batch() as outbox:
                outbox.add(_missing_clock_out())
                outbox.add(event)

        messages = [r.getMessage() for r in caplog.records if r.name == "timesheet_engine.audit"]
        assert len(messages) == 2
        assert messages[0].startswith("MissingClockOutDetected [time_entry]")
        assert messages[1].startswith("VacationRequested [vacation]")
        assert str(event.metadata.event_id) in messages[1]
        assert outbox.errors == []

    async def test_nothing_logged_when_block_raises(self, caplog):
        emitter = AsyncEventEmitter()
        register_audit_log(emitter)

        with caplog.at_level("INFO", logger="timesheet_engine.audit"):
            with pytest.raises(ValueError):
                async with emitter.batch() as outbox:
                    outbox.add(_missing_clock_out())
                    raise ValueError("write failed")

        assert not [r for r in caplog.records if r.name == "timesheet_engine.audit"]
