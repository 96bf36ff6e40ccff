"""Turns domain events into outbound emails."""

from __future__ import annotations

import logging

from timesheet_engine.calculators.time_math import format_date_for_display
from timesheet_engine.events import (
    AsyncEventEmitter,
    ChangeRequestResolved,
    ChangeRequestSubmitted,
    EmployeeInvited,
    MissingClockOutDetected,
    PeriodReportRequested,
    VacationRequested,
    VacationRequestResolved,
)
from timesheet_engine.notifications import templates
from timesheet_engine.notifications.mailer import EmailMessage, Mailer, SendResult
from timesheet_engine.services.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Email side effects for committed commands.

    A handler raises NotificationError when delivery fails; the emitter
    isolates it and the command reports it as a warning.
    """

    def __init__(self, mailer: Mailer, app_url: str):
        self.mailer = mailer
        self.app_url = app_url

    def register(self, emitter: AsyncEventEmitter) -> None:
        emitter.on(ChangeRequestSubmitted, self.on_change_request_submitted)
        emitter.on(ChangeRequestResolved, self.on_change_request_resolved)
        emitter.on(MissingClockOutDetected, self.on_missing_clock_out)
        emitter.on(VacationRequested, self.on_vacation_requested)
        emitter.on(VacationRequestResolved, self.on_vacation_resolved)
        emitter.on(EmployeeInvited, self.on_employee_invited)
        emitter.on(PeriodReportRequested, self.on_period_report)

    async def _deliver(
        self, to: str | None, rendered: templates.RenderedEmail, sender_name: str = "Timesheets"
    ) -> SendResult | None:
        if not to:
            logger.info("No recipient for %r; skipping", rendered.subject)
            return None
        result = await self.mailer.send(
            EmailMessage(to=to, subject=rendered.subject, html=rendered.html, sender_name=sender_name)
        )
        if not result.success:
            raise NotificationError(f"Email to {to} failed: {result.error}")
        return result

    async def on_change_request_submitted(self, event: ChangeRequestSubmitted) -> None:
        await self._deliver(
            event.admin_email,
            templates.change_request(
                admin_name=event.admin_name,
                employee_name=event.employee_name,
                date=format_date_for_display(event.entry_date),
                request_summary=event.request_summary,
                app_url=self.app_url,
            ),
        )

    async def on_change_request_resolved(self, event: ChangeRequestResolved) -> None:
        await self._deliver(
            event.employee_email,
            templates.change_approval(
                employee_name=event.employee_name,
                date=format_date_for_display(event.entry_date),
                status=event.status,
                admin_notes=event.admin_notes,
            ),
        )

    async def on_missing_clock_out(self, event: MissingClockOutDetected) -> None:
        await self._deliver(
            event.employee_email,
            templates.missing_clockout(
                employee_name=event.employee_name,
                date=format_date_for_display(event.entry_date),
                app_url=self.app_url,
            ),
        )

    async def on_vacation_requested(self, event: VacationRequested) -> None:
        await self._deliver(
            event.admin_email,
            templates.vacation_request(
                admin_name=event.admin_name,
                employee_name=event.employee_name,
                start_date=format_date_for_display(event.start_date),
                end_date=format_date_for_display(event.end_date),
                days_count=event.days_count,
                app_url=self.app_url,
            ),
        )

    async def on_vacation_resolved(self, event: VacationRequestResolved) -> None:
        await self._deliver(
            event.employee_email,
            templates.vacation_resolution(
                employee_name=event.employee_name,
                date=format_date_for_display(event.entry_date),
                status=event.status,
                app_url=self.app_url,
            ),
        )

    async def on_employee_invited(self, event: EmployeeInvited) -> None:
        await self._deliver(
            event.employee_email,
            templates.team_invitation(
                employee_name=event.employee_name,
                company_name=event.company_name,
                role=event.role,
                app_url=self.app_url,
                invitation_token=event.invitation_token,
                company_logo_url=event.company_logo_url,
            ),
            sender_name=event.company_name,
        )

    async def on_period_report(self, event: PeriodReportRequested) -> None:
        await self._deliver(
            event.bookkeeper_email,
            templates.bookkeeper_report(
                company_name=event.company_name,
                period_start=format_date_for_display(event.period_start),
                period_end=format_date_for_display(event.period_end),
                lines=event.lines,
                total_payroll=event.total_payroll,
            ),
            sender_name=f"{event.company_name} Timesheets",
        )
