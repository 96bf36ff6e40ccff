"""Direct email endpoints used by the web client.

Every route is rate limited per client IP. A body missing a required
field gets 400 ``{"success": false, "error": "Missing required fields"}``.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from timesheet_engine.api.dependencies import AppConfig, MailerDep
from timesheet_engine.api.rate_limit import enforce_rate_limit
from timesheet_engine.api.schemas import (
    BookkeeperEmailRequest,
    ChangeApprovalEmailRequest,
    ChangeRequestEmailRequest,
    EmailPayload,
    EmailResponse,
    InviteEmailRequest,
    MissingClockoutEmailRequest,
)
from timesheet_engine.events.types import ReportLine
from timesheet_engine.notifications import EmailMessage, Mailer, is_valid_email
from timesheet_engine.notifications import templates
from timesheet_engine.notifications.templates import RESOLUTION_STATUSES, RenderedEmail

logger = logging.getLogger(__name__)

router = APIRouter(tags=["email"], dependencies=[Depends(enforce_rate_limit)])

MISSING_FIELDS = "Missing required fields"


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _check(payload: EmailPayload, *required: str) -> JSONResponse | None:
    if payload.missing(*required):
        return _failure(status.HTTP_400_BAD_REQUEST, MISSING_FIELDS)
    return None


async def _send(
    mailer: Mailer,
    to: str,
    rendered: RenderedEmail,
    what: str,
    sender_name: str = "Timesheets",
) -> EmailResponse | JSONResponse:
    result = await mailer.send(
        EmailMessage(to=to, subject=rendered.subject, html=rendered.html, sender_name=sender_name)
    )
    if not result.success:
        logger.error("Failed to send %s to %s: %s", what, to, result.error)
        return _failure(status.HTTP_502_BAD_GATEWAY, f"Failed to send {what}: {result.error}")
    return EmailResponse(success=True, message_id=result.message_id)


@router.post("/bookkeeper", response_model=EmailResponse, response_model_exclude_none=True)
async def send_bookkeeper_report(
    payload: BookkeeperEmailRequest, mailer: MailerDep
) -> EmailResponse | JSONResponse:
    """Send a pay period report to the bookkeeper."""
    missing = _check(
        payload,
        "bookkeeper_email",
        "company_name",
        "period_start",
        "period_end",
        "employees",
        "total_payroll",
    )
    if missing is not None:
        return missing
    if not is_valid_email(payload.bookkeeper_email):
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid bookkeeper email address")

    lines = [
        ReportLine(
            name=line.name,
            role=line.role,
            hours=line.hours,
            days_worked=line.days_worked,
            sick_days=line.sick_days,
            vacation_days=line.vacation_days,
            total_pay=line.total_pay,
        )
        for line in payload.employees
    ]
    rendered = templates.bookkeeper_report(
        company_name=payload.company_name,
        period_start=payload.period_start,
        period_end=payload.period_end,
        lines=lines,
        total_payroll=Decimal(payload.total_payroll),
    )
    return await _send(
        mailer,
        payload.bookkeeper_email,
        rendered,
        "bookkeeper report",
        sender_name=f"{payload.company_name} Timesheets",
    )


@router.post("/invite-team-member", response_model=EmailResponse, response_model_exclude_none=True)
async def send_team_invitation(
    payload: InviteEmailRequest, mailer: MailerDep, config: AppConfig
) -> EmailResponse | JSONResponse:
    """Invite a new team member."""
    missing = _check(payload, "employee_email", "employee_name", "company_name", "role")
    if missing is not None:
        return missing
    if not is_valid_email(payload.employee_email):
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid employee email address")

    rendered = templates.team_invitation(
        employee_name=payload.employee_name,
        company_name=payload.company_name,
        role=payload.role,
        app_url=payload.app_url or config.frontend_url,
        invitation_token=payload.invitation_token,
        company_logo_url=payload.company_logo_url,
    )
    return await _send(
        mailer,
        payload.employee_email,
        rendered,
        "team invitation",
        sender_name=payload.company_name,
    )


@router.post("/missing-clockout", response_model=EmailResponse, response_model_exclude_none=True)
async def send_missing_clockout_alert(
    payload: MissingClockoutEmailRequest, mailer: MailerDep, config: AppConfig
) -> EmailResponse | JSONResponse:
    """Remind an employee to fix a day with no clock-out."""
    missing = _check(payload, "employee_email", "employee_name", "date")
    if missing is not None:
        return missing
    if not is_valid_email(payload.employee_email):
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid employee email address")

    rendered = templates.missing_clockout(
        employee_name=payload.employee_name,
        date=payload.date,
        app_url=payload.app_url or config.frontend_url,
    )
    return await _send(mailer, payload.employee_email, rendered, "missing clockout alert")


@router.post("/change-request-notification", response_model=EmailResponse, response_model_exclude_none=True)
async def send_change_request_notification(
    payload: ChangeRequestEmailRequest, mailer: MailerDep, config: AppConfig
) -> EmailResponse | JSONResponse:
    """Tell the admin an employee asked for a timecard change."""
    missing = _check(
        payload, "admin_email", "admin_name", "employee_name", "date", "request_summary"
    )
    if missing is not None:
        return missing
    if not is_valid_email(payload.admin_email):
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid admin email address")

    rendered = templates.change_request(
        admin_name=payload.admin_name,
        employee_name=payload.employee_name,
        date=payload.date,
        request_summary=payload.request_summary,
        app_url=payload.app_url or config.frontend_url,
    )
    return await _send(mailer, payload.admin_email, rendered, "change request notification")


@router.post("/change-approval", response_model=EmailResponse, response_model_exclude_none=True)
async def send_change_approval(
    payload: ChangeApprovalEmailRequest, mailer: MailerDep
) -> EmailResponse | JSONResponse:
    """Tell the employee their change request was approved or rejected."""
    missing = _check(payload, "employee_email", "employee_name", "date", "status")
    if missing is not None:
        return missing
    if not is_valid_email(payload.employee_email):
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid employee email address")
    if payload.status not in RESOLUTION_STATUSES:
        return _failure(
            status.HTTP_400_BAD_REQUEST, 'Status must be either "approved" or "rejected"'
        )

    rendered = templates.change_approval(
        employee_name=payload.employee_name,
        date=payload.date,
        status=payload.status,
        admin_notes=payload.admin_notes,
    )
    return await _send(mailer, payload.employee_email, rendered, "change approval notification")
