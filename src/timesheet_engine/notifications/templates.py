"""HTML email templates.

Every interpolated value is HTML-escaped. Each builder returns a
RenderedEmail (subject + html); the caller picks the recipient.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from html import escape
from urllib.parse import quote

from timesheet_engine.events.types import ReportLine

BRAND_DARK = "#263926"
BRAND_MUTED = "#6B6B6B"
FOOTER = "Sent from Timesheets"

RESOLUTION_STATUSES = ("approved", "rejected")


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str


def _layout(title: str, body: str, footer_note: str = "This is an automated notification.") -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
</head>
<body style="margin: 0; padding: 24px; background: #F6F5F0; font-family: Helvetica, Arial, sans-serif;">
  <div style="max-width: 600px; margin: 0 auto; background: #FFFFFF; border-radius: 12px; padding: 32px;">
    <h1 style="margin: 0 0 24px; font-size: 24px; color: {BRAND_DARK};">{escape(title)}</h1>
    {body}
    <div style="margin-top: 32px; color: {BRAND_MUTED}; font-size: 12px;">
      <p style="margin: 0;">{FOOTER}</p>
      <p style="margin: 8px 0 0;">{escape(footer_note)}</p>
    </div>
  </div>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<a href="{escape(url, quote=True)}" style="display: inline-block; padding: 12px 24px; '
        f'background: {BRAND_DARK}; color: #FFFFFF; border-radius: 8px; text-decoration: none;">'
        f"{escape(label)}</a>"
    )


def _money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def bookkeeper_report(
    company_name: str,
    period_start: str,
    period_end: str,
    lines: Iterable[ReportLine],
    total_payroll: Decimal,
) -> RenderedEmail:
    rows = "\n".join(
        "<tr>"
        f"<td>{escape(line.name)}</td>"
        f"<td>{escape(line.role)}</td>"
        f"<td>{escape(line.hours)}</td>"
        f"<td>{line.days_worked}</td>"
        f"<td>{line.sick_days}</td>"
        f"<td>{line.vacation_days}</td>"
        f"<td>{_money(line.total_pay)}</td>"
        "</tr>"
        for line in lines
    )
    body = f"""<p style="color: {BRAND_MUTED};">{escape(company_name)}</p>
    <p><strong>Pay period:</strong> {escape(period_start)} to {escape(period_end)}</p>
    <table style="width: 100%; border-collapse: collapse; font-size: 14px;">
      <thead>
        <tr><th>Employee</th><th>Role</th><th>Hours</th><th>Days</th><th>Sick</th><th>Vacation</th><th>Pay</th></tr>
      </thead>
      <tbody>
{rows}
      </tbody>
    </table>
    <p style="margin-top: 16px;"><strong>Total payroll:</strong> {_money(total_payroll)}</p>"""
    return RenderedEmail(
        subject=f"{company_name}: Timesheet Report ({period_start} - {period_end})",
        html=_layout(
            "Timesheet Report",
            body,
            "This is an automated report. Please do not reply to this email.",
        ),
    )


def team_invitation(
    employee_name: str,
    company_name: str,
    role: str,
    app_url: str,
    invitation_token: str | None = None,
    company_logo_url: str | None = None,
) -> RenderedEmail:
    link = app_url
    if invitation_token:
        link = f"{app_url.rstrip('/')}/accept-invitation?token={quote(invitation_token)}"
    logo = ""
    if company_logo_url:
        logo = (
            f'<img src="{escape(company_logo_url, quote=True)}" alt="{escape(company_name)}" '
            'style="max-height: 48px; margin-bottom: 16px;">'
        )
    body = f"""{logo}
    <p>Hey {escape(employee_name)}! Welcome to the team.</p>
    <p>{escape(company_name)} has invited you to track your hours as <strong>{escape(role)}</strong>.</p>
    <p>Clock in when you start, log your breaks, and clock out when you are done.
    If you forget, you can request a correction from your manager.</p>
    <p>{_button(link, "Accept invitation")}</p>"""
    return RenderedEmail(
        subject=f"Welcome to {company_name} - Get Started with Timesheets",
        html=_layout(f"Join {company_name}", body),
    )


def missing_clockout(employee_name: str, date: str, app_url: str) -> RenderedEmail:
    body = f"""<p>Hi {escape(employee_name)},</p>
    <p>You did not clock out on <strong>{escape(date)}</strong>.</p>
    <p>Please submit a correction so your hours are recorded accurately.
    You will not be able to clock in again until it is submitted.</p>
    <p>{_button(app_url, "Fix my timecard")}</p>"""
    return RenderedEmail(
        subject=f"Action Required: Missing Clock Out for {date}",
        html=_layout("Action required", body, "This is an automated reminder."),
    )


def change_request(
    admin_name: str,
    employee_name: str,
    date: str,
    request_summary: str,
    app_url: str,
) -> RenderedEmail:
    body = f"""<p>Hi {escape(admin_name)},</p>
    <p>{escape(employee_name)} has requested a change to their timecard for
    <strong>{escape(date)}</strong>.</p>
    <div style="padding: 16px; background: #F6F5F0; border-radius: 8px;">
      <p style="margin: 0;">{escape(request_summary)}</p>
    </div>
    <p>{_button(app_url, "Review request")}</p>"""
    return RenderedEmail(
        subject=f"Timecard Change Request from {employee_name}",
        html=_layout("Time Adjustment Request", body),
    )


def change_approval(
    employee_name: str,
    date: str,
    status: str,
    admin_notes: str | None = None,
) -> RenderedEmail:
    """Resolution notice; ``status`` is ``approved`` or ``rejected``."""
    if status not in RESOLUTION_STATUSES:
        raise ValueError('Status must be either "approved" or "rejected"')
    approved = status == "approved"
    status_text = "Approved" if approved else "Update"
    outcome = "approved" if approved else "not approved"
    notes = ""
    if admin_notes:
        notes = f"""<div style="padding: 16px; background: #F6F5F0; border-radius: 8px;">
      <p style="margin: 0 0 8px; color: {BRAND_MUTED}; font-size: 12px; text-transform: uppercase;">Manager notes</p>
      <p style="margin: 0;">{escape(admin_notes)}</p>
    </div>"""
    body = f"""<p>Hi {escape(employee_name)},</p>
    <p>Your timecard change for <strong>{escape(date)}</strong> was {outcome}.</p>
    {notes}"""
    return RenderedEmail(
        subject=f"Timecard {status_text} for {date}",
        html=_layout(f"Timecard {status_text}", body),
    )


def vacation_request(
    admin_name: str,
    employee_name: str,
    start_date: str,
    end_date: str,
    days_count: int,
    app_url: str,
) -> RenderedEmail:
    days = f"{days_count} day" if days_count == 1 else f"{days_count} days"
    body = f"""<p>Hi {escape(admin_name)},</p>
    <p>{escape(employee_name)} has requested time off.</p>
    <p><strong>Start Date:</strong> {escape(start_date)}<br>
    <strong>End Date:</strong> {escape(end_date)}<br>
    <strong>Total Days:</strong> {days}</p>
    <p>{_button(app_url, "Review request")}</p>"""
    return RenderedEmail(
        subject=f"Vacation Request from {employee_name}",
        html=_layout("Vacation Request", body),
    )


def vacation_resolution(
    employee_name: str, date: str, status: str, app_url: str
) -> RenderedEmail:
    if status not in RESOLUTION_STATUSES:
        raise ValueError('Status must be either "approved" or "rejected"')
    if status == "approved":
        title = "Vacation Approved!"
        text = f"Your vacation day on <strong>{escape(date)}</strong> has been approved. Enjoy!"
        subject = f"Vacation Approved for {date}"
    else:
        title = "Vacation Request Update"
        text = (
            f"Your vacation request for <strong>{escape(date)}</strong> was not approved. "
            "Please talk to your manager if you have questions."
        )
        subject = f"Vacation Request Update for {date}"
    body = f"""<p>Hi {escape(employee_name)},</p>
    <p>{text}</p>
    <p>{_button(app_url, "Open timesheet")}</p>"""
    return RenderedEmail(subject=subject, html=_layout(title, body))
