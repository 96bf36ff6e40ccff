"""Payroll period reports, CSV export and missing clock-out checks."""

from datetime import date

from fastapi import APIRouter, Response

from timesheet_engine.api.dependencies import Admin, Reporter, Service
from timesheet_engine.api.schemas import (
    CommandResponse,
    EntryResponse,
    ErrorResponse,
    MissingClockOutResponse,
    PeriodReportResponse,
    PeriodSummaryResponse,
)
from timesheet_engine.calculators.aggregation import total_payroll
from timesheet_engine.calculators.types import PeriodSummary
from timesheet_engine.services.errors import InvalidInputError

router = APIRouter(prefix="/reports", tags=["reports"])


def _period(start: date, end: date) -> tuple[str, str]:
    if end < start:
        raise InvalidInputError("End date must be on or after start date")
    return start.isoformat(), end.isoformat()


def _report(start: date, end: date, summaries: list[PeriodSummary]) -> PeriodReportResponse:
    return PeriodReportResponse(
        period_start=start,
        period_end=end,
        summaries=[PeriodSummaryResponse.model_validate(s) for s in summaries],
        total_payroll=total_payroll(summaries),
    )


@router.get(
    "/period",
    response_model=PeriodReportResponse,
    responses={422: {"model": ErrorResponse}},
)
async def period_report(
    service: Service, _: Reporter, start: date, end: date
) -> PeriodReportResponse:
    """Hours, days and pay per employee for [start, end]."""
    summaries = await service.period_summaries(*_period(start, end))
    return _report(start, end, summaries)


@router.post(
    "/period/send",
    response_model=CommandResponse[PeriodReportResponse],
    responses={422: {"model": ErrorResponse}},
)
async def send_period_report(
    service: Service, _: Admin, start: date, end: date
) -> CommandResponse[PeriodReportResponse]:
    """Email the period report to the bookkeeper."""
    result = await service.send_period_report(*_period(start, end))
    return CommandResponse[PeriodReportResponse](
        value=_report(start, end, result.value), warnings=list(result.warnings)
    )


@router.get("/period/csv", response_class=Response)
async def export_csv(service: Service, _: Reporter, start: date, end: date) -> Response:
    """Daily timesheet rows as a CSV download."""
    period_start, period_end = _period(start, end)
    body = await service.export_csv(period_start, period_end)
    return Response(
        content=body,
        media_type="text/csv",
        headers={
            "Content-Disposition": (
                f'attachment; filename="timesheet_{period_start}_to_{period_end}.csv"'
            )
        },
    )


@router.post("/missing-clock-outs", response_model=CommandResponse[MissingClockOutResponse])
async def check_missing_clock_outs(
    service: Service, _: Admin
) -> CommandResponse[MissingClockOutResponse]:
    """Alert employees about past days left open; each day alerts once."""
    result = await service.check_missing_clock_outs()
    return CommandResponse[MissingClockOutResponse](
        value=MissingClockOutResponse(
            alerted=[EntryResponse.from_entry(e) for e in result.value]
        ),
        warnings=list(result.warnings),
    )
