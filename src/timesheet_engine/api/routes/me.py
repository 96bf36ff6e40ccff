"""The acting employee's own day: clock actions, off-days, vacation."""

from datetime import date

from fastapi import APIRouter, status

from timesheet_engine.api.dependencies import Actor, Service, Worker
from timesheet_engine.api.schemas import (
    ChangeRequestCreate,
    CommandResponse,
    EntryResponse,
    ErrorResponse,
    OffDayRequest,
    StatsResponse,
    TodayResponse,
    VacationBalanceResponse,
    VacationRequestCreate,
    entry_result,
)
from timesheet_engine.calculators.stats import calculate_stats

router = APIRouter(prefix="/me", tags=["me"])

_CONFLICTS = {
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.get("/today", response_model=TodayResponse)
async def get_today(service: Service, actor: Actor) -> TodayResponse:
    """Today's status, the actions available and any blocking entry."""
    entry = await service.entry_for(actor.id)
    blocking = await service.blocking_entry_for(actor.id)
    stats = calculate_stats(entry, now=service.now(), today=service.today())
    return TodayResponse(
        date=service.today(),
        status=await service.day_status_for(actor.id),
        allowed_actions=sorted(await service.allowed_actions_for(actor.id)),
        entry=EntryResponse.from_entry(entry) if entry else None,
        stats=StatsResponse.model_validate(stats),
        blocking_entry=EntryResponse.from_entry(blocking) if blocking else None,
    )


@router.get("/entries", response_model=list[EntryResponse])
async def list_my_entries(
    service: Service, actor: Actor, start: date, end: date
) -> list[EntryResponse]:
    entries = await service.entries_between(start.isoformat(), end.isoformat(), actor.id)
    return [EntryResponse.from_entry(e) for e in entries]


@router.post(
    "/clock-in", response_model=CommandResponse[EntryResponse], responses=_CONFLICTS
)
async def clock_in(service: Service, actor: Worker) -> CommandResponse[EntryResponse]:
    return entry_result(await service.clock_in(actor.id))


@router.post(
    "/clock-out", response_model=CommandResponse[EntryResponse], responses=_CONFLICTS
)
async def clock_out(service: Service, actor: Worker) -> CommandResponse[EntryResponse]:
    return entry_result(await service.clock_out(actor.id))


@router.post(
    "/breaks/start", response_model=CommandResponse[EntryResponse], responses=_CONFLICTS
)
async def start_break(service: Service, actor: Worker) -> CommandResponse[EntryResponse]:
    return entry_result(await service.start_break(actor.id))


@router.post(
    "/breaks/end", response_model=CommandResponse[EntryResponse], responses=_CONFLICTS
)
async def end_break(service: Service, actor: Worker) -> CommandResponse[EntryResponse]:
    return entry_result(await service.end_break(actor.id))


@router.put(
    "/off-day", response_model=CommandResponse[EntryResponse], responses=_CONFLICTS
)
async def set_off_day(
    payload: OffDayRequest, service: Service, actor: Worker
) -> CommandResponse[EntryResponse]:
    """Mark or clear today's sick, half-sick or vacation flag."""
    return entry_result(await service.set_off_day(actor.id, payload.kind, payload.on))


@router.post(
    "/vacation-requests",
    response_model=CommandResponse[list[EntryResponse]],
    status_code=status.HTTP_201_CREATED,
    responses=_CONFLICTS,
)
async def request_vacation(
    payload: VacationRequestCreate, service: Service, actor: Worker
) -> CommandResponse[list[EntryResponse]]:
    """Request every day from start to end as vacation."""
    result = await service.request_vacation(
        actor.id, payload.start_date.isoformat(), payload.end_date.isoformat()
    )
    return CommandResponse[list[EntryResponse]](
        value=[EntryResponse.from_entry(e) for e in result.value],
        warnings=list(result.warnings),
    )


@router.get("/vacation-balance", response_model=VacationBalanceResponse)
async def my_vacation_balance(service: Service, actor: Actor) -> VacationBalanceResponse:
    return VacationBalanceResponse(
        employee_id=actor.id,
        year=int(service.today()[:4]),
        total=actor.vacation_days_total,
        remaining=await service.vacation_balance(actor.id),
    )


@router.post(
    "/change-requests",
    response_model=CommandResponse[EntryResponse],
    status_code=status.HTTP_201_CREATED,
    responses=_CONFLICTS,
)
async def request_change(
    payload: ChangeRequestCreate, service: Service, actor: Actor
) -> CommandResponse[EntryResponse]:
    """Propose values for a past day, creating its entry if none exists."""
    result = await service.request_change_for_date(
        actor.id, payload.date.isoformat(), payload.proposed.to_fields()
    )
    return entry_result(result)
