"""Time entry endpoints: admin edits, change requests and vacation review."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Path, Query, status

from timesheet_engine.api.dependencies import (
    Actor,
    Admin,
    Reporter,
    Service,
    ensure_self_or_admin,
)
from timesheet_engine.api.schemas import (
    CommandResponse,
    DailySummaryResponse,
    EmployeeResponse,
    EntryFieldsSchema,
    EntryResponse,
    EntrySave,
    ErrorResponse,
    PendingReviewResponse,
    StatsResponse,
    entry_result,
    id_result,
)

router = APIRouter(prefix="/entries", tags=["entries"])

EntryId = Annotated[UUID, Path()]


# ============================================================================
# Listing
# ============================================================================


@router.get("", response_model=list[EntryResponse])
async def list_entries(
    service: Service,
    _: Reporter,
    start: date,
    end: date,
    employee_id: UUID | None = None,
) -> list[EntryResponse]:
    """Entries dated within [start, end], optionally for one employee."""
    entries = await service.entries_between(start.isoformat(), end.isoformat(), employee_id)
    return [EntryResponse.from_entry(e) for e in entries]


@router.get("/daily", response_model=list[DailySummaryResponse])
async def daily_summaries(
    service: Service,
    _: Reporter,
    day: Annotated[date | None, Query(alias="date")] = None,
) -> list[DailySummaryResponse]:
    """One row per active team member for the day (default today)."""
    rows = await service.daily_summaries(day.isoformat() if day else None)
    return [
        DailySummaryResponse(
            employee=EmployeeResponse.model_validate(row.employee),
            entry=EntryResponse.from_entry(row.entry) if row.entry else None,
            stats=StatsResponse.model_validate(row.stats),
        )
        for row in rows
    ]


@router.get("/pending", response_model=list[PendingReviewResponse])
async def pending_reviews(service: Service, _: Admin) -> list[PendingReviewResponse]:
    """Vacation and change requests awaiting a decision."""
    return [
        PendingReviewResponse(
            kind=review.kind,
            entry=EntryResponse.from_entry(review.entry),
            employee=(
                EmployeeResponse.model_validate(review.employee) if review.employee else None
            ),
            minutes_delta=review.minutes_delta,
            delta_label=review.delta_label,
        )
        for review in await service.pending_reviews()
    ]


@router.get(
    "/{entry_id}",
    response_model=EntryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_entry(service: Service, actor: Actor, entry_id: EntryId) -> EntryResponse:
    entry = await service.get_entry(entry_id)
    if not actor.is_bookkeeper:
        ensure_self_or_admin(actor, entry.employee_id)
    return EntryResponse.from_entry(entry)


# ============================================================================
# Admin edits
# ============================================================================


@router.put(
    "",
    response_model=CommandResponse[EntryResponse],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def save_entry(
    payload: EntrySave, service: Service, _: Admin
) -> CommandResponse[EntryResponse]:
    """Create or replace an entry; resolves any open change request."""
    return entry_result(await service.save_entry(payload.to_entry()))


@router.delete(
    "/{entry_id}",
    response_model=CommandResponse[UUID],
    responses={404: {"model": ErrorResponse}},
)
async def delete_entry(
    service: Service, _: Admin, entry_id: EntryId
) -> CommandResponse[UUID]:
    return id_result(await service.delete_entry(entry_id))


# ============================================================================
# Change requests
# ============================================================================


@router.post(
    "/{entry_id}/change-request",
    response_model=CommandResponse[EntryResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_change_request(
    payload: EntryFieldsSchema, service: Service, actor: Actor, entry_id: EntryId
) -> CommandResponse[EntryResponse]:
    """Propose replacement values for one of the actor's own entries."""
    entry = await service.get_entry(entry_id)
    ensure_self_or_admin(actor, entry.employee_id)
    return entry_result(await service.submit_change_request(entry_id, payload.to_fields()))


@router.post(
    "/{entry_id}/change-request/approve",
    response_model=CommandResponse[EntryResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_change_request(
    service: Service,
    _: Admin,
    entry_id: EntryId,
    adjusted: Annotated[EntryFieldsSchema | None, Body()] = None,
) -> CommandResponse[EntryResponse]:
    """Apply the proposal, or the admin's adjusted version of it."""
    fields = adjusted.to_fields() if adjusted is not None else None
    return entry_result(await service.approve_change_request(entry_id, fields))


@router.post(
    "/{entry_id}/change-request/deny",
    response_model=CommandResponse[EntryResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def deny_change_request(
    service: Service, _: Admin, entry_id: EntryId
) -> CommandResponse[EntryResponse]:
    return entry_result(await service.deny_change_request(entry_id))


# ============================================================================
# Vacation review
# ============================================================================


@router.post(
    "/{entry_id}/vacation/approve",
    response_model=CommandResponse[EntryResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_vacation(
    service: Service, _: Admin, entry_id: EntryId
) -> CommandResponse[EntryResponse]:
    return entry_result(await service.approve_vacation_request(entry_id))


@router.post(
    "/{entry_id}/vacation/deny",
    response_model=CommandResponse[UUID],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def deny_vacation(
    service: Service, _: Admin, entry_id: EntryId
) -> CommandResponse[UUID]:
    """Denial deletes the pending day."""
    return id_result(await service.deny_vacation_request(entry_id))
