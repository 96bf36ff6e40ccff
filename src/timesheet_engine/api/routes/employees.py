"""Employee management endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from timesheet_engine.api.dependencies import (
    Actor,
    Admin,
    AdminOrBootstrap,
    Reporter,
    Service,
    ensure_self_or_admin,
)
from timesheet_engine.api.schemas import (
    CommandResponse,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    ErrorResponse,
    InvitationAccept,
    VacationBalanceResponse,
)
from timesheet_engine.calculators.types import Employee
from timesheet_engine.services.errors import InvalidInputError
from timesheet_engine.services.timesheet_service import CommandResult

router = APIRouter(prefix="/employees", tags=["employees"])

EmployeeId = Annotated[UUID, Path()]

# A null in an update body clears these; it is ignored for the rest
NULLABLE_FIELDS = frozenset({"email", "hourly_rate"})


def _employee_result(result: CommandResult[Employee]) -> CommandResponse[EmployeeResponse]:
    return CommandResponse[EmployeeResponse](
        value=EmployeeResponse.model_validate(result.value), warnings=list(result.warnings)
    )


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    service: Service, _: Reporter, include_archived: bool = True
) -> list[EmployeeResponse]:
    employees = await service.list_employees(include_archived=include_archived)
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.post(
    "",
    response_model=CommandResponse[EmployeeResponse],
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def add_employee(
    payload: EmployeeCreate, service: Service, admin: AdminOrBootstrap
) -> CommandResponse[EmployeeResponse]:
    """Add an employee; an email address triggers an invitation.

    The first employee of a new tenant needs no actor but must be an admin.
    """
    if admin is None and not payload.is_admin:
        raise InvalidInputError("The first employee must be an admin")
    result = await service.add_employee(
        payload.name,
        email=payload.email,
        role=payload.role,
        hourly_rate=payload.hourly_rate,
        vacation_days_total=payload.vacation_days_total,
        is_admin=payload.is_admin,
        is_bookkeeper=payload.is_bookkeeper,
    )
    return _employee_result(result)


@router.post(
    "/accept-invitation",
    response_model=CommandResponse[EmployeeResponse],
    responses={422: {"model": ErrorResponse}},
)
async def accept_invitation(
    payload: InvitationAccept, service: Service
) -> CommandResponse[EmployeeResponse]:
    """Link a new login to the employee record; no actor header is needed."""
    return _employee_result(await service.accept_invitation(payload.token, payload.user_id))


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee(
    service: Service, actor: Actor, employee_id: EmployeeId
) -> EmployeeResponse:
    if not actor.is_bookkeeper:
        ensure_self_or_admin(actor, employee_id)
    return EmployeeResponse.model_validate(await service.get_employee(employee_id))


@router.patch(
    "/{employee_id}",
    response_model=CommandResponse[EmployeeResponse],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_employee(
    payload: EmployeeUpdate, service: Service, _: Admin, employee_id: EmployeeId
) -> CommandResponse[EmployeeResponse]:
    """Change only the fields present in the body."""
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    return _employee_result(await service.update_employee(employee_id, **changes))


@router.post(
    "/{employee_id}/toggle-status",
    response_model=CommandResponse[EmployeeResponse],
    responses={404: {"model": ErrorResponse}},
)
async def toggle_employee_status(
    service: Service, _: Admin, employee_id: EmployeeId
) -> CommandResponse[EmployeeResponse]:
    """Archive an active employee or restore an archived one."""
    return _employee_result(await service.toggle_employee_status(employee_id))


@router.post(
    "/{employee_id}/resend-invitation",
    response_model=CommandResponse[EmployeeResponse],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def resend_invitation(
    service: Service, _: Admin, employee_id: EmployeeId
) -> CommandResponse[EmployeeResponse]:
    return _employee_result(await service.resend_invitation(employee_id))


@router.get(
    "/{employee_id}/vacation-balance",
    response_model=VacationBalanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def vacation_balance(
    service: Service, actor: Actor, employee_id: EmployeeId
) -> VacationBalanceResponse:
    if not actor.is_bookkeeper:
        ensure_self_or_admin(actor, employee_id)
    employee = await service.get_employee(employee_id)
    return VacationBalanceResponse(
        employee_id=employee.id,
        year=int(service.today()[:4]),
        total=employee.vacation_days_total,
        remaining=await service.vacation_balance(employee.id),
    )
