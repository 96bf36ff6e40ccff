"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.calculators.types import Employee
from timesheet_engine.config import Settings
from timesheet_engine.database import init_db
from timesheet_engine.events import AsyncEventEmitter, register_audit_log
from timesheet_engine.notifications import Mailer, NotificationDispatcher
from timesheet_engine.services.errors import EmployeeNotFoundError, PermissionDeniedError
from timesheet_engine.services.repository import TimesheetRepository
from timesheet_engine.services.timesheet_service import TimesheetService, TimesheetState


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    factory = request.app.state.session_factory
    if factory is None:
        _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _header_uuid(value: str | None, name: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} format",
        )


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract tenant ID from header."""
    return _header_uuid(x_tenant_id, "X-Tenant-ID")


AppConfig = Annotated[Settings, Depends(get_app_settings)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
TenantId = Annotated[UUID, Depends(get_tenant_id)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]


async def get_service(
    request: Request,
    db: DbSession,
    tenant_id: TenantId,
    config: AppConfig,
) -> TimesheetService:
    """A service bound to this request's session and tenant.

    Entries are reloaded per request; only the missing clock-out alert
    log is shared across requests for the same tenant.
    """
    emitter = AsyncEventEmitter()
    register_audit_log(emitter)
    NotificationDispatcher(request.app.state.mailer, config.frontend_url).register(emitter)
    alerts = request.app.state.missing_clock_out_alerts.setdefault(tenant_id, set())
    return TimesheetService(
        TimesheetRepository(db, tenant_id),
        emitter,
        clock=request.app.state.clock,
        settings=config,
        state=TimesheetState(alerted_missing_clock_outs=alerts),
    )


Service = Annotated[TimesheetService, Depends(get_service)]


async def get_actor(
    service: Service,
    x_actor_id: Annotated[str | None, Header()] = None,
) -> Employee:
    """The employee making the request."""
    actor_id = _header_uuid(x_actor_id, "X-Actor-ID")
    try:
        actor = await service.get_employee(actor_id)
    except EmployeeNotFoundError:
        raise PermissionDeniedError("Unknown actor")
    if not actor.is_active:
        raise PermissionDeniedError("This account has been archived")
    service.actor_id = actor.id
    return actor


Actor = Annotated[Employee, Depends(get_actor)]


async def require_admin(actor: Actor) -> Employee:
    if not actor.is_admin:
        raise PermissionDeniedError("Admin access required")
    return actor


async def require_reporting(actor: Actor) -> Employee:
    """Admins, and bookkeepers with read-only access."""
    if not (actor.is_admin or actor.is_bookkeeper):
        raise PermissionDeniedError("Admin or bookkeeper access required")
    return actor


async def require_tracked_worker(actor: Actor) -> Employee:
    if not actor.is_tracked_worker:
        raise PermissionDeniedError("Only team members track their own time")
    return actor


def ensure_self_or_admin(actor: Employee, employee_id: UUID) -> None:
    if actor.id != employee_id and not actor.is_admin:
        raise PermissionDeniedError("You can only act on your own time entries")


Admin = Annotated[Employee, Depends(require_admin)]
Reporter = Annotated[Employee, Depends(require_reporting)]
Worker = Annotated[Employee, Depends(require_tracked_worker)]


async def require_admin_or_bootstrap(
    service: Service,
    x_actor_id: Annotated[str | None, Header()] = None,
) -> Employee | None:
    """Admin actor, or None while the tenant has no employees yet."""
    if not await service.list_employees():
        return None
    return await require_admin(await get_actor(service, x_actor_id))


AdminOrBootstrap = Annotated[Employee | None, Depends(require_admin_or_bootstrap)]
