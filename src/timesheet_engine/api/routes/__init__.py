"""API routes."""

from timesheet_engine.api.routes.email import router as email_router
from timesheet_engine.api.routes.employees import router as employees_router
from timesheet_engine.api.routes.health import router as health_router
from timesheet_engine.api.routes.me import router as me_router
from timesheet_engine.api.routes.reports import router as reports_router
from timesheet_engine.api.routes.settings import router as settings_router
from timesheet_engine.api.routes.time_entries import router as time_entries_router

__all__ = [
    "email_router",
    "employees_router",
    "health_router",
    "me_router",
    "reports_router",
    "settings_router",
    "time_entries_router",
]
