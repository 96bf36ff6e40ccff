"""Health, readiness and liveness checks."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.api.dependencies import AppConfig, DbSession, MailerDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    email_provider: str
    business_timezone: str


async def _database_ok(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, mailer: MailerDep, config: AppConfig) -> HealthResponse:
    """Report database reachability and which email provider is active."""
    db_ok = await _database_ok(db)
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if db_ok else "unhealthy",
        email_provider=mailer.provider_name,
        business_timezone=config.business_timezone,
    )


@router.get("/ready")
async def readiness_check(db: DbSession) -> JSONResponse:
    """Ready once the database answers."""
    if not await _database_ok(db):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unavailable"}
        )
    return JSONResponse(content={"status": "ready"})


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
