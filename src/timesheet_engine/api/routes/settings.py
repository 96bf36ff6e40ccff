"""Per-tenant settings endpoints."""

from fastapi import APIRouter

from timesheet_engine.api.dependencies import Actor, Admin, Service
from timesheet_engine.api.schemas import CommandResponse, ErrorResponse, SettingsSchema

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=SettingsSchema)
async def get_settings(service: Service, _: Actor) -> SettingsSchema:
    return SettingsSchema.model_validate(await service.app_settings())


@router.put(
    "",
    response_model=CommandResponse[SettingsSchema],
    responses={422: {"model": ErrorResponse}},
)
async def update_settings(
    payload: SettingsSchema, service: Service, _: Admin
) -> CommandResponse[SettingsSchema]:
    result = await service.update_settings(payload.to_settings())
    return CommandResponse[SettingsSchema](
        value=SettingsSchema.model_validate(result.value), warnings=list(result.warnings)
    )
