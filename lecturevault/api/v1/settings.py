"""
Settings API endpoints (profile, preferences, calendar settings)
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from lecturevault.api.deps import get_settings_service
from lecturevault.application.settings import SettingsService


router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


# === Request/Response models ===

class AppSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str | None
    last_name: str | None
    username: str | None
    preferences: dict[str, Any] | None


class UpdateAppSettingsRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None


class CalendarSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    default_view: str
    week_starts_on: int
    working_hours_start: str
    working_hours_end: str
    default_event_duration: int
    show_week_numbers: bool
    default_reminders: list[int] | None
    time_format: str


class UpdateCalendarSettingsRequest(BaseModel):
    default_view: str | None = None
    week_starts_on: int | None = None
    working_hours_start: str | None = None
    working_hours_end: str | None = None
    default_event_duration: int | None = None
    show_week_numbers: bool | None = None
    default_reminders: list[int] | None = None
    time_format: str | None = None


# === Endpoints ===

@router.get("/app", response_model=AppSettingsResponse)
def get_app_settings(service: SettingsService = Depends(get_settings_service)):
    return service.app_settings()


@router.patch("/app", response_model=AppSettingsResponse)
def update_app_settings(
    req: UpdateAppSettingsRequest,
    service: SettingsService = Depends(get_settings_service),
):
    service.update_app_settings(**req.model_dump(exclude_unset=True))
    return service.app_settings()


@router.patch("/app/preferences", response_model=AppSettingsResponse)
def update_preferences(
    values: dict[str, Any],
    service: SettingsService = Depends(get_settings_service),
):
    """Merge keys into the preferences map"""
    service.update_preferences(values)
    return service.app_settings()


@router.get("/calendar", response_model=CalendarSettingsResponse)
def get_calendar_settings(service: SettingsService = Depends(get_settings_service)):
    return service.calendar_settings()


@router.patch("/calendar", response_model=CalendarSettingsResponse)
def update_calendar_settings(
    req: UpdateCalendarSettingsRequest,
    service: SettingsService = Depends(get_settings_service),
):
    service.update_calendar_settings(**req.model_dump(exclude_unset=True))
    return service.calendar_settings()
