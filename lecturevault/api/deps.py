"""
FastAPI dependencies (store and services)
"""
from fastapi import Depends, Request

from lecturevault.application.calendar import CalendarService
from lecturevault.application.recordings import RecordingService
from lecturevault.application.settings import SettingsService
from lecturevault.application.store import LocalStore


def get_store(request: Request) -> LocalStore:
    """
    Store opened by the application lifespan

    Usage in routes:
        @router.get("/things")
        def list_things(store: LocalStore = Depends(get_store)):
            ...
    """
    return request.app.state.store


def get_calendar_service(store: LocalStore = Depends(get_store)) -> CalendarService:
    return CalendarService(store)


def get_recording_service(store: LocalStore = Depends(get_store)) -> RecordingService:
    return RecordingService(store)


def get_settings_service(store: LocalStore = Depends(get_store)) -> SettingsService:
    return SettingsService(store)
