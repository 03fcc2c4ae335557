"""
Calendar event API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator

from lecturevault.api.deps import get_calendar_service, get_store
from lecturevault.application.calendar import CalendarService, DELETE_SCOPES
from lecturevault.application.gateway import DeletePlan
from lecturevault.application.store import LocalStore
from lecturevault.domain.recurrence import describe_rule, parse_rule
from lecturevault.utils.validation import REMINDER_TYPES


router = APIRouter(prefix="/api/v1/events", tags=["events"])


# === Request/Response models ===

class ReminderRequest(BaseModel):
    reminder_time: int  # minutes before start
    reminder_type: str = "notification"

    @field_validator("reminder_type")
    @classmethod
    def validate_reminder_type(cls, v: str) -> str:
        if v not in REMINDER_TYPES:
            raise ValueError(f"reminder_type must be one of {', '.join(REMINDER_TYPES)}")
        return v


class CreateEventRequest(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime
    description: str | None = None
    location: str | None = None
    is_all_day: bool = False
    is_lecture: bool = False
    timezone: str = "UTC"
    category_id: int | None = None
    recurrence_rule: str | None = None
    reminders: list[ReminderRequest] | None = None  # None = calendar default reminders


class UpdateEventRequest(BaseModel):
    title: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None
    location: str | None = None
    is_all_day: bool | None = None
    is_lecture: bool | None = None
    timezone: str | None = None
    category_id: int | None = None
    recurrence_rule: str | None = None


class CreateExceptionRequest(BaseModel):
    occurrence_date: datetime
    title: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None
    location: str | None = None
    is_cancelled: bool = False


class ReminderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    reminder_time: int
    reminder_type: str
    is_triggered: bool


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    is_all_day: bool
    is_lecture: bool
    location: str | None
    timezone: str
    category_id: int | None
    recurrence_rule: str | None
    recurrence_parent_id: int | None
    recurrence_date: datetime | None
    is_recurrence_exception: bool
    is_cancelled: bool
    created_at: datetime
    updated_at: datetime


class EventDetailsResponse(EventResponse):
    reminders: list[ReminderResponse] = []
    recurrence_description: str | None = None


class OccurrenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    template_id: int | None
    occurrence_date: datetime
    start_time: datetime
    end_time: datetime
    title: str
    description: str | None
    location: str | None
    is_all_day: bool
    is_lecture: bool
    category_id: int | None
    timezone: str
    event_id: int
    exception_id: int | None


class DeleteResponse(BaseModel):
    deleted: list[tuple[str, int]]
    nullified: list[tuple[str, int, str]]


def _delete_response(plan: DeletePlan | None) -> DeleteResponse:
    if plan is None:
        return DeleteResponse(deleted=[], nullified=[])
    return DeleteResponse(deleted=plan.deletes, nullified=plan.nullifies)


def _check_window(start: datetime, end: datetime) -> None:
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")


# === Endpoints ===

@router.post("/", response_model=EventResponse, status_code=201)
def create_event(
    req: CreateEventRequest,
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    """Create an event (optionally recurring) with its reminders"""
    fields = req.model_dump(exclude={"reminders"})
    reminders = None if req.reminders is None else [r.model_dump() for r in req.reminders]
    event_id = service.create_event(fields, reminders=reminders)
    return store.find_by_id("calendar_events", event_id)


@router.get("/", response_model=list[OccurrenceResponse])
def calendar_window(
    start: datetime = Query(...),
    end: datetime = Query(...),
    store: LocalStore = Depends(get_store),
):
    """Everything on the calendar in [start, end), recurring events expanded"""
    _check_window(start, end)
    return store.list_occurrences(start, end)


@router.get("/{event_id}", response_model=EventDetailsResponse)
def get_event(event_id: int, store: LocalStore = Depends(get_store)):
    event = store.find_by_id("calendar_events", event_id)
    details = EventDetailsResponse.model_validate(event)
    details.reminders = [
        ReminderResponse.model_validate(r)
        for r in store.find_many("event_reminders", {"event_id": event_id}, ("reminder_time",))
    ]
    if event.recurrence_rule:
        details.recurrence_description = describe_rule(parse_rule(event.recurrence_rule))
    return details


@router.patch("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: int,
    req: UpdateEventRequest,
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    """Partial update: only the fields present in the body are written"""
    service.update_event(event_id, **req.model_dump(exclude_unset=True))
    return store.find_by_id("calendar_events", event_id)


@router.delete("/{event_id}", response_model=DeleteResponse)
def delete_event(
    event_id: int,
    scope: str = Query("all", pattern="^(" + "|".join(DELETE_SCOPES) + ")$"),
    occurrence_date: datetime | None = None,
    service: CalendarService = Depends(get_calendar_service),
):
    plan = service.delete_event(event_id, scope=scope, occurrence_date=occurrence_date)
    return _delete_response(plan)


@router.get("/{event_id}/occurrences", response_model=list[OccurrenceResponse])
def list_event_occurrences(
    event_id: int,
    start: datetime = Query(...),
    end: datetime = Query(...),
    store: LocalStore = Depends(get_store),
):
    _check_window(start, end)
    return store.expand_occurrences(event_id, start, end)


@router.post("/{event_id}/exceptions", response_model=EventResponse, status_code=201)
def create_exception(
    event_id: int,
    req: CreateExceptionRequest,
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    """Edit or cancel one occurrence of a recurring event"""
    if req.is_cancelled:
        exception_id = service.cancel_occurrence(event_id, req.occurrence_date)
    else:
        overrides = req.model_dump(exclude={"occurrence_date", "is_cancelled"}, exclude_none=True)
        exception_id = service.create_recurrence_exception(event_id, req.occurrence_date, **overrides)
    return store.find_by_id("calendar_events", exception_id)


@router.post("/{event_id}/duplicate", response_model=EventResponse, status_code=201)
def duplicate_event(
    event_id: int,
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    new_id = service.duplicate_event(event_id)
    return store.find_by_id("calendar_events", new_id)


@router.post("/{event_id}/reminders", response_model=ReminderResponse, status_code=201)
def add_reminder(
    event_id: int,
    req: ReminderRequest,
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    reminder_id = service.add_reminder(event_id, req.reminder_time, req.reminder_type)
    return store.find_by_id("event_reminders", reminder_id)
