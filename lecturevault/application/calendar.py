"""Calendar use cases - events, reminders, recurrence exceptions, scoped deletes, categories"""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from lecturevault.application.gateway import DeletePlan
from lecturevault.domain.errors import FieldError, InvariantViolation
from lecturevault.domain.event import Instance, Standalone, Template, event_kind
from lecturevault.domain.recurrence import format_rule, iter_occurrence_starts
from lecturevault.utils.dates import to_utc_naive

logger = logging.getLogger(__name__)

DELETE_SCOPES = ("all", "single", "future")

DEFAULT_EVENT_CATEGORIES = (
    {"name": "Study", "color": "#3B82F6", "icon": "book"},
    {"name": "Lecture", "color": "#10B981", "icon": "graduation-cap"},
    {"name": "Assignment", "color": "#F59E0B", "icon": "clipboard"},
    {"name": "Exam", "color": "#EF4444", "icon": "alert-circle"},
    {"name": "Meeting", "color": "#8B5CF6", "icon": "users"},
    {"name": "Personal", "color": "#06B6D4", "icon": "user"},
    {"name": "Break", "color": "#84CC16", "icon": "coffee"},
)

# Fields an exception inherits from its template
_OCCURRENCE_FIELDS = (
    "title", "description", "location", "is_all_day", "is_lecture", "category_id", "timezone",
)
_DUPLICATE_SKIP = frozenset({
    "id", "created_at", "updated_at",
    "recurrence_parent_id", "recurrence_date", "is_recurrence_exception", "is_cancelled",
})


def _reminder_fields(event_id: int, reminder) -> dict:
    """A reminder spec is either minutes-before or {"reminder_time": .., "reminder_type": ..}."""
    if isinstance(reminder, Mapping):
        return {
            "event_id": event_id,
            "reminder_time": reminder.get("reminder_time"),
            "reminder_type": reminder.get("reminder_type", "notification"),
        }
    return {"event_id": event_id, "reminder_time": reminder, "reminder_type": "notification"}


class CalendarService:

    def __init__(self, store):
        self.store = store

    # --- Events ---

    def create_event(self, fields: Mapping[str, Any], reminders: Iterable | None = None) -> int:
        """
        Insert an event with its reminders in one transaction.

        reminders=None applies CalendarSettings.default_reminders; pass [] for none.
        """
        with self.store.transaction() as uow:
            event_id = uow.insert("calendar_events", fields)
            if reminders is None:
                settings = uow.find("calendar_settings")
                reminders = (settings[0].default_reminders or []) if settings else []
            for reminder in reminders:
                uow.insert("event_reminders", _reminder_fields(event_id, reminder))
        logger.info("Created calendar event #%d", event_id)
        return event_id

    def update_event(self, event_id: int, **changes) -> None:
        self.store.update("calendar_events", event_id, changes)

    def add_reminder(self, event_id: int, minutes_before: int, reminder_type: str = "notification") -> int:
        return self.store.insert("event_reminders", _reminder_fields(
            event_id, {"reminder_time": minutes_before, "reminder_type": reminder_type}
        ))

    def duplicate_event(self, event_id: int) -> int:
        """Copy an event (and its reminders, re-armed). Instances are copied as standalone events."""
        with self.store.transaction() as uow:
            source = uow.get("calendar_events", event_id)
            fields = {
                c.name: getattr(source, c.name)
                for c in source.__table__.columns
                if c.name not in _DUPLICATE_SKIP
            }
            fields["title"] = f"{source.title} (copy)"
            new_id = uow.insert("calendar_events", fields)
            for reminder in uow.find("event_reminders", {"event_id": event_id}):
                uow.insert("event_reminders", _reminder_fields(new_id, {
                    "reminder_time": reminder.reminder_time,
                    "reminder_type": reminder.reminder_type,
                }))
        return new_id

    # --- Recurrence exceptions ---

    def create_recurrence_exception(self, template_id: int, occurrence_date: datetime, **overrides) -> int:
        """
        Materialize one occurrence of a template so it can be edited on its own.
        An existing exception for the same occurrence is updated instead.

        Raises:
            InvariantViolation: not a template, or occurrence_date is not one of its occurrences
        """
        overrides.setdefault("is_recurrence_exception", True)
        overrides.setdefault("is_cancelled", False)
        return self._write_exception(template_id, occurrence_date, overrides)

    def cancel_occurrence(self, template_id: int, occurrence_date: datetime) -> int:
        return self._write_exception(template_id, occurrence_date, {"is_cancelled": True})

    def _write_exception(self, template_id: int, occurrence_date: datetime, fields: dict) -> int:
        for name in ("recurrence_parent_id", "recurrence_date", "recurrence_rule"):
            if name in fields:
                raise FieldError(f"{name} is set by the exception itself")
        anchor = to_utc_naive(occurrence_date)

        with self.store.transaction() as uow:
            template = uow.get("calendar_events", template_id)
            kind = event_kind(template)
            if not isinstance(kind, Template):
                raise InvariantViolation(f"calendar event #{template_id} is not a recurrence template")
            self._check_is_occurrence(template, kind, anchor)

            existing = uow.find(
                "calendar_events",
                {"recurrence_parent_id": template_id, "recurrence_date": anchor},
            )
            if existing:
                uow.update("calendar_events", existing[0].id, fields)
                return existing[0].id

            values = {name: getattr(template, name) for name in _OCCURRENCE_FIELDS}
            values.update(
                start_time=anchor,
                end_time=anchor + (template.end_time - template.start_time),
                recurrence_parent_id=template_id,
                recurrence_date=anchor,
                is_recurrence_exception=True,
            )
            values.update(fields)
            exception_id = uow.insert("calendar_events", values)
        logger.info("Recurrence exception #%d for template #%d at %s", exception_id, template_id, anchor)
        return exception_id

    def _check_is_occurrence(self, template, kind: Template, anchor: datetime) -> None:
        for candidate in iter_occurrence_starts(kind.rule, template.start_time):
            if candidate == anchor:
                return
            if candidate > anchor:
                break
        raise InvariantViolation(
            f"{anchor.isoformat()} is not an occurrence of calendar event #{template.id}"
        )

    # --- Deletes ---

    def delete_event(self, event_id: int, scope: str = "all", occurrence_date: datetime | None = None) -> DeletePlan | None:
        """
        Scoped delete, as offered by the calendar UI:

        - all: the event, or for an instance its whole series
        - single: one occurrence (cancelled, so the series keeps its shape)
        - future: the given occurrence and everything after it

        Returns the DeletePlan when rows were removed, None when the change
        was expressed as an update.
        """
        if scope not in DELETE_SCOPES:
            raise FieldError(f"scope must be one of {', '.join(DELETE_SCOPES)}, got {scope!r}")

        with self.store.transaction() as uow:
            row = uow.get("calendar_events", event_id)
            kind = event_kind(row)

            if isinstance(kind, Standalone):
                return uow.delete("calendar_events", event_id)

            if isinstance(kind, Instance):
                if scope == "single":
                    uow.update("calendar_events", event_id, {"is_cancelled": True})
                    return None
                template_id, anchor = kind.parent_id, kind.anchor
            else:
                template_id = event_id
                anchor = to_utc_naive(occurrence_date) if occurrence_date is not None else None

            if scope == "all":
                return uow.delete("calendar_events", template_id)

            if anchor is None:
                raise FieldError(f"scope={scope!r} on a recurring event requires occurrence_date")
            if scope == "single":
                self.cancel_occurrence(template_id, anchor)
                return None
            return self._truncate_series(uow, template_id, anchor)

    def _truncate_series(self, uow, template_id: int, anchor: datetime) -> DeletePlan | None:
        template = uow.get("calendar_events", template_id)
        if anchor <= template.start_time:
            return uow.delete("calendar_events", template_id)

        kind = event_kind(template)
        until = anchor - timedelta(seconds=1)
        if kind.rule.until is None or kind.rule.until > until:
            uow.update("calendar_events", template_id, {
                "recurrence_rule": format_rule(replace(kind.rule, until=until)),
            })

        plan = None
        for exc in uow.find("calendar_events", {"recurrence_parent_id": template_id}, ("recurrence_date",)):
            if exc.recurrence_date >= anchor:
                removed = uow.delete("calendar_events", exc.id)
                plan = removed if plan is None else plan.merge(removed)
        logger.info("Series #%d truncated before %s", template_id, anchor)
        return plan

    # --- Categories ---

    def ensure_default_categories(self) -> list[int]:
        """Seed the built-in categories once. Returns ids of the rows created."""
        created = []
        with self.store.transaction() as uow:
            if uow.find("event_categories", {"is_default": True}):
                return created
            for category in DEFAULT_EVENT_CATEGORIES:
                created.append(uow.insert("event_categories", dict(category, is_default=True)))
        logger.info("Seeded %d default event categories", len(created))
        return created
