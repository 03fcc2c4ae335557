"""Settings use cases - first-run singletons, profile, preferences, calendar settings"""
import logging
from typing import Any, Mapping

from lecturevault.domain.errors import FieldError
from lecturevault.infrastructure.db.schema import SINGLETON_ID

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "username")

CALENDAR_SETTINGS_DEFAULTS = {
    "default_view": "month",
    "week_starts_on": 0,
    "working_hours_start": "09:00",
    "working_hours_end": "17:00",
    "default_event_duration": 60,
    "show_week_numbers": False,
    "default_reminders": [],
    "time_format": "12h",
}


class SettingsService:

    def __init__(self, store):
        self.store = store

    def ensure_first_run(self) -> bool:
        """
        Create both singleton rows if they are missing. Idempotent.

        Returns:
            True if anything was created
        """
        created = False
        with self.store.transaction() as uow:
            if not uow.find("app_settings"):
                uow.insert("app_settings", {"preferences": {}})
                created = True
            if not uow.find("calendar_settings"):
                uow.insert("calendar_settings", dict(CALENDAR_SETTINGS_DEFAULTS))
                created = True
        if created:
            logger.info("First run: settings rows created")
        return created

    def app_settings(self):
        return self.store.find_by_id("app_settings", SINGLETON_ID)

    def calendar_settings(self):
        return self.store.find_by_id("calendar_settings", SINGLETON_ID)

    def update_app_settings(self, **changes) -> None:
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise FieldError(f"unknown profile field(s): {', '.join(sorted(unknown))}")
        self.store.update("app_settings", SINGLETON_ID, changes)

    def update_preferences(self, values: Mapping[str, Any], replace: bool = False) -> dict:
        """Merge `values` into the opaque preferences map (or replace it)."""
        with self.store.transaction() as uow:
            row = uow.get("app_settings", SINGLETON_ID)
            current = {} if replace else dict(row.preferences or {})
            current.update(values)
            uow.update("app_settings", SINGLETON_ID, {"preferences": current})
        return current

    def update_calendar_settings(self, **changes) -> None:
        unknown = set(changes) - set(CALENDAR_SETTINGS_DEFAULTS)
        if unknown:
            raise FieldError(f"unknown calendar setting(s): {', '.join(sorted(unknown))}")
        self.store.update("calendar_settings", SINGLETON_ID, changes)
