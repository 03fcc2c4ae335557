"""
Reminder dispatcher - finds due event reminders, marks them triggered and
hands them to a notifier.

Runs every REMINDER_POLL_SECONDS from lecturevault.application.scheduler.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from lecturevault.infrastructure.db.models import CalendarEventModel, EventReminderModel
from lecturevault.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueReminder:
    reminder_id: int
    event_id: int
    title: str
    start_time: datetime
    fire_at: datetime
    reminder_type: str


Notifier = Callable[[DueReminder], None]


def log_notifier(reminder: DueReminder) -> None:
    logger.info(
        "Reminder (%s): %s starts at %s",
        reminder.reminder_type, reminder.title, reminder.start_time,
    )


class ReminderDispatcher:

    def __init__(self, store, notifier: Notifier = log_notifier, grace_minutes: int = 60):
        self.store = store
        self.notifier = notifier
        self.grace = timedelta(minutes=grace_minutes)

    def dispatch_due(self, now: datetime | None = None) -> list[DueReminder]:
        """
        Mark every untriggered reminder whose fire time (start - reminder_time)
        has passed, then notify the ones that are not older than the grace period.

        Reminders on recurrence templates are skipped: one is_triggered flag
        cannot cover every occurrence.

        Returns:
            reminders handed to the notifier
        """
        now = now or utcnow()
        due: list[DueReminder] = []
        stale = 0

        with self.store.transaction() as uow:
            rows = (
                uow.db.query(EventReminderModel, CalendarEventModel)
                .join(CalendarEventModel, EventReminderModel.event_id == CalendarEventModel.id)
                .filter(
                    EventReminderModel.is_triggered == False,
                    CalendarEventModel.recurrence_rule.is_(None),
                    CalendarEventModel.is_cancelled == False,
                )
                .order_by(CalendarEventModel.start_time, EventReminderModel.id)
                .all()
            )
            for reminder, event in rows:
                fire_at = event.start_time - timedelta(minutes=reminder.reminder_time)
                if fire_at > now:
                    continue
                uow.update("event_reminders", reminder.id, {"is_triggered": True})
                if fire_at < now - self.grace:
                    stale += 1
                    continue
                due.append(DueReminder(
                    reminder_id=reminder.id,
                    event_id=event.id,
                    title=event.title,
                    start_time=event.start_time,
                    fire_at=fire_at,
                    reminder_type=reminder.reminder_type,
                ))

        if stale:
            logger.info("Skipped %d stale reminder(s) older than %s", stale, self.grace)

        for item in due:
            try:
                self.notifier(item)
            except Exception:
                logger.exception("Notifier failed for reminder #%d", item.reminder_id)
        return due
