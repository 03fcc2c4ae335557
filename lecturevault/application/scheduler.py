"""
Background scheduler - runs periodic jobs inside the FastAPI process.

Jobs:
  - Reminder dispatcher (every REMINDER_POLL_SECONDS)
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler

from lecturevault.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_reminders(dispatcher):
    try:
        sent = dispatcher.dispatch_due()
        if sent:
            logger.info("Reminder job dispatched %d reminder(s)", len(sent))
    except Exception:
        logger.exception("Reminder dispatch job failed")


def start_scheduler(store, notifier=None):
    """Start the background scheduler with all periodic jobs."""
    from lecturevault.application.reminder_dispatcher import ReminderDispatcher

    settings = get_settings()
    kwargs = {"grace_minutes": settings.REMINDER_GRACE_MINUTES}
    if notifier is not None:
        kwargs["notifier"] = notifier
    dispatcher = ReminderDispatcher(store, **kwargs)

    scheduler.add_job(
        _run_reminders,
        "interval",
        seconds=settings.REMINDER_POLL_SECONDS,
        args=[dispatcher],
        id="reminders",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
    logger.info("Scheduler started: reminders (every %d s)", settings.REMINDER_POLL_SECONDS)


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
