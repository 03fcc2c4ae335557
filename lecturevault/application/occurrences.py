"""
Occurrence loading: fetch templates/exceptions and hand them to the pure
expansion in lecturevault.domain.occurrence.
"""
import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from lecturevault.domain.errors import InvariantViolation, NotFound
from lecturevault.domain.occurrence import (
    Occurrence, expand_template, occurrence_from_row, overlaps,
)
from lecturevault.domain.recurrence import MAX_EMPTY_PERIODS
from lecturevault.infrastructure.db.models import CalendarEventModel

logger = logging.getLogger(__name__)


def _check_window(window_start: datetime, window_end: datetime) -> None:
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")


def load_template(db: Session, template_id: int) -> CalendarEventModel:
    row = db.query(CalendarEventModel).filter(CalendarEventModel.id == template_id).first()
    if row is None:
        raise NotFound("calendar_events", template_id)
    if row.recurrence_rule is None:
        raise InvariantViolation(f"calendar event #{template_id} is not a recurrence template")
    return row


def expand_occurrences(
    db: Session,
    template_id: int,
    window_start: datetime,
    window_end: datetime,
    max_empty_periods: int = MAX_EMPTY_PERIODS,
) -> list[Occurrence]:
    """
    Occurrences of one template overlapping [window_start, window_end)

    Raises:
        NotFound: no such event
        InvariantViolation: the event is not a template
        MalformedRule: the stored rule does not parse
    """
    _check_window(window_start, window_end)
    template = load_template(db, template_id)
    exceptions = (
        db.query(CalendarEventModel)
        .filter(CalendarEventModel.recurrence_parent_id == template_id)
        .order_by(CalendarEventModel.id)
        .all()
    )
    return expand_template(template, exceptions, window_start, window_end, max_empty_periods)


def list_occurrences(
    db: Session,
    window_start: datetime,
    window_end: datetime,
    max_empty_periods: int = MAX_EMPTY_PERIODS,
) -> list[Occurrence]:
    """
    Calendar window: standalone events overlapping the window plus every
    template's expansion. Instance rows only appear through their template.
    """
    _check_window(window_start, window_end)
    out: list[Occurrence] = []

    standalone = (
        db.query(CalendarEventModel)
        .filter(
            CalendarEventModel.recurrence_rule.is_(None),
            CalendarEventModel.recurrence_parent_id.is_(None),
            CalendarEventModel.start_time < window_end,
            CalendarEventModel.end_time >= window_start,
        )
        .all()
    )
    for row in standalone:
        if overlaps(row.start_time, row.end_time, window_start, window_end):
            out.append(occurrence_from_row(row, None, row.start_time))

    templates = (
        db.query(CalendarEventModel)
        .filter(CalendarEventModel.recurrence_rule.isnot(None))
        .order_by(CalendarEventModel.id)
        .all()
    )
    if templates:
        exceptions_by_parent = defaultdict(list)
        instances = (
            db.query(CalendarEventModel)
            .filter(CalendarEventModel.recurrence_parent_id.isnot(None))
            .order_by(CalendarEventModel.id)
            .all()
        )
        for row in instances:
            exceptions_by_parent[row.recurrence_parent_id].append(row)

        for template in templates:
            out.extend(expand_template(
                template, exceptions_by_parent[template.id],
                window_start, window_end, max_empty_periods,
            ))

    out.sort(key=lambda o: o.sort_key)
    logger.debug(
        "Calendar window %s..%s: %d occurrence(s) from %d template(s)",
        window_start, window_end, len(out), len(templates),
    )
    return out


class OccurrenceExpander:
    """Session-owning wrapper around expand_occurrences / list_occurrences."""

    def __init__(self, session_factory: sessionmaker, max_empty_periods: int = MAX_EMPTY_PERIODS):
        self._session_factory = session_factory
        self.max_empty_periods = max_empty_periods

    def expand(self, template_id: int, window_start: datetime, window_end: datetime) -> list[Occurrence]:
        db = self._session_factory()
        try:
            return expand_occurrences(db, template_id, window_start, window_end, self.max_empty_periods)
        finally:
            db.close()

    def list_window(self, window_start: datetime, window_end: datetime) -> list[Occurrence]:
        db = self._session_factory()
        try:
            return list_occurrences(db, window_start, window_end, self.max_empty_periods)
        finally:
            db.close()
