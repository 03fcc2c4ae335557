"""
Pure expansion of a template event into dated occurrences.

Input rows may be ORM objects or anything with the calendar_events attributes.
Nothing here touches the database: the same template, exceptions and window
always produce the same list.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from lecturevault.domain.errors import InvariantViolation
from lecturevault.domain.event import Template, Instance, event_kind
from lecturevault.domain.recurrence import MAX_EMPTY_PERIODS, iter_occurrence_starts


@dataclass(frozen=True)
class Occurrence:
    template_id: int | None  # None for standalone events
    occurrence_date: datetime  # original (un-moved) start, stable across queries
    start_time: datetime
    end_time: datetime
    title: str
    description: str | None
    location: str | None
    is_all_day: bool
    is_lecture: bool
    category_id: int | None
    timezone: str
    event_id: int  # row that supplied the fields: template, exception or standalone
    exception_id: int | None = None

    @property
    def sort_key(self) -> tuple[datetime, datetime, int]:
        return self.start_time, self.occurrence_date, self.event_id


def overlaps(start: datetime, end: datetime, window_start: datetime, window_end: datetime) -> bool:
    """Half-open overlap; zero-length events count when they start inside the window."""
    if end <= start:
        return window_start <= start < window_end
    return start < window_end and end > window_start


def occurrence_from_row(row: Any, template_id: int | None, occurrence_date: datetime,
                        start: datetime | None = None, end: datetime | None = None,
                        exception_id: int | None = None) -> Occurrence:
    return Occurrence(
        template_id=template_id,
        occurrence_date=occurrence_date,
        start_time=start if start is not None else row.start_time,
        end_time=end if end is not None else row.end_time,
        title=row.title,
        description=row.description,
        location=row.location,
        is_all_day=bool(row.is_all_day),
        is_lecture=bool(row.is_lecture),
        category_id=row.category_id,
        timezone=row.timezone or "UTC",
        event_id=row.id,
        exception_id=exception_id,
    )


def expand_template(
    template: Any,
    exceptions: Iterable[Any],
    window_start: datetime,
    window_end: datetime,
    max_empty_periods: int = MAX_EMPTY_PERIODS,
) -> list[Occurrence]:
    """
    Expand `template` into occurrences overlapping [window_start, window_end).

    1. candidates are generated from the template's own start_time; the upper
       bound is the window end, extended to the latest exception anchor so an
       exception can move an earlier/later occurrence into the window
    2. a candidate matching an exception's recurrence_date takes the exception's
       fields when is_recurrence_exception is set, and disappears when the
       exception is cancelled
    3. occurrences not overlapping the window after substitution are dropped

    Raises:
        InvariantViolation: `template` is not a recurrence template
        MalformedRule: the template's rule does not parse
    """
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")
    kind = event_kind(template)
    if not isinstance(kind, Template):
        raise InvariantViolation(f"calendar event #{template.id} is not a recurrence template")

    by_anchor: dict[datetime, Any] = {}
    for exc in exceptions:
        exc_kind = event_kind(exc)
        if not isinstance(exc_kind, Instance) or exc_kind.parent_id != template.id:
            continue
        current = by_anchor.get(exc_kind.anchor)
        # Two rows for one anchor should not happen; lowest id wins deterministically
        if current is None or exc.id < current.id:
            by_anchor[exc_kind.anchor] = exc

    duration = template.end_time - template.start_time
    last_anchor = max(by_anchor) if by_anchor else None

    out: list[Occurrence] = []
    for candidate in iter_occurrence_starts(kind.rule, template.start_time, max_empty_periods):
        if candidate >= window_end and (last_anchor is None or candidate > last_anchor):
            break
        exc = by_anchor.get(candidate)
        if exc is not None and exc.is_cancelled:
            continue
        if exc is not None and exc.is_recurrence_exception:
            occ = occurrence_from_row(exc, template.id, candidate, exception_id=exc.id)
        else:
            occ = occurrence_from_row(
                template, template.id, candidate,
                start=candidate, end=candidate + duration,
                exception_id=exc.id if exc is not None else None,
            )
        if overlaps(occ.start_time, occ.end_time, window_start, window_end):
            out.append(occ)

    out.sort(key=lambda o: o.sort_key)
    return out
