"""
Declarative read queries

A query is a value: it knows which tables it observes (for invalidation) and
how to evaluate itself against a session. The subscription layer re-runs it
after commits touching those tables.
"""
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy.orm import Session

from lecturevault.domain.errors import FieldError
from lecturevault.infrastructure.db.schema import resolve_entity


@dataclass(frozen=True)
class EntityQuery:
    """
    Rows of one entity matching equality filters.

    Filter values: a list/tuple/set means IN, None means IS NULL.
    order_by entries prefixed with "-" sort descending; id breaks ties.

    Example:
        >>> EntityQuery("recordings", {"folder_id": 3}, order_by=("-created_at",))
    """
    entity: str
    filters: Mapping[str, Any] = field(default_factory=dict)
    order_by: tuple[str, ...] = ("id",)
    limit: int | None = None

    def __post_init__(self):
        model = resolve_entity(self.entity)
        object.__setattr__(self, "entity", model.__tablename__)
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters)))
        if isinstance(self.order_by, str):
            object.__setattr__(self, "order_by", (self.order_by,))
        columns = model.__table__.columns
        for name in list(self.filters) + [o.lstrip("-") for o in self.order_by]:
            if name not in columns:
                raise FieldError(f"{self.entity} has no column {name!r}")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be >= 0")

    @property
    def tables(self) -> frozenset[str]:
        return frozenset({self.entity})

    def execute(self, db: Session) -> list:
        model = resolve_entity(self.entity)
        query = db.query(model)
        for name, value in self.filters.items():
            column = getattr(model, name)
            if value is None:
                query = query.filter(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)

        ordering = []
        for name in self.order_by:
            column = getattr(model, name.lstrip("-"))
            ordering.append(column.desc() if name.startswith("-") else column.asc())
        if "id" not in {o.lstrip("-") for o in self.order_by}:
            ordering.append(model.id.asc())
        query = query.order_by(*ordering)

        if self.limit is not None:
            query = query.limit(self.limit)
        return query.all()


@dataclass(frozen=True)
class OccurrenceQuery:
    """Expanded occurrences of one template inside [window_start, window_end)."""
    template_id: int
    window_start: datetime
    window_end: datetime

    @property
    def tables(self) -> frozenset[str]:
        return frozenset({"calendar_events"})

    def execute(self, db: Session) -> list:
        from lecturevault.application.occurrences import expand_occurrences
        return expand_occurrences(db, self.template_id, self.window_start, self.window_end)


@dataclass(frozen=True)
class CalendarWindowQuery:
    """Calendar view: every event and expanded occurrence inside the window."""
    window_start: datetime
    window_end: datetime

    @property
    def tables(self) -> frozenset[str]:
        return frozenset({"calendar_events"})

    def execute(self, db: Session) -> list:
        from lecturevault.application.occurrences import list_occurrences
        return list_occurrences(db, self.window_start, self.window_end)
