"""
Mutation Gateway - the single write path into the local store

Every insert/update/delete goes through a UnitOfWork:
  1. validate columns, foreign keys and row invariants
  2. for deletes, compute the full cascade/nullify closure (DeletePlan) before
     any row is touched
  3. apply and journal the changes in one transaction (all or nothing)
  4. after commit, publish a ChangeNotice on the ChangeBus

Writers are serialized by one re-entrant lock held until commit; the notice is
published after the lock is released.
"""
import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping

from sqlalchemy import DateTime
from sqlalchemy.orm import Session, sessionmaker

from lecturevault.domain.errors import (
    ConstraintViolation, FieldError, InvariantViolation, NotFound, SingletonViolation,
)
from lecturevault.domain.event import Instance, Template, check_event_times, event_kind
from lecturevault.infrastructure.changelog.bus import ChangeBus, ChangeNotice
from lecturevault.infrastructure.changelog.repository import ChangeLogRepository
from lecturevault.infrastructure.db.models import CalendarEventModel
from lecturevault.readmodels.queries import EntityQuery
from lecturevault.infrastructure.db.schema import (
    CASCADE, ENTITY_MODELS, MANAGED_COLUMNS, SINGLETON_ID, SINGLETON_TABLES,
    references_from, references_to, resolve_entity,
)
from lecturevault.utils.dates import to_utc_naive, utcnow
from lecturevault.utils import validation

logger = logging.getLogger(__name__)


@dataclass
class DeletePlan:
    """Closure of one delete: rows to remove (children first) and links to clear."""
    root_table: str
    root_id: int
    deletes: list[tuple[str, int]] = field(default_factory=list)
    nullifies: list[tuple[str, int, str]] = field(default_factory=list)  # (table, row_id, column)

    def deleted_ids(self, table: str) -> set[int]:
        return {row_id for t, row_id in self.deletes if t == table}

    def merge(self, other: "DeletePlan") -> "DeletePlan":
        """Fold another delete of the same transaction into this plan."""
        self.deletes.extend(other.deletes)
        self.nullifies.extend(other.nullifies)
        return self

    @property
    def tables(self) -> frozenset[str]:
        return frozenset(t for t, _ in self.deletes) | frozenset(t for t, _, _ in self.nullifies)


def _json_safe(values: Mapping[str, Any]) -> dict:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in values.items()}


def _require(result: tuple[bool, str | None]) -> None:
    ok, error = result
    if not ok:
        raise FieldError(error)


def _exists(db: Session, model, row_id) -> bool:
    # Query, not Session.get: bulk deletes earlier in the same unit of work leave stale identity-map entries
    return db.query(model.id).filter(model.id == row_id).first() is not None


class UnitOfWork:
    """One transaction's worth of validated mutations. Obtain via MutationGateway.transaction()."""

    def __init__(self, db: Session, now: datetime):
        self.db = db
        self.now = now
        self.journal = ChangeLogRepository(db)
        self.tables: set[str] = set()
        self.last_change_id = 0

    # --- Reads (same transaction) ---

    def get(self, entity, row_id: int):
        model = resolve_entity(entity)
        row = self.db.query(model).filter(model.id == row_id).first()
        if row is None:
            raise NotFound(model.__tablename__, row_id)
        return row

    def find(self, entity, filters: Mapping[str, Any] | None = None, order_by: tuple[str, ...] = ("id",)) -> list:
        return EntityQuery(resolve_entity(entity).__tablename__, filters or {}, order_by).execute(self.db)

    # --- Mutations ---

    def insert(self, entity, fields: Mapping[str, Any]) -> int:
        model = resolve_entity(entity)
        table = model.__tablename__
        values = self._clean_fields(model, fields)

        if table in SINGLETON_TABLES:
            if _exists(self.db, model, SINGLETON_ID):
                raise SingletonViolation(f"{table} already has its single row")
            values["id"] = SINGLETON_ID

        self._check_references(table, values, full=True)
        self._check_required(model, values)
        self._check_row(table, values, values, existing=None)

        values["created_at"] = self.now
        values["updated_at"] = self.now
        row = model(**values)
        self.db.add(row)
        self.db.flush()

        self._journal(table, row.id, "insert", values)
        logger.debug("Inserted %s #%d", table, row.id)
        return row.id

    def update(self, entity, row_id: int, fields: Mapping[str, Any]) -> None:
        model = resolve_entity(entity)
        table = model.__tablename__
        row = self.db.query(model).filter(model.id == row_id).first()
        if row is None:
            raise NotFound(table, row_id)

        values = self._clean_fields(model, fields)
        for name, value in values.items():
            column = model.__table__.columns[name]
            if value is None and not column.nullable and not column.foreign_keys:
                raise FieldError(f"{table}.{name} cannot be null")

        self._check_references(table, values, full=False)
        merged = {c.name: getattr(row, c.name) for c in model.__table__.columns}
        merged.update(values)
        self._check_row(table, merged, values, existing=row)

        for name, value in values.items():
            setattr(row, name, value)
        row.updated_at = self.now
        self.db.flush()

        self._journal(table, row_id, "update", values)

    def delete(self, entity, row_id: int) -> DeletePlan:
        model = resolve_entity(entity)
        table = model.__tablename__
        if table in SINGLETON_TABLES:
            raise SingletonViolation(f"{table} row is permanent and cannot be deleted")
        if not _exists(self.db, model, row_id):
            raise NotFound(table, row_id)

        plan = self.plan_delete(table, row_id)

        for child_table, child_id, column in plan.nullifies:
            child = ENTITY_MODELS[child_table]
            self.db.query(child).filter(child.id == child_id).update(
                {column: None, "updated_at": self.now}, synchronize_session=False
            )
            self._journal(child_table, child_id, "nullify", {column: None})

        for del_table, del_id in plan.deletes:
            target = ENTITY_MODELS[del_table]
            self.db.query(target).filter(target.id == del_id).delete(synchronize_session=False)
            self._journal(del_table, del_id, "delete", None)

        self.db.flush()
        # bulk statements bypass the identity map
        self.db.expire_all()
        logger.info(
            "Deleted %s #%d: %d row(s) removed, %d link(s) cleared",
            table, row_id, len(plan.deletes), len(plan.nullifies),
        )
        return plan

    # --- Delete closure ---

    def plan_delete(self, table: str, row_id: int) -> DeletePlan:
        """
        Walk the foreign key graph from (table, row_id) and collect every row the
        delete reaches. Nothing is modified.
        """
        discovered = [(table, row_id)]
        seen = {(table, row_id)}
        nullify_candidates: list[tuple[str, int, str]] = []
        queue = deque([(table, [row_id])])

        while queue:
            parent_table, parent_ids = queue.popleft()
            for edge in references_to(parent_table):
                child = ENTITY_MODELS[edge.child_table]
                column = getattr(child, edge.child_column)
                child_ids = [
                    r for (r,) in self.db.query(child.id).filter(column.in_(parent_ids)).order_by(child.id)
                ]
                if not child_ids:
                    continue
                if edge.policy == CASCADE:
                    fresh = [i for i in child_ids if (edge.child_table, i) not in seen]
                    for i in fresh:
                        seen.add((edge.child_table, i))
                        discovered.append((edge.child_table, i))
                    if fresh:
                        queue.append((edge.child_table, fresh))
                else:
                    nullify_candidates.extend((edge.child_table, i, edge.child_column) for i in child_ids)

        plan = DeletePlan(root_table=table, root_id=row_id)
        # Discovery is breadth-first from the root, so reversing it removes children before parents
        plan.deletes = list(reversed(discovered))
        plan.nullifies = [n for n in dict.fromkeys(nullify_candidates) if (n[0], n[1]) not in seen]
        return plan

    # --- Validation ---

    def _clean_fields(self, model, fields: Mapping[str, Any]) -> dict:
        table = model.__tablename__
        columns = model.__table__.columns
        values = {}
        for name, value in fields.items():
            if name in MANAGED_COLUMNS:
                raise FieldError(f"{table}.{name} is managed by the store and cannot be written")
            if name not in columns:
                raise FieldError(f"{table} has no column {name!r}")
            if isinstance(columns[name].type, DateTime) and value is not None:
                if not isinstance(value, datetime):
                    raise FieldError(f"{table}.{name} must be a datetime, got {value!r}")
                value = to_utc_naive(value)
            values[name] = value
        return values

    def _check_required(self, model, values: Mapping[str, Any]) -> None:
        for column in model.__table__.columns:
            if column.name in MANAGED_COLUMNS or column.foreign_keys:
                continue
            if column.nullable or column.default is not None or column.server_default is not None:
                continue
            if values.get(column.name) is None:
                raise FieldError(f"{model.__tablename__}.{column.name} is required")

    def _check_references(self, table: str, values: Mapping[str, Any], full: bool) -> None:
        for edge in references_from(table):
            if not full and edge.child_column not in values:
                continue
            target = values.get(edge.child_column)
            if target is None:
                if not edge.nullable:
                    raise ConstraintViolation(f"{table}.{edge.child_column} is required")
                continue
            if not _exists(self.db, ENTITY_MODELS[edge.parent_table], target):
                raise ConstraintViolation(
                    f"{table}.{edge.child_column} references missing {edge.parent_table} #{target}"
                )

    def _check_row(self, table: str, merged: Mapping[str, Any], changed: Mapping[str, Any], existing) -> None:
        if table == "calendar_events":
            self._check_event(merged, existing)
        elif table == "event_reminders":
            _require(validation.validate_non_negative(merged.get("reminder_time"), "reminder_time"))
            if "reminder_type" in changed:
                _require(validation.validate_choice(
                    merged.get("reminder_type"), validation.REMINDER_TYPES, "reminder_type"
                ))
            if existing is not None and existing.is_triggered and changed.get("is_triggered") is False:
                raise InvariantViolation(f"reminder #{existing.id} has fired and cannot be re-armed")
        elif table == "event_categories":
            if "color" in changed:
                _require(validation.validate_hex_color(merged.get("color")))
        elif table == "recordings":
            _require(validation.validate_non_negative(merged.get("duration"), "duration"))
            _require(validation.validate_non_negative(merged.get("file_size"), "file_size"))
        elif table == "calendar_settings":
            self._check_calendar_settings(changed)

    def _check_event(self, merged: Mapping[str, Any], existing) -> None:
        kind = event_kind(merged)
        check_event_times(merged)

        if isinstance(kind, Instance):
            if existing is not None and kind.parent_id == existing.id:
                raise InvariantViolation("an event cannot be a recurrence instance of itself")
            parent = self.db.query(CalendarEventModel).filter(
                CalendarEventModel.id == kind.parent_id
            ).first()
            if parent is not None and parent.recurrence_rule is None:
                raise InvariantViolation(
                    f"recurrence parent #{kind.parent_id} is not a recurrence template"
                )

        if existing is not None and existing.recurrence_rule is not None and not isinstance(kind, Template):
            has_instances = self.db.query(CalendarEventModel.id).filter(
                CalendarEventModel.recurrence_parent_id == existing.id
            ).first()
            if has_instances is not None:
                raise InvariantViolation(
                    f"template #{existing.id} still has recurrence instances; delete them before dropping the rule"
                )

    def _check_calendar_settings(self, changed: Mapping[str, Any]) -> None:
        if "default_view" in changed:
            _require(validation.validate_choice(changed["default_view"], validation.CALENDAR_VIEWS, "default_view"))
        if "week_starts_on" in changed:
            _require(validation.validate_choice(changed["week_starts_on"], (0, 1), "week_starts_on"))
        for name in ("working_hours_start", "working_hours_end"):
            if name in changed:
                _require(validation.validate_clock_time(changed[name]))
        if "default_event_duration" in changed:
            duration = changed["default_event_duration"]
            if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
                raise FieldError(f"default_event_duration must be a positive number of minutes, got {duration!r}")
        if "time_format" in changed:
            _require(validation.validate_choice(changed["time_format"], validation.TIME_FORMATS, "time_format"))
        if "default_reminders" in changed:
            _require(validation.validate_minute_offsets(changed["default_reminders"]))

    # --- Journal ---

    def _journal(self, table: str, row_id: int, operation: str, values: Mapping[str, Any] | None) -> None:
        self.last_change_id = self.journal.append_change(
            table_name=table,
            row_id=row_id,
            operation=operation,
            occurred_at=self.now,
            payload=_json_safe(values) if values is not None else None,
        )
        self.tables.add(table)


class MutationGateway:
    """
    Sole writer of the store.

    Usage:
        >>> gateway = MutationGateway(session_factory, bus)
        >>> folder_id = gateway.insert("folders", {"name": "Physics"})
        >>> with gateway.transaction() as uow:
        ...     rec_id = uow.insert("recordings", {"name": "Lecture 1", "folder_id": folder_id})
        ...     uow.insert("transcripts", {"recording_id": rec_id, "text": "..."})
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        bus: ChangeBus | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.bus = bus or ChangeBus()
        self._clock = clock
        self._lock = threading.RLock()
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """
        Open a unit of work. Nested calls on the same thread join the outer one;
        the outermost exit commits (or rolls back on any exception) and publishes.
        """
        current = getattr(self._local, "uow", None)
        if current is not None:
            yield current
            return

        with self._lock:
            db = self._session_factory()
            uow = UnitOfWork(db, self._clock())
            self._local.uow = uow
            try:
                yield uow
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                self._local.uow = None
                db.close()

        # outside the writer lock: listeners may write from other threads
        if uow.tables:
            self.bus.publish(ChangeNotice(change_id=uow.last_change_id, tables=frozenset(uow.tables)))

    def insert(self, entity, fields: Mapping[str, Any]) -> int:
        with self.transaction() as uow:
            return uow.insert(entity, fields)

    def update(self, entity, row_id: int, fields: Mapping[str, Any]) -> None:
        with self.transaction() as uow:
            uow.update(entity, row_id, fields)

    def delete(self, entity, row_id: int) -> DeletePlan:
        with self.transaction() as uow:
            return uow.delete(entity, row_id)
