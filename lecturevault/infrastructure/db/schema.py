"""
Schema & constraint graph

The foreign key graph is read from the declarative models' metadata, so the
ondelete= declarations in models.py are the single source of delete policy.
"""
from dataclasses import dataclass
from functools import lru_cache

from lecturevault.domain.errors import UnknownEntity
from lecturevault.infrastructure.db.session import Base
from lecturevault.infrastructure.db import models

CASCADE = "cascade"
NULLIFY = "nullify"

SINGLETON_TABLES = frozenset({"app_settings", "calendar_settings"})
SINGLETON_ID = 1

# Columns the gateway owns; callers never write them
MANAGED_COLUMNS = frozenset({"id", "created_at", "updated_at"})

ENTITY_MODELS = {
    model.__tablename__: model
    for model in (
        models.AppSettingsModel,
        models.FolderModel,
        models.EventCategoryModel,
        models.CalendarEventModel,
        models.EventReminderModel,
        models.CalendarSettingsModel,
        models.RecordingModel,
        models.TranscriptModel,
        models.SummaryModel,
    )
}


@dataclass(frozen=True)
class ForeignKeyEdge:
    """child_table.child_column -> parent_table.id, with its delete policy"""
    child_table: str
    child_column: str
    parent_table: str
    policy: str
    nullable: bool


def resolve_entity(entity):
    """Entity name (table name) or model class -> model class."""
    if isinstance(entity, type) and getattr(entity, "__tablename__", None) in ENTITY_MODELS:
        return entity
    model = ENTITY_MODELS.get(entity)
    if model is None:
        raise UnknownEntity(f"unknown entity: {entity!r}")
    return model



def _policy(ondelete: str | None) -> str:
    rule = (ondelete or "").upper()
    if rule == "CASCADE":
        return CASCADE
    if rule == "SET NULL":
        return NULLIFY
    raise ValueError(f"unsupported ondelete rule: {ondelete!r}")


@lru_cache
def foreign_key_edges() -> tuple[ForeignKeyEdge, ...]:
    edges = []
    for name in sorted(ENTITY_MODELS):
        table = Base.metadata.tables[name]
        for fk in sorted(table.foreign_keys, key=lambda f: f.parent.name):
            edges.append(ForeignKeyEdge(
                child_table=name,
                child_column=fk.parent.name,
                parent_table=fk.column.table.name,
                policy=_policy(fk.ondelete),
                nullable=bool(fk.parent.nullable),
            ))
    return tuple(edges)


def references_to(table: str) -> list[ForeignKeyEdge]:
    """Edges whose parent is `table` (who points at me)."""
    return [e for e in foreign_key_edges() if e.parent_table == table]


def references_from(table: str) -> list[ForeignKeyEdge]:
    """Edges whose child is `table` (whom I point at)."""
    return [e for e in foreign_key_edges() if e.child_table == table]
