"""
Read side of the store. Every call uses its own short-lived session and
returns detached rows, so results stay readable after the session closes.
"""
from typing import Any, Mapping

from sqlalchemy.orm import sessionmaker

from lecturevault.domain.errors import NotFound
from lecturevault.infrastructure.db.schema import resolve_entity
from lecturevault.readmodels.queries import EntityQuery


class StoreQueries:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def run(self, query) -> list:
        """Evaluate any query object exposing execute(db)."""
        db = self._session_factory()
        try:
            result = query.execute(db)
            db.expunge_all()
            return result
        finally:
            db.close()

    def find_by_id(self, entity, row_id: int):
        """
        Raises:
            NotFound: no row with that id
            UnknownEntity: entity is not part of the schema
        """
        model = resolve_entity(entity)
        rows = self.run(EntityQuery(model.__tablename__, {"id": row_id}))
        if not rows:
            raise NotFound(model.__tablename__, row_id)
        return rows[0]

    def find_many(
        self,
        entity,
        filters: Mapping[str, Any] | None = None,
        order_by: tuple[str, ...] = ("id",),
        limit: int | None = None,
    ) -> list:
        return self.run(EntityQuery(resolve_entity(entity).__tablename__, filters or {}, order_by, limit))
