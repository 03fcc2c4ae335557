"""
Change journal repository

Every row change committed by the MutationGateway is appended here inside the
same transaction. The journal id is the store version subscriptions compare
against.
"""
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy import func
from sqlalchemy.orm import Session

from lecturevault.infrastructure.db.models import ChangeLog


class ChangeLogRepository:

    def __init__(self, db: Session):
        self.db = db

    def append_change(
        self,
        table_name: str,
        row_id: int,
        operation: str,
        occurred_at: datetime,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Append one change entry (flushed, not committed)

        Args:
            table_name: table of the changed row
            row_id: id of the changed row
            operation: insert | update | delete | nullify
            occurred_at: commit timestamp shared by the whole transaction
            payload: changed columns (JSON-safe)

        Returns:
            change_id of the new entry
        """
        entry = ChangeLog(
            table_name=table_name,
            row_id=row_id,
            operation=operation,
            payload_json=payload,
            occurred_at=occurred_at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry.id

    def latest_change_id(self) -> int:
        """Current store version (0 for an empty journal)."""
        return self.db.query(func.max(ChangeLog.id)).scalar() or 0

    def list_changes_since(
        self,
        after_id: int = 0,
        limit: int = 200,
        tables: Optional[List[str]] = None,
    ) -> List[ChangeLog]:
        """
        Changes with id > after_id, oldest first

        Example:
            >>> repo = ChangeLogRepository(db)
            >>> changes = repo.list_changes_since(after_id=120, tables=["recordings"])
        """
        query = self.db.query(ChangeLog).filter(ChangeLog.id > after_id)
        if tables:
            query = query.filter(ChangeLog.table_name.in_(tables))
        return query.order_by(ChangeLog.id.asc()).limit(limit).all()
