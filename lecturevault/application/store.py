"""
LocalStore - the Query / Mutation / Subscription API in one object

    store = build_store()
    folder_id = store.insert("folders", {"name": "Physics"})
    sub = store.subscribe(EntityQuery("recordings", {"folder_id": folder_id}))
"""
import logging
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from lecturevault.application.gateway import DeletePlan, MutationGateway
from lecturevault.application.occurrences import OccurrenceExpander
from lecturevault.application.queries import StoreQueries
from lecturevault.config import Settings, get_settings
from lecturevault.domain.occurrence import Occurrence
from lecturevault.domain.recurrence import MAX_EMPTY_PERIODS
from lecturevault.infrastructure.changelog.bus import ChangeBus
from lecturevault.infrastructure.changelog.repository import ChangeLogRepository
from lecturevault.infrastructure.db.session import Base, build_engine, build_session_factory
from lecturevault.readmodels.subscriptions import Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)


class LocalStore:

    def __init__(
        self,
        session_factory: sessionmaker,
        bus: ChangeBus | None = None,
        max_empty_periods: int = MAX_EMPTY_PERIODS,
        clock=None,
    ):
        self.session_factory = session_factory
        self.bus = bus or ChangeBus()
        gateway_kwargs = {"clock": clock} if clock is not None else {}
        self.gateway = MutationGateway(session_factory, self.bus, **gateway_kwargs)
        self.queries = StoreQueries(session_factory)
        self.expander = OccurrenceExpander(session_factory, max_empty_periods)
        self.subscriptions = SubscriptionRegistry(session_factory, self.bus)

    # --- Mutation API ---

    def insert(self, entity, fields: Mapping[str, Any]) -> int:
        return self.gateway.insert(entity, fields)

    def update(self, entity, row_id: int, fields: Mapping[str, Any]) -> None:
        self.gateway.update(entity, row_id, fields)

    def delete(self, entity, row_id: int) -> DeletePlan:
        return self.gateway.delete(entity, row_id)

    def transaction(self):
        return self.gateway.transaction()

    # --- Query API ---

    def find_by_id(self, entity, row_id: int):
        return self.queries.find_by_id(entity, row_id)

    def find_many(self, entity, filters: Mapping[str, Any] | None = None,
                  order_by: tuple[str, ...] = ("id",), limit: int | None = None) -> list:
        return self.queries.find_many(entity, filters, order_by, limit)

    def expand_occurrences(self, template_id: int, window_start: datetime, window_end: datetime) -> list[Occurrence]:
        return self.expander.expand(template_id, window_start, window_end)

    def list_occurrences(self, window_start: datetime, window_end: datetime) -> list[Occurrence]:
        return self.expander.list_window(window_start, window_end)

    def version(self) -> int:
        """Latest committed change id."""
        db = self.session_factory()
        try:
            return ChangeLogRepository(db).latest_change_id()
        finally:
            db.close()

    # --- Subscription API ---

    def subscribe(self, query, callback=None) -> Subscription:
        return self.subscriptions.subscribe(query, callback)

    def unsubscribe(self, handle) -> None:
        self.subscriptions.unsubscribe(handle)

    def close(self) -> None:
        self.subscriptions.close()


def build_store(settings: Settings | None = None, engine: Engine | None = None) -> LocalStore:
    """
    Open (and if needed create) the store described by settings, then make
    sure both singleton rows exist.
    """
    from lecturevault.application.settings import SettingsService

    settings = settings or get_settings()
    engine = engine or build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    Base.metadata.create_all(engine)

    store = LocalStore(
        build_session_factory(engine),
        max_empty_periods=settings.EXPANSION_MAX_EMPTY_PERIODS,
    )
    SettingsService(store).ensure_first_run()
    logger.info("Local store ready at %s", engine.url.render_as_string(hide_password=True))
    return store
