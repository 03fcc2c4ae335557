"""
Reactive query subscriptions

A SubscriptionRegistry listens on the ChangeBus. After every commit it
re-evaluates the live queries observing one of the changed tables and pushes
the fresh result to each Subscription (queue + optional callback).

Invalidation is table-level: any change to an observed table re-runs the
query, whether or not the result actually changed.
"""
import itertools
import logging
import queue
import threading
from typing import Any, Callable, Iterator

from sqlalchemy.orm import sessionmaker

from lecturevault.domain.errors import StoreError
from lecturevault.infrastructure.changelog.bus import ChangeBus, ChangeNotice
from lecturevault.infrastructure.changelog.repository import ChangeLogRepository

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Subscription:
    """
    Handle returned by subscribe().

    Attributes:
        handle: id used for unsubscribe
        initial: result at subscription time
        version: change id the latest result reflects
        latest: most recent result (initial until the first update)
        error: last error raised while re-evaluating, if any
    """

    def __init__(self, handle: int, query, initial, version: int,
                 callback: Callback | None = None, registry: "SubscriptionRegistry | None" = None):
        self.handle = handle
        self.query = query
        self.initial = initial
        self.latest = initial
        self.version = version
        self.error: Exception | None = None
        self.active = True
        self._callback = callback
        self._registry = registry
        self._queue: queue.Queue = queue.Queue()
        self._delivered = version
        self._push_lock = threading.Lock()

    def get(self, timeout: float | None = None):
        """Next pushed result. Raises queue.Empty when nothing arrives within timeout."""
        return self._queue.get(timeout=timeout)

    def drain(self) -> list:
        """All results pushed since the last read, oldest first."""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def updates(self) -> Iterator:
        yield from self.drain()

    def close(self) -> None:
        if self._registry is not None:
            self._registry.unsubscribe(self.handle)
        self.active = False

    def _push(self, result, version: int) -> None:
        with self._push_lock:
            # a newer result already went out
            if version <= self._delivered or not self.active:
                return
            self._delivered = version
            self.latest = result
            self._queue.put(result)
        if self._callback is not None:
            try:
                self._callback(result)
            except Exception:
                logger.exception("Subscription #%d callback failed", self.handle)


class SubscriptionRegistry:
    """
    Usage:
        >>> registry = SubscriptionRegistry(session_factory, gateway.bus)
        >>> sub = registry.subscribe(EntityQuery("recordings"))
        >>> gateway.insert("recordings", {"name": "Lecture 1"})
        >>> sub.get(timeout=1)  # fresh list with the new recording
    """

    def __init__(self, session_factory: sessionmaker, bus: ChangeBus):
        self._session_factory = session_factory
        self._bus = bus
        self._lock = threading.RLock()
        self._subs: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._token = bus.subscribe(self._on_commit)

    def subscribe(self, query, callback: Callback | None = None) -> Subscription:
        """
        Evaluate `query` now and keep it live.

        The store version is read before the result, so a commit racing with
        the subscription is at worst delivered once more as an update.
        """
        with self._lock:
            db = self._session_factory()
            try:
                version = ChangeLogRepository(db).latest_change_id()
                initial = query.execute(db)
                db.expunge_all()
            finally:
                db.close()

            handle = next(self._ids)
            sub = Subscription(handle, query, initial, version, callback, registry=self)
            self._subs[handle] = sub

        logger.debug("Subscription #%d on %s at version %d", handle, sorted(query.tables), version)
        return sub

    def unsubscribe(self, handle) -> None:
        if isinstance(handle, Subscription):
            handle = handle.handle
        with self._lock:
            sub = self._subs.pop(handle, None)
        if sub is not None:
            sub.active = False

    def active_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def close(self) -> None:
        self._bus.unsubscribe(self._token)
        with self._lock:
            for sub in self._subs.values():
                sub.active = False
            self._subs.clear()

    def _on_commit(self, notice: ChangeNotice) -> None:
        """
        Re-evaluate under the registry lock, deliver after releasing it.

        Callbacks therefore run with no store lock held and may write.
        """
        results = []
        with self._lock:
            affected = [
                sub for sub in self._subs.values()
                if sub.query.tables & notice.tables and notice.change_id > sub.version
            ]
            if not affected:
                return

            db = self._session_factory()
            try:
                for sub in affected:
                    sub.version = notice.change_id
                    try:
                        results.append((sub, sub.query.execute(db)))
                        sub.error = None
                    except StoreError as exc:
                        # e.g. the observed template was deleted
                        logger.warning("Subscription #%d re-evaluation failed: %s", sub.handle, exc)
                        sub.error = exc
                    except Exception as exc:
                        logger.exception("Subscription #%d re-evaluation crashed", sub.handle)
                        sub.error = exc
                        # earlier results stay loaded after close()
                        db.close()
                        db = self._session_factory()
                db.expunge_all()
            finally:
                db.close()

        for sub, result in results:
            sub._push(result, notice.change_id)
