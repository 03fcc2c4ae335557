"""
Change bus - publish/subscribe channel for committed changes

The MutationGateway is the only publisher. Listeners are called synchronously,
in registration order, after the transaction has committed.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeNotice:
    change_id: int  # last journal id written by the commit
    tables: frozenset[str]


Listener = Callable[[ChangeNotice], None]


class ChangeBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: dict[int, Listener] = {}
        self._ids = itertools.count(1)

    def subscribe(self, listener: Listener) -> int:
        with self._lock:
            token = next(self._ids)
            self._listeners[token] = listener
        return token

    def unsubscribe(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def publish(self, notice: ChangeNotice) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(notice)
            except Exception:
                # commit is final; keep notifying the rest
                logger.exception("Change listener failed for change_id=%d", notice.change_id)
