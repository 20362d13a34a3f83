"""
In-process table change feed.

Writers call ``publish(change)`` after a committed insert, update or
delete; subscribers registered for that table receive a ``TableChange``.
Listener errors are logged and never reach the writer.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableChange:
    table: str
    change_type: str  # INSERT/UPDATE/DELETE
    record_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[TableChange], None]


class Subscription:
    """Handle returned by ``TableChangeFeed.subscribe``."""

    def __init__(self, feed: "TableChangeFeed", table: str, listener: Listener):
        self._feed = feed
        self.table = table
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self.table, self._listener)
            self.active = False


class TableChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, table: str, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.setdefault(table, []).append(listener)
        return Subscription(self, table, listener)

    def publish(self, change: TableChange) -> None:
        with self._lock:
            listeners = list(self._listeners.get(change.table, ()))
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("change listener failed for table=%s", change.table)

    def listener_count(self, table: str) -> int:
        with self._lock:
            return len(self._listeners.get(table, ()))

    def _remove(self, table: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(table, [])
            if listener in listeners:
                listeners.remove(listener)


_default_feed = TableChangeFeed()


def get_default_feed() -> TableChangeFeed:
    return _default_feed
