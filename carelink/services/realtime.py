"""In-process change feed.

Services publish a change event after every committed mutation; views
subscribe to a table with an optional column filter and own the lifetime
of their subscription. Delivery is at-least-once from the consumer's point
of view, so consumers deduplicate by primary key.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str  # INSERT | UPDATE | DELETE
    record: dict[str, Any] = field(default_factory=dict)


def _matches(filters: Mapping[str, Any], record: Mapping[str, Any]) -> bool:
    for column, expected in filters.items():
        value = record.get(column)
        if isinstance(expected, (set, frozenset, list, tuple)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, filters: Mapping[str, Any], loop: asyncio.AbstractEventLoop):
        self._feed = feed
        self.table = table
        self.filters = dict(filters)
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.closed = False

    def wants(self, event: ChangeEvent) -> bool:
        return not self.closed and event.table == self.table and _matches(self.filters, event.record)

    def deliver(self, event: ChangeEvent) -> None:
        # publish() may run on a worker thread
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Owning loop is gone; the view was torn down without closing.
            self.close()

    async def get(self) -> ChangeEvent:
        return await self._queue.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self._queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed._remove(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, table: str, filters: Mapping[str, Any] | None = None) -> Subscription:
        """Subscribe from inside a running event loop."""
        sub = Subscription(self, table, filters or {}, asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug("Subscribed table=%s filters=%s", table, sub.filters)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def publish(self, table: str, event: str, record: Mapping[str, Any]) -> int:
        """Fan an event out to matching subscribers. Returns how many received it."""
        change = ChangeEvent(table=table, event=event, record=dict(record))
        with self._lock:
            targets = [s for s in self._subscriptions if s.wants(change)]
        for sub in targets:
            sub.deliver(change)
        return len(targets)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


change_feed = ChangeFeed()
