"""In-process publish/subscribe for real-time dashboard events."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Protocol
from uuid import uuid4

import structlog

from pipewatch.core.errors import StoreUnavailableError
from pipewatch.db.store import SQLiteStore
from pipewatch.models.events import EventType, MonitorEvent

logger = structlog.get_logger(__name__)


class EventPublisher(Protocol):
    async def publish(
        self,
        event_type: EventType,
        payload: dict[str, Any],
        *,
        project_name: str | None = None,
        scoped: bool = False,
    ) -> MonitorEvent: ...


class Subscription:
    """A subscriber's queue plus the projects it joined."""

    def __init__(self, maxsize: int = 100) -> None:
        self.id = str(uuid4())
        self.queue: asyncio.Queue[MonitorEvent] = asyncio.Queue(maxsize=maxsize)
        self.projects: set[str] = set()

    def join(self, project_name: str) -> None:
        self.projects.add(project_name)

    def leave(self, project_name: str) -> None:
        self.projects.discard(project_name)

    def wants(self, event: MonitorEvent) -> bool:
        if not event.scoped:
            return True
        return event.project_name in self.projects


class EventBus:
    """Fan events out to subscribers and optionally append them to the store."""

    def __init__(self, store: SQLiteStore | None = None) -> None:
        self._store = store
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, maxsize: int = 100) -> Subscription:
        subscription = Subscription(maxsize=maxsize)
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.id, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    async def publish(
        self,
        event_type: EventType,
        payload: dict[str, Any],
        *,
        project_name: str | None = None,
        scoped: bool = False,
    ) -> MonitorEvent:
        event = MonitorEvent(
            event_type=event_type,
            project_name=project_name,
            scoped=scoped,
            payload=payload,
        )
        if self._store is not None:
            try:
                await self._store.append_event(event)
            except StoreUnavailableError:
                logger.exception("event_log_append_failed", event_type=event_type.value)

        with self._lock:
            targets = [sub for sub in self._subscriptions.values() if sub.wants(event)]
        for subscription in targets:
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "subscriber_queue_full",
                    subscription=subscription.id,
                    event_type=event_type.value,
                )
        return event
