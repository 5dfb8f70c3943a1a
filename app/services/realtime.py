"""
Realtime change feed for workflow rows.

Writers publish the full row image of every committed change; consumers
replace their local copy wholesale and re-derive any computed state. Each
row carries a monotonic ``version`` so late or duplicated deliveries are
dropped instead of rolling the consumer back.

Two backends:
- ``redis``: pub/sub across API processes and background workers.
- ``memory``: in-process fan-out for single-process deployments and tests.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Optional
from uuid import UUID

import redis
import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError
from sqlalchemy import inspect

from app.core.config import settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "authorslab:realtime:"


class RowChange(BaseModel):
    """Full row image pushed to subscribers."""

    table: str
    event: str = "UPDATE"
    manuscript_id: str
    version: int
    new: dict[str, Any]


def channel_name(table: str, manuscript_id: Any) -> str:
    return f"{CHANNEL_PREFIX}{table}:{manuscript_id}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_image(obj: Any) -> dict[str, Any]:
    """Column values of an ORM instance as a JSON-friendly dict."""
    mapper = inspect(obj).mapper
    return {attr.key: _jsonable(getattr(obj, attr.key)) for attr in mapper.column_attrs}


# ──────── Memory backend ────────


class MemorySubscription:
    """Queue fed by MemoryNotifier; safe to publish into from any thread."""

    def __init__(self, notifier: "MemoryNotifier", channel: str, loop: asyncio.AbstractEventLoop):
        self._notifier = notifier
        self._channel = channel
        self._loop = loop
        self._queue: asyncio.Queue[RowChange] = asyncio.Queue()
        notifier.add_listener(channel, self._deliver)

    def _deliver(self, change: RowChange) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, change)

    async def receive(self) -> RowChange:
        return await self._queue.get()

    async def close(self) -> None:
        self._notifier.remove_listener(self._channel, self._deliver)


class MemoryNotifier:
    """In-process fan-out of row changes."""

    def __init__(self) -> None:
        self._listeners: dict[str, set[Callable[[RowChange], None]]] = {}
        self._lock = threading.Lock()

    def add_listener(self, channel: str, listener: Callable[[RowChange], None]) -> None:
        with self._lock:
            self._listeners.setdefault(channel, set()).add(listener)

    def remove_listener(self, channel: str, listener: Callable[[RowChange], None]) -> None:
        with self._lock:
            listeners = self._listeners.get(channel)
            if listeners is None:
                return
            listeners.discard(listener)
            if not listeners:
                self._listeners.pop(channel, None)

    def listener_count(self, channel: str) -> int:
        with self._lock:
            return len(self._listeners.get(channel, ()))

    def publish(self, change: RowChange) -> None:
        channel = channel_name(change.table, change.manuscript_id)
        with self._lock:
            listeners = list(self._listeners.get(channel, ()))
        for listener in listeners:
            try:
                listener(change)
            except RuntimeError:
                # Subscriber's event loop already closed
                logger.warning("Dropping change for closed subscriber on %s", channel)

    async def subscribe(self, channel: str) -> MemorySubscription:
        return MemorySubscription(self, channel, asyncio.get_running_loop())


# ──────── Redis backend ────────


class RedisSubscription:
    def __init__(self, pubsub: aioredis.client.PubSub):
        self._pubsub = pubsub

    async def receive(self) -> RowChange:
        while True:
            message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=None)
            if message is None or message.get("type") != "message":
                continue
            try:
                return RowChange.model_validate_json(message["data"])
            except ValidationError:
                logger.warning("Ignoring malformed realtime message on %s", message.get("channel"))

    async def close(self) -> None:
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisNotifier:
    """Redis pub/sub bridge. Sync publish, async subscribe."""

    def __init__(self, url: str):
        self._url = url
        self._sync_pool: Optional[redis.ConnectionPool] = None
        self._async_client: Optional[aioredis.Redis] = None

    def _get_sync_pool(self) -> redis.ConnectionPool:
        if self._sync_pool is None:
            self._sync_pool = redis.ConnectionPool.from_url(self._url)
        return self._sync_pool

    def _get_async_client(self) -> aioredis.Redis:
        if self._async_client is None:
            self._async_client = aioredis.from_url(self._url)
        return self._async_client

    def publish(self, change: RowChange) -> None:
        channel = channel_name(change.table, change.manuscript_id)
        try:
            client = redis.Redis(connection_pool=self._get_sync_pool())
            client.publish(channel, change.model_dump_json())
        except redis.RedisError:
            logger.warning("Failed to publish realtime change on %s", channel, exc_info=True)

    async def subscribe(self, channel: str) -> RedisSubscription:
        pubsub = self._get_async_client().pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(pubsub)


@lru_cache
def get_notifier():
    """Process-wide notifier for the configured backend."""
    if settings.REALTIME_BACKEND == "memory":
        return MemoryNotifier()
    return RedisNotifier(settings.REDIS_URL)


def publish_row_change(table: str, obj: Any, event: str = "UPDATE") -> None:
    """Publish the committed state of ``obj``. Never raises."""
    try:
        change = RowChange(
            table=table,
            event=event,
            manuscript_id=str(obj.manuscript_id),
            version=obj.version,
            new=row_image(obj),
        )
        get_notifier().publish(change)
    except Exception:
        logger.warning("Could not publish %s change", table, exc_info=True)


class RowMirror:
    """Consumer-side copy of the rows on one channel.

    Each accepted change replaces the whole row; ``derive`` (if given) is
    re-run over the new rows so computed state never drifts from the row
    images.
    """

    def __init__(self, derive: Optional[Callable[[dict[str, dict]], Any]] = None):
        self.rows: dict[str, dict[str, Any]] = {}
        self.versions: dict[str, int] = {}
        self.derived: Any = None
        self._derive = derive

    def seed(self, rows: list[dict[str, Any]]) -> None:
        for row in rows:
            key = str(row["id"])
            self.rows[key] = dict(row)
            self.versions[key] = int(row.get("version") or 0)
        self._rederive()

    def apply(self, change: RowChange) -> bool:
        """Replace the row if the change is newer; False for stale deliveries."""
        key = str(change.new.get("id"))
        if change.version <= self.versions.get(key, 0):
            return False
        self.rows[key] = dict(change.new)
        self.versions[key] = change.version
        self._rederive()
        return True

    def _rederive(self) -> None:
        if self._derive is not None:
            self.derived = self._derive(self.rows)
