"""
Change feed for broadcasting inserted posts.

Supports an in-process fallback for tests/local runs and a Redis pub/sub
implementation for production, where several app workers share one channel.

Publishing is synchronous, since posts are written from worker threads.
Subscriptions are awaited on the event loop, so an idle stream holds no
thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
import redis.asyncio as redis_asyncio
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

INSERT = "INSERT"


def insert_event(table: str, row: dict) -> dict:
    """Build a change event for a freshly inserted row."""
    return {"event": INSERT, "schema": "public", "table": table, "new": row}


class Subscription(Protocol):
    async def get(self, timeout: float | None = None) -> Optional[dict]:
        ...

    async def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Minimal pub/sub interface for change events."""

    def publish(self, event: dict) -> None:
        ...

    async def subscribe(self) -> Subscription:
        ...


@dataclass
class InMemorySubscription:
    feed: "InMemoryChangeFeed"
    loop: asyncio.AbstractEventLoop
    events: "asyncio.Queue[dict]" = field(default_factory=asyncio.Queue)

    def deliver(self, event: dict) -> None:
        # Publishers run on worker threads; the queue belongs to the loop.
        self.loop.call_soon_threadsafe(self.events.put_nowait, event)

    async def get(self, timeout: float | None = None) -> Optional[dict]:
        try:
            return await asyncio.wait_for(self.events.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        self.feed._remove(self)


class InMemoryChangeFeed:
    """Fans events out to every open subscription in this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self.subscriptions: list[InMemorySubscription] = []
        self.published: list[dict] = []

    def publish(self, event: dict) -> None:
        with self._lock:
            self.published.append(event)
            targets = list(self.subscriptions)
        for subscription in targets:
            try:
                subscription.deliver(event)
            except RuntimeError:
                logger.warning("Dropping subscription on a closed event loop")
                self._remove(subscription)

    async def subscribe(self) -> InMemorySubscription:
        subscription = InMemorySubscription(
            feed=self, loop=asyncio.get_running_loop()
        )
        with self._lock:
            self.subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: InMemorySubscription) -> None:
        with self._lock:
            if subscription in self.subscriptions:
                self.subscriptions.remove(subscription)


class RedisSubscription:
    """One async pubsub connection listening on the change channel."""

    def __init__(self, client: redis_asyncio.Redis, channel: str):
        self.client = client
        self.channel = channel
        self.pubsub = None

    async def connect(self) -> None:
        self.pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        await self.pubsub.subscribe(self.channel)

    async def _reconnect(self) -> None:
        try:
            await self.pubsub.aclose()
        except redis_exceptions.RedisError as exc:
            logger.warning("Closing stale pubsub on %s failed: %s", self.channel, exc)
        await self.connect()

    async def get(self, timeout: float | None = None) -> Optional[dict]:
        try:
            message = await self.pubsub.get_message(
                ignore_subscribe_messages=True, timeout=timeout
            )
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; resubscribe and report
            # nothing so the caller simply polls again.
            logger.warning("Lost pubsub connection on %s, resubscribing", self.channel)
            await self._reconnect()
            return None
        if message is None or message.get("type") != "message":
            return None
        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Dropping malformed change event on %s", self.channel)
            return None

    async def close(self) -> None:
        await self.pubsub.aclose()


@dataclass
class RedisChangeFeed:
    """Redis-backed change feed using PUBLISH/SUBSCRIBE."""

    url: str
    channel: str = "wall:posts_changes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self._async_client: Optional[redis_asyncio.Redis] = None

    def publish(self, event: dict) -> None:
        self.client.publish(self.channel, json.dumps(event, default=str))

    async def subscribe(self) -> RedisSubscription:
        if self._async_client is None:
            self._async_client = redis_asyncio.Redis.from_url(self.url)
        subscription = RedisSubscription(self._async_client, self.channel)
        await subscription.connect()
        return subscription
