"""
Server-sent events for the live wall.

Each INSERT on the posts table is re-read with its author's name, merged into
the viewer's capped window, and sent as an `event: post` message.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi.concurrency import run_in_threadpool

from wall.db import DbClient, PostRecord
from wall.feed import FeedWindow
from wall.posts import POSTS_TABLE
from wall.realtime import INSERT, Subscription

logger = logging.getLogger(__name__)

KEEPALIVE = ": keep-alive\n\n"


def format_sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def _inserted_post_id(event: dict) -> Optional[str]:
    if event.get("event") != INSERT or event.get("table") != POSTS_TABLE:
        return None
    row = event.get("new") or {}
    post_id = row.get("id")
    return post_id if isinstance(post_id, str) else None


async def post_events(
    subscription: Subscription,
    db: DbClient,
    window: FeedWindow,
    is_disconnected: Callable[[], Awaitable[bool]],
    *,
    keepalive_seconds: float = 15.0,
    render: Optional[Callable[[PostRecord], str]] = None,
) -> AsyncIterator[str]:
    try:
        while not await is_disconnected():
            event = await subscription.get(keepalive_seconds)
            if event is None:
                yield KEEPALIVE
                continue
            post_id = _inserted_post_id(event)
            if post_id is None:
                continue
            post = await run_in_threadpool(db.get_post, post_id)
            if post is None:
                logger.warning("Change event for unknown post %s", post_id)
                continue
            evicted = window.merge(post.id)
            if evicted is None:
                continue
            payload = {"post": post.as_dict(), "evicted": evicted}
            if render is not None:
                payload["html"] = render(post)
            yield format_sse("post", payload)
    finally:
        await subscription.close()
