"""
The capped window of posts a wall viewer is looking at.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

DEFAULT_LIMIT = 50


class FeedWindow:
    """Ids of the newest posts shown to one viewer, newest first."""

    def __init__(self, post_ids: Iterable[str] = (), limit: int = DEFAULT_LIMIT):
        self.limit = limit
        self._ids: deque[str] = deque(list(post_ids)[:limit])

    def __contains__(self, post_id: str) -> bool:
        return post_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def post_ids(self) -> list[str]:
        return list(self._ids)

    def merge(self, post_id: str) -> Optional[list[str]]:
        """
        Put a new post at the head of the window.

        Returns the ids pushed off the tail, or None if the post is already
        shown.
        """
        if post_id in self._ids:
            return None
        self._ids.appendleft(post_id)
        evicted: list[str] = []
        while len(self._ids) > self.limit:
            evicted.append(self._ids.pop())
        return evicted
