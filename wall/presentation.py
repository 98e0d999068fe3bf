"""
Display helpers shared by the templates and the realtime stream.
"""

from __future__ import annotations

import math
import time
from datetime import datetime
from typing import Optional, Union

from wall.db import PostRecord

# Tailwind's 500 shades, in the order avatars cycle through them.
AVATAR_COLORS = [
    ("blue", "#3b82f6"),
    ("green", "#22c55e"),
    ("purple", "#a855f7"),
    ("red", "#ef4444"),
    ("yellow", "#eab308"),
    ("indigo", "#6366f1"),
    ("pink", "#ec4899"),
    ("teal", "#14b8a6"),
]

UNKNOWN_NAME = "Unknown"
UNKNOWN_USER = "Unknown User"


def avatar_color(name: str) -> str:
    """Pick a stable avatar colour from the first character of a name."""
    name = name or UNKNOWN_NAME
    _, hex_value = AVATAR_COLORS[ord(name[0]) % len(AVATAR_COLORS)]
    return hex_value


def initials(name: str) -> str:
    return "".join(word[:1] for word in (name or "U").split(" ")).upper()[:2]


def _as_epoch(value: Union[float, datetime, str]) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, str):
        return datetime.fromisoformat(value).timestamp()
    return float(value)


def format_timestamp(
    created_at: Union[float, datetime, str], now: Optional[float] = None
) -> str:
    """Compact relative age: now, 5m, 3h, 2d."""
    now = time.time() if now is None else _as_epoch(now)
    minutes = math.floor((now - _as_epoch(created_at)) / 60)
    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 1440:
        return f"{minutes // 60}h"
    return f"{minutes // 1440}d"


def characters_remaining(body: str, limit: int = 280) -> int:
    return limit - len(body or "")


def display_name(post: PostRecord) -> str:
    return post.author_name or UNKNOWN_USER


def register(templates) -> None:
    """Expose the helpers to Jinja2 templates."""
    env = templates.env
    env.globals["avatar_color"] = avatar_color
    env.globals["initials"] = initials
    env.globals["display_name"] = display_name
    env.globals["characters_remaining"] = characters_remaining
    env.filters["ago"] = format_timestamp
