"""
Jinja2 template configuration.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from wall import presentation
from wall.db import PostRecord

TEMPLATES_DIR = Path(__file__).parent / "templates"
STATIC_DIR = Path(__file__).parent / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
presentation.register(templates)


def render_post(post: PostRecord) -> str:
    """Render one wall entry, as prepended by the live stream."""
    return templates.get_template("_post.html").render(post=post)
