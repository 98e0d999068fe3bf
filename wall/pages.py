"""
Server-rendered pages: sign in, the wall, and sign out.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from wall.config import Settings, get_settings
from wall.db import DbClient, ProfileRecord
from wall.dependencies import get_change_feed, get_db_client, get_storage_client
from wall.errors import WallError
from wall.posts import share_post
from wall.profiles import sign_in
from wall.realtime import ChangeFeed
from wall.routes import read_upload
from wall.session import current_profile, forget_profile, remember_profile
from wall.storage import StorageClient
from wall.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter()


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


def _render_wall(
    request: Request,
    profile: ProfileRecord,
    db: DbClient,
    settings: Settings,
    *,
    error: Optional[str] = None,
    message: str = "",
    status_code: int = 200,
):
    try:
        posts = db.list_recent_posts(limit=settings.feed_limit)
        load_error = None
    except Exception:
        logger.exception("Error fetching posts")
        posts = []
        load_error = "Could not load posts. Please refresh."
    return templates.TemplateResponse(
        request,
        "wall.html",
        {
            "profile": profile,
            "posts": posts,
            "error": error or load_error,
            "message": message,
            "max_body_length": settings.max_body_length,
            "max_image_bytes": settings.max_image_bytes,
            "stream_url": f"{settings.api_prefix}/posts/stream",
        },
        status_code=status_code,
    )


@router.get("/login")
def login_form(request: Request, db: DbClient = Depends(get_db_client)):
    if current_profile(request, db):
        return _redirect("/")
    return templates.TemplateResponse(
        request, "login.html", {"error": None, "name": ""}
    )


@router.post("/login")
def login(
    request: Request,
    name: str = Form(""),
    db: DbClient = Depends(get_db_client),
):
    try:
        profile = sign_in(db, name)
    except WallError as exc:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": exc.message, "name": name},
            status_code=exc.status_code,
        )
    remember_profile(request, profile)
    return _redirect("/")


@router.post("/logout")
def logout(request: Request):
    forget_profile(request)
    return _redirect("/login")


@router.get("/")
def wall_page(
    request: Request,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    profile = current_profile(request, db)
    if profile is None:
        return _redirect("/login")
    return _render_wall(request, profile, db, settings)


@router.post("/")
async def share(
    request: Request,
    body: str = Form(""),
    image: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
):
    profile = current_profile(request, db)
    if profile is None:
        return _redirect("/login")
    try:
        upload = await read_upload(image, settings.max_image_bytes)
        await run_in_threadpool(
            share_post, db, storage, feed, profile, body, upload, settings
        )
    except WallError as exc:
        return _render_wall(
            request,
            profile,
            db,
            settings,
            error=exc.message,
            message=body,
            status_code=exc.status_code,
        )
    return _redirect("/")
