"""
HTTP routes for the wall's JSON API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from wall.config import Settings, get_settings
from wall.db import DbClient, ProfileRecord
from wall.dependencies import get_change_feed, get_db_client, get_storage_client
from wall.errors import WallError
from wall.feed import FeedWindow
from wall.posts import ImageUpload, image_too_large, share_post
from wall.profiles import sign_in
from wall.realtime import ChangeFeed
from wall.schemas import (
    HealthResponse,
    ListPostsResponse,
    PostResponse,
    ProfileResponse,
    SignInRequest,
)
from wall.session import (
    current_profile,
    forget_profile,
    remember_profile,
    require_profile,
)
from wall.storage import StorageClient
from wall.stream import post_events
from wall.templating import render_post

logger = logging.getLogger(__name__)

router = APIRouter()


def http_error(exc: WallError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def read_upload(
    upload: Optional[UploadFile], max_bytes: int
) -> Optional[ImageUpload]:
    """
    Read the attached photo, never more than one byte past `max_bytes`.

    Browsers submit an empty file part when no photo was picked.
    """
    if upload is None or not upload.filename:
        return None
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise image_too_large(max_bytes)
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )


def _profile_response(profile: ProfileRecord) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id, name=profile.name, location=profile.location
    )


@router.get("/healthz", response_model=HealthResponse)
def healthz():
    return HealthResponse(status="ok")


@router.post("/session", response_model=ProfileResponse)
def create_session(
    payload: SignInRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
):
    try:
        profile = sign_in(db, payload.name)
    except WallError as exc:
        raise http_error(exc)
    remember_profile(request, profile)
    return _profile_response(profile)


@router.get("/session", response_model=ProfileResponse)
def get_session(profile: ProfileRecord = Depends(require_profile)):
    return _profile_response(profile)


@router.delete("/session", status_code=204)
def delete_session(request: Request):
    forget_profile(request)
    return Response(status_code=204)


@router.get("/posts", response_model=ListPostsResponse)
def list_posts(
    limit: Optional[int] = Query(None, ge=1),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    limit = min(limit or settings.feed_limit, settings.feed_limit)
    posts = db.list_recent_posts(limit=limit)
    return ListPostsResponse(
        posts=[PostResponse(**post.as_dict()) for post in posts]
    )


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    body: str = Form(""),
    image: Optional[UploadFile] = File(None),
    profile: ProfileRecord = Depends(require_profile),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
):
    try:
        upload = await read_upload(image, settings.max_image_bytes)
        post = await run_in_threadpool(
            share_post, db, storage, feed, profile, body, upload, settings
        )
    except WallError as exc:
        raise http_error(exc)
    return PostResponse(**post.as_dict())


@router.get("/posts/stream")
async def stream_posts(
    request: Request,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
):
    profile = await run_in_threadpool(current_profile, request, db)
    if profile is None:
        raise HTTPException(status_code=401, detail="Sign in first")
    # Subscribe first so a post inserted while seeding is not missed.
    subscription = await feed.subscribe()
    try:
        recent = await run_in_threadpool(
            db.list_recent_posts, limit=settings.feed_limit
        )
    except Exception:
        await subscription.close()
        raise
    window = FeedWindow([post.id for post in recent], limit=settings.feed_limit)
    events = post_events(
        subscription,
        db,
        window,
        request.is_disconnected,
        keepalive_seconds=settings.stream_keepalive_seconds,
        render=render_post,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(post_id: str, db: DbClient = Depends(get_db_client)):
    post = db.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return PostResponse(**post.as_dict())
