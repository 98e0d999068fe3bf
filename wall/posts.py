"""
Sharing posts: photo validation and upload, row insert, change broadcast.
"""

from __future__ import annotations

import io
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from wall.config import Settings
from wall.db import DbClient, PostRecord, ProfileRecord
from wall.errors import (
    BodyTooLongError,
    EmptyPostError,
    ImageTooLargeError,
    NotAnImageError,
    PostError,
    UploadError,
)
from wall.realtime import ChangeFeed, insert_event
from wall.storage import StorageClient

logger = logging.getLogger(__name__)

POSTS_TABLE = "posts"
_BASE36 = string.digits + string.ascii_lowercase


@dataclass
class ImageUpload:
    """A photo attached to a post, as received from the browser."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def image_object_path(filename: str, prefix: str = "posts") -> str:
    """Unique object key like posts/1718000000000-k3j9x0q2ab.png."""
    extension = (filename or "").rsplit(".", 1)[-1]
    name = f"{int(time.time() * 1000)}-{_base36(secrets.randbits(52))}.{extension}"
    return f"{prefix}/{name}"


def image_too_large(max_bytes: int) -> ImageTooLargeError:
    limit_mb = max_bytes // (1024 * 1024)
    return ImageTooLargeError(f"File size must be less than {limit_mb}MB")


def validate_image(
    filename: str, content_type: str | None, data: bytes, max_bytes: int
) -> None:
    if len(data) > max_bytes:
        raise image_too_large(max_bytes)
    if not (content_type or "").startswith("image/"):
        raise NotAnImageError("Please select an image file")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except Exception as exc:
        logger.info("Rejected upload %r: not a readable image (%s)", filename, exc)
        raise NotAnImageError("Please select an image file") from exc


def upload_image(
    storage: StorageClient, image: ImageUpload, settings: Settings
) -> str:
    """Store the photo and return its public URL."""
    path = image_object_path(image.filename, settings.image_prefix)
    logger.info(
        "Uploading file: %s Size: %d Type: %s", path, image.size, image.content_type
    )
    try:
        storage.upload_bytes(
            path,
            image.data,
            content_type=image.content_type,
            cache_seconds=settings.image_cache_seconds,
            upsert=False,
        )
        url = storage.public_url(path)
    except Exception as exc:
        logger.exception("Upload of %s failed: %s", path, exc)
        raise UploadError("Failed to upload photo. Please try again.") from exc
    logger.info("Uploaded %s -> %s", path, url)
    return url


def share_post(
    db: DbClient,
    storage: StorageClient,
    feed: ChangeFeed,
    profile: ProfileRecord,
    body: str | None,
    image: Optional[ImageUpload],
    settings: Settings,
) -> PostRecord:
    """
    Publish a message (and optional photo) to the wall.

    The photo is uploaded before the row is written, so a failed upload
    leaves no post behind. Subscribers learn about the post through an
    INSERT change event.
    """
    body = (body or "").strip()
    if not body and image is None:
        raise EmptyPostError("Write something or attach a photo")
    if len(body) > settings.max_body_length:
        raise BodyTooLongError(
            f"Posts are limited to {settings.max_body_length} characters"
        )

    image_url = None
    if image is not None:
        validate_image(
            image.filename, image.content_type, image.data, settings.max_image_bytes
        )
        image_url = upload_image(storage, image, settings)

    try:
        post = db.create_post(
            user_id=profile.id,
            body=body,
            image_url=image_url,
            created_at=time.time(),
        )
    except Exception as exc:
        logger.exception("Error posting message for %s: %s", profile.id, exc)
        raise PostError("Failed to share your post. Please try again.") from exc

    try:
        feed.publish(insert_event(POSTS_TABLE, post.as_row()))
    except Exception:
        logger.exception("Failed to broadcast post %s", post.id)
    return post
