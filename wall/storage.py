"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError


class ObjectExistsError(Exception):
    """Raised when an upload would overwrite an object and upsert is off."""


class StorageClient(Protocol):
    """Defines the operations the wall needs from object storage."""

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_seconds: int = 3600,
        upsert: bool = False,
    ) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...


@dataclass
class StoredObject:
    data: bytes
    content_type: str
    cache_control: str


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/wall-photos"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_seconds: int = 3600,
        upsert: bool = False,
    ) -> None:
        if not upsert and path in self.stored_objects:
            raise ObjectExistsError(path)
        self.stored_objects[path] = StoredObject(
            data=bytes(data),
            content_type=content_type,
            cache_control=f"max-age={cache_seconds}",
        )

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client for the photo bucket.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _exists(self, path: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_seconds: int = 3600,
        upsert: bool = False,
    ) -> None:
        if not upsert and self._exists(path):
            raise ObjectExistsError(path)
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
            CacheControl=f"max-age={cache_seconds}",
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        endpoint = (self.endpoint or "https://s3.amazonaws.com").rstrip("/")
        return f"{endpoint}/{self.bucket}/{path}"
