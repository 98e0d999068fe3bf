"""
Database abstraction for profiles and posts, with SQLAlchemy and in-memory
implementations.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, Float, ForeignKey, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class DuplicateProfileError(Exception):
    """A profile with this name already exists."""


class DbClient(Protocol):
    """Interface for database access."""

    def find_profile_by_name(self, name: str) -> Optional["ProfileRecord"]:
        ...

    def create_profile(
        self, name: str, location: Optional[str] = None
    ) -> "ProfileRecord":
        ...

    def get_profile(self, profile_id: str) -> Optional["ProfileRecord"]:
        ...

    def create_post(
        self,
        user_id: str,
        body: str,
        image_url: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> "PostRecord":
        ...

    def get_post(self, post_id: str) -> Optional["PostRecord"]:
        ...

    def list_recent_posts(self, limit: int = 50) -> list["PostRecord"]:
        ...


def to_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass
class ProfileRecord:
    id: str
    name: str
    location: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "created_at": to_iso(self.created_at),
        }


@dataclass
class PostRecord:
    id: str
    user_id: str
    body: str
    image_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    # Joined from profiles; None when the author row is missing.
    author_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "body": self.body,
            "image_url": self.image_url,
            "created_at": to_iso(self.created_at),
            "profiles": (
                {"name": self.author_name}
                if self.author_name is not None
                else None
            ),
        }

    def as_row(self) -> dict:
        """The bare table row, as carried by change events."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "body": self.body,
            "image_url": self.image_url,
            "created_at": to_iso(self.created_at),
        }


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.profiles: Dict[str, ProfileRecord] = {}
        self.posts: Dict[str, PostRecord] = {}

    def find_profile_by_name(self, name: str) -> Optional[ProfileRecord]:
        for profile in self.profiles.values():
            if profile.name == name:
                return profile
        return None

    def create_profile(
        self, name: str, location: Optional[str] = None
    ) -> ProfileRecord:
        if self.find_profile_by_name(name):
            raise DuplicateProfileError(name)
        record = ProfileRecord(id=uuid.uuid4().hex, name=name, location=location)
        self.profiles[record.id] = record
        return record

    def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        return self.profiles.get(profile_id)

    def create_post(
        self,
        user_id: str,
        body: str,
        image_url: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> PostRecord:
        record = PostRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            body=body,
            image_url=image_url,
            created_at=created_at if created_at is not None else time.time(),
        )
        self.posts[record.id] = record
        return self._with_author(record)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return self._with_author(post) if post else None

    def list_recent_posts(self, limit: int = 50) -> list[PostRecord]:
        # Newest inserts first among equal timestamps.
        newest = sorted(
            reversed(list(self.posts.values())),
            key=lambda post: post.created_at,
            reverse=True,
        )
        return [self._with_author(post) for post in newest[:limit]]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.profiles.clear()
        self.posts.clear()

    def _with_author(self, post: PostRecord) -> PostRecord:
        author = self.profiles.get(post.user_id)
        return PostRecord(
            id=post.id,
            user_id=post.user_id,
            body=post.body,
            image_url=post.image_url,
            created_at=post.created_at,
            author_name=author.name if author else None,
        )


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_profile_record(self, row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            name=row.name,
            location=row.location,
            created_at=row.created_at,
        )

    def _to_post_record(
        self, row: "PostRow", author_name: Optional[str]
    ) -> PostRecord:
        return PostRecord(
            id=row.id,
            user_id=row.user_id,
            body=row.body,
            image_url=row.image_url,
            created_at=row.created_at,
            author_name=author_name,
        )

    def _posts_with_authors(self):
        return select(PostRow, ProfileRow.name).outerjoin(
            ProfileRow, PostRow.user_id == ProfileRow.id
        )

    def find_profile_by_name(self, name: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            stmt = select(ProfileRow).where(ProfileRow.name == name).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_profile_record(row) if row else None

    def create_profile(
        self, name: str, location: Optional[str] = None
    ) -> ProfileRecord:
        with self.Session() as session:
            row = ProfileRow(
                id=uuid.uuid4().hex,
                name=name,
                location=location,
                created_at=time.time(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateProfileError(name) from exc
            return self._to_profile_record(row)

    def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, profile_id)
            return self._to_profile_record(row) if row else None

    def create_post(
        self,
        user_id: str,
        body: str,
        image_url: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> PostRecord:
        with self.Session() as session:
            row = PostRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                body=body,
                image_url=image_url,
                created_at=created_at if created_at is not None else time.time(),
            )
            session.add(row)
            session.commit()
            author = session.get(ProfileRow, user_id)
            return self._to_post_record(row, author.name if author else None)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self.Session() as session:
            stmt = self._posts_with_authors().where(PostRow.id == post_id)
            result = session.execute(stmt).first()
            if not result:
                return None
            row, author_name = result
            return self._to_post_record(row, author_name)

    def list_recent_posts(self, limit: int = 50) -> list[PostRecord]:
        with self.Session() as session:
            stmt = (
                self._posts_with_authors()
                .order_by(PostRow.created_at.desc())
                .limit(limit)
            )
            return [
                self._to_post_record(row, author_name)
                for row, author_name in session.execute(stmt).all()
            ]


Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True, index=True)
    location = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    body = Column(String, nullable=False, default="")
    image_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
