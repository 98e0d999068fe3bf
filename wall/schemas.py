"""
Pydantic schemas for the wall's JSON API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class SignInRequest(BaseModel):
    name: str


class ProfileResponse(BaseModel):
    id: str
    name: str
    location: Optional[str] = None


class PostAuthor(BaseModel):
    name: str


class PostResponse(BaseModel):
    id: str
    user_id: str
    body: str
    image_url: Optional[str] = None
    created_at: str
    profiles: Optional[PostAuthor] = None


class ListPostsResponse(BaseModel):
    posts: list[PostResponse]


class HealthResponse(BaseModel):
    status: Literal["ok"]
