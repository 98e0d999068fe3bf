"""
Signed-cookie session holding the current profile.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from wall.db import DbClient, ProfileRecord
from wall.dependencies import get_db_client

logger = logging.getLogger(__name__)

SESSION_KEY = "currentProfile"


def remember_profile(request: Request, profile: ProfileRecord) -> None:
    request.session[SESSION_KEY] = {"id": profile.id, "name": profile.name}


def forget_profile(request: Request) -> None:
    request.session.pop(SESSION_KEY, None)


def current_profile(request: Request, db: DbClient) -> Optional[ProfileRecord]:
    """
    Return the signed-in profile, or None.

    Unusable session data is cleared so the visitor is sent back to sign in.
    """
    data = request.session.get(SESSION_KEY)
    if data is None:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("id"), str):
        logger.warning("Discarding malformed session profile: %r", data)
        forget_profile(request)
        return None
    profile = db.get_profile(data["id"])
    if profile is None:
        logger.info("Session profile %s no longer exists", data["id"])
        forget_profile(request)
    return profile


def require_profile(
    request: Request, db: DbClient = Depends(get_db_client)
) -> ProfileRecord:
    profile = current_profile(request, db)
    if profile is None:
        raise HTTPException(status_code=401, detail="Sign in first")
    return profile
