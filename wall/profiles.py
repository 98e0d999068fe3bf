"""
Find-or-create sign in by display name.
"""

from __future__ import annotations

import logging

from wall.db import DbClient, DuplicateProfileError, ProfileRecord
from wall.errors import InvalidNameError, ProfileError

logger = logging.getLogger(__name__)


def sign_in(db: DbClient, raw_name: str | None) -> ProfileRecord:
    """
    Return the profile called `raw_name`, creating it on first use.

    There is no password: a name is the whole identity.
    """
    name = (raw_name or "").strip()
    if not name:
        raise InvalidNameError("Please enter your name")

    try:
        existing = db.find_profile_by_name(name)
    except Exception as exc:
        logger.exception("Error checking profile %r: %s", name, exc)
        raise ProfileError("An error occurred. Please try again.") from exc
    if existing:
        return existing

    try:
        profile = db.create_profile(name)
    except DuplicateProfileError:
        # Someone claimed the name between our lookup and insert.
        profile = db.find_profile_by_name(name)
        if profile is None:
            raise ProfileError("Failed to create profile. Please try again.")
    except Exception as exc:
        logger.exception("Error creating profile %r: %s", name, exc)
        raise ProfileError("Failed to create profile. Please try again.") from exc
    else:
        logger.info("Created profile %s for %r", profile.id, name)
    return profile
