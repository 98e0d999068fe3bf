"""
Errors raised by the wall's orchestration layer.

Every error carries a message that is safe to show to the visitor.
"""

from __future__ import annotations


class WallError(Exception):
    """Base class for user-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidNameError(WallError):
    pass


class ProfileError(WallError):
    pass


class EmptyPostError(WallError):
    pass


class BodyTooLongError(WallError):
    pass


class ImageTooLargeError(WallError):
    status_code = 413


class NotAnImageError(WallError):
    status_code = 415


class UploadError(WallError):
    status_code = 502


class PostError(WallError):
    status_code = 500
