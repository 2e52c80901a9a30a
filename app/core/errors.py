"""
Error taxonomy for the image-acquisition path.

Nothing here reaches the HTTP surface: feed services catch these at the
feed boundary and answer with a fallback record instead.
"""
from typing import Optional


class ConfigurationError(Exception):
    """Raised when a required setting (the upstream API key) is missing."""


class UpstreamError(Exception):
    """Raised when the upstream API or an image mirror cannot serve a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(UpstreamError):
    """A specific remote resource definitively does not exist (HTTP 404)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class CacheWriteError(Exception):
    """Raised when the content store cannot persist downloaded bytes."""


class DeadlineExceeded(Exception):
    """The soft request deadline passed before resolution finished."""
