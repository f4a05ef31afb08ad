"""Exception hierarchy for the document grounding client."""

from __future__ import annotations

from typing import Optional


class GroundingError(Exception):
    """Base class for all client errors."""


class ValidationError(GroundingError):
    """A required input is missing, empty or malformed."""


class StorageError(GroundingError):
    """A filesystem operation failed."""


class NetworkError(GroundingError):
    """Transport level failure (connection refused, TLS handshake, timeout)."""


class AuthError(GroundingError):
    """An access token could not be obtained."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ParseError(GroundingError):
    """Content could not be decoded (registry text or response body)."""


class NotFoundError(GroundingError):
    """The requested pipeline, execution or document does not exist."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiError(GroundingError):
    """Non-success HTTP response from the pipeline API."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.body:
            return f"{base} (HTTP {self.status_code}): {self.body}"
        return f"{base} (HTTP {self.status_code})"


class RateLimitedError(ApiError):
    """HTTP 429 from the pipeline API."""


class ServerError(ApiError):
    """Any other unexpected HTTP status from the pipeline API."""
