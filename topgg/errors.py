"""
Exception hierarchy for the Top.gg client.

Every error raised by this package derives from ``TopggError`` so callers can
catch the whole family at once, or pick out the specific failure they care
about (e.g. ``NotFound`` for an unlisted bot).
"""

from typing import Optional


class TopggError(Exception):
    """Base exception for Top.gg API and webhook errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(TopggError):
    """Input rejected locally, before any network call was made."""


class ParseError(ValidationError):
    """A snowflake ID could not be parsed."""


class Unauthorized(TopggError):
    """The API rejected the client's token (401/403)."""


class NotFound(TopggError):
    """The requested bot or user does not exist (404)."""


class Ratelimited(TopggError):
    """The client is being rate limited (429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message, 429)


class ServerError(TopggError):
    """Top.gg answered with a 5xx status."""


class TransportError(TopggError):
    """The request never got a response (connection, DNS or timeout failure)."""


class DecodeError(TopggError):
    """The response body did not match the expected schema."""


class BadRequest(TopggError):
    """An inbound webhook body could not be decoded."""

    def __init__(self, message: str):
        super().__init__(message, 400)
