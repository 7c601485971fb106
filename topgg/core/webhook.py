"""
Decoding and authentication of Top.gg vote webhooks.

Top.gg POSTs a JSON vote event to the configured webhook URL and puts the
shared secret in the ``Authorization`` header. The body is decoded first, so
a malformed request is reported as such whatever its secret.
"""

import json
import logging
import secrets
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from topgg.errors import BadRequest
from topgg.models.dtos import BotVote, GuildVote

logger = logging.getLogger(__name__)

Vote = Union[BotVote, GuildVote]


def parse_vote(payload: Dict[str, Any]) -> Vote:
    """
    Decode a vote event, telling bot and server votes apart by their keys.

    Raises:
        BadRequest: If the payload matches neither vote shape
    """
    if "bot" in payload:
        model = BotVote
    elif "guild" in payload:
        model = GuildVote
    else:
        raise BadRequest("Vote payload has neither a 'bot' nor a 'guild' field")

    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise BadRequest(f"Invalid {model.__name__} payload: {e.error_count()} validation error(s)") from e


class WebhookRequest:
    """An inbound webhook delivery: the decoded vote plus the secret it came with."""

    __slots__ = ("vote", "secret")

    def __init__(self, vote: Vote, secret: Optional[str]):
        self.vote = vote
        self.secret = secret

    def __repr__(self) -> str:
        return f"WebhookRequest(vote={self.vote!r})"

    @classmethod
    def from_body(cls, body: Union[bytes, str], secret: Optional[str]) -> "WebhookRequest":
        """
        Decode a raw request body.

        Raises:
            BadRequest: If the body is not a JSON object describing a vote
        """
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, ValueError) as e:
            raise BadRequest("Webhook body is not valid JSON") from e

        if not isinstance(payload, dict):
            raise BadRequest(f"Webhook body must be a JSON object, got {type(payload).__name__}")

        return cls(parse_vote(payload), secret)

    def authenticate(self, expected: str) -> Optional[Vote]:
        """Return the vote if the supplied secret equals ``expected``, else None."""
        if self.secret is None or not expected:
            return None
        if not secrets.compare_digest(self.secret.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Rejected webhook request with an invalid secret")
            return None
        return self.vote


def authenticate(body: Union[bytes, str], supplied: Optional[str], expected: str) -> Optional[Vote]:
    """
    Decode and authenticate a webhook delivery in one step.

    Raises:
        BadRequest: If the body is malformed
    """
    return WebhookRequest.from_body(body, supplied).authenticate(expected)
