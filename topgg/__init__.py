"""
Async Python client for the Top.gg API.

Query bots and users, post bot statistics (optionally on a schedule) and
authenticate vote webhooks.
"""

from .core.autoposter import Autoposter, AutoposterState, PostResult, StatsSource
from .core.client import Client
from .core.query import GetBots
from .core.webhook import WebhookRequest, authenticate
from .errors import (
    BadRequest,
    DecodeError,
    NotFound,
    ParseError,
    Ratelimited,
    ServerError,
    TopggError,
    TransportError,
    Unauthorized,
    ValidationError,
)
from .models import Bot, BotVote, GuildVote, Snowflake, Stats, User, Voter

__version__ = "1.4.3"

__all__ = [
    "Autoposter",
    "AutoposterState",
    "PostResult",
    "StatsSource",
    "Client",
    "GetBots",
    "WebhookRequest",
    "authenticate",
    "BadRequest",
    "DecodeError",
    "NotFound",
    "ParseError",
    "Ratelimited",
    "ServerError",
    "TopggError",
    "TransportError",
    "Unauthorized",
    "ValidationError",
    "Bot",
    "BotVote",
    "GuildVote",
    "Snowflake",
    "Stats",
    "User",
    "Voter",
]
