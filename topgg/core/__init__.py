"""
Core components of the Top.gg client.

This package contains the HTTP client, the bot search query builder, the
stats autoposter and webhook authentication.
"""

from .autoposter import Autoposter, AutoposterState, PostResult, StatsSource
from .client import Client, bot_id_from_token
from .query import GetBots
from .webhook import Vote, WebhookRequest, authenticate, parse_vote

__all__ = [
    "Autoposter",
    "AutoposterState",
    "PostResult",
    "StatsSource",
    "Client",
    "bot_id_from_token",
    "GetBots",
    "Vote",
    "WebhookRequest",
    "authenticate",
    "parse_vote",
]
