"""
Models package for the Top.gg client.

Contains the snowflake ID type and the Pydantic DTOs exchanged with the API
and with webhooks.
"""

from .snowflake import Snowflake, SnowflakeField, snowflake_created_at
from .dtos import (
    Bot,
    BotVote,
    GuildVote,
    Stats,
    User,
    Voter,
)

__all__ = [
    "Snowflake",
    "SnowflakeField",
    "snowflake_created_at",
    "Bot",
    "BotVote",
    "GuildVote",
    "Stats",
    "User",
    "Voter",
]
