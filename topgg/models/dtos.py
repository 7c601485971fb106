"""
Pydantic Data Transfer Objects (DTOs) for the Top.gg API.

These models validate API responses, build request bodies and describe the
vote events delivered to webhooks. All of them are immutable once decoded.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import parse_qsl

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from topgg.errors import ValidationError
from topgg.models.snowflake import SnowflakeField, snowflake_created_at

CDN_URL = "https://cdn.discordapp.com"
DEFAULT_AVATAR_COUNT = 6


def _avatar_url(avatar: Optional[str], user_id: int) -> str:
    if avatar:
        ext = "gif" if avatar.startswith("a_") else "png"
        return f"{CDN_URL}/avatars/{user_id}/{avatar}.{ext}?size=1024"
    return f"{CDN_URL}/embed/avatars/{(user_id >> 22) % DEFAULT_AVATAR_COUNT}.png"


def _empty_to_none(value: Any) -> Any:
    # The API sends "" for unset optional strings.
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Bot(BaseModel):
    """
    DTO for a bot listed on Top.gg.

    Mirrors the ``/bots/{id}`` response. ``id`` is the bot's Discord
    application ID and ``topgg_id`` its Top.gg listing ID.
    """
    id: SnowflakeField = Field(validation_alias=AliasChoices("clientid", "id"))
    topgg_id: Optional[SnowflakeField] = Field(default=None, validation_alias=AliasChoices("id", "topgg_id"))
    username: str = Field(validation_alias=AliasChoices("username", "name"))
    prefix: Optional[str] = None
    short_description: Optional[str] = Field(default=None, validation_alias=AliasChoices("shortdesc", "short_description"))
    long_description: Optional[str] = Field(default=None, validation_alias=AliasChoices("longdesc", "long_description"))
    tags: List[str] = Field(default_factory=list)
    website: Optional[str] = None
    github: Optional[str] = None
    owners: List[SnowflakeField] = Field(default_factory=list)
    banner_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("bannerUrl", "banner_url"))
    approved_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("date", "approved_at"))
    votes: int = Field(default=0, validation_alias=AliasChoices("points", "votes"))
    monthly_votes: int = Field(default=0, validation_alias=AliasChoices("monthlyPoints", "monthly_votes"))
    support: Optional[str] = None
    avatar: Optional[str] = Field(default=None, repr=False)
    invite: Optional[str] = Field(default=None, repr=False)
    vanity: Optional[str] = Field(default=None, repr=False)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator(
        "prefix", "long_description", "website", "github", "banner_url",
        "support", "avatar", "invite", "vanity",
        mode="before",
    )
    @classmethod
    def blank_as_none(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @field_validator("tags", "owners", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("support")
    @classmethod
    def expand_support_invite(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.startswith("http"):
            return value
        return f"https://discord.com/invite/{value}"

    @property
    def name(self) -> str:
        """Display name of the bot."""
        return self.username

    @property
    def created_at(self) -> datetime:
        return snowflake_created_at(self.id)

    @property
    def avatar_url(self) -> str:
        """Avatar URL, GIF when animated and PNG otherwise."""
        return _avatar_url(self.avatar, self.id)

    @property
    def invite_url(self) -> str:
        if self.invite:
            return self.invite
        return f"https://discord.com/oauth2/authorize?scope=bot&client_id={self.id}"

    @property
    def url(self) -> str:
        """URL of this bot's Top.gg page."""
        return f"https://top.gg/bot/{self.vanity or self.id}"


class Voter(BaseModel):
    """A user who voted for a bot."""
    id: SnowflakeField
    username: str
    avatar: Optional[str] = Field(default=None, repr=False)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("avatar", mode="before")
    @classmethod
    def blank_as_none(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @property
    def created_at(self) -> datetime:
        return snowflake_created_at(self.id)

    @property
    def avatar_url(self) -> str:
        return _avatar_url(self.avatar, self.id)


class User(Voter):
    """A Top.gg user profile."""
    bio: Optional[str] = None
    banner: Optional[str] = None
    socials: Dict[str, str] = Field(default_factory=dict, validation_alias=AliasChoices("social", "socials"))
    is_supporter: bool = Field(default=False, validation_alias=AliasChoices("supporter", "is_supporter"))
    is_certified_dev: bool = Field(default=False, validation_alias=AliasChoices("certifiedDev", "is_certified_dev"))
    is_mod: bool = Field(default=False, validation_alias=AliasChoices("mod", "is_mod"))
    is_web_mod: bool = Field(default=False, validation_alias=AliasChoices("webMod", "is_web_mod"))
    is_admin: bool = Field(default=False, validation_alias=AliasChoices("admin", "is_admin"))

    @field_validator("bio", "banner", mode="before")
    @classmethod
    def blank_text_as_none(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @field_validator("socials", mode="before")
    @classmethod
    def drop_empty_socials(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        return {key: link for key, link in value.items() if isinstance(link, str) and link}


class Stats(BaseModel):
    """
    Bot statistics posted to Top.gg.

    At least one of ``server_count`` or ``shards`` must be set before the
    payload can be posted. Unset fields are left out of the request body.
    """
    server_count: Optional[int] = Field(default=None, ge=0)
    shards: Optional[List[int]] = None
    shard_count: Optional[int] = Field(default=None, ge=1)
    shard_id: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_count(cls, server_count: int, shard_count: Optional[int] = None) -> "Stats":
        return cls(server_count=server_count, shard_count=shard_count)

    @classmethod
    def from_shards(cls, shards: List[int], shard_id: Optional[int] = None) -> "Stats":
        """Build stats from per-shard server counts; the total is their sum."""
        shards = list(shards)
        return cls(server_count=sum(shards), shards=shards, shard_count=len(shards) or None, shard_id=shard_id)

    @property
    def has_server_count(self) -> bool:
        return self.server_count is not None or bool(self.shards)

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for ``POST /bots/stats``."""
        return self.model_dump(mode="json", exclude_none=True)


VoteType = Literal["upvote", "test"]


class _Vote(BaseModel):
    user: SnowflakeField
    type: VoteType = "upvote"
    query: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("query", mode="before")
    @classmethod
    def strip_question_mark(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.lstrip("?")
        return _empty_to_none(value)

    @property
    def is_test(self) -> bool:
        """Whether this vote was sent with the dashboard's "Test" button."""
        return self.type == "test"

    @property
    def query_params(self) -> Dict[str, str]:
        """Query string of the vote page, parsed."""
        if not self.query:
            return {}
        return dict(parse_qsl(self.query, keep_blank_values=True))


class BotVote(_Vote):
    """Vote event for a bot, delivered by a Top.gg webhook."""
    bot: SnowflakeField
    is_weekend: bool = Field(default=False, validation_alias=AliasChoices("isWeekend", "is_weekend"))


class GuildVote(_Vote):
    """Vote event for a server (guild), delivered by a Top.gg webhook."""
    guild: SnowflakeField


# Internal response envelopes.

class BotsPage(BaseModel):
    results: List[Bot]
    limit: Optional[int] = None
    offset: Optional[int] = None
    count: Optional[int] = None
    total: Optional[int] = None


class VotedResponse(BaseModel):
    voted: bool


class IsWeekendResponse(BaseModel):
    is_weekend: bool


class ServerCountResponse(BaseModel):
    server_count: Optional[int] = None


def as_stats(value: Union[Stats, int]) -> Stats:
    """
    Coerce a ``Stats`` or a bare server count into postable stats.

    Raises:
        ValidationError: If the value carries no server count or is malformed.
    """
    if isinstance(value, Stats):
        stats = value
    elif isinstance(value, int) and not isinstance(value, bool):
        try:
            stats = Stats.from_count(value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid server count: {value!r}") from e
    else:
        raise ValidationError(f"Expected Stats or an int server count, got {type(value).__name__}")

    if not stats.has_server_count:
        raise ValidationError("Stats must include server_count or per-shard counts")
    return stats
