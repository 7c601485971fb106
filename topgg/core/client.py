"""
Async HTTP client for the Top.gg API.

Each operation performs exactly one request: no retries and no caching. The
client keeps no per-call state, so a single instance can serve any number of
concurrent callers.
"""

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type, TypeVar, Union

import httpx
import jwt
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from topgg.config.settings import DEFAULT_API_BASE_URL, Settings, get_settings
from topgg.core.autoposter import Autoposter
from topgg.core.query import GetBots
from topgg.errors import (
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
from topgg.models.dtos import (
    Bot,
    BotsPage,
    IsWeekendResponse,
    ServerCountResponse,
    Stats,
    User,
    VotedResponse,
    Voter,
    as_stats,
)
from topgg.models.snowflake import Snowflake, SnowflakeLike

if TYPE_CHECKING:
    from topgg.core.autoposter import StatsSource

logger = logging.getLogger(__name__)

USER_AGENT = "topgg-python/1.4.3 (httpx)"

ModelT = TypeVar("ModelT", bound=BaseModel)

_VOTERS_ADAPTER = TypeAdapter(List[Voter])


def bot_id_from_token(token: str) -> Optional[Snowflake]:
    """
    Read the bot ID embedded in a Top.gg token.

    Top.gg tokens are JWTs whose payload carries the bot's ID in an ``id``
    claim. Only the claims are read; the signature is checked by Top.gg.
    Returns None when the token does not have that shape.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError:
        return None

    if "id" not in claims:
        return None

    try:
        return Snowflake(claims["id"])
    except ParseError:
        return None


class Client:
    """
    Top.gg API client.

    Holds the API token and base URL and exposes typed operations that each
    send one request and decode the response into a DTO or raise a
    ``TopggError`` subclass.
    """

    def __init__(
        self,
        token: str,
        *,
        bot_id: Optional[SnowflakeLike] = None,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the API client.

        Args:
            token: Top.gg API token
            bot_id: ID of the bot the token belongs to (decoded from the token if omitted)
            base_url: Base URL of the Top.gg API
            timeout: Request timeout in seconds
            http_client: Optional preconfigured ``httpx.AsyncClient``; not closed by ``aclose``

        Raises:
            ValidationError: If the token is empty or ``bot_id`` is malformed
        """
        if not isinstance(token, str) or not token.strip():
            raise ValidationError("Top.gg token must be a non-empty string")

        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.bot_id: Optional[Snowflake] = Snowflake(bot_id) if bot_id is not None else bot_id_from_token(token)

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        logger.info(f"Initialized Top.gg client with base_url: {self.base_url}")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "Client":
        """Build a client from ``TOPGG_*`` configuration."""
        settings = settings or get_settings()
        if not settings.token:
            raise ValidationError("TOPGG_TOKEN is required to create a Top.gg client")
        return cls(
            settings.token,
            bot_id=settings.TOPGG_BOT_ID,
            base_url=settings.API_BASE_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"Client(base_url={self.base_url!r}, bot_id={self.bot_id!r})"

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()
            logger.debug("Top.gg HTTP client closed")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self._token,
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }

    def _require_bot_id(self) -> Snowflake:
        if self.bot_id is None:
            raise ValidationError("This operation needs the bot's ID; pass bot_id or use a Top.gg token that embeds it")
        return self.bot_id

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            TransportError: If no response was received
            TopggError: The matching subclass for a non-2xx status
            DecodeError: If the body is not valid JSON
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"Making {method} request to {url}")

        try:
            response = await self._http_client.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=json_body,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Top.gg API request failed: {method} {path} network_error={e.__class__.__name__}") from e

        self._raise_for_status(response, method, path)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Top.gg API returned invalid JSON for {method} {path}", response.status_code) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        message = f"Top.gg API request failed: {method} {path} status={status}"

        if status in (401, 403):
            raise Unauthorized(message, status)
        if status == 404:
            raise NotFound(message, status)
        if status == 429:
            retry_after: Optional[float] = None
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("retry-after") is not None:
                    retry_after = float(body["retry-after"])
            except ValueError:
                pass
            if retry_after is None and response.headers.get("Retry-After"):
                try:
                    retry_after = float(response.headers["Retry-After"])
                except ValueError:
                    logger.warning("Failed to parse Retry-After header")
            raise Ratelimited(message, retry_after)
        if status >= 500:
            raise ServerError(message, status)
        raise TopggError(message, status)

    @staticmethod
    def _decode(model: Type[ModelT], payload: Any, what: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            raise DecodeError(f"Failed to parse {what} response: {e.error_count()} validation error(s)") from e

    async def get_bot(self, bot_id: SnowflakeLike) -> Bot:
        """
        Fetch a listed bot by its Discord ID.

        Raises:
            ParseError: If the ID is malformed
            NotFound: If the bot is not listed on Top.gg
        """
        snowflake = Snowflake(bot_id)
        payload = await self._request("GET", f"bots/{snowflake}")
        return self._decode(Bot, payload, "bot")

    def get_bots(self) -> GetBots:
        """Start a bot search; await the returned builder to send it."""
        return GetBots(self)

    async def _get_bots(self, params: Dict[str, Union[int, str]]) -> List[Bot]:
        payload = await self._request("GET", "bots", params=params)
        return self._decode(BotsPage, payload, "bots").results

    async def get_user(self, user_id: SnowflakeLike) -> User:
        """Fetch a Top.gg user profile."""
        snowflake = Snowflake(user_id)
        payload = await self._request("GET", f"users/{snowflake}")
        return self._decode(User, payload, "user")

    async def post_stats(self, stats: Union[Stats, int]) -> None:
        """
        Post the bot's statistics.

        Args:
            stats: Stats payload, or a bare server count

        Raises:
            ValidationError: If the payload carries no server count (no request is sent)
        """
        stats = as_stats(stats)
        await self._request("POST", "bots/stats", json_body=stats.to_payload())
        logger.info(f"Posted stats to Top.gg: server_count={stats.server_count}")

    async def post_server_count(self, server_count: int) -> None:
        await self.post_stats(server_count)

    async def get_server_count(self) -> Optional[int]:
        """Server count currently shown on the bot's Top.gg page."""
        payload = await self._request("GET", "bots/stats")
        return self._decode(ServerCountResponse, payload, "stats").server_count

    async def has_voted(self, user_id: SnowflakeLike) -> bool:
        """Whether the user has voted for this bot in the last 12 hours."""
        user = Snowflake(user_id)
        bot_id = self._require_bot_id()
        payload = await self._request("GET", f"bots/{bot_id}/check", params={"userId": str(user)})
        return self._decode(VotedResponse, payload, "vote check").voted

    async def get_voters(self, page: int = 1) -> List[Voter]:
        """
        Fetch a page of this bot's most recent voters.

        Raises:
            ValidationError: If ``page`` is below 1
        """
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be a positive integer, got {page!r}")
        bot_id = self._require_bot_id()
        payload = await self._request("GET", f"bots/{bot_id}/votes", params={"page": page})
        try:
            return _VOTERS_ADAPTER.validate_python(payload)
        except PydanticValidationError as e:
            raise DecodeError(f"Failed to parse voters response: {e.error_count()} validation error(s)") from e

    async def is_weekend(self) -> bool:
        """Whether the weekend vote multiplier is active."""
        payload = await self._request("GET", "weekend")
        return self._decode(IsWeekendResponse, payload, "weekend").is_weekend

    def autoposter(
        self,
        interval: Union[float, timedelta],
        source: Optional["StatsSource"] = None,
    ) -> Autoposter:
        """
        Create an autoposter bound to this client. Call ``start()`` on it to begin posting.

        Raises:
            ValidationError: If the interval is shorter than 15 minutes
        """
        return Autoposter(self, interval, source=source)
