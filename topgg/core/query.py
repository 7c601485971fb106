"""
Query builder for searching bots listed on Top.gg.

``GetBots`` accumulates pagination, sort and search parameters and performs
the request only when awaited. Every builder method returns a new builder, so
a partially configured query can be reused safely.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Generator, List, Optional, Union

import httpx

from topgg.errors import ValidationError
from topgg.models.dtos import Bot

if TYPE_CHECKING:
    from topgg.core.client import Client

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 500
MAX_OFFSET = 499


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be an integer, got {value!r}") from e


class GetBots:
    """
    Awaitable query over ``GET /bots``.

    Example::

        bots = await client.get_bots().limit(250).skip(50).username("shiro")
    """

    __slots__ = ("_client", "_limit", "_offset", "_sort", "_search")

    def __init__(
        self,
        client: "Client",
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort: Optional[str] = None,
        search: Optional[Dict[str, str]] = None,
    ):
        self._client = client
        self._limit = limit
        self._offset = offset
        self._sort = sort
        self._search = dict(search or {})

    def __repr__(self) -> str:
        return f"GetBots({self.query_string()!r})"

    def _replace(self, **changes: Any) -> "GetBots":
        fields: Dict[str, Any] = {
            "limit": self._limit,
            "offset": self._offset,
            "sort": self._sort,
            "search": self._search,
        }
        fields.update(changes)
        return GetBots(self._client, **fields)

    def limit(self, limit: int) -> "GetBots":
        """Maximum amount of bots to return, clamped to 1..500."""
        value = _as_int("limit", limit)
        return self._replace(limit=min(max(value, MIN_LIMIT), MAX_LIMIT))

    def skip(self, skip: int) -> "GetBots":
        """Amount of bots to skip, clamped to 0..499."""
        value = _as_int("skip", skip)
        return self._replace(offset=min(max(value, 0), MAX_OFFSET))

    def search(self, field: str, text: Union[str, int]) -> "GetBots":
        """Only match bots whose ``field`` matches ``text``. Replaces an earlier filter on the same field."""
        if not field or not isinstance(field, str):
            raise ValidationError(f"search field must be a non-empty string, got {field!r}")
        search = dict(self._search)
        search[field] = str(text)
        return self._replace(search=search)

    def sort_by(self, field: str, descending: bool = False) -> "GetBots":
        """Sort results by ``field``. Replaces any earlier sort."""
        if not field or not isinstance(field, str):
            raise ValidationError(f"sort field must be a non-empty string, got {field!r}")
        return self._replace(sort=f"-{field}" if descending else field)

    def username(self, username: str) -> "GetBots":
        return self.search("username", username)

    def prefix(self, prefix: str) -> "GetBots":
        return self.search("prefix", prefix)

    def votes(self, votes: int) -> "GetBots":
        return self.search("points", _as_int("votes", votes))

    def monthly_votes(self, monthly_votes: int) -> "GetBots":
        return self.search("monthlyPoints", _as_int("monthly_votes", monthly_votes))

    def vanity(self, vanity: str) -> "GetBots":
        return self.search("vanity", vanity)

    def sort_by_id(self) -> "GetBots":
        return self.sort_by("id")

    def sort_by_approval_date(self) -> "GetBots":
        return self.sort_by("date")

    def sort_by_monthly_votes(self) -> "GetBots":
        return self.sort_by("monthlyPoints")

    def params(self) -> Dict[str, Union[int, str]]:
        """Query parameters in canonical order, unset ones omitted."""
        params: Dict[str, Union[int, str]] = {}
        if self._limit is not None:
            params["limit"] = self._limit
        if self._offset is not None:
            params["offset"] = self._offset
        if self._sort is not None:
            params["sort"] = self._sort
        if self._search:
            params["search"] = " ".join(f"{field}: {text}" for field, text in self._search.items())
        return params

    def query_string(self) -> str:
        return str(httpx.QueryParams(self.params()))

    async def fetch(self) -> List[Bot]:
        """Send the query. Each call performs a fresh request."""
        logger.debug(f"Querying bots with {self.query_string() or 'no parameters'}")
        return await self._client._get_bots(self.params())

    def __await__(self) -> Generator[Any, None, List[Bot]]:
        return self.fetch().__await__()
