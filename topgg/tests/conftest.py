from typing import Callable, List

import httpx
import jwt
import pytest

from topgg.config.settings import get_settings
from topgg.core.client import Client

BOT_ID = "264811613708746752"
BASE_URL = "https://top.gg/api"
SIGNING_KEY = "topgg-test-signing-key-0123456789abcdef"


def make_token(claims: dict) -> str:
    """Build a signed JWT carrying ``claims``."""
    return jwt.encode(claims, SIGNING_KEY, algorithm="HS256")


TOKEN = make_token({"id": BOT_ID, "bot": True})


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def requests_seen() -> List[httpx.Request]:
    return []


@pytest.fixture
def make_client(requests_seen) -> Callable[..., Client]:
    """Factory for a Client whose requests are answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> Client:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        kwargs.setdefault("base_url", BASE_URL)
        return Client(kwargs.pop("token", TOKEN), http_client=http_client, **kwargs)

    return factory


@pytest.fixture
def token() -> str:
    return TOKEN


@pytest.fixture
def token_factory() -> Callable[[dict], str]:
    return make_token
