"""
Top.gg webhook endpoint.

Receives vote events pushed by Top.gg, checks the shared secret from the
``Authorization`` header and hands authenticated votes to a callback.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import APIRouter, Header, HTTPException, Request

from topgg.core.webhook import Vote, WebhookRequest
from topgg.errors import BadRequest

logger = logging.getLogger(__name__)

VoteHandler = Callable[[Vote], Union[Awaitable[Any], Any]]


async def log_vote(vote: Vote) -> None:
    """Default handler: log the vote and do nothing else."""
    target = getattr(vote, "bot", None) or getattr(vote, "guild", None)
    logger.info(f"Received {vote.type} vote from user {vote.user} for {target}")


def create_webhook_router(
    secret: str,
    handler: VoteHandler = log_vote,
    path: str = "/webhook",
) -> APIRouter:
    """
    Build a router exposing ``POST {path}`` for Top.gg vote deliveries.

    Args:
        secret: Webhook secret configured on the Top.gg dashboard
        handler: Called with each authenticated vote; may be sync or async
        path: Route path

    Returns:
        APIRouter: Router to include in a FastAPI application
    """
    if not secret:
        raise ValueError("Webhook secret must not be empty")

    router = APIRouter()

    @router.post(path, summary="Receive a Top.gg vote", description="Endpoint Top.gg posts vote events to")
    async def receive_vote(
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ):
        body = await request.body()

        try:
            webhook_request = WebhookRequest.from_body(body, authorization)
        except BadRequest as e:
            logger.warning(f"Rejected malformed webhook request: {e}")
            raise HTTPException(status_code=400, detail=e.message)

        vote = webhook_request.authenticate(secret)
        if vote is None:
            raise HTTPException(status_code=401, detail="Unauthorized")

        result = handler(vote)
        if inspect.isawaitable(result):
            await result

        return {"status": "ok"}

    return router
