"""HTTP endpoints served by the Top.gg webhook app."""

from .webhook import VoteHandler, create_webhook_router, log_vote

__all__ = ["VoteHandler", "create_webhook_router", "log_vote"]
