"""
FastAPI application serving a Top.gg vote webhook.

The app owns a shared ``Client`` for its lifetime and, when enabled, an
autoposter that keeps the bot's stats on Top.gg current.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from topgg.api.endpoints.webhook import VoteHandler, create_webhook_router, log_vote
from topgg.config.settings import Settings, get_settings
from topgg.core.autoposter import StatsSource
from topgg.core.client import Client

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    vote_handler: VoteHandler = log_vote,
    stats_source: Optional[StatsSource] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to ``get_settings()``
        vote_handler: Called with each authenticated vote
        stats_source: Provider the autoposter asks for stats

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

        app.state.client = None
        app.state.autoposter = None

        if settings.token:
            app.state.client = Client.from_settings(settings)
        else:
            logger.info("TOPGG_TOKEN not configured - skipping API client initialization")

        if settings.AUTOPOSTER_ENABLED:
            if app.state.client is None:
                logger.warning("Autoposter enabled but TOPGG_TOKEN is missing - not starting it")
            else:
                app.state.autoposter = app.state.client.autoposter(
                    settings.AUTOPOSTER_INTERVAL_SECONDS,
                    source=stats_source,
                )
                app.state.autoposter.start()

        yield

        logger.info("Shutting down application")
        if app.state.autoposter is not None:
            await app.state.autoposter.stop()
        if app.state.client is not None:
            await app.state.client.aclose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Receives Top.gg vote webhooks and posts bot statistics.",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    if settings.webhook_secret:
        app.include_router(
            create_webhook_router(settings.webhook_secret, vote_handler, settings.WEBHOOK_PATH),
            tags=["webhook"],
        )
    else:
        logger.warning("WEBHOOK_SECRET not configured - webhook endpoint disabled")

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check():
        """Application health status, including autoposter metrics when running."""
        autoposter = getattr(app.state, "autoposter", None)
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "api_client": "enabled" if getattr(app.state, "client", None) else "disabled",
            "webhook": "enabled" if settings.webhook_secret else "disabled",
            "autoposter": autoposter.get_metrics() if autoposter else None,
        }

    return app
