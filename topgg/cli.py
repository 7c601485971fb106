"""Command-line interface for the Top.gg client."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from typing_extensions import Annotated

from topgg.config.settings import get_settings
from topgg.core.client import Client
from topgg.errors import TopggError, ValidationError
from topgg.utils.logging_utils import setup_logging

app = typer.Typer(help="Top.gg client - query bots, post stats and serve a vote webhook")

logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenOption = Annotated[Optional[str], typer.Option("--token", "-t", help="Top.gg API token (defaults to TOPGG_TOKEN)")]
BotIdOption = Annotated[Optional[str], typer.Option("--bot-id", help="Bot ID (defaults to TOPGG_BOT_ID or the token's)")]


def _build_client(token: Optional[str], bot_id: Optional[str]) -> Client:
    settings = get_settings()
    token = token or settings.token
    if not token:
        raise ValidationError("No token given; pass --token or set TOPGG_TOKEN")
    return Client(
        token,
        bot_id=bot_id or settings.TOPGG_BOT_ID,
        base_url=settings.API_BASE_URL,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )


def _execute(token: Optional[str], bot_id: Optional[str], action: Callable[[Client], Awaitable[T]]) -> T:
    """Run one client operation, turning Top.gg errors into a non-zero exit."""

    async def runner() -> T:
        async with _build_client(token, bot_id) as client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except TopggError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, sort_keys=True))


@app.command()
def bot(
    bot_id: Annotated[str, typer.Argument(help="Discord ID of the bot")],
    token: TokenOption = None,
) -> None:
    """Show a bot listed on Top.gg."""
    result = _execute(token, None, lambda client: client.get_bot(bot_id))
    _echo_json(result.model_dump(mode="json"))


@app.command()
def search(
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Match bots by username")] = None,
    prefix: Annotated[Optional[str], typer.Option("--prefix", help="Match bots by command prefix")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Maximum results (1-500)")] = None,
    skip: Annotated[Optional[int], typer.Option("--skip", "-s", help="Results to skip (0-499)")] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="Sort field: id, date or monthlyPoints")] = None,
    token: TokenOption = None,
) -> None:
    """Search bots listed on Top.gg."""

    def build(client: Client):
        query = client.get_bots()
        if limit is not None:
            query = query.limit(limit)
        if skip is not None:
            query = query.skip(skip)
        if sort:
            query = query.sort_by(sort)
        if username:
            query = query.username(username)
        if prefix:
            query = query.prefix(prefix)
        return query.fetch()

    results = _execute(token, None, build)
    for found in results:
        typer.echo(f"{found.id}\t{found.username}\t{found.monthly_votes}")


@app.command()
def user(
    user_id: Annotated[str, typer.Argument(help="Discord ID of the user")],
    token: TokenOption = None,
) -> None:
    """Show a Top.gg user profile."""
    result = _execute(token, None, lambda client: client.get_user(user_id))
    _echo_json(result.model_dump(mode="json"))


@app.command()
def voted(
    user_id: Annotated[str, typer.Argument(help="Discord ID of the user")],
    token: TokenOption = None,
    bot_id: BotIdOption = None,
) -> None:
    """Check whether a user voted for the bot in the last 12 hours."""
    has_voted = _execute(token, bot_id, lambda client: client.has_voted(user_id))
    typer.echo("yes" if has_voted else "no")


@app.command()
def voters(
    page: Annotated[int, typer.Option("--page", "-p", help="Page of voters, starting at 1")] = 1,
    token: TokenOption = None,
    bot_id: BotIdOption = None,
) -> None:
    """List the bot's most recent voters."""
    results = _execute(token, bot_id, lambda client: client.get_voters(page))
    for voter in results:
        typer.echo(f"{voter.id}\t{voter.username}")


@app.command("post-stats")
def post_stats(
    server_count: Annotated[int, typer.Argument(help="Number of servers the bot is in")],
    token: TokenOption = None,
) -> None:
    """Post the bot's server count."""
    _execute(token, None, lambda client: client.post_server_count(server_count))
    typer.echo(f"Posted server count {server_count}")


@app.command("server-count")
def server_count(
    token: TokenOption = None,
) -> None:
    """Show the server count currently displayed on Top.gg."""
    count = _execute(token, None, lambda client: client.get_server_count())
    typer.echo("unknown" if count is None else str(count))


@app.command()
def weekend(
    token: TokenOption = None,
) -> None:
    """Check whether the weekend vote multiplier is active."""
    active = _execute(token, None, lambda client: client.is_weekend())
    typer.echo("yes" if active else "no")


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address (defaults to API_HOST)")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port (defaults to API_PORT)")] = None,
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level")] = None,
) -> None:
    """Serve the vote webhook (and autoposter, if enabled) with uvicorn."""
    import uvicorn

    from topgg.api.main import create_app

    settings = get_settings()
    setup_logging(log_level=loglevel)
    logger.info(f"Serving {settings.APP_NAME} on {host or settings.API_HOST}:{port or settings.API_PORT}")
    uvicorn.run(
        create_app(settings),
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
        log_config=None,
    )


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    if verbose:
        setup_logging(log_level="DEBUG")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
