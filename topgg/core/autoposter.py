"""Background loop that periodically posts a bot's statistics to Top.gg."""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, NamedTuple, Optional, Protocol, Union, runtime_checkable

from topgg.config.settings import MIN_AUTOPOSTER_INTERVAL_SECONDS
from topgg.errors import TopggError, ValidationError
from topgg.models.dtos import Stats, as_stats

if TYPE_CHECKING:
    from topgg.core.client import Client

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = MIN_AUTOPOSTER_INTERVAL_SECONDS

# Unread post results beyond this are dropped, oldest first.
MAX_PENDING_RESULTS = 100


class AutoposterState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class PostResult(NamedTuple):
    """Outcome of one attempt to post stats."""

    stats: Optional[Stats]
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@runtime_checkable
class StatsSource(Protocol):
    """Anything that can report the bot's current statistics on demand."""

    async def stats(self) -> Union[Stats, int, None]:
        ...


def _interval_seconds(interval: Union[float, timedelta]) -> float:
    if isinstance(interval, timedelta):
        seconds = interval.total_seconds()
    elif isinstance(interval, (int, float)) and not isinstance(interval, bool):
        seconds = float(interval)
    else:
        raise ValidationError(f"interval must be a number of seconds or a timedelta, got {interval!r}")

    if seconds < MIN_INTERVAL_SECONDS:
        raise ValidationError(f"Autoposter interval must be at least {MIN_INTERVAL_SECONDS} seconds, got {seconds:g}")
    return seconds


class Autoposter:
    """
    Posts bot statistics to Top.gg on a fixed interval.

    Stats are either pushed with ``feed()`` or pulled from a ``StatsSource``
    when nothing was fed since the last tick. Only the most recently fed
    payload is posted. The first tick runs as soon as the loop starts. A
    failed post is logged and the loop carries on; the outcome of every post
    attempt can be read with ``recv()``.
    """

    def __init__(
        self,
        client: "Client",
        interval: Union[float, timedelta],
        source: Optional[StatsSource] = None,
    ):
        """
        Initialize the autoposter.

        Args:
            client: Client used to post stats
            interval: Seconds (or a timedelta) between posts, at least 15 minutes
            source: Optional provider queried when no stats were fed

        Raises:
            ValidationError: If the interval is below the floor
        """
        self.client = client
        self.interval = _interval_seconds(interval)
        self.source = source
        self.state = AutoposterState.IDLE

        self._pending: Optional[Stats] = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._results: "asyncio.Queue[Optional[PostResult]]" = asyncio.Queue()

        self.last_post_time = 0.0
        self.last_error: Optional[str] = None
        self.stats: Dict[str, int] = {
            "ticks": 0,
            "posts_succeeded": 0,
            "posts_failed": 0,
            "ticks_skipped": 0,
        }

    @property
    def is_running(self) -> bool:
        return self.state is AutoposterState.RUNNING

    async def feed(self, stats: Union[Stats, int]) -> None:
        """
        Set the payload for the next tick, replacing any unposted one.

        Raises:
            ValidationError: If the payload has no server count
        """
        payload = as_stats(stats)
        async with self._lock:
            self._pending = payload

    async def _take_pending(self) -> Optional[Stats]:
        async with self._lock:
            payload, self._pending = self._pending, None
        return payload

    async def _next_payload(self) -> Optional[Stats]:
        payload = await self._take_pending()
        if payload is not None or self.source is None:
            return payload

        value = await self.source.stats()
        if value is None:
            return None
        return as_stats(value)

    def _publish(self, result: Optional[PostResult]) -> None:
        if self._results.qsize() >= MAX_PENDING_RESULTS:
            self._results.get_nowait()
        self._results.put_nowait(result)

    def _record_failure(self, payload: Optional[Stats], error: Exception) -> None:
        self.stats["posts_failed"] += 1
        self.last_error = str(error)
        self._publish(PostResult(payload, error))

    async def recv(self) -> Optional[PostResult]:
        """
        Wait for the outcome of the next post attempt.

        Returns:
            The next unread PostResult, or None once the autoposter has
            stopped and every result has been read
        """
        result = await self._results.get()
        if result is None:
            # Leave the end marker in place for later callers.
            self._results.put_nowait(None)
        return result

    async def run_once(self) -> bool:
        """
        Run a single tick.

        Returns:
            True if stats were posted successfully, False otherwise
        """
        self.stats["ticks"] += 1

        try:
            payload = await self._next_payload()
        except TopggError as e:
            logger.error(f"Autoposter could not collect stats: {e}")
            self._record_failure(None, e)
            return False
        except Exception as e:
            logger.exception(f"Stats source raised an unexpected error: {e}")
            self._record_failure(None, e)
            return False

        if payload is None:
            self.stats["ticks_skipped"] += 1
            logger.debug("Autoposter has no stats to post this tick")
            return False

        try:
            await self.client.post_stats(payload)
        except TopggError as e:
            logger.error(f"Autoposter failed to post stats: {e}")
            self._record_failure(payload, e)
            return False

        self.stats["posts_succeeded"] += 1
        self.last_post_time = time.time()
        self.last_error = None
        self._publish(PostResult(payload))
        return True

    async def _wait_interval(self) -> bool:
        """Sleep for one interval. Returns True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run(self) -> None:
        logger.info(f"Starting autoposter, interval: {self.interval:g}s")
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"Error in autoposter tick: {e}", exc_info=True)

                if await self._wait_interval():
                    break
        except asyncio.CancelledError:
            logger.info("Autoposter task cancelled")
            raise
        finally:
            self.state = AutoposterState.STOPPED
            self._publish(None)
            logger.info(
                f"Autoposter stopped after {self.stats['ticks']} ticks, "
                f"{self.stats['posts_succeeded']} successful posts"
            )

    def start(self) -> None:
        """
        Spawn the posting loop on the running event loop.

        Raises:
            RuntimeError: If the autoposter was already stopped
        """
        if self.state is AutoposterState.RUNNING:
            return
        if self.state is AutoposterState.STOPPED:
            raise RuntimeError("A stopped autoposter cannot be restarted")

        self.state = AutoposterState.RUNNING
        self._task = asyncio.create_task(self._run(), name="topgg-autoposter")

    async def stop(self) -> None:
        """Stop the loop, letting an in-flight post finish. Safe to call repeatedly."""
        if self.state is AutoposterState.STOPPED:
            return
        if self.state is AutoposterState.IDLE:
            self.state = AutoposterState.STOPPED
            self._publish(None)
            return

        logger.info("Stopping autoposter")
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def __aenter__(self) -> "Autoposter":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current metrics for monitoring.

        Returns:
            Dictionary of metrics
        """
        return {
            "ticks": self.stats["ticks"],
            "posts_succeeded": self.stats["posts_succeeded"],
            "posts_failed": self.stats["posts_failed"],
            "ticks_skipped": self.stats["ticks_skipped"],
            "unread_results": self._results.qsize(),
            "last_error": self.last_error,
            "last_post_time": datetime.fromtimestamp(self.last_post_time, tz=timezone.utc).isoformat() if self.last_post_time > 0 else None,
            "interval_sec": self.interval,
            "state": self.state.value,
        }
