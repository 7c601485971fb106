import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from topgg.core import autoposter as autoposter_module
from topgg.core.autoposter import Autoposter, AutoposterState, PostResult
from topgg.errors import ServerError, TransportError, ValidationError
from topgg.models.dtos import Stats


class CountingSource:
    def __init__(self, value=100):
        self.value = value
        self.calls = 0

    async def stats(self):
        self.calls += 1
        return self.value


class FlakySource:
    """Raises ``error`` on the first call, then reports ``value``."""

    def __init__(self, error, value=100):
        self.error = error
        self.value = value
        self.calls = 0

    async def stats(self):
        self.calls += 1
        if self.calls == 1:
            raise self.error
        return self.value


@pytest.fixture
def client():
    client = MagicMock()
    client.post_stats = AsyncMock(return_value=None)
    return client


@pytest.fixture
def fast_interval(monkeypatch):
    """Lift the interval floor so the loop can tick quickly."""
    monkeypatch.setattr(autoposter_module, "MIN_INTERVAL_SECONDS", 0)
    return 0.01


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


class TestAutoposterConstruction:
    def test_interval_floor(self, client):
        with pytest.raises(ValidationError):
            Autoposter(client, 899)
        with pytest.raises(ValidationError):
            Autoposter(client, timedelta(minutes=14))

        assert Autoposter(client, 900).interval == 900
        assert Autoposter(client, timedelta(minutes=30)).interval == 1800

    def test_interval_type_checked(self, client):
        with pytest.raises(ValidationError):
            Autoposter(client, "1800")

    def test_starts_idle(self, client):
        autoposter = Autoposter(client, 1800)
        assert autoposter.state is AutoposterState.IDLE
        assert autoposter.is_running is False


class TestAutoposterTick:
    """Test cases for single ticks."""

    @pytest.mark.asyncio
    async def test_last_fed_payload_wins(self, client):
        autoposter = Autoposter(client, 1800)

        for count in (10, 20, 30):
            await autoposter.feed(count)
        posted = await autoposter.run_once()

        assert posted is True
        client.post_stats.assert_awaited_once_with(Stats(server_count=30))

    @pytest.mark.asyncio
    async def test_payload_cleared_after_tick(self, client):
        autoposter = Autoposter(client, 1800)
        await autoposter.feed(Stats(server_count=5))

        await autoposter.run_once()
        posted = await autoposter.run_once()

        assert posted is False
        assert client.post_stats.await_count == 1
        assert autoposter.get_metrics()["ticks_skipped"] == 1

    @pytest.mark.asyncio
    async def test_feed_rejects_payload_without_count(self, client):
        autoposter = Autoposter(client, 1800)
        with pytest.raises(ValidationError):
            await autoposter.feed(Stats())

    @pytest.mark.asyncio
    async def test_source_used_when_nothing_fed(self, client):
        source = CountingSource(value=77)
        autoposter = Autoposter(client, 1800, source=source)

        await autoposter.run_once()
        await autoposter.feed(5)
        await autoposter.run_once()

        assert source.calls == 1
        assert [call.args[0].server_count for call in client.post_stats.await_args_list] == [77, 5]

    @pytest.mark.asyncio
    async def test_failing_tick_does_not_prevent_next(self, client):
        client.post_stats.side_effect = [ServerError("boom", 502), None]
        autoposter = Autoposter(client, 1800)

        await autoposter.feed(1)
        first = await autoposter.run_once()
        await autoposter.feed(2)
        second = await autoposter.run_once()

        assert first is False
        assert second is True
        metrics = autoposter.get_metrics()
        assert metrics["posts_failed"] == 1
        assert metrics["posts_succeeded"] == 1
        assert metrics["last_error"] is None
        assert metrics["last_post_time"] is not None

    @pytest.mark.asyncio
    async def test_failed_tick_records_error(self, client):
        client.post_stats.side_effect = TransportError("unreachable")
        autoposter = Autoposter(client, 1800)

        await autoposter.feed(1)
        await autoposter.run_once()

        assert autoposter.get_metrics()["last_error"] == "unreachable"

    @pytest.mark.asyncio
    async def test_unexpected_source_error_counts_as_failed_tick(self, client):
        source = FlakySource(RuntimeError("database went away"), value=64)
        autoposter = Autoposter(client, 1800, source=source)

        first = await autoposter.run_once()
        assert first is False
        assert autoposter.last_error == "database went away"
        assert isinstance((await autoposter.recv()).error, RuntimeError)

        second = await autoposter.run_once()
        assert second is True
        client.post_stats.assert_awaited_once_with(Stats(server_count=64))
        assert autoposter.stats["posts_failed"] == 1

    @pytest.mark.asyncio
    async def test_recv_reports_each_attempt(self, client):
        client.post_stats.side_effect = [None, ServerError("boom", 502)]
        autoposter = Autoposter(client, 1800)

        await autoposter.feed(1)
        await autoposter.run_once()
        await autoposter.feed(2)
        await autoposter.run_once()
        await autoposter.run_once()

        first = await autoposter.recv()
        second = await autoposter.recv()

        assert first == PostResult(Stats(server_count=1))
        assert first.ok is True
        assert second.stats == Stats(server_count=2)
        assert isinstance(second.error, ServerError)
        assert second.ok is False
        # Skipped ticks publish nothing.
        assert autoposter.get_metrics()["unread_results"] == 0

    @pytest.mark.asyncio
    async def test_unread_results_are_bounded(self, client, monkeypatch):
        monkeypatch.setattr(autoposter_module, "MAX_PENDING_RESULTS", 3)
        autoposter = Autoposter(client, 1800)

        for count in range(1, 6):
            await autoposter.feed(count)
            await autoposter.run_once()

        assert autoposter.get_metrics()["unread_results"] == 3
        assert (await autoposter.recv()).stats == Stats(server_count=3)

    @pytest.mark.asyncio
    async def test_concurrent_feeds_during_ticks(self, client):
        posted = []

        async def slow_post(stats):
            posted.append(stats.server_count)
            await asyncio.sleep(0)

        client.post_stats.side_effect = slow_post
        autoposter = Autoposter(client, 1800)
        fed = []

        async def feed_one(count):
            for _ in range(count % 5):
                await asyncio.sleep(0)
            await autoposter.feed(count)
            fed.append(count)

        async def tick(rounds):
            for _ in range(rounds):
                await asyncio.sleep(0)
            await autoposter.run_once()

        await asyncio.gather(*(feed_one(count) for count in range(1, 51)), *(tick(rounds) for rounds in range(10)))
        await autoposter.run_once()

        assert posted
        assert set(posted) <= set(fed)
        assert len(posted) == len(set(posted))
        # The most recent feed is never lost, even when it lands mid-post.
        assert posted[-1] == fed[-1]
        assert autoposter._pending is None


class TestAutoposterLoop:
    """Test cases for the background loop."""

    @pytest.mark.asyncio
    async def test_loop_keeps_posting_after_failure(self, client, fast_interval):
        outcomes = iter([ServerError("boom", 500)])

        async def post(stats):
            error = next(outcomes, None)
            if error is not None:
                raise error

        client.post_stats.side_effect = post
        autoposter = Autoposter(client, fast_interval, source=CountingSource())

        autoposter.start()
        await wait_until(lambda: autoposter.stats["posts_succeeded"] >= 1)
        await autoposter.stop()

        assert autoposter.stats["posts_failed"] >= 1
        assert autoposter.state is AutoposterState.STOPPED

    @pytest.mark.asyncio
    async def test_no_posts_after_stop(self, client, fast_interval):
        autoposter = Autoposter(client, fast_interval)

        autoposter.start()
        await autoposter.feed(10)
        await wait_until(lambda: client.post_stats.await_count >= 1)
        await autoposter.stop()

        posts_at_stop = client.post_stats.await_count
        await autoposter.feed(20)
        await asyncio.sleep(fast_interval * 5)

        assert client.post_stats.await_count == posts_at_stop

    @pytest.mark.asyncio
    async def test_first_post_happens_on_start(self, client):
        autoposter = Autoposter(client, 1800)
        await autoposter.feed(5)

        autoposter.start()
        await wait_until(lambda: client.post_stats.await_count >= 1, timeout=1.0)
        await autoposter.stop()

        client.post_stats.assert_awaited_once_with(Stats(server_count=5))

    @pytest.mark.asyncio
    async def test_loop_survives_unexpected_source_error(self, client, fast_interval):
        source = FlakySource(RuntimeError("shard cache not ready"))
        autoposter = Autoposter(client, fast_interval, source=source)

        autoposter.start()
        await wait_until(lambda: autoposter.stats["posts_succeeded"] >= 2)

        assert autoposter.state is AutoposterState.RUNNING
        await autoposter.stop()
        assert autoposter.stats["posts_failed"] == 1
        assert client.post_stats.await_count >= 2

    @pytest.mark.asyncio
    async def test_recv_ends_after_stop(self, client):
        autoposter = Autoposter(client, 1800)
        await autoposter.feed(9)

        autoposter.start()
        result = await asyncio.wait_for(autoposter.recv(), timeout=1.0)
        await autoposter.stop()

        assert result.stats == Stats(server_count=9)
        assert await autoposter.recv() is None
        assert await autoposter.recv() is None

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, client, fast_interval):
        autoposter = Autoposter(client, fast_interval)

        autoposter.start()
        task = autoposter._task
        autoposter.start()

        assert autoposter._task is task
        await autoposter.stop()

    @pytest.mark.asyncio
    async def test_stopped_autoposter_cannot_restart(self, client):
        autoposter = Autoposter(client, 1800)

        autoposter.start()
        await autoposter.stop()
        await autoposter.stop()

        with pytest.raises(RuntimeError):
            autoposter.start()

    @pytest.mark.asyncio
    async def test_stop_interrupts_wait(self, client):
        autoposter = Autoposter(client, 1800)

        autoposter.start()
        await asyncio.wait_for(autoposter.stop(), timeout=1.0)

        client.post_stats.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_from_idle(self, client):
        autoposter = Autoposter(client, 1800)

        await autoposter.stop()

        assert autoposter.state is AutoposterState.STOPPED
        with pytest.raises(RuntimeError):
            autoposter.start()

    @pytest.mark.asyncio
    async def test_context_manager(self, client):
        async with Autoposter(client, 1800) as autoposter:
            assert autoposter.is_running
            assert autoposter.get_metrics()["state"] == "running"

        assert autoposter.state is AutoposterState.STOPPED
