"""Tests for the query cache."""

import asyncio
import gc

import pytest
from unittest.mock import AsyncMock

from telehealth_scheduling.cache import QueryCache
from telehealth_scheduling.scheduling.query_keys import BookingKeys, CalendarKeys

SLOTS_T1 = CalendarKeys.availability_slots({"practitioner_id": "t1", "requester": "pat@example.com"})
SLOTS_T2 = CalendarKeys.availability_slots({"practitioner_id": "t2"})


class TestFetch:
    """Tests for cached fetches."""

    @pytest.mark.asyncio
    async def test_fresh_entry_served_from_cache(self, cache):
        """Test that a fresh entry does not call the loader again."""
        loader = AsyncMock(return_value=["a"])

        assert await cache.fetch(SLOTS_T1, loader) == ["a"]
        assert await cache.fetch(SLOTS_T1, loader) == ["a"]
        assert loader.await_count == 1

    @pytest.mark.asyncio
    async def test_stale_after_stale_time(self, cache, clock):
        loader = AsyncMock(side_effect=[["a"], ["b"]])

        await cache.fetch(SLOTS_T1, loader)
        clock.advance(60)

        assert cache.is_stale(SLOTS_T1)
        assert await cache.fetch(SLOTS_T1, loader) == ["b"]

    @pytest.mark.asyncio
    async def test_force_reload(self, cache):
        loader = AsyncMock(side_effect=[1, 2])

        await cache.fetch(SLOTS_T1, loader)
        assert await cache.fetch(SLOTS_T1, loader, force=True) == 2

    @pytest.mark.asyncio
    async def test_loader_error_propagates_and_is_not_cached(self, cache):
        loader = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RuntimeError):
            await cache.fetch(SLOTS_T1, loader)

        assert cache.get(SLOTS_T1) is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_load(self, cache):
        release = asyncio.Event()
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            await release.wait()
            return "data"

        tasks = [asyncio.create_task(cache.fetch(SLOTS_T1, loader)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(*tasks) == ["data", "data", "data"]
        assert calls == 1

    @pytest.mark.asyncio
    async def test_invalidated_in_flight_result_not_stored(self, cache):
        """Test that a load superseded by invalidation does not populate the cache."""
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "old"

        task = asyncio.create_task(cache.fetch(SLOTS_T1, slow))
        await asyncio.sleep(0)
        cache.invalidate(CalendarKeys.all())
        release.set()

        assert await task == "old"
        assert cache.get(SLOTS_T1) is None

    @pytest.mark.asyncio
    async def test_latest_issued_request_wins(self, cache):
        first_release = asyncio.Event()

        async def first():
            await first_release.wait()
            return "first"

        async def second():
            return "second"

        first_task = asyncio.create_task(cache.fetch(SLOTS_T1, first))
        await asyncio.sleep(0)
        assert await cache.fetch(SLOTS_T1, second, force=True) == "second"
        first_release.set()
        await first_task

        assert cache.get(SLOTS_T1) == "second"

    @pytest.mark.asyncio
    async def test_abandoned_loader_failure_not_reported_as_unhandled(self, cache):
        """Test that a loader failing after its caller gave up is not logged as a lost exception."""
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        release = asyncio.Event()

        async def failing():
            await release.wait()
            raise RuntimeError("down")

        try:
            waiter = asyncio.create_task(cache.fetch(SLOTS_T1, failing))
            await asyncio.sleep(0)
            cache.invalidate(CalendarKeys.all())
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

            release.set()
            for _ in range(5):
                await asyncio.sleep(0)
            del waiter
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert reported == []
        assert cache.get(SLOTS_T1) is None


class TestInvalidate:
    """Tests for prefix invalidation."""

    @pytest.mark.asyncio
    async def test_partial_params_prefix(self, cache):
        for key in (SLOTS_T1, SLOTS_T2):
            await cache.fetch(key, AsyncMock(return_value="x"))

        count = cache.invalidate(CalendarKeys.availability_slots({"requester": "pat@example.com"}))

        assert count == 1
        assert cache.is_stale(SLOTS_T1)
        assert not cache.is_stale(SLOTS_T2)
        assert cache.entry(SLOTS_T1).invalidation_count == 1

    @pytest.mark.asyncio
    async def test_stale_data_still_readable(self, cache):
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))
        cache.invalidate(CalendarKeys.all())

        assert cache.get(SLOTS_T1) == "x"

    def test_no_match_returns_zero(self, cache):
        assert cache.invalidate(BookingKeys.requester("nobody@example.com")) == 0

    @pytest.mark.asyncio
    async def test_invalidation_logged(self, cache, isolated_observability):
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))
        cache.invalidate(CalendarKeys.all())

        events = isolated_observability.get_recent_events("cache")
        assert events[-1]["matched_entries"] == 1


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_listener_called_for_matching_keys(self, cache):
        seen = []
        unsubscribe = cache.subscribe(CalendarKeys.availability_slots(), seen.append)
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))
        await cache.fetch(BookingKeys.requester("pat@example.com"), AsyncMock(return_value="y"))

        cache.invalidate(CalendarKeys.all())
        cache.invalidate(BookingKeys.all())
        assert seen == [SLOTS_T1]

        unsubscribe()
        cache.invalidate(CalendarKeys.all())
        assert seen == [SLOTS_T1]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_invalidation(self, cache):
        def broken(key):
            raise RuntimeError("listener bug")

        cache.subscribe(CalendarKeys.all(), broken)
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))

        assert cache.invalidate(CalendarKeys.all()) == 1


class TestGarbageCollection:
    @pytest.mark.asyncio
    async def test_unused_entries_evicted(self, cache, clock):
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))
        await cache.fetch(SLOTS_T2, AsyncMock(return_value="y"))
        clock.advance(500)
        cache.get(SLOTS_T2)
        clock.advance(200)

        assert cache.collect_garbage() == 1
        assert cache.entry(SLOTS_T1) is None
        assert cache.get(SLOTS_T2) == "y"

    def test_defaults_from_settings(self):
        cache = QueryCache()
        assert cache.stale_time == 60.0
        assert cache.gc_time == 600.0

    @pytest.mark.asyncio
    async def test_clear(self, cache):
        await cache.fetch(SLOTS_T1, AsyncMock(return_value="x"))
        cache.clear()
        assert len(cache) == 0
