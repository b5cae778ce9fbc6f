"""Unit tests for ThreadTitleTracker."""

import asyncio

import pytest

from title_sync.services.title_tracker import ThreadTitleTracker


class TestThreadTitleTracker:
    """In-flight bookkeeping and the applied cache."""

    @pytest.mark.asyncio
    async def test_released_when_task_finishes(self) -> None:
        tracker = ThreadTitleTracker()
        gate = asyncio.Event()
        task = asyncio.create_task(gate.wait())
        tracker.track("k", task)

        assert tracker.is_in_flight("k")
        gate.set()
        await tracker.wait_idle()

        assert not tracker.is_in_flight("k")
        assert tracker.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_released_when_task_fails(self) -> None:
        tracker = ThreadTitleTracker()

        async def fail() -> None:
            raise RuntimeError("boom")

        task = asyncio.create_task(fail())
        tracker.track("k", task)
        await tracker.wait_idle()

        assert tracker.in_flight_count == 0
        assert isinstance(task.exception(), RuntimeError)

    @pytest.mark.asyncio
    async def test_stale_release_keeps_newer_task(self) -> None:
        tracker = ThreadTitleTracker()
        old = asyncio.create_task(asyncio.sleep(0))
        new = asyncio.create_task(asyncio.sleep(0))
        tracker.track("k", new)

        tracker.release("k", old)

        assert tracker.is_in_flight("k")
        await tracker.wait_idle()
        await old

    def test_applied_cache_is_bounded(self) -> None:
        tracker = ThreadTitleTracker(max_applied=1)
        tracker.remember_applied("a", "Fix Deploy")
        tracker.remember_applied("b", "Fix Icon")

        assert tracker.applied_title("a") is None
        assert tracker.applied_title("b") == "Fix Icon"
