"""In-process bookkeeping for title attempts."""

import asyncio

from title_sync.repositories.title_state_repo import DEFAULT_MAX_ENTRIES, BoundedLRU


class ThreadTitleTracker:
    """Tracks attempts in flight and threads already titled by this process.

    One tracker belongs to one engine; it is the only mutual exclusion
    that is exact, the persisted lease being best effort across processes.
    """

    def __init__(self, max_applied: int = DEFAULT_MAX_ENTRIES) -> None:
        self._in_flight: dict[str, asyncio.Task] = {}
        self._applied: BoundedLRU[str, str] = BoundedLRU(max_applied)

    def applied_title(self, thread_key: str) -> str | None:
        return self._applied.get(thread_key)

    def remember_applied(self, thread_key: str, title: str) -> None:
        self._applied.set(thread_key, title)

    def is_in_flight(self, thread_key: str) -> bool:
        return thread_key in self._in_flight

    def track(self, thread_key: str, task: asyncio.Task) -> None:
        """Register an attempt; it is released when the task finishes, however it ends."""
        self._in_flight[thread_key] = task
        task.add_done_callback(lambda _: self.release(thread_key, task))

    def release(self, thread_key: str, task: asyncio.Task | None = None) -> None:
        if task is None or self._in_flight.get(thread_key) is task:
            self._in_flight.pop(thread_key, None)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def wait_idle(self) -> None:
        """Wait for every attempt currently in flight.

        Cancelling the wait leaves the attempts running.
        """
        while self._in_flight:
            await asyncio.wait(list(self._in_flight.values()))
