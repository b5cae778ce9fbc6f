"""Thread title state repositories.

Two backends share one interface: a bounded in-memory map for single
process use and tests, and Redis session entries for state that survives
restarts. All writes go through ``update``, a read-modify-write of one
entry; callers never read and then write separately.
"""

import json
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar

import redis.asyncio as redis
import structlog
from redis.exceptions import WatchError

from title_sync.core.exceptions import StateStoreConflictError
from title_sync.core.settings import RedisConfig
from title_sync.schemas.thread_title_schema import ThreadTitleState
from title_sync.services.title_candidates import is_default_thread_placeholder

logger = structlog.get_logger()

K = TypeVar("K")
V = TypeVar("V")

StateUpdater = Callable[[ThreadTitleState | None], ThreadTitleState | None]

DEFAULT_MAX_ENTRIES = 5_000
STATE_FIELD = "threadTitle"
MAX_UPDATE_RETRIES = 10


class BoundedLRU(Generic[K, V]):
    """Insertion-ordered map that evicts its oldest entries past ``max_entries``.

    Writing a key moves it to the newest position.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._max_entries = max(1, max_entries)
        self._data: OrderedDict[K, V] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def get(self, key: K) -> V | None:
        return self._data.get(key)

    def set(self, key: K, value: V) -> None:
        self._data.pop(key, None)
        self._data[key] = value
        while len(self._data) > self._max_entries:
            self._data.popitem(last=False)


def is_applied_with_title(state: ThreadTitleState | None) -> bool:
    """Applied state whose title is a real, non-placeholder title."""
    if state is None or state.status != "applied":
        return False
    title = state.applied_title or state.last_proposed_title
    return bool(title and title.strip()) and not is_default_thread_placeholder(title)


class ThreadTitleStateRepository(Protocol):
    """Keyed storage of per-thread title state."""

    async def get(
        self, thread_key: str, session_key: str | None = None
    ) -> ThreadTitleState | None: ...

    async def update(
        self,
        thread_key: str,
        updater: StateUpdater,
        session_key: str | None = None,
    ) -> ThreadTitleState | None:
        """Apply ``updater`` to the current state atomically.

        The updater returns the new state, or None to leave the entry as
        is. Returns the state held after the call.
        """
        ...

    async def find_applied(self, thread_key: str) -> ThreadTitleState | None:
        """Any stored applied state for the thread, across sessions."""
        ...


class InMemoryThreadTitleStateRepository:
    """Process-local state keyed by thread key, LRU-bounded."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._states: BoundedLRU[str, ThreadTitleState] = BoundedLRU(max_entries)

    def __len__(self) -> int:
        return len(self._states)

    async def get(
        self, thread_key: str, session_key: str | None = None
    ) -> ThreadTitleState | None:
        return self._states.get(thread_key)

    async def update(
        self,
        thread_key: str,
        updater: StateUpdater,
        session_key: str | None = None,
    ) -> ThreadTitleState | None:
        current = self._states.get(thread_key)
        new_state = updater(current)
        if new_state is None:
            return current
        self._states.set(thread_key, new_state)
        return new_state

    async def find_applied(self, thread_key: str) -> ThreadTitleState | None:
        state = self._states.get(thread_key)
        return state if is_applied_with_title(state) else None


def _load_entry(raw: str | None, entry_key: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        entry = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable session entry treated as empty", entry_key=entry_key)
        return {}
    return entry if isinstance(entry, dict) else {}


def _state_for(entry: dict[str, Any], thread_key: str) -> ThreadTitleState | None:
    state = ThreadTitleState.from_record(entry.get(STATE_FIELD))
    if state is None or state.thread_key != thread_key:
        return None
    return state


class RedisThreadTitleStateRepository:
    """Title state embedded in JSON session entries stored in Redis.

    Each session entry holds the state of the thread that session lives
    in, next to whatever other fields the session record carries. Without
    a session key the state gets an entry of its own, keyed by thread.
    Updates run as WATCH/MULTI transactions and retry on conflict. A set
    per thread lists the entries that ever held its state, so sibling
    sessions are found without scanning every entry.
    """

    def __init__(
        self,
        redis_client: redis.Redis,  # type: ignore[type-arg]
        config: RedisConfig,
        max_retries: int = MAX_UPDATE_RETRIES,
    ) -> None:
        self._redis = redis_client
        self._config = config
        self._max_retries = max_retries

    def thread_index_key(self, thread_key: str) -> str:
        """Set of the entry keys holding state for one thread."""
        return self._config.key("thread_sessions", thread_key)

    def entry_key(self, thread_key: str, session_key: str | None = None) -> str:
        if session_key:
            return self._config.key("session", session_key)
        return self._config.key("thread", thread_key)

    async def get(
        self, thread_key: str, session_key: str | None = None
    ) -> ThreadTitleState | None:
        key = self.entry_key(thread_key, session_key)
        entry = _load_entry(await self._redis.get(key), key)
        return _state_for(entry, thread_key)

    async def update(
        self,
        thread_key: str,
        updater: StateUpdater,
        session_key: str | None = None,
    ) -> ThreadTitleState | None:
        key = self.entry_key(thread_key, session_key)
        async with self._redis.pipeline(transaction=True) as pipe:
            for _ in range(self._max_retries):
                try:
                    await pipe.watch(key)
                    entry = _load_entry(await pipe.get(key), key)
                    current = _state_for(entry, thread_key)
                    new_state = updater(current)
                    if new_state is None:
                        return current
                    entry[STATE_FIELD] = new_state.to_record()
                    pipe.multi()
                    pipe.set(key, json.dumps(entry))
                    pipe.sadd(self.thread_index_key(thread_key), key)
                    await pipe.execute()
                    return new_state
                except WatchError:
                    logger.debug("Session entry changed during update, retrying", entry_key=key)
        raise StateStoreConflictError(key)

    async def find_applied(self, thread_key: str) -> ThreadTitleState | None:
        keys = sorted(await self._redis.smembers(self.thread_index_key(thread_key)))
        if not keys:
            return None
        for key, raw in zip(keys, await self._redis.mget(keys), strict=True):
            state = _state_for(_load_entry(raw, key), thread_key)
            if is_applied_with_title(state):
                return state
        return None
