"""Contract between the title engine and chat platform adapters.

A provider only has to expose ``channel`` and ``set_title``. Every other
capability is optional and detected at call time, so an adapter opts in
by defining the method rather than by subclassing.
"""

from typing import Protocol, runtime_checkable

from title_sync.schemas.thread_title_schema import ErrorClass, ThreadTitleTarget


@runtime_checkable
class ThreadTitleProvider(Protocol):
    """Applies titles on one chat channel. ``set_title`` raises on failure."""

    channel: str

    async def set_title(self, target: ThreadTitleTarget, title: str) -> None: ...


@runtime_checkable
class ResolvesThreadKey(Protocol):
    def resolve_thread_key(self, target: ThreadTitleTarget) -> str | None: ...


@runtime_checkable
class ReadsCurrentTitle(Protocol):
    async def get_current_title(self, target: ThreadTitleTarget) -> str | None: ...


@runtime_checkable
class ClassifiesErrors(Protocol):
    def classify_error(self, error: BaseException) -> ErrorClass: ...


@runtime_checkable
class ReportsRetryAfter(Protocol):
    def retry_after_ms(
        self, error: BaseException, error_class: ErrorClass
    ) -> int | None: ...


def default_thread_key(target: ThreadTitleTarget) -> str | None:
    """``channel:conversation:thread`` with every part non-empty."""
    channel = target.normalized_channel
    conversation_id = (target.conversation_id or target.to or "").strip()
    thread_id = target.thread_id_text
    if not channel or not conversation_id or not thread_id:
        return None
    return f"{channel}:{conversation_id}:{thread_id}"


def resolve_thread_key(
    provider: ThreadTitleProvider, target: ThreadTitleTarget
) -> str | None:
    if isinstance(provider, ResolvesThreadKey):
        return provider.resolve_thread_key(target)
    return default_thread_key(target)
