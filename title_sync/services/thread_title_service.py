"""Thread title engine: decides when to title a thread, and records the outcome.

Per thread key the lifecycle is::

    (no record) -> pending -> applied          title set, final
                           -> retry_after      transient failure, cooldown
                           -> disabled         permission failure or a title
                                               already chosen on the platform
    retry_after -> pending                     cooldown over, or an unknown
                                               failure and a new proposal

Callers only ever receive a ``ThreadTitleResult``; no exception escapes.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from title_sync.core.settings import ThreadTitleConfig
from title_sync.providers.base import (
    ClassifiesErrors,
    ReadsCurrentTitle,
    ReportsRetryAfter,
    ThreadTitleProvider,
    resolve_thread_key,
)
from title_sync.repositories.title_state_repo import ThreadTitleStateRepository
from title_sync.schemas.thread_title_schema import (
    ThreadTitleResult,
    ThreadTitleState,
    ThreadTitleTarget,
)
from title_sync.services.title_candidates import (
    collapse_whitespace,
    derive_conversation_title,
    is_default_thread_placeholder,
    strip_annotations,
)
from title_sync.services.title_errors import (
    classify_error_text,
    default_retry_delay_ms,
    error_text,
    is_terminal,
)
from title_sync.services.title_service import TitleService, now_ms
from title_sync.services.title_tracker import ThreadTitleTracker

logger = structlog.get_logger()


@dataclass(frozen=True)
class TitleRequest:
    """A validated request bound to its thread key."""

    provider: ThreadTitleProvider
    target: ThreadTitleTarget
    thread_key: str
    primary_text: str | None
    fallback_text: str | None
    max_chars: int
    session_key: str | None
    config: ThreadTitleConfig


def can_retry_early(state: ThreadTitleState, proposed_title: str | None) -> bool:
    """An unknown failure may retry inside its cooldown with a different title.

    ``proposed_title`` of None means no title has been proposed yet; the
    decision is then deferred to the claim, which knows the title.
    """
    if state.last_error_class != "unknown":
        return False
    return proposed_title is None or proposed_title != state.last_proposed_title


def check_eligibility(
    state: ThreadTitleState | None,
    now: int,
    config: ThreadTitleConfig,
    proposed_title: str | None = None,
) -> str | None:
    """Skip reason for a new attempt, or None when one may start."""
    if state is None:
        return None
    if state.status == "disabled":
        return "disabled"
    if state.status == "applied":
        return "already_applied"
    if (
        state.status == "retry_after"
        and state.retry_after is not None
        and state.retry_after > now
        and not can_retry_early(state, proposed_title)
    ):
        return "cooldown"
    if (
        state.status == "pending"
        and state.last_attempt_at is not None
        and now - state.last_attempt_at < config.pending_lease_ms
    ):
        return "lease_active"
    return None


def matches_seed_text(title: str, *texts: str | None) -> bool:
    """Whether a platform title is just the seed message echoed back."""
    normalized = collapse_whitespace(title).lower()
    return any(
        text and collapse_whitespace(strip_annotations(text)).lower() == normalized
        for text in texts
    )


def _skipped(
    reason: str, thread_key: str | None = None, title: str | None = None
) -> ThreadTitleResult:
    return ThreadTitleResult(
        outcome="skipped", reason=reason, thread_key=thread_key, title=title
    )


class ThreadTitleService:
    """Applies thread titles once per thread, with retries and persistence."""

    def __init__(
        self,
        repository: ThreadTitleStateRepository,
        config: ThreadTitleConfig,
        title_service: TitleService | None = None,
        tracker: ThreadTitleTracker | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._repository = repository
        self._config = config
        self._title_service = title_service
        self._tracker = tracker or ThreadTitleTracker(config.cache_max_entries)
        self._clock = clock

    @property
    def tracker(self) -> ThreadTitleTracker:
        return self._tracker

    async def apply_title(
        self,
        provider: ThreadTitleProvider,
        target: ThreadTitleTarget,
        *,
        primary_text: str | None = None,
        fallback_text: str | None = None,
        max_chars: int | None = None,
        session_key: str | None = None,
        is_first_message: bool | None = None,
        config: ThreadTitleConfig | None = None,
    ) -> ThreadTitleResult:
        """Title the target thread if it is eligible and wait for the outcome.

        The attempt itself is shielded: cancelling the caller does not
        interrupt an attempt that already started.
        """
        prepared = self._prepare(
            provider,
            target,
            primary_text=primary_text,
            fallback_text=fallback_text,
            max_chars=max_chars,
            session_key=session_key,
            is_first_message=is_first_message,
            config=config,
        )
        if isinstance(prepared, ThreadTitleResult):
            return prepared
        return await asyncio.shield(self._start(prepared))

    def request_title(
        self,
        provider: ThreadTitleProvider,
        target: ThreadTitleTarget,
        *,
        primary_text: str | None = None,
        fallback_text: str | None = None,
        max_chars: int | None = None,
        session_key: str | None = None,
        is_first_message: bool | None = None,
        config: ThreadTitleConfig | None = None,
    ) -> "asyncio.Task[ThreadTitleResult] | None":
        """Fire-and-forget variant of ``apply_title`` for message handlers.

        Returns the attempt task, or None when the request was skipped
        before an attempt started.
        """
        prepared = self._prepare(
            provider,
            target,
            primary_text=primary_text,
            fallback_text=fallback_text,
            max_chars=max_chars,
            session_key=session_key,
            is_first_message=is_first_message,
            config=config,
        )
        if isinstance(prepared, ThreadTitleResult):
            logger.debug(
                "Thread title request skipped",
                reason=prepared.reason,
                thread_key=prepared.thread_key,
            )
            return None
        return self._start(prepared)

    async def wait_for_pending(self) -> None:
        await self._tracker.wait_idle()

    # --- Attempt lifecycle ---

    def _prepare(
        self,
        provider: ThreadTitleProvider,
        target: ThreadTitleTarget,
        *,
        primary_text: str | None,
        fallback_text: str | None,
        max_chars: int | None,
        session_key: str | None,
        is_first_message: bool | None,
        config: ThreadTitleConfig | None,
    ) -> TitleRequest | ThreadTitleResult:
        channel = target.normalized_channel
        if not channel or channel != provider.channel.strip().lower():
            return _skipped("provider_mismatch")

        thread_key = resolve_thread_key(provider, target)
        if not thread_key:
            return _skipped("unsupported_target")

        if is_first_message is False:
            return _skipped("not_first_message", thread_key)

        applied_title = self._tracker.applied_title(thread_key)
        if applied_title is not None:
            return _skipped("already_applied", thread_key, applied_title)

        if self._tracker.is_in_flight(thread_key):
            return _skipped("in_flight", thread_key)

        resolved = config or self._config
        return TitleRequest(
            provider=provider,
            target=target,
            thread_key=thread_key,
            primary_text=primary_text,
            fallback_text=fallback_text,
            max_chars=max(1, max_chars or resolved.max_chars),
            session_key=session_key,
            config=resolved,
        )

    def _start(self, request: TitleRequest) -> "asyncio.Task[ThreadTitleResult]":
        task = asyncio.create_task(self._run_attempt(request))
        self._tracker.track(request.thread_key, task)
        return task

    async def _run_attempt(self, request: TitleRequest) -> ThreadTitleResult:
        try:
            return await self._attempt(request)
        except Exception:
            logger.exception(
                "Thread title attempt failed unexpectedly",
                thread_key=request.thread_key,
            )
            return ThreadTitleResult(
                outcome="failed", reason="internal_error", thread_key=request.thread_key
            )

    async def _attempt(self, request: TitleRequest) -> ThreadTitleResult:
        thread_key = request.thread_key

        # Another session on the same thread may already have titled it.
        adopted = await self._find_sibling_applied(request)
        if adopted is not None:
            title = adopted.applied_title or adopted.last_proposed_title or ""
            self._tracker.remember_applied(thread_key, title)
            logger.debug("Adopted applied thread title", thread_key=thread_key, title=title)
            return _skipped("already_applied", thread_key, title)

        state = await self._repository.get(thread_key, request.session_key)
        reason = check_eligibility(state, self._clock(), request.config)
        if reason:
            return _skipped(reason, thread_key)

        title = await self._propose_title(request)
        if not title:
            return _skipped("no_candidate", thread_key)

        claimed, reason = await self._claim(request, title)
        if claimed is None:
            return _skipped(reason or "lease_active", thread_key)

        existing = await self._existing_title(request)
        if existing is not None:
            await self._save(
                request,
                claimed.model_copy(
                    update={
                        "status": "disabled",
                        "applied_at": self._clock(),
                        "applied_title": existing,
                    }
                ),
            )
            logger.info(
                "Thread already has a title", thread_key=thread_key, title=existing
            )
            return _skipped("existing_title_present", thread_key, existing)

        try:
            await request.provider.set_title(request.target, title)
        except Exception as error:
            return await self._record_failure(request, claimed, title, error)

        done_at = self._clock()
        self._tracker.remember_applied(thread_key, title)
        await self._save(
            request,
            claimed.model_copy(
                update={
                    "status": "applied",
                    "applied_at": done_at,
                    "applied_title": title,
                    "last_attempt_at": done_at,
                    "retry_after": None,
                    "last_error_class": None,
                }
            ),
        )
        logger.info("Thread title applied", thread_key=thread_key, title=title)
        return ThreadTitleResult(
            outcome="applied", reason="applied", title=title, thread_key=thread_key
        )

    async def _find_sibling_applied(
        self, request: TitleRequest
    ) -> ThreadTitleState | None:
        try:
            return await self._repository.find_applied(request.thread_key)
        except Exception as e:
            logger.warning(
                "Sibling session scan failed, continuing without it",
                fallback="sibling_scan_failed",
                thread_key=request.thread_key,
                error=error_text(e),
            )
            return None

    async def _propose_title(self, request: TitleRequest) -> str | None:
        config = request.config
        if config.uses_llm:
            title = await self._generate(request)
            if title:
                return title
            if config.strategy == "llm":
                return None
        return derive_conversation_title(
            request.primary_text, request.fallback_text, request.max_chars
        )

    async def _generate(self, request: TitleRequest) -> str | None:
        if self._title_service is None:
            return None
        return await self._title_service.generate_title(
            request.primary_text,
            request.fallback_text,
            request.max_chars,
            model_ref=request.config.model_ref,
            timeout_ms=request.config.timeout_ms,
        )

    async def _claim(
        self, request: TitleRequest, title: str
    ) -> tuple[ThreadTitleState | None, str | None]:
        """Record a pending attempt before touching the platform.

        A crash after this point leaves a pending lease that expires,
        never a permanent lock.
        """
        now = self._clock()
        outcome: dict[str, str | None] = {"reason": None}

        def claim(current: ThreadTitleState | None) -> ThreadTitleState | None:
            outcome["reason"] = check_eligibility(current, now, request.config, title)
            if outcome["reason"]:
                return None
            return ThreadTitleState(
                thread_key=request.thread_key,
                status="pending",
                attempts=(current.attempts if current else 0) + 1,
                last_attempt_at=now,
                last_proposed_title=title,
                last_error_class=current.last_error_class if current else None,
            )

        state = await self._repository.update(
            request.thread_key, claim, request.session_key
        )
        if outcome["reason"] or state is None:
            return None, outcome["reason"]
        return state, None

    async def _existing_title(self, request: TitleRequest) -> str | None:
        """A title someone already chose on the platform, if any."""
        provider = request.provider
        if request.config.allow_overwrite_existing or not isinstance(
            provider, ReadsCurrentTitle
        ):
            return None
        try:
            current = await provider.get_current_title(request.target)
        except Exception as e:
            logger.info(
                "Current title probe failed, continuing without it",
                fallback="current_title_probe_failed",
                thread_key=request.thread_key,
                error=error_text(e),
            )
            return None
        current = (current or "").strip()
        if not current or is_default_thread_placeholder(current):
            return None
        if request.config.overwrite_seed_echo and matches_seed_text(
            current, request.primary_text, request.fallback_text
        ):
            return None
        return current

    async def _record_failure(
        self,
        request: TitleRequest,
        claimed: ThreadTitleState,
        title: str,
        error: Exception,
    ) -> ThreadTitleResult:
        provider = request.provider
        config = request.config
        if isinstance(provider, ClassifiesErrors):
            error_class = provider.classify_error(error)
        else:
            error_class = classify_error_text(error)

        done_at = self._clock()
        if is_terminal(error_class, config):
            next_state = claimed.model_copy(
                update={
                    "status": "disabled",
                    "last_attempt_at": done_at,
                    "retry_after": None,
                    "last_error_class": error_class,
                }
            )
        else:
            delay_ms = None
            if isinstance(provider, ReportsRetryAfter):
                delay_ms = provider.retry_after_ms(error, error_class)
            if delay_ms is None:
                delay_ms = default_retry_delay_ms(error_class, claimed.attempts, config)
            next_state = claimed.model_copy(
                update={
                    "status": "retry_after",
                    "last_attempt_at": done_at,
                    "retry_after": done_at + max(config.min_retry_ms, delay_ms),
                    "last_error_class": error_class,
                }
            )
        await self._save(request, next_state)
        logger.warning(
            "Thread title update failed",
            thread_key=request.thread_key,
            error_class=error_class,
            status=next_state.status,
            error=error_text(error),
        )
        return ThreadTitleResult(
            outcome="failed",
            reason="set_title_failed",
            title=title,
            thread_key=request.thread_key,
            error_class=error_class,
        )

    async def _save(self, request: TitleRequest, state: ThreadTitleState) -> None:
        await self._repository.update(
            request.thread_key, lambda _: state, request.session_key
        )
