"""Thread title targets, persisted state, and outcome records."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

ErrorClass = Literal["permission", "rate_limit", "not_found", "unknown"]
ThreadTitleStatus = Literal["pending", "applied", "disabled", "retry_after"]
ThreadTitleOutcome = Literal["applied", "skipped", "failed"]


class ThreadTitleTarget(BaseModel):
    """Identifies a conversation thread on one chat channel."""

    model_config = ConfigDict(frozen=True)

    channel: str
    account_id: str | None = None
    conversation_id: str | None = None
    thread_id: str | int | None = None
    to: str | None = None

    @property
    def normalized_channel(self) -> str:
        return self.channel.strip().lower()

    @property
    def thread_id_text(self) -> str:
        return str(self.thread_id).strip() if self.thread_id is not None else ""


class ThreadTitleState(BaseModel):
    """Per-thread title state, stored with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    thread_key: str
    status: ThreadTitleStatus
    attempts: int = 0
    last_attempt_at: int | None = None
    applied_at: int | None = None
    applied_title: str | None = None
    last_proposed_title: str | None = None
    retry_after: int | None = None
    last_error_class: ErrorClass | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialize for embedding in a session entry."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, data: Any) -> "ThreadTitleState | None":
        """Parse a stored record; unreadable records count as absent."""
        if not isinstance(data, dict):
            return None
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None


class ThreadTitleResult(BaseModel):
    """What a title request did and why."""

    model_config = ConfigDict(frozen=True)

    outcome: ThreadTitleOutcome
    reason: str
    title: str | None = None
    thread_key: str | None = None
    error_class: ErrorClass | None = None


class ApplyThreadTitleRequest(BaseModel):
    """Request to title a thread from its first message."""

    channel: str = Field(..., min_length=1)
    account_id: str | None = None
    conversation_id: str | None = None
    thread_id: str | int | None = None
    to: str | None = None
    primary_text: str | None = None
    fallback_text: str | None = None
    max_chars: int | None = Field(default=None, ge=3, le=255)
    session_key: str | None = None
    is_first_message: bool | None = None
    scope: dict[str, str] | None = Field(
        default=None,
        description="Per-scope overrides such as THREAD_TITLE_STRATEGY",
    )

    def to_target(self) -> ThreadTitleTarget:
        return ThreadTitleTarget(
            channel=self.channel,
            account_id=self.account_id,
            conversation_id=self.conversation_id,
            thread_id=self.thread_id,
            to=self.to,
        )
