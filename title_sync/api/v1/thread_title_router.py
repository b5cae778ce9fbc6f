"""Thread title API router."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from title_sync.core.config import resolve_thread_title_config, settings
from title_sync.core.exceptions import (
    ProviderNotConfiguredError,
    ThreadTitleStateNotFoundError,
)
from title_sync.dependencies import (
    get_providers,
    get_state_repository,
    get_thread_title_service,
)
from title_sync.providers.base import ThreadTitleProvider
from title_sync.repositories.title_state_repo import ThreadTitleStateRepository
from title_sync.schemas.response_schema import (
    ApiResponse,
    error_responses,
    success_response,
)
from title_sync.schemas.thread_title_schema import (
    ApplyThreadTitleRequest,
    ThreadTitleResult,
)
from title_sync.services.thread_title_service import ThreadTitleService

router = APIRouter(
    prefix="/api/v1/thread-titles",
    tags=["thread-titles"],
)

ThreadTitleServiceDep = Annotated[ThreadTitleService, Depends(get_thread_title_service)]
ProvidersDep = Annotated[dict[str, ThreadTitleProvider], Depends(get_providers)]
StateRepositoryDep = Annotated[ThreadTitleStateRepository, Depends(get_state_repository)]


@router.post(
    "",
    response_model=ApiResponse[ThreadTitleResult],
    responses=error_responses(404, 422, 503),
)
async def apply_thread_title(
    request: ApplyThreadTitleRequest,
    service: ThreadTitleServiceDep,
    providers: ProvidersDep,
) -> dict:
    """Title a thread from its first message, if it is eligible."""
    channel = request.channel.strip().lower()
    provider = providers.get(channel)
    if provider is None:
        raise ProviderNotConfiguredError(request.channel)

    result = await service.apply_title(
        provider,
        request.to_target(),
        primary_text=request.primary_text,
        fallback_text=request.fallback_text,
        max_chars=request.max_chars,
        session_key=request.session_key,
        is_first_message=request.is_first_message,
        config=resolve_thread_title_config(settings, request.scope),
    )
    return success_response(result.model_dump())


@router.get(
    "/state",
    response_model=ApiResponse[dict],
    responses=error_responses(404, 422, 503),
)
async def get_thread_title_state(
    repository: StateRepositoryDep,
    thread_key: str = Query(..., min_length=1),
    session_key: str | None = Query(default=None),
) -> dict:
    """Return the stored title state of a thread."""
    state = await repository.get(thread_key, session_key)
    if state is None:
        raise ThreadTitleStateNotFoundError()
    return success_response(state.to_record())
