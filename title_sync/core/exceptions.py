"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Not Found (404) ---


class ProviderNotConfiguredError(AppException):
    """No title provider is configured for the requested channel."""

    def __init__(self, channel: str) -> None:
        super().__init__(
            message=f"No thread title provider configured for channel '{channel}'",
            code="PROVIDER_NOT_CONFIGURED",
            status_code=404,
        )


class ThreadTitleStateNotFoundError(AppException):
    """No title state is recorded for the thread key."""

    def __init__(self) -> None:
        super().__init__(
            message="Thread title state not found",
            code="THREAD_TITLE_STATE_NOT_FOUND",
            status_code=404,
        )


# --- Conflict (409) ---


class StateStoreConflictError(AppException):
    """Concurrent writers kept invalidating a state entry update."""

    def __init__(self, entry_key: str) -> None:
        super().__init__(
            message=f"Gave up updating '{entry_key}' after repeated conflicts",
            code="STATE_STORE_CONFLICT",
            status_code=409,
        )


# --- Service Unavailable (503) ---


class StateStoreUnavailableError(AppException):
    """The persistent state store is not reachable."""

    def __init__(self) -> None:
        super().__init__(
            message="Thread title state store is unavailable",
            code="STATE_STORE_UNAVAILABLE",
            status_code=503,
        )


# --- Exception Handler ---


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": exc.code,
                "message": exc.message,
            },
        },
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures in the AppException error shape."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": f"{location}: {first.get('msg', 'Invalid request')}",
            },
        },
    )
