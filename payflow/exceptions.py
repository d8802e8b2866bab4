from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    code: str
    reason: str | None = None
    detail: str | None = None
    status_code: int


class ConfigurationError(Exception):
    """Static configuration is unusable. Raised at startup; the process must not serve."""

    code: str = "CONFIGURATION_ERROR"


class AppError(Exception):
    """Base application exception.

    ``code`` identifies the error family, ``reason`` is a short machine-checkable
    string naming the specific cause (``not_requester``, ``level_already_advanced``).
    """

    code: str = "APP_ERROR"
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None, reason: str | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.reason = reason
        super().__init__(self.message)


class NotFoundError(AppError):
    """Entity, approver or unit is absent."""

    code = "NOT_FOUND"
    default_status = status.HTTP_404_NOT_FOUND


class InvalidStateError(AppError):
    """Operation is illegal for the entity's current status or level."""

    code = "INVALID_STATE"
    default_status = status.HTTP_409_CONFLICT


class UnauthorizedError(AppError):
    """Actor lacks the permission or the approval-level authority."""

    code = "UNAUTHORIZED"
    default_status = status.HTTP_403_FORBIDDEN


class ForbiddenError(AppError):
    """Actor identity mismatch, e.g. not the requester."""

    code = "FORBIDDEN"
    default_status = status.HTTP_403_FORBIDDEN


class AlreadyExistsError(AppError):
    """Duplicate derivation or duplicate unique value."""

    code = "ALREADY_EXISTS"
    default_status = status.HTTP_409_CONFLICT


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            code=exc.code,
            reason=exc.reason,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            code="VALIDATION_ERROR",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
