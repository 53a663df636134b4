"""Typed application errors carrying status-code strings, plus FastAPI handlers."""
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from roofdesk.logging_config import get_logger

logger = get_logger(__name__)

HTTP_STATUS_BY_CODE: Dict[str, int] = {
    "invalid-argument": 400,
    "unauthenticated": 401,
    "permission-denied": 403,
    "not-found": 404,
    "already-exists": 409,
    "failed-precondition": 412,
    "internal": 500,
    "unavailable": 503,
}


class AppError(Exception):
    """Error raised by handlers and services; ``status`` is a status-code string."""

    status = "internal"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status
        self.message = message
        self.details = details or {}

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE.get(self.status, 500)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidArgumentError(AppError):
    status = "invalid-argument"


class UnauthenticatedError(AppError):
    status = "unauthenticated"


class PermissionDeniedError(AppError):
    status = "permission-denied"


class NotFoundError(AppError):
    status = "not-found"


class AlreadyExistsError(AppError):
    status = "already-exists"


class FailedPreconditionError(AppError):
    status = "failed-precondition"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex
    logger.error(
        "Unhandled exception [%s] in %s %s: %s",
        error_id,
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "status": "internal",
                "message": "Internal server error",
                "details": {"error_id": error_id, "error_type": type(exc).__name__},
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
