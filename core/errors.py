"""
Application-level error types and handlers.

Every failure leaves the API in one envelope:
    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}
`details` is only present when there is something to add.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from page_translation.errors import InvalidSegmentError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Canonical API error codes."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CODE_BY_STATUS: dict[int, ErrorCode] = {
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.VALIDATION_ERROR,
}


class AppError(Exception):
    """Application error with explicit status and code."""

    def __init__(
        self,
        *,
        code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    @classmethod
    def not_found(cls, resource: str, identifier: str) -> "AppError":
        return cls(
            code=ErrorCode.NOT_FOUND,
            message=f"{resource} not found: {identifier}",
            status_code=404,
        )


def code_for_status(status_code: int) -> ErrorCode:
    """Maps an HTTP status onto the closest error code."""
    if status_code in _CODE_BY_STATUS:
        return _CODE_BY_STATUS[status_code]
    return ErrorCode.BAD_REQUEST if 400 <= status_code < 500 else ErrorCode.INTERNAL_ERROR


def error_response(
    request: Request,
    code: ErrorCode,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code.value,
        "message": message,
        "request_id": getattr(request.state, "request_id", None),
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(request, exc.code, exc.message, exc.status_code, exc.details)


async def invalid_segment_handler(
    request: Request, exc: InvalidSegmentError
) -> JSONResponse:
    """Empty or unusable text submitted for translation."""
    return error_response(request, ErrorCode.BAD_REQUEST, str(exc), 400)


def _describe_detail(detail: Any) -> tuple[str, dict[str, Any] | None]:
    if isinstance(detail, str):
        return detail, None
    if isinstance(detail, dict):
        return str(detail.get("message") or "Request failed"), detail
    if detail is None:
        return "Request failed", None
    return "Request failed", {"detail": detail}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors (404 path, 405 method) and explicit HTTPExceptions."""
    message, details = _describe_detail(exc.detail)
    return error_response(
        request, code_for_status(exc.status_code), message, exc.status_code, details
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # ctx may hold the raised exception object, which is not JSON serializable
    errors = [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
    return error_response(
        request,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        422,
        {"errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return error_response(request, ErrorCode.INTERNAL_ERROR, "Internal server error", 500)
