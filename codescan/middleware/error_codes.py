"""Error codes for standardized API error responses.

Maps HTTP status codes to semantic error codes for consistent client-side handling.
"""

import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codescan.services.github.exceptions import (
    GithubApiError,
    GithubRateLimitError,
    GithubRetryableError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_ERROR = "GATEWAY_ERROR"


STATUS_TO_ERROR_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMITED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.GATEWAY_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_code(status_code: int) -> ErrorCode:
    """Get ErrorCode from HTTP status code."""
    return STATUS_TO_ERROR_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)


def _error_body(code: ErrorCode, message: str, **extra) -> dict:
    return {"error": {"code": code.value, "message": message, **extra}}


async def github_api_error_handler(request: Request, exc: GithubApiError) -> JSONResponse:
    # Upstream 5xx surfaces as a gateway error; 4xx keeps its status.
    status_code = exc.status_code if exc.is_client_error else 502
    return JSONResponse(
        status_code=status_code,
        content=_error_body(
            get_error_code(status_code), str(exc), classification=exc.classification
        ),
    )


async def github_rate_limit_handler(request: Request, exc: GithubRateLimitError) -> JSONResponse:
    headers = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(int(exc.retry_after))
    return JSONResponse(
        status_code=429,
        content=_error_body(ErrorCode.RATE_LIMITED, str(exc)),
        headers=headers,
    )


async def github_retryable_handler(request: Request, exc: GithubRetryableError) -> JSONResponse:
    logger.warning(f"GitHub unreachable while handling {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content=_error_body(ErrorCode.SERVICE_UNAVAILABLE, str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GithubApiError, github_api_error_handler)
    app.add_exception_handler(GithubRateLimitError, github_rate_limit_handler)
    app.add_exception_handler(GithubRetryableError, github_retryable_handler)
