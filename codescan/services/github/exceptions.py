"""Exceptions raised by the GitHub API client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .github_client import RateLimitInfo


class GithubError(Exception):
    """Base exception for GitHub API failures."""


class GithubConfigurationError(GithubError):
    """Raised when required configuration (e.g. a token) is missing."""


class ApiErrorClassification:
    """User-facing categories for non-retryable API errors."""

    AUTH_REQUIRED = "auth_required"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    API_ERROR = "api_error"


class GithubApiError(GithubError):
    """
    Raised for 4xx/5xx responses that are not rate limits.

    These are terminal: the client never retries them.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        classification: str = ApiErrorClassification.API_ERROR,
        raw_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.classification = classification
        self.raw_message = raw_message or message

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class GithubRateLimitError(GithubError):
    """Raised when the primary rate limit is still exhausted after all retries."""

    def __init__(
        self,
        message: str,
        retry_after: int | float | None = None,
        rate_limit: "RateLimitInfo | None" = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after
        self.rate_limit = rate_limit


class GithubSecondaryRateLimitError(GithubRateLimitError):
    """
    Raised when GitHub's secondary rate limit (abuse detection, HTTP 429)
    keeps rejecting requests after all retries.
    """


class GithubRetryableError(GithubError):
    """Raised when transport failures (no response, timeouts) exhaust the retry budget."""
