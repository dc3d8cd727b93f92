"""
Rate-limit aware GitHub REST client.

Every remote call the pipeline makes goes through GithubClient.request(),
which owns authentication, retry/backoff and rate-limit compliance. The
client is synchronous and meant to be used by one job at a time.

Retry policy (one shared budget, GITHUB_MAX_RETRIES attempts):
- 403 with X-RateLimit-Remaining: 0 -> sleep until X-RateLimit-Reset, retry
- 429                               -> sleep Retry-After seconds, retry
- transport error / timeout         -> linear backoff 1s, 2s, ..., retry
- any other non-2xx                 -> GithubApiError, never retried

Waits longer than HEARTBEAT_INTERVAL_SECONDS are split into chunks and the
optional `heartbeat` callback fires after each one, so a job parked on a
rate-limit reset still looks alive to the stale-job sweep.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from codescan.config import settings
from codescan.services.github.exceptions import (
    ApiErrorClassification,
    GithubApiError,
    GithubConfigurationError,
    GithubRateLimitError,
    GithubRetryableError,
    GithubSecondaryRateLimitError,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60
TRANSPORT_BACKOFF_SECONDS = 1.0
HEARTBEAT_INTERVAL_SECONDS = 60.0

_CLASSIFIED_MESSAGES: Dict[int, Tuple[str, str]] = {
    401: (
        ApiErrorClassification.AUTH_REQUIRED,
        "GitHub authentication failed. Please reconnect your GitHub account.",
    ),
    403: (
        ApiErrorClassification.PERMISSION_DENIED,
        "Access denied. Please check your repository permissions.",
    ),
    404: (
        ApiErrorClassification.NOT_FOUND,
        "Repository not found or access denied.",
    ),
    422: (
        ApiErrorClassification.INVALID_REQUEST,
        "Invalid request. Please check your repository details.",
    ),
}


def mask_token(token: str) -> str:
    """Mask token to show only last 4 characters."""
    if not token or len(token) <= 4:
        return "****"
    return f"****{token[-4:]}"


def _int_header(headers: httpx.Headers, name: str, default: int = 0) -> int:
    try:
        return int(headers.get(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class RateLimitInfo:
    """Snapshot of the rate-limit headers of one response."""

    limit: int = 0
    remaining: int = 0
    reset_at_epoch_ms: int = 0
    used: int = 0

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitInfo":
        return cls(
            limit=_int_header(headers, "X-RateLimit-Limit"),
            remaining=_int_header(headers, "X-RateLimit-Remaining"),
            reset_at_epoch_ms=_int_header(headers, "X-RateLimit-Reset") * 1000,
            used=_int_header(headers, "X-RateLimit-Used"),
        )


def classify_error(status_code: int, raw_message: str) -> GithubApiError:
    classification, message = _CLASSIFIED_MESSAGES.get(
        status_code, (ApiErrorClassification.API_ERROR, raw_message)
    )
    return GithubApiError(
        message,
        status_code=status_code,
        classification=classification,
        raw_message=raw_message,
    )


class GithubClient:
    """Authenticated GitHub REST client with retry and rate-limit handling."""

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        heartbeat: Optional[Callable[[], None]] = None,
    ):
        if not token:
            raise GithubConfigurationError("A GitHub access token is required.")

        self._token = token
        self.max_retries = max_retries or settings.GITHUB_MAX_RETRIES
        self._clock = clock
        self._sleep = sleep
        self.heartbeat = heartbeat
        self.last_rate_limit: Optional[RateLimitInfo] = None
        self._http = httpx.Client(
            base_url=base_url or settings.GITHUB_API_URL,
            timeout=timeout or settings.GITHUB_REQUEST_TIMEOUT,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": user_agent or settings.GITHUB_USER_AGENT,
            },
        )

    def __enter__(self) -> "GithubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def __repr__(self) -> str:
        return f"GithubClient(token={mask_token(self._token)})"

    # ------------------------------------------------------------------
    # Core request primitive
    # ------------------------------------------------------------------

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        raw: bool = False,
    ) -> Tuple[Any, RateLimitInfo]:
        """
        Perform an API call and return (payload, rate limit snapshot).

        Args:
            endpoint: Path relative to the API base URL, or an absolute URL
            method: HTTP method
            params: Query parameters
            json: JSON body
            raw: Return the response text instead of decoded JSON

        Raises:
            GithubApiError: non-retryable error response
            GithubRateLimitError: rate limit still exhausted when retries run out
            GithubRetryableError: transport failures exhausted the retry budget
        """
        retries_left = self.max_retries
        last_transport_error: Optional[httpx.TransportError] = None

        while retries_left > 0:
            try:
                response = self._http.request(method, endpoint, params=params, json=json)
            except httpx.TransportError as exc:
                last_transport_error = exc
                retries_left -= 1
                logger.warning(
                    "Transport error on %s %s (%s), %d retries left",
                    method,
                    endpoint,
                    exc.__class__.__name__,
                    retries_left,
                )
                if retries_left > 0:
                    self._wait(
                        TRANSPORT_BACKOFF_SECONDS * (self.max_retries - retries_left)
                    )
                continue

            rate_limit = RateLimitInfo.from_headers(response.headers)

            if (
                response.status_code == 403
                and response.headers.get("X-RateLimit-Remaining") == "0"
            ):
                wait_ms = max(0, rate_limit.reset_at_epoch_ms - self._now_ms())
                retries_left -= 1
                if retries_left <= 0:
                    raise GithubRateLimitError(
                        "GitHub rate limit exhausted.",
                        retry_after=wait_ms / 1000,
                        rate_limit=rate_limit,
                    )
                logger.warning(
                    "Primary rate limit hit on %s, waiting %.1fs until reset",
                    endpoint,
                    wait_ms / 1000,
                )
                self._wait(wait_ms / 1000)
                continue

            if response.status_code == 429:
                retry_after = _int_header(
                    response.headers, "Retry-After", DEFAULT_RETRY_AFTER_SECONDS
                )
                retries_left -= 1
                if retries_left <= 0:
                    raise GithubSecondaryRateLimitError(
                        "GitHub secondary rate limit triggered.",
                        retry_after=retry_after,
                        rate_limit=rate_limit,
                    )
                logger.warning(
                    "Secondary rate limit hit on %s, retrying after %ss",
                    endpoint,
                    retry_after,
                )
                self._wait(retry_after)
                continue

            if not response.is_success:
                raise classify_error(response.status_code, self._error_message(response))

            self._record_rate_limit(rate_limit)
            if raw:
                return response.text, rate_limit
            try:
                return response.json(), rate_limit
            except ValueError as exc:
                raise GithubApiError(
                    f"Invalid JSON in response from {endpoint}",
                    status_code=response.status_code,
                ) from exc

        raise GithubRetryableError(
            f"Request to {endpoint} failed after {self.max_retries} attempts"
        ) from last_transport_error

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _wait(self, seconds: float) -> None:
        if self.heartbeat is None:
            self._sleep(seconds)
            return
        remaining = seconds
        while remaining > 0:
            chunk = min(remaining, HEARTBEAT_INTERVAL_SECONDS)
            self._sleep(chunk)
            remaining -= chunk
            self.heartbeat()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
            message = body.get("message") if isinstance(body, dict) else None
            if message:
                return message
        except ValueError:
            pass
        return f"{response.status_code}: {response.reason_phrase}"

    def _record_rate_limit(self, rate_limit: RateLimitInfo) -> None:
        self.last_rate_limit = rate_limit
        if rate_limit.limit and rate_limit.remaining < settings.GITHUB_RATE_LIMIT_WARN_THRESHOLD:
            logger.warning(
                "GitHub rate limit low for %s: %d/%d remaining",
                mask_token(self._token),
                rate_limit.remaining,
                rate_limit.limit,
            )

    # ------------------------------------------------------------------
    # Convenience operations
    # ------------------------------------------------------------------

    def list_contents(
        self, repository: str, path: str = "", ref: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List one directory of the repository tree."""
        endpoint = f"/repos/{repository}/contents"
        if path:
            endpoint = f"{endpoint}/{quote(path.strip('/'))}"
        params = {"ref": ref} if ref else None
        data, _ = self.request(endpoint, params=params)
        if isinstance(data, dict):
            # A file path returns a single object rather than a listing
            return [data]
        return data

    def download_file(self, download_ref: str) -> str:
        """Fetch raw file content from its download URL."""
        content, _ = self.request(download_ref, raw=True)
        return content
