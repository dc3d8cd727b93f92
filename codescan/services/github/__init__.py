from .exceptions import (
    ApiErrorClassification,
    GithubApiError,
    GithubConfigurationError,
    GithubError,
    GithubRateLimitError,
    GithubRetryableError,
    GithubSecondaryRateLimitError,
)
from .github_client import GithubClient, RateLimitInfo, mask_token

__all__ = [
    "ApiErrorClassification",
    "GithubApiError",
    "GithubClient",
    "GithubConfigurationError",
    "GithubError",
    "GithubRateLimitError",
    "GithubRetryableError",
    "GithubSecondaryRateLimitError",
    "RateLimitInfo",
    "mask_token",
]
