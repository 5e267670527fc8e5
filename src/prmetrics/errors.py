"""Custom exception types for the GitHub PR metrics generator."""

from typing import Optional


class PRMetricsError(Exception):
    """Base exception for all PR metrics generator errors."""


class ConfigurationError(PRMetricsError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(PRMetricsError):
    """Raised when the GitHub token is unavailable or rejected by the API."""


class ApiError(PRMetricsError):
    """Raised when a GitHub API request fails or returns an unexpected response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    """Raised on HTTP 404; retrying cannot materialize a missing resource."""


class PermissionDeniedError(ApiError):
    """Raised on HTTP 403 responses that are not rate-limit rejections."""


class RunCancelledError(PRMetricsError):
    """Raised when a cancellation was requested before a new API call."""
