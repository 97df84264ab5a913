"""Error types raised by the analytics services."""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base exception for analytics collection."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MissingCredentialsError(AnalyticsError):
    """Account has no access token or profile id."""
    pass


class UnsupportedPlatformError(AnalyticsError):
    """No platform client is registered for the account's platform."""
    pass


class AccountNotFoundError(AnalyticsError):
    pass


class PlatformAPIError(AnalyticsError):
    """Graph API request failed after retries."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, details)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message
