from __future__ import annotations


class AppError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "Unexpected error"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.__class__.message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class UsageDataUnavailableError(AppError):
    status_code = 503
    code = "usage_data_unavailable"
    message = "No usage data available"


class UsageSourceNotConfiguredError(AppError):
    status_code = 409
    code = "not_configured"
    message = "No session cookie configured for the usage source"


class UpstreamAuthError(AppError):
    status_code = 401
    code = "session_expired"
    message = "Session expired. Please sign in again."


class UpstreamForbiddenError(AppError):
    status_code = 403
    code = "access_denied"
    message = "Access denied. Please sign in again."


class UpstreamUnavailableError(AppError):
    status_code = 502
    code = "upstream_error"
    message = "Usage fetch failed"
