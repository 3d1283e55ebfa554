"""
Domain error taxonomy for the Track-Hub API.

Every failure that crosses the service boundary is a TrackHubError carrying a
human-readable message (surfaced verbatim to the UI) and the HTTP status the
API layer answers with.
"""

from fastapi import status


class TrackHubError(Exception):
    """Base exception for all Track-Hub domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(TrackHubError):
    """Account, project or meeting does not exist (or was deleted)."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Unauthorized(TrackHubError):
    """Caller holds no membership for the project."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not a member of this project"


class InvalidRepository(TrackHubError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid repository URL"


class InsufficientCredits(TrackHubError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Insufficient credits"


class ConfigurationError(TrackHubError):
    """No usable GitHub token (request or server fallback)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "No GitHub token provided or configured."


class AuthenticationFailed(TrackHubError):
    """GitHub answered 401: token invalid or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "GitHub authentication failed"


class Forbidden(TrackHubError):
    """GitHub answered 403 on a write: missing scope or rate limited."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions or rate limit exceeded."


class RateLimited(TrackHubError):
    """GitHub answered 403 on a read."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "GitHub rate limit exceeded"


class BranchNotFound(TrackHubError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Branch not found."


class CommitFailed(TrackHubError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Commit failed due to invalid data or network error."


class UpstreamError(TrackHubError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "GitHub request failed"


class PaymentError(TrackHubError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Payment service error"
