"""Error types shared by the server and the API client."""
from typing import Any, Optional


class PokerTrackerError(Exception):
    """Base error carrying an HTTP status and a user-facing message."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to the JSON error body."""
        body = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(PokerTrackerError):
    """Request data failed validation (400/422)."""
    status_code = 400
    error = "Validation failed"


class AuthenticationError(PokerTrackerError):
    """Missing or invalid credentials (401)."""
    status_code = 401
    error = "Access denied"


class AuthorizationError(PokerTrackerError):
    """Authenticated but not allowed (403)."""
    status_code = 403
    error = "Access denied"


class NotFoundError(PokerTrackerError):
    """Resource does not exist (404)."""
    status_code = 404
    error = "Not found"


class ConflictError(PokerTrackerError):
    """Request conflicts with current state (409)."""
    status_code = 409
    error = "Conflict"


class ServerError(PokerTrackerError):
    """Server-side or network failure (5xx)."""
    status_code = 500
    error = "Internal server error"


def error_for_status(status_code: int, message: str, details: Optional[Any] = None) -> PokerTrackerError:
    """Build the error matching an HTTP status code.

    Args:
        status_code: HTTP status of the failed response.
        message: Message to carry.
        details: Optional structured details from the response body.

    Returns:
        An instance of the matching error class.
    """
    if status_code in (400, 422):
        error = ValidationError(message, details)
    elif status_code == 401:
        error = AuthenticationError(message, details)
    elif status_code == 403:
        error = AuthorizationError(message, details)
    elif status_code == 404:
        error = NotFoundError(message, details)
    elif status_code == 409:
        error = ConflictError(message, details)
    else:
        error = ServerError(message, details)
    error.status_code = status_code
    return error
