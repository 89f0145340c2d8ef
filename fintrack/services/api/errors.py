"""
API Error Taxonomy

Every failed call to the backend surfaces as one of these.
A shape mismatch in a successful response is NOT an error; it is
normalized to empty/default data by the extractor and normalizer.
"""

from typing import Any, Optional

from fintrack.services.extraction import extract_message


class ApiError(Exception):
    """Base exception for backend calls."""

    default_message = "An unexpected error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.payload = payload
        super().__init__(self.message)


class NetworkError(ApiError):
    """No HTTP response was obtained (connection refused, DNS, timeout)."""

    default_message = "Network error. Please check your internet connection."


class AuthenticationError(ApiError):
    """401: the session is no longer valid."""

    default_message = "Session expired. Please login again."


class AuthorizationError(ApiError):
    """403: authenticated but not allowed."""

    default_message = "Access denied. You do not have permission to perform this action."


class NotFoundError(ApiError):
    """404."""

    default_message = "Resource not found."


class ValidationError(ApiError):
    """422: one or more field-level messages."""

    default_message = "Validation error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = 422,
        payload: Any = None,
        field_errors: Optional[dict[str, list[str]]] = None,
    ):
        super().__init__(message, status_code, payload)
        self.field_errors = field_errors or {}

    @property
    def messages(self) -> list[str]:
        """All field messages flattened, or the overall message."""
        flat = [m for msgs in self.field_errors.values() for m in msgs]
        return flat or [self.message]


class RateLimitError(ApiError):
    """429."""

    default_message = "Too many requests. Please try again later."


class ServerError(ApiError):
    """5xx."""

    default_message = "Server error. Please try again later."


class UnexpectedStatusError(ApiError):
    """Any other non-success status."""


def _field_errors(payload: Any) -> dict[str, list[str]]:
    """
    Read field errors in either shape the backend uses:
        {"errors": {"amount": ["must be positive"]}}
        {"errors": [{"field": "amount", "message": "must be positive"}]}
    """
    errors = payload.get("errors") if isinstance(payload, dict) else None
    result: dict[str, list[str]] = {}

    if isinstance(errors, dict):
        for field, messages in errors.items():
            if isinstance(messages, (list, tuple)):
                result[str(field)] = [str(m) for m in messages]
            elif messages is not None:
                result[str(field)] = [str(messages)]
    elif isinstance(errors, list):
        for item in errors:
            if isinstance(item, dict):
                field = str(item.get("field") or item.get("param") or item.get("path") or "_")
                message = item.get("message") or item.get("msg")
                if message:
                    result.setdefault(field, []).append(str(message))
            elif item is not None:
                result.setdefault("_", []).append(str(item))
    return result


def error_from_status(status_code: int, payload: Any = None) -> ApiError:
    """Map an HTTP status to the matching ApiError."""
    message = extract_message(payload)

    if status_code == 401:
        # The backend's own wording for 401 varies; keep the friendly one.
        return AuthenticationError(None, status_code, payload)
    if status_code == 403:
        return AuthorizationError(None, status_code, payload)
    if status_code == 404:
        return NotFoundError(None, status_code, payload)
    if status_code == 422:
        return ValidationError(message, status_code, payload, _field_errors(payload))
    if status_code == 429:
        return RateLimitError(None, status_code, payload)
    if status_code >= 500:
        return ServerError(None, status_code, payload)
    return UnexpectedStatusError(message, status_code, payload)
