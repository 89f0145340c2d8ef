"""Remote REST backend client package."""

from fintrack.services.api.client import FinanceApiClient
from fintrack.services.api.errors import (
    ApiError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnexpectedStatusError,
    ValidationError,
    error_from_status,
)
from fintrack.services.api.resources import (
    AccountsResource,
    AuthResource,
    BudgetsResource,
    TransactionsResource,
    TransfersResource,
    UsersResource,
)
from fintrack.services.api.session import Session

__all__ = [
    "FinanceApiClient",
    "Session",
    # Errors
    "ApiError",
    "AuthenticationError",
    "AuthorizationError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "UnexpectedStatusError",
    "ValidationError",
    "error_from_status",
    # Resources
    "AccountsResource",
    "AuthResource",
    "BudgetsResource",
    "TransactionsResource",
    "TransfersResource",
    "UsersResource",
]
