"""Error handling framework for OrderUp.

This package provides:
- Error code registry with E-XXXX format codes
- Typed exceptions for each remote call outcome
- Error formatting for display

Error categories:
- E-1xxx: Not-found errors
- E-2xxx: Fulfillment workflow errors
- E-3xxx: Server/validation errors
- E-4xxx: Network and parse errors
- E-5xxx: Authentication errors
"""

from src.errors.registry import (
    ErrorCategory,
    ErrorCode,
    ERROR_REGISTRY,
    get_error,
    get_errors_by_category,
)
from src.errors.formatter import (
    OrderUpError,
    format_error,
)
from src.errors.domain import (
    InvalidTransitionError,
    NetworkError,
    NotFoundError,
    ResponseParseError,
    ServerError,
    UnauthenticatedError,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Formatter
    "OrderUpError",
    "format_error",
    # Typed errors
    "UnauthenticatedError",
    "NotFoundError",
    "ServerError",
    "NetworkError",
    "ResponseParseError",
    "InvalidTransitionError",
]
