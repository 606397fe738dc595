"""Error code registry with E-XXXX format codes.

This module defines the error code system for OrderUp, organizing errors
into categories:
- E-1xxx: Not-found errors
- E-2xxx: Fulfillment workflow errors
- E-3xxx: Server/validation errors
- E-4xxx: Network and response parsing errors
- E-5xxx: Authentication errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    NOT_FOUND = "not_found"  # E-1xxx: Resource absent (HTTP 404)
    WORKFLOW = "workflow"  # E-2xxx: Local fulfillment workflow errors
    SERVER = "server"  # E-3xxx: Validation or server fault
    NETWORK = "network"  # E-4xxx: Transport or parse failures
    AUTH = "auth"  # E-5xxx: Authentication errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Not-found errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.NOT_FOUND,
        title="Resource Not Found",
        message_template="{resource} '{identifier}' not found.",
        remediation="Check the identifier and try again.",
    ),
    # Workflow errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.WORKFLOW,
        title="Invalid Fulfillment Transition",
        message_template="Cannot {action} while fulfillment is {stage}.",
        remediation="Finish or restart the current fulfillment step first.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.WORKFLOW,
        title="Nothing Picked",
        message_template="At least one picklist line must have a picked quantity.",
        remediation="Pick at least one item before submitting the fulfillment.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.WORKFLOW,
        title="No Orders Selected",
        message_template="A fulfillment needs at least one order.",
        remediation="Select one or more orders before choosing a location.",
    ),
    # Server errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.SERVER,
        title="Request Rejected",
        message_template="Server returned HTTP {status}: {details}",
        remediation="Review the request. Retry later if the server is failing.",
        is_retryable=True,
    ),
    # Network errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.NETWORK,
        title="Network Error",
        message_template="Unable to connect to server: {details}",
        remediation="Check your network connection and retry.",
        is_retryable=True,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.NETWORK,
        title="Malformed Response",
        message_template="Server response could not be parsed: {details}",
        remediation="This is a server or proxy error. Retry the operation. Contact support if issue persists.",
        is_retryable=True,
    ),
    # Auth errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Unauthenticated",
        message_template="Access token is missing or expired.",
        remediation="Store a new access token with `orderup auth set-token` and retry.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
