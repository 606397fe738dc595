"""Error formatting utilities.

This module provides:
- OrderUpError exception class for application errors
- Error formatting for user display
"""

from dataclasses import dataclass, field

from src.errors.registry import ErrorCategory, get_error


@dataclass
class OrderUpError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        category: Error category from the registry.
        status_code: HTTP status that produced the error, if any.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str = ""
    category: ErrorCategory = ErrorCategory.SERVER
    status_code: int | None = None
    is_retryable: bool = False
    details: dict = field(default_factory=dict)  # Additional context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(
        cls,
        code: str,
        status_code: int | None = None,
        **kwargs: object,
    ) -> "OrderUpError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            status_code: HTTP status that produced the error, if any.
            **kwargs: Context values for message template substitution.
                A dict under the special key 'details' populates the
                details dict; any other 'details' value fills the
                ``{details}`` placeholder.

        Returns:
            Instance of ``cls`` with formatted message.
        """
        details = kwargs.get("details", {})
        if isinstance(details, dict):
            template_kwargs = {k: v for k, v in kwargs.items() if k != "details"}
        else:
            template_kwargs = dict(kwargs)
            details = {}

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                status_code=status_code,
                details=details,
            )

        message = error_def.message_template
        try:
            message = message.format(**template_kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            category=error_def.category,
            status_code=status_code,
            is_retryable=error_def.is_retryable,
            details=details,
        )


def format_error(error: OrderUpError, include_remediation: bool = True) -> str:
    """Format error for display to user.

    Args:
        error: The OrderUpError to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string suitable for user display.
    """
    lines = [f"{error.code}: {error.message}"]

    if error.status_code is not None:
        lines.append(f"  HTTP status: {error.status_code}")

    if include_remediation and error.remediation:
        lines.append(f"  Action: {error.remediation}")

    return "\n".join(lines)
