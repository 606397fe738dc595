"""Typed exceptions for remote call and workflow failures.

Each HTTP outcome the gateway classifies has its own exception type so
callers can branch on ``isinstance`` instead of matching messages.
All of them are OrderUpError instances built from registry codes.

Usage:
    # In the gateway
    raise NotFoundError.for_resource("Order", order_id)

    # In a caller
    try:
        order = await orders.get_order_by_id(order_id)
    except NotFoundError:
        order = None
"""

from src.errors.formatter import OrderUpError


class UnauthenticatedError(OrderUpError):
    """Credential missing or expired. Maps to HTTP 401."""

    @classmethod
    def create(cls) -> "UnauthenticatedError":
        return cls.from_code("E-5001", status_code=401)


class NotFoundError(OrderUpError):
    """Resource was not found. Maps to HTTP 404."""

    @classmethod
    def for_resource(
        cls, resource: str, identifier: str, status_code: int | None = 404
    ) -> "NotFoundError":
        return cls.from_code(
            "E-1001",
            status_code=status_code,
            resource=resource,
            identifier=identifier,
        )


class ServerError(OrderUpError):
    """Server rejected the request or failed. Any other non-2xx status."""

    @classmethod
    def for_status(cls, status_code: int, details: str) -> "ServerError":
        return cls.from_code(
            "E-3001", status_code=status_code, status=status_code, details=details
        )


class NetworkError(OrderUpError):
    """Transport failure before a response was received."""

    @classmethod
    def from_exception(cls, exc: Exception) -> "NetworkError":
        return cls.from_code("E-4001", details=str(exc) or type(exc).__name__)


class ResponseParseError(NetworkError):
    """Response body was not valid JSON."""

    @classmethod
    def from_exception(cls, exc: Exception) -> "ResponseParseError":
        return cls.from_code("E-4002", details=str(exc))


class InvalidTransitionError(OrderUpError):
    """Fulfillment operation invoked in a stage that does not allow it."""

    @classmethod
    def for_action(cls, action: str, stage: str) -> "InvalidTransitionError":
        return cls.from_code("E-2001", action=action, stage=stage)

    @classmethod
    def nothing_picked(cls) -> "InvalidTransitionError":
        return cls.from_code("E-2002")

    @classmethod
    def no_orders(cls) -> "InvalidTransitionError":
        return cls.from_code("E-2003")
