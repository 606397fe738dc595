"""Service layer for OrderUp.

Provides the authenticated gateway, paginated list fetching, order and
fulfillment endpoints, and the fulfillment workflow controller.
"""

from src.services.credential_store import (
    InMemoryCredentialStore,
    KeyringCredentialStore,
)
from src.services.fulfillment import (
    FulfillmentController,
    FulfillmentSession,
    FulfillmentStage,
)
from src.services.fulfillment_api import FulfillmentApi
from src.services.gateway import RemoteGateway
from src.services.orders_api import OrdersApi
from src.services.paginated_fetcher import PageState, PaginatedFetcher, QuerySpec

__all__ = [
    "RemoteGateway",
    "KeyringCredentialStore",
    "InMemoryCredentialStore",
    "PaginatedFetcher",
    "PageState",
    "QuerySpec",
    "OrdersApi",
    "FulfillmentApi",
    "FulfillmentController",
    "FulfillmentSession",
    "FulfillmentStage",
]
