"""Order, location and dashboard endpoints.

The order list is served by a PaginatedFetcher whose parameters come
from ``build_order_params``; the other calls are single requests.
"""

import logging

from src.errors import NotFoundError
from src.services.gateway import RemoteCaller
from src.services.models import DashboardStats, Location, Order
from src.services.order_query import OrderFilterSelection, build_order_params
from src.services.paginated_fetcher import (
    DEFAULT_PAGE_SIZE,
    PaginatedFetcher,
    QuerySpec,
)

logger = logging.getLogger(__name__)

ORDERS_ENDPOINT = "/console/transactions/orders"
LOCATIONS_ENDPOINT = "/api/locations"
DASHBOARD_ENDPOINT = "/api/dashboard"


class OrdersApi:
    """Order-side backend calls."""

    def __init__(
        self,
        gateway: RemoteCaller,
        orders_endpoint: str = ORDERS_ENDPOINT,
        locations_endpoint: str = LOCATIONS_ENDPOINT,
        dashboard_endpoint: str = DASHBOARD_ENDPOINT,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._gateway = gateway
        self._orders_endpoint = orders_endpoint
        self._locations_endpoint = locations_endpoint
        self._dashboard_endpoint = dashboard_endpoint
        self._page_size = page_size

    def orders_fetcher(
        self, selection: OrderFilterSelection | None = None
    ) -> PaginatedFetcher[Order]:
        """Create a fetcher for the order list.

        Args:
            selection: Initial filters. None means no restriction.

        Returns:
            Fetcher yielding normalized Order items. Nothing is loaded yet.
        """
        params = build_order_params(selection) if selection else {}
        return PaginatedFetcher(
            self._gateway,
            QuerySpec.create(self._orders_endpoint, params),
            page_size=self._page_size,
            transform=Order.from_api,
        )

    async def apply_filters(
        self, fetcher: PaginatedFetcher[Order], selection: OrderFilterSelection
    ) -> None:
        """Point an order fetcher at a new filter selection."""
        await fetcher.replace_parameters(build_order_params(selection))

    async def get_order_by_id(self, order_id: str) -> Order:
        """Fetch one order.

        The endpoint answers either with the order object or with a
        one-item paginated envelope; both are accepted.

        Raises:
            NotFoundError: If the backend has no such order.
        """
        data = await self._gateway.request(
            f"{self._orders_endpoint}/{order_id}",
            params={"pageNo": 1, "pageSize": 1},
        )
        if isinstance(data, dict) and "data" in data:
            data = data["data"]
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise NotFoundError.for_resource("Order", order_id)
        return Order.from_api(data)

    async def get_locations(self) -> list[Location]:
        data = await self._gateway.request(self._locations_endpoint)
        if isinstance(data, dict):
            data = data.get("data") or []
        locations = [Location.from_api(item) for item in data or []]
        logger.debug("Fetched %d location(s)", len(locations))
        return locations

    async def get_dashboard_stats(self) -> DashboardStats:
        data = await self._gateway.request(self._dashboard_endpoint)
        return DashboardStats.from_api(data or {})
