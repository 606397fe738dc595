"""Fulfillment endpoints: simulate, create, update, get, finalize, list.

Response normalization happens here. Callers get PicklistLine tuples and
plain fulfillment ids; they never see the backend's alternate keys
(``fulfillmentId`` vs ``id``, ``items`` vs ``data``).
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from src.errors import ResponseParseError
from src.services.gateway import RemoteCaller
from src.services.models import FulfillmentSummary
from src.services.paginated_fetcher import (
    DEFAULT_PAGE_SIZE,
    PaginatedFetcher,
    QuerySpec,
)
from src.services.picklist import (
    LocationType,
    PicklistLine,
    line_to_payload,
    normalize_picklist_items,
)

logger = logging.getLogger(__name__)

SIMULATE_ENDPOINT = "/api/fulfillment/simulate"
FULFILLMENT_ENDPOINT = "/api/fulfillment"

_ID_FIELDS = ("fulfillmentId", "fulfillmentID", "id")
_ITEM_CONTAINER_FIELDS = ("items", "data", "lines")


@dataclass(frozen=True)
class FulfillmentDraft:
    """An existing server-side fulfillment loaded for re-editing."""

    id: str
    status: str
    location_id: str | None
    order_ids: tuple[str, ...] = ()
    lines: tuple[PicklistLine, ...] = field(default_factory=tuple)


def extract_fulfillment_id(data: Any) -> str | None:
    """Return the fulfillment id from a create/update/get response."""
    if not isinstance(data, dict):
        return None
    for key in _ID_FIELDS:
        if data.get(key) is not None:
            return str(data[key])
    return None


def extract_items(data: Any) -> list[dict]:
    """Return the raw item list from a bare list or an envelope."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _ITEM_CONTAINER_FIELDS:
            if isinstance(data.get(key), list):
                return data[key]
    return []


def parse_lines(data: Any, keep_picked: bool = False) -> tuple[PicklistLine, ...]:
    """Normalize the item list of a simulate or fulfillment response.

    Raises:
        ResponseParseError: If an item is not an object or has unusable values.
    """
    try:
        return normalize_picklist_items(extract_items(data), keep_picked=keep_picked)
    except (AttributeError, TypeError, ValueError) as e:
        raise ResponseParseError.from_exception(e) from e


class FulfillmentApi:
    """Fulfillment-side backend calls."""

    def __init__(
        self,
        gateway: RemoteCaller,
        simulate_endpoint: str = SIMULATE_ENDPOINT,
        fulfillment_endpoint: str = FULFILLMENT_ENDPOINT,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._gateway = gateway
        self._simulate_endpoint = simulate_endpoint
        self._fulfillment_endpoint = fulfillment_endpoint.rstrip("/")
        self._page_size = page_size

    async def simulate_fulfillment(
        self,
        order_ids: list[str],
        location_id: str,
        location_type: LocationType,
    ) -> tuple[PicklistLine, ...]:
        """Preview the items needed without creating anything server-side.

        Returns:
            Normalized lines with picked_quantity 0.
        """
        data = await self._gateway.request(
            self._simulate_endpoint,
            method="POST",
            body={
                "orderIds": list(order_ids),
                "locationId": location_id,
                "locationType": LocationType(location_type).value,
            },
        )
        return parse_lines(data)

    async def create_fulfillment(
        self,
        order_ids: Iterable[str],
        location_id: str,
        lines: Iterable[PicklistLine],
    ) -> str:
        """Create a fulfillment and return its server-assigned id.

        Raises:
            ResponseParseError: If the response carries no id.
        """
        data = await self._gateway.request(
            self._fulfillment_endpoint,
            method="POST",
            body={
                "orderIds": sorted(order_ids),
                "locationId": location_id,
                "items": [line_to_payload(line) for line in lines],
            },
        )
        fulfillment_id = extract_fulfillment_id(data)
        if fulfillment_id is None:
            raise ResponseParseError.from_code(
                "E-4002", details="create response has no fulfillment id"
            )
        logger.info("Created fulfillment %s", fulfillment_id)
        return fulfillment_id

    async def update_fulfillment(
        self, fulfillment_id: str, lines: Iterable[PicklistLine]
    ) -> str:
        """Replace a draft's lines. Returns the id the server reports,
        or ``fulfillment_id`` if the response omits one."""
        data = await self._gateway.request(
            f"{self._fulfillment_endpoint}/{fulfillment_id}",
            method="PUT",
            body={"items": [line_to_payload(line) for line in lines]},
        )
        returned_id = extract_fulfillment_id(data) or fulfillment_id
        logger.info("Updated fulfillment %s", returned_id)
        return returned_id

    async def get_fulfillment(self, fulfillment_id: str) -> FulfillmentDraft:
        """Load an existing fulfillment with its recorded picked quantities."""
        data = await self._gateway.request(
            f"{self._fulfillment_endpoint}/{fulfillment_id}"
        )
        if not isinstance(data, dict):
            raise ResponseParseError.from_code(
                "E-4002", details="fulfillment response is not an object"
            )
        try:
            summary = FulfillmentSummary.from_api({"id": fulfillment_id, **data})
        except (AttributeError, TypeError, KeyError) as e:
            raise ResponseParseError.from_exception(e) from e
        location_id = summary.location_id or data.get("locationId")
        order_ids = summary.order_ids or data.get("orderIds") or []
        return FulfillmentDraft(
            id=extract_fulfillment_id(data) or fulfillment_id,
            status=summary.status,
            location_id=str(location_id) if location_id is not None else None,
            order_ids=tuple(str(order_id) for order_id in order_ids),
            lines=parse_lines(data, keep_picked=True),
        )

    async def finalize_fulfillment(self, fulfillment_id: str) -> None:
        """Mark packing complete. The server owns status from here on."""
        await self._gateway.request(
            f"{self._fulfillment_endpoint}/{fulfillment_id}/finalize",
            method="PATCH",
        )
        logger.info("Finalized fulfillment %s", fulfillment_id)

    def fulfillments_fetcher(
        self, params: dict[str, str | int] | None = None
    ) -> PaginatedFetcher[FulfillmentSummary]:
        """Create a fetcher for the fulfillment (picklist) list."""
        return PaginatedFetcher(
            self._gateway,
            QuerySpec.create(self._fulfillment_endpoint, params),
            page_size=self._page_size,
            transform=FulfillmentSummary.from_api,
        )
