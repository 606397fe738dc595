"""Read models for orders, locations, dashboard and fulfillment lists.

Each model has a ``from_api`` constructor that tolerates extra fields
and resolves the backend's alternate key names, so raw response dicts
never travel past the service layer.
"""

from dataclasses import dataclass, field
from typing import Any


def _first(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first non-empty value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return default


def _name_of(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("name")
    return None


@dataclass
class OrderItem:
    """One line of a commerce order."""

    id: str
    product_id: str
    product_name: str
    quantity: int
    picked_quantity: int = 0
    upc: str | None = None
    unit_price: float | None = None

    @classmethod
    def from_api(cls, data: dict) -> "OrderItem":
        """Construct from API JSON, tolerating extra fields."""
        return cls(
            id=str(_first(data, "orderItemID", "id", default="")),
            product_id=str(_first(data, "itemID", "productId", default="")),
            product_name=_first(data, "name", "productName", default="Unknown Product"),
            quantity=int(_first(data, "orderQuantity", "quantity", default=0)),
            picked_quantity=int(_first(data, "returnQuantity", "pickedQuantity", default=0)),
            upc=data.get("upc"),
            unit_price=data.get("unitPrice"),
        )


@dataclass
class Order:
    """Commerce order as shown in the order list."""

    id: str
    order_number: str
    source: str
    status: str
    customer: str
    created_at: str
    payment_status: str | None = None
    order_type: str | None = None
    amount: float | None = None
    total_item_quantity: int | None = None
    items: list[OrderItem] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "Order":
        """Construct from API JSON.

        Order id comes from ``orderID`` (falling back to ``id``); the
        display number prefers ``externalOrderID``. Customer name comes
        from the customer, then the employee who rang it up.
        """
        raw_id = _first(data, "orderID", "id")
        if raw_id is None:
            raise KeyError("orderID")
        order_id = str(raw_id)
        return cls(
            id=order_id,
            order_number=str(_first(data, "externalOrderID", "orderNumber", default=order_id)),
            source=data.get("source") or "",
            status=data.get("status") or "",
            customer=(
                _name_of(data.get("customer"))
                or _name_of(data.get("employee"))
                or "Unknown Customer"
            ),
            created_at=_first(data, "date", "createdAt", default=""),
            payment_status=data.get("paymentStatus"),
            order_type=data.get("type"),
            amount=data.get("amount"),
            total_item_quantity=data.get("totalItemQuantity"),
            items=[OrderItem.from_api(item) for item in data.get("items") or []],
        )


@dataclass
class Location:
    """Store or warehouse that can fulfill orders."""

    id: str
    name: str
    type: str
    address: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Location":
        """Construct from API JSON. ``type`` is upper-cased (STORE/WAREHOUSE)."""
        return cls(
            id=str(_first(data, "id", "locationID", "locationId")),
            name=_first(data, "name", "locationName", default=""),
            type=str(_first(data, "type", "locationType", default="STORE")).upper(),
            address=data.get("address") or "",
        )


@dataclass
class DashboardStats:
    """Counters shown on the operator dashboard."""

    total_orders: int
    order_counts: dict[str, int] = field(default_factory=dict)
    active_picklists: int = 0
    ready_for_pickup: int = 0

    @classmethod
    def from_api(cls, data: dict) -> "DashboardStats":
        counts = dict(data.get("orderCounts") or {})
        total = counts.pop("total", None)
        if total is None:
            total = sum(v for v in counts.values() if isinstance(v, int))
        return cls(
            total_orders=int(total),
            order_counts=counts,
            active_picklists=int(data.get("activePicklists", 0)),
            ready_for_pickup=int(data.get("readyForPickup", 0)),
        )


@dataclass
class FulfillmentSummary:
    """Row of the fulfillment (picklist) list."""

    id: str
    status: str
    location_id: str
    location_name: str
    order_ids: list[str] = field(default_factory=list)
    created_at: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "FulfillmentSummary":
        """Construct from API JSON.

        Order ids are the ``typeID`` of each entry in ``sources``.
        """
        location = data.get("fulfillmentLocation") or {}
        return cls(
            id=str(_first(data, "id", "fulfillmentId")),
            status=_first(data, "fulfillmentStatus", "status", default=""),
            location_id=str(_first(location, "id", default="")),
            location_name=location.get("name") or "",
            order_ids=[
                str(source["typeID"])
                for source in data.get("sources") or []
                if source.get("typeID") is not None
            ],
            created_at=_first(data, "createdAt", "date", default=""),
        )
