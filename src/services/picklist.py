"""Picklist lines and the operations that build and adjust them.

Lines come from two places: a fulfillment simulation (everything starts
unpicked) or an existing draft fulfillment (server-recorded picked
quantities). Either way the raw items pass through
``normalize_picklist_item``, which resolves the backend's alternate
field names in a fixed priority order so nothing downstream has to.

Every adjustment clamps ``picked_quantity`` into
``[0, required_quantity]``. Out-of-range input is corrected, not
rejected: operators use +/- buttons and free-text entry that can
overshoot.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from src.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)

UNASSIGNED_BIN = "Unassigned Bin"

# Field priority for each normalized attribute, first present wins
LINE_ID_FIELDS = ("id", "orderItemID")
PRODUCT_ID_FIELDS = ("productId", "itemID", "productID")
PRODUCT_NAME_FIELDS = ("productName", "name", "itemName")
LOCATION_LABEL_FIELDS = ("location", "locationName")
REQUIRED_QUANTITY_FIELDS = ("requiredQuantity", "quantity", "orderQuantity")
PICKED_QUANTITY_FIELDS = ("pickedQuantity", "pickQuantity")
AVAILABLE_QUANTITY_FIELDS = ("availableQuantity", "available")
LOCATION_HINT_FIELDS = ("locationHints", "hints")


class LocationType(str, Enum):
    """Kind of location a fulfillment ships from."""

    STORE = "STORE"
    WAREHOUSE = "WAREHOUSE"


@dataclass(frozen=True)
class BinReference:
    """Shelf or slot inside a location where an item is stored."""

    bin_id: str
    bin_name: str
    location_id: str | None = None


@dataclass(frozen=True)
class PicklistLine:
    """One product to pick.

    Invariant: ``0 <= picked_quantity <= required_quantity``.
    """

    id: str
    product_id: str
    product_name: str
    location_label: str
    required_quantity: int
    picked_quantity: int = 0
    available_quantity: int | None = None
    bin: BinReference | None = None
    location_hints: tuple[str, ...] = ()

    @property
    def is_picked(self) -> bool:
        return self.picked_quantity > 0

    @property
    def is_fully_picked(self) -> bool:
        return self.picked_quantity == self.required_quantity

    def with_picked(self, quantity: int) -> "PicklistLine":
        """Return a copy with the picked quantity clamped into range."""
        return replace(self, picked_quantity=clamp_quantity(quantity, self.required_quantity))


def clamp_quantity(value: int, upper: int) -> int:
    return max(0, min(value, upper))


def _first_present(item: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for name in fields:
        value = item.get(name)
        if value is not None and value != "":
            return value
    return None


def _as_int(value: Any, default: int | None) -> int | None:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _normalize_bin(item: Mapping[str, Any]) -> BinReference | None:
    raw_bin = item.get("bin")
    if isinstance(raw_bin, Mapping):
        bin_id = _first_present(raw_bin, ("id", "binId", "binID"))
        bin_name = _first_present(raw_bin, ("name", "binName"))
        location_id = _first_present(raw_bin, ("locationId", "locationID"))
    else:
        bin_id = _first_present(item, ("binId", "binID"))
        bin_name = item.get("binName")
        location_id = None

    if bin_id is None and bin_name is None:
        return None
    return BinReference(
        bin_id=str(bin_id) if bin_id is not None else str(bin_name),
        bin_name=str(bin_name) if bin_name is not None else str(bin_id),
        location_id=str(location_id) if location_id is not None else None,
    )


def _normalize_hints(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(hint) for hint in value if hint)


def normalize_picklist_item(
    item: Mapping[str, Any],
    index: int = 0,
    keep_picked: bool = False,
) -> PicklistLine:
    """Map one raw backend item onto a PicklistLine.

    Field resolution (first present wins):
        id: id, orderItemID, else "<product_id>-<index>", else
            "line-<index>"
        product_id: productId, itemID, productID
        product_name: productName, name, itemName
        location_label: location, locationName, else the bin name
        required_quantity: requiredQuantity, quantity, orderQuantity,
            else 1 when the server sends nothing
        picked_quantity: pickedQuantity, pickQuantity (only with
            keep_picked; otherwise 0)
        available_quantity: availableQuantity, available
        location_hints: locationHints, hints

    Args:
        item: Raw item dict from a simulate or fulfillment response.
        index: Position in the response, used for the fallback id.
        keep_picked: Carry the server's picked quantity (draft reload).

    Returns:
        Normalized line with picked quantity clamped.
    """
    bin_ref = _normalize_bin(item)
    required = max(0, _as_int(_first_present(item, REQUIRED_QUANTITY_FIELDS), 1))
    picked = 0
    if keep_picked:
        picked = _as_int(_first_present(item, PICKED_QUANTITY_FIELDS), 0)

    line_id = _first_present(item, LINE_ID_FIELDS)
    product_id = _first_present(item, PRODUCT_ID_FIELDS)
    location_label = _first_present(item, LOCATION_LABEL_FIELDS)
    if location_label is None:
        location_label = bin_ref.bin_name if bin_ref else ""

    if line_id is None:
        line_id = f"{product_id}-{index}" if product_id is not None else f"line-{index}"

    return PicklistLine(
        id=str(line_id),
        product_id=str(product_id) if product_id is not None else "",
        product_name=str(_first_present(item, PRODUCT_NAME_FIELDS) or "Unknown Product"),
        location_label=str(location_label),
        required_quantity=required,
        picked_quantity=clamp_quantity(picked, required),
        available_quantity=_as_int(_first_present(item, AVAILABLE_QUANTITY_FIELDS), None),
        bin=bin_ref,
        location_hints=_normalize_hints(_first_present(item, LOCATION_HINT_FIELDS)),
    )


def normalize_picklist_items(
    items: Iterable[Mapping[str, Any]], keep_picked: bool = False
) -> tuple[PicklistLine, ...]:
    return tuple(
        normalize_picklist_item(item, index, keep_picked)
        for index, item in enumerate(items)
    )


def line_to_payload(line: PicklistLine) -> dict[str, Any]:
    """Serialize a line in the shape the fulfillment endpoints accept."""
    payload: dict[str, Any] = {
        "id": line.id,
        "productId": line.product_id,
        "productName": line.product_name,
        "location": line.location_label,
        "requiredQuantity": line.required_quantity,
        "pickedQuantity": line.picked_quantity,
    }
    if line.available_quantity is not None:
        payload["availableQuantity"] = line.available_quantity
    if line.bin is not None:
        payload["bin"] = {
            "id": line.bin.bin_id,
            "name": line.bin.bin_name,
            "locationId": line.bin.location_id,
        }
    return payload


# ----------------------------------------------------------------------
# Simulation
# ----------------------------------------------------------------------


class SimulationSource(Protocol):
    """Backend capability that previews a fulfillment."""

    async def simulate_fulfillment(
        self,
        order_ids: list[str],
        location_id: str,
        location_type: LocationType,
    ) -> tuple[PicklistLine, ...]:
        ...


async def simulate(
    source: SimulationSource,
    order_ids: Iterable[str],
    location_id: str,
    location_type: LocationType,
) -> tuple[PicklistLine, ...]:
    """Ask the backend which items the orders need from a location.

    Args:
        source: Fulfillment backend.
        order_ids: Orders to fulfill. Must be non-empty.
        location_id: Location to pick from.
        location_type: STORE or WAREHOUSE.

    Returns:
        Fresh lines, all with picked_quantity 0.

    Raises:
        InvalidTransitionError: If no order ids were given.
        OrderUpError: If the simulation call fails.
    """
    ids = sorted(set(order_ids))
    if not ids:
        raise InvalidTransitionError.no_orders()
    lines = await source.simulate_fulfillment(ids, location_id, location_type)
    lines = tuple(line.with_picked(0) for line in lines)
    logger.info(
        "Simulated %d line(s) for %d order(s) at %s %s",
        len(lines), len(ids), location_type.value, location_id,
    )
    return lines


# ----------------------------------------------------------------------
# Adjustment and derived queries
# ----------------------------------------------------------------------


def adjust_picked_quantity(
    lines: Iterable[PicklistLine],
    line_id: str,
    value: int | None = None,
    delta: int | None = None,
) -> tuple[PicklistLine, ...]:
    """Set or nudge one line's picked quantity, clamped into range.

    Exactly one of ``value`` (absolute) or ``delta`` (relative) is used.

    Args:
        lines: Current lines.
        line_id: Line to change.
        value: New absolute quantity.
        delta: Amount to add to the current quantity (may be negative).

    Returns:
        New tuple of lines; the input is not modified.

    Raises:
        ValueError: If neither or both of value and delta are given.
        NotFoundError: If no line has ``line_id``.
    """
    if (value is None) == (delta is None):
        raise ValueError("Pass exactly one of value or delta")

    result = []
    found = False
    for line in lines:
        if line.id == line_id:
            found = True
            target = value if value is not None else line.picked_quantity + delta
            line = line.with_picked(target)
        result.append(line)
    if not found:
        raise NotFoundError.for_resource("Picklist line", line_id, status_code=None)
    return tuple(result)


def mark_all_picked(lines: Iterable[PicklistLine]) -> tuple[PicklistLine, ...]:
    return tuple(line.with_picked(line.required_quantity) for line in lines)


def has_picked_lines(lines: Iterable[PicklistLine]) -> bool:
    """True if any line has something picked. Gates submission."""
    return any(line.is_picked for line in lines)


def all_lines_picked(lines: Iterable[PicklistLine]) -> bool:
    """True if every line is fully picked. Progress display only."""
    return all(line.is_fully_picked for line in lines)


def picked_count(lines: Iterable[PicklistLine]) -> int:
    return sum(1 for line in lines if line.is_picked)


def group_lines_by_bin(lines: Iterable[PicklistLine]) -> dict[str, list[PicklistLine]]:
    """Group lines by bin name, preserving first-seen order."""
    groups: dict[str, list[PicklistLine]] = {}
    for line in lines:
        name = line.bin.bin_name if line.bin else UNASSIGNED_BIN
        groups.setdefault(name, []).append(line)
    return groups
