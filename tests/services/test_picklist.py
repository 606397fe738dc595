"""Tests for picklist normalization, simulation and quantity adjustment."""

import pytest

from src.errors import InvalidTransitionError, NotFoundError
from src.services.picklist import (
    UNASSIGNED_BIN,
    BinReference,
    LocationType,
    PicklistLine,
    adjust_picked_quantity,
    all_lines_picked,
    clamp_quantity,
    group_lines_by_bin,
    has_picked_lines,
    line_to_payload,
    mark_all_picked,
    normalize_picklist_item,
    normalize_picklist_items,
    picked_count,
    simulate,
)


def _line(line_id: str, required: int, picked: int = 0, bin_name: str | None = None) -> PicklistLine:
    return PicklistLine(
        id=line_id,
        product_id=f"P-{line_id}",
        product_name=f"Product {line_id}",
        location_label="Aisle 1",
        required_quantity=required,
        picked_quantity=picked,
        bin=BinReference(bin_id=bin_name, bin_name=bin_name) if bin_name else None,
    )


class FakeSimulationSource:
    """Returns canned lines and records the arguments it was called with."""

    def __init__(self, lines: tuple[PicklistLine, ...]):
        self._lines = lines
        self.calls: list[tuple] = []

    async def simulate_fulfillment(self, order_ids, location_id, location_type):
        self.calls.append((order_ids, location_id, location_type))
        return self._lines


class TestNormalizePicklistItem:
    """Tests for first-present field resolution."""

    def test_primary_field_names(self):
        line = normalize_picklist_item(
            {
                "id": "L1",
                "productId": "P1",
                "productName": "Lager 6pk",
                "location": "Cooler 2",
                "requiredQuantity": 3,
                "availableQuantity": 10,
            }
        )
        assert line == PicklistLine(
            id="L1",
            product_id="P1",
            product_name="Lager 6pk",
            location_label="Cooler 2",
            required_quantity=3,
            picked_quantity=0,
            available_quantity=10,
        )

    def test_fallback_field_names(self):
        line = normalize_picklist_item(
            {
                "orderItemID": 77,
                "itemID": 501,
                "name": "Chips",
                "locationName": "Front",
                "orderQuantity": "4",
                "available": 2,
            }
        )
        assert line.id == "77"
        assert line.product_id == "501"
        assert line.product_name == "Chips"
        assert line.location_label == "Front"
        assert line.required_quantity == 4
        assert line.available_quantity == 2

    def test_priority_prefers_first_field(self):
        line = normalize_picklist_item(
            {"requiredQuantity": 2, "quantity": 9, "productName": "A", "name": "B"}
        )
        assert line.required_quantity == 2
        assert line.product_name == "A"

    def test_defaults_when_fields_missing(self):
        line = normalize_picklist_item({}, index=4)
        assert line.id == "line-4"
        assert line.product_name == "Unknown Product"
        assert line.required_quantity == 1
        assert line.available_quantity is None
        assert line.bin is None
        assert line.location_label == ""

    def test_picked_quantity_ignored_unless_kept(self):
        raw = {"id": "L1", "requiredQuantity": 5, "pickedQuantity": 3}
        assert normalize_picklist_item(raw).picked_quantity == 0
        assert normalize_picklist_item(raw, keep_picked=True).picked_quantity == 3

    def test_kept_picked_quantity_is_clamped(self):
        raw = {"id": "L1", "requiredQuantity": 2, "pickQuantity": 7}
        assert normalize_picklist_item(raw, keep_picked=True).picked_quantity == 2

    def test_nested_bin(self):
        line = normalize_picklist_item(
            {"id": "L1", "bin": {"id": 9, "name": "B-09", "locationId": "LOC-1"}}
        )
        assert line.bin == BinReference(bin_id="9", bin_name="B-09", location_id="LOC-1")
        assert line.location_label == "B-09"

    def test_flat_bin_fields(self):
        line = normalize_picklist_item({"id": "L1", "binId": "7", "binName": "Shelf 7"})
        assert line.bin == BinReference(bin_id="7", bin_name="Shelf 7")

    def test_location_hints(self):
        assert normalize_picklist_item({"hints": "Top shelf"}).location_hints == ("Top shelf",)
        assert normalize_picklist_item(
            {"locationHints": ["Back room", "", "Bay 3"]}
        ).location_hints == ("Back room", "Bay 3")

    def test_items_use_position_for_fallback_ids(self):
        lines = normalize_picklist_items([{"name": "A"}, {"name": "B"}])
        assert [line.id for line in lines] == ["line-0", "line-1"]

    def test_same_product_in_two_orders_gets_distinct_ids(self):
        """Without a line key, rows for one product stay separately adjustable."""
        lines = normalize_picklist_items(
            [
                {"productId": "P1", "requiredQuantity": 2},
                {"productId": "P1", "requiredQuantity": 3},
            ]
        )
        assert [line.id for line in lines] == ["P1-0", "P1-1"]

        adjusted = adjust_picked_quantity(lines, "P1-1", value=3)
        assert [line.picked_quantity for line in adjusted] == [0, 3]


class TestSimulate:
    """Tests for simulate."""

    @pytest.mark.asyncio
    async def test_sorts_unique_order_ids_and_resets_picked(self):
        source = FakeSimulationSource((_line("a", 2, picked=2),))
        lines = await simulate(source, ["1002", "1001", "1002"], "LOC-1", LocationType.STORE)
        assert source.calls == [(["1001", "1002"], "LOC-1", LocationType.STORE)]
        assert lines[0].picked_quantity == 0

    @pytest.mark.asyncio
    async def test_requires_orders(self):
        source = FakeSimulationSource(())
        with pytest.raises(InvalidTransitionError) as exc_info:
            await simulate(source, [], "LOC-1", LocationType.WAREHOUSE)
        assert exc_info.value.code == "E-2003"
        assert source.calls == []


class TestAdjustPickedQuantity:
    """Tests for clamped adjustment."""

    def test_simulated_lines_clamp_overshoot(self):
        """Simulate [2, 1, 5], set the third to 10: it clamps to 5."""
        lines = (_line("a", 2), _line("b", 1), _line("c", 5))
        lines = adjust_picked_quantity(lines, "c", value=10)
        assert [line.picked_quantity for line in lines] == [0, 0, 5]
        assert has_picked_lines(lines) is True
        assert all_lines_picked(lines) is False

    def test_negative_clamps_to_zero(self):
        lines = adjust_picked_quantity((_line("a", 3, picked=1),), "a", value=-4)
        assert lines[0].picked_quantity == 0

    def test_delta(self):
        lines = (_line("a", 3, picked=1),)
        lines = adjust_picked_quantity(lines, "a", delta=1)
        assert lines[0].picked_quantity == 2
        lines = adjust_picked_quantity(lines, "a", delta=5)
        assert lines[0].picked_quantity == 3
        lines = adjust_picked_quantity(lines, "a", delta=-10)
        assert lines[0].picked_quantity == 0

    def test_input_not_modified(self):
        original = (_line("a", 3),)
        adjust_picked_quantity(original, "a", value=2)
        assert original[0].picked_quantity == 0

    def test_unknown_line(self):
        with pytest.raises(NotFoundError):
            adjust_picked_quantity((_line("a", 3),), "zzz", value=1)

    @pytest.mark.parametrize("kwargs", [{}, {"value": 1, "delta": 1}])
    def test_exactly_one_of_value_or_delta(self, kwargs):
        with pytest.raises(ValueError):
            adjust_picked_quantity((_line("a", 3),), "a", **kwargs)

    def test_invariant_holds_for_any_input(self):
        lines = (_line("a", 4),)
        for value in (-100, -1, 0, 1, 4, 5, 1000):
            line = adjust_picked_quantity(lines, "a", value=value)[0]
            assert 0 <= line.picked_quantity <= line.required_quantity


class TestDerivedQueries:
    """Tests for whole-picklist helpers."""

    def test_mark_all_picked(self):
        lines = mark_all_picked((_line("a", 2), _line("b", 3, picked=1)))
        assert [line.picked_quantity for line in lines] == [2, 3]
        assert all_lines_picked(lines) is True
        assert picked_count(lines) == 2

    def test_nothing_picked(self):
        lines = (_line("a", 2), _line("b", 3))
        assert has_picked_lines(lines) is False
        assert picked_count(lines) == 0

    def test_empty_picklist_is_all_picked_but_not_submittable(self):
        assert all_lines_picked(()) is True
        assert has_picked_lines(()) is False

    def test_clamp_quantity(self):
        assert clamp_quantity(7, 5) == 5
        assert clamp_quantity(-1, 5) == 0
        assert clamp_quantity(3, 5) == 3


class TestGroupLinesByBin:
    """Tests for packing-screen grouping."""

    def test_groups_in_first_seen_order(self):
        lines = (
            _line("a", 1, bin_name="B-2"),
            _line("b", 1),
            _line("c", 1, bin_name="B-1"),
            _line("d", 1, bin_name="B-2"),
        )
        groups = group_lines_by_bin(lines)
        assert list(groups) == ["B-2", UNASSIGNED_BIN, "B-1"]
        assert [line.id for line in groups["B-2"]] == ["a", "d"]
        assert [line.id for line in groups[UNASSIGNED_BIN]] == ["b"]


class TestLineToPayload:
    """Tests for request serialization."""

    def test_payload_shape(self):
        line = PicklistLine(
            id="L1",
            product_id="P1",
            product_name="Lager",
            location_label="Cooler",
            required_quantity=3,
            picked_quantity=2,
            available_quantity=8,
            bin=BinReference(bin_id="9", bin_name="B-09", location_id="LOC-1"),
        )
        assert line_to_payload(line) == {
            "id": "L1",
            "productId": "P1",
            "productName": "Lager",
            "location": "Cooler",
            "requiredQuantity": 3,
            "pickedQuantity": 2,
            "availableQuantity": 8,
            "bin": {"id": "9", "name": "B-09", "locationId": "LOC-1"},
        }

    def test_optional_fields_omitted(self):
        payload = line_to_payload(_line("a", 1))
        assert "availableQuantity" not in payload
        assert "bin" not in payload
