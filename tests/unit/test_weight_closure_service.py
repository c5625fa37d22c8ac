"""
Unit tests for weight closure, unit ordering and share list helpers.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from src.domain.errors import ClosureMismatch, InvalidWeight
from src.domain.models import ShareKind
from src.services.weight_closure_service import (
    PALETTE,
    SPECIAL_PALETTE,
    RawShare,
    build_floor_final_grid,
    close_weights,
    infer_target_units,
    next_special_color,
    normalize_unit_id,
    parse_share_list,
    text_color_for,
    unit_sort_key,
)


class TestUnitIds:
    @pytest.mark.parametrize(
        "raw, expected",
        [("4", "0004"), ("104", "0104"), ("A-141", "0141"), (21, "0021"), ("123456", "1234")],
    )
    def test_normalize_unit_id(self, raw, expected: str) -> None:
        assert normalize_unit_id(raw) == expected

    def test_unit_id_without_digits_is_rejected(self) -> None:
        with pytest.raises(InvalidWeight):
            normalize_unit_id("apto")

    def test_sorted_by_floor_then_final(self) -> None:
        ids = ["0141", "0021", "0017", "0004", "0011", "0007"]

        assert sorted(ids, key=unit_sort_key) == ["0004", "0007", "0011", "0017", "0021", "0141"]


class TestTarget:
    def test_close_to_one(self) -> None:
        assert infer_target_units(9_999_999) == 10_000_000

    def test_close_to_hundred(self) -> None:
        assert infer_target_units(999_999_999) == 1_000_000_000

    def test_tie_prefers_one(self) -> None:
        assert infer_target_units(505_000_000) == 10_000_000


class TestCloseWeights:
    def test_difference_goes_to_last_share_without_specials(self) -> None:
        result = close_weights(
            [("13", "0.3333333"), ("11", "0.3333333"), ("12", "0.3333333")]
        )

        assert [s.unit_id for s in result.shares] == ["0011", "0012", "0013"]
        assert result.shares[-1].weight_units == 3_333_334
        assert result.adjusted_unit_id == "0013"
        assert result.total_units == result.target_units == 10_000_000
        assert result.target == Decimal("1.0000000")

    def test_special_overrides_principal_and_takes_the_difference(self) -> None:
        result = close_weights(
            principal=[("11", "0.25"), ("12", "0.25"), ("13", "0.5")],
            special=[("12", "0.2499999")],
        )

        by_id = {s.unit_id: s for s in result.shares}
        assert by_id["0012"].kind is ShareKind.SPECIAL
        assert by_id["0012"].weight_units == 2_500_000
        assert by_id["0013"].weight_units == 5_000_000
        assert result.adjusted_unit_id == "0012"

    def test_last_occurrence_wins_within_a_list(self) -> None:
        result = close_weights([("11", "0.1"), ("12", "0.5"), ("11", "0.5")])

        assert [s.weight_units for s in result.shares] == [5_000_000, 5_000_000]
        assert result.adjusted_unit_id is None

    def test_closes_on_hundred(self) -> None:
        result = close_weights([("1", "50"), ("2", "49.9999999")])

        assert result.target_units == 1_000_000_000
        assert result.total_units == 1_000_000_000
        assert result.adjusted_unit_id == "0002"

    def test_zero_weight_is_rejected(self) -> None:
        with pytest.raises(InvalidWeight):
            close_weights([("11", "0.5"), ("12", "0")])

    def test_special_cannot_zero_a_unit(self) -> None:
        with pytest.raises(InvalidWeight):
            close_weights([("11", "0.5"), ("12", "0.5")], special=[("12", "-1")])

    def test_empty_input_is_rejected(self) -> None:
        with pytest.raises(InvalidWeight):
            close_weights([])

    def test_adjustment_that_would_zero_a_share_is_skipped(self) -> None:
        # target 1, difference -0.4 cannot be taken by a 0.1 share
        with pytest.raises(ClosureMismatch):
            close_weights([("11", "1.3"), ("12", "0.1")])

    def test_weights_are_rounded_to_seven_decimals(self) -> None:
        result = close_weights([("11", "0.49999996"), ("12", "0.5")])

        assert result.input_sum_units == 10_000_000
        assert result.shares[0].weight == Decimal("0.5000000")

    def test_accepts_raw_share_labels(self) -> None:
        result = close_weights(
            [RawShare("11", "0.5", label="Final 1"), RawShare("12", "0.5", label="Final 2")]
        )

        assert [s.label for s in result.shares] == ["Final 1", "Final 2"]


class TestDisplayGroups:
    def test_equal_principal_weights_share_a_color(self) -> None:
        result = close_weights([("11", "0.25"), ("12", "0.25"), ("13", "0.5")])

        colors = [s.display_group for s in result.shares]
        assert colors == [PALETTE[0], PALETTE[0], PALETTE[1]]

    def test_each_special_gets_its_own_color(self) -> None:
        result = close_weights(
            [("11", "0.3"), ("12", "0.3")],
            special=[("4", "0.2"), ("5", "0.2")],
        )

        by_id = {s.unit_id: s.display_group for s in result.shares}
        assert by_id["0004"] == SPECIAL_PALETTE[0]
        assert by_id["0005"] == SPECIAL_PALETTE[1]
        assert by_id["0011"] == by_id["0012"] == PALETTE[0]

    def test_generated_colors_after_palette_is_used_up(self) -> None:
        used = {color.lower() for color in SPECIAL_PALETTE}

        assert next_special_color(used) == "hsl(0 70% 45%)"
        used.add("hsl(0 70% 45%)")
        assert next_special_color(used) == "hsl(37 70% 45%)"

    @pytest.mark.parametrize(
        "background, expected",
        [("#ffffff", "#111"), ("#000000", "#fff"), ("#fff", "#111"), ("hsl(0 70% 45%)", "#fff"), ("", "#111")],
    )
    def test_text_color_for(self, background: str, expected: str) -> None:
        assert text_color_for(background) == expected


class TestFloorFinalGrid:
    def test_builds_floor_times_ten_plus_final(self) -> None:
        shares = build_floor_final_grid(1, 2, {2: "0.2", 1: "0.1"})

        assert [s.unit_id for s in shares] == ["0011", "0012", "0021", "0022"]
        assert [s.label for s in shares] == ["Final 1", "Final 2", "Final 1", "Final 2"]
        assert shares[1].weight == "0.2"

    def test_non_positive_final_weight_is_rejected(self) -> None:
        with pytest.raises(InvalidWeight):
            build_floor_final_grid(1, 3, {1: "0.1", 2: "0"})

    def test_reversed_floor_range_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_floor_final_grid(5, 1, {1: "0.1"})

    def test_grid_feeds_closure(self) -> None:
        grid = build_floor_final_grid(1, 2, {1: "0.25", 2: "0.25"})

        result = close_weights(grid)

        assert result.total_units == 10_000_000


class TestParseShareList:
    def test_parses_pasted_lines(self) -> None:
        text = "04-0,0081000\n104 1.5\n\nno digits here\n0011 -0,5\n04 0,0090000\n"

        shares = parse_share_list(text)

        assert [s.unit_id for s in shares] == ["0004", "0104"]
        assert shares[0].weight == Decimal("0.0090000")
        assert shares[1].weight == Decimal("1.5")

    def test_line_without_value_is_skipped(self) -> None:
        assert parse_share_list("0011\n") == []
