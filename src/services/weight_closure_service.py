"""
Weight Closure - turn raw principal/special share lists into a closed table.

This service handles:
- Unit id normalization and floor/final ordering
- Merging special overrides over principal shares
- Closing the weights on a target of 1 or 100 (fixed-point, 1e-7 units)
- Display color grouping
- Floor/final grid generation and pasted share lists
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from src.domain.errors import ClosureMismatch, InvalidWeight
from src.domain.models import ShareKind, WeightedShare
from src.domain.money import MoneyLike, WEIGHT_SCALE, units_to_weight, weight_to_units
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

CLOSURE_TOLERANCE_UNITS = 5

PALETTE = [
    "#0b4fd6",
    "#00a37a",
    "#b00020",
    "#ff8c00",
    "#6a5acd",
    "#008b8b",
    "#c2185b",
    "#2e7d32",
    "#1565c0",
    "#6d4c41",
]

SPECIAL_PALETTE = [
    "#7b1fa2",
    "#d81b60",
    "#00897b",
    "#f4511e",
    "#3949ab",
    "#c0ca33",
    "#5d4037",
    "#039be5",
    "#8e24aa",
    "#43a047",
    "#fb8c00",
    "#546e7a",
]

FALLBACK_COLOR = "#111111"
_GENERATED_COLORS = 60


@dataclass(frozen=True)
class RawShare:
    """An unvalidated (unit id, weight) pair as typed or pasted."""

    unit_id: str
    weight: MoneyLike
    label: Optional[str] = None


ShareInput = Union[RawShare, WeightedShare, Tuple[str, MoneyLike]]


@dataclass
class ClosureResult:
    """Closed shares plus the figures used to close them."""

    shares: List[WeightedShare]
    target_units: int
    input_sum_units: int
    adjusted_unit_id: Optional[str] = None

    @property
    def target(self) -> Decimal:
        return units_to_weight(self.target_units)

    @property
    def total_units(self) -> int:
        return sum(share.weight_units for share in self.shares)


def normalize_unit_id(raw: object) -> str:
    """
    Strip non-digits and zero-pad to 4 digits (``"4"`` -> ``"0004"``).

    Raises:
        InvalidWeight: If the id holds no digits.
    """
    digits = re.sub(r"\D", "", str(raw if raw is not None else ""))[:4]
    if not digits:
        raise InvalidWeight(f"Share has no unit id: {raw!r}")
    return digits.zfill(4)


def unit_sort_key(unit_id: str) -> Tuple[int, int, int]:
    """Floor (id div 10), then final (id mod 10), then the raw number."""
    number = int(re.sub(r"\D", "", unit_id) or "0")
    return number // 10, number % 10, number


def infer_target_units(sum_units: int) -> int:
    """Return 1 or 100 (in 1e-7 units), whichever the sum is closer to."""
    one = WEIGHT_SCALE
    hundred = 100 * WEIGHT_SCALE
    return one if abs(one - sum_units) <= abs(hundred - sum_units) else hundred


def _coerce(item: ShareInput) -> RawShare:
    if isinstance(item, RawShare):
        return item
    if isinstance(item, WeightedShare):
        return RawShare(unit_id=item.unit_id, weight=item.weight, label=item.label)
    unit_id, weight = item
    return RawShare(unit_id=unit_id, weight=weight)


def _merge(
    principal: Iterable[ShareInput], special: Iterable[ShareInput]
) -> Dict[str, Tuple[int, ShareKind, Optional[str]]]:
    merged: Dict[str, Tuple[int, ShareKind, Optional[str]]] = {}
    for kind, items in ((ShareKind.PRINCIPAL, principal), (ShareKind.SPECIAL, special)):
        for item in items:
            share = _coerce(item)
            unit_id = normalize_unit_id(share.unit_id)
            merged[unit_id] = (weight_to_units(share.weight), kind, share.label)
    return merged


def assign_display_groups(shares: Sequence[WeightedShare]) -> List[WeightedShare]:
    """
    Color shares for display.

    Principal shares with the same weight share one color from PALETTE in
    first-seen order. Each special share gets its own color from
    SPECIAL_PALETTE, skipping colors already used, then generated HSL colors.
    """
    by_weight: Dict[int, str] = {}
    used = set()
    colored: List[Optional[str]] = []

    for share in shares:
        if share.is_special:
            colored.append(None)
            continue
        color = by_weight.get(share.weight_units)
        if color is None:
            color = PALETTE[len(by_weight) % len(PALETTE)]
            by_weight[share.weight_units] = color
        used.add(color.lower())
        colored.append(color)

    for index, share in enumerate(shares):
        if share.is_special:
            color = next_special_color(used)
            used.add(color.lower())
            colored[index] = color

    return [
        WeightedShare(
            unit_id=share.unit_id,
            weight_units=share.weight_units,
            kind=share.kind,
            display_group=colored[index],
            label=share.label,
        )
        for index, share in enumerate(shares)
    ]


def next_special_color(used: set) -> str:
    for color in SPECIAL_PALETTE:
        if color.lower() not in used:
            return color
    for i in range(_GENERATED_COLORS):
        color = f"hsl({(i * 37) % 360} 70% 45%)"
        if color.lower() not in used:
            return color
    return FALLBACK_COLOR


def text_color_for(background: Optional[str]) -> str:
    """Readable foreground (dark or white) for a display group color."""
    value = (background or "").strip()
    if not value:
        return "#111"
    if value.startswith("hsl("):
        return "#fff"
    hex_digits = value.lstrip("#")
    if len(hex_digits) == 3:
        hex_digits = "".join(c * 2 for c in hex_digits)
    if len(hex_digits) != 6:
        return "#111"
    r, g, b = (int(hex_digits[i:i + 2], 16) for i in (0, 2, 4))
    yiq = (r * 299 + g * 587 + b * 114) / 1000
    return "#111" if yiq >= 150 else "#fff"


def close_weights(
    principal: Iterable[ShareInput], special: Iterable[ShareInput] = ()
) -> ClosureResult:
    """
    Merge, order and close share weights on 1 or 100.

    The whole difference between target and sum goes to the last special
    share in sorted order, else the last share, and only when that share
    stays positive.

    Raises:
        InvalidWeight: If any merged weight is zero or negative, or nothing
            is left to close
        ClosureMismatch: If the closed sum is still off by more than 5e-7
    """
    merged = _merge(principal, special)
    if not merged:
        raise InvalidWeight("No shares to close")

    for unit_id, (units, _, _) in merged.items():
        if units <= 0:
            raise InvalidWeight(f"Weight of unit {unit_id} must be greater than zero")

    ordered_ids = sorted(merged, key=lambda uid: (unit_sort_key(uid), uid))
    units_list = [merged[uid][0] for uid in ordered_ids]
    input_sum = sum(units_list)
    target = infer_target_units(input_sum)
    diff = target - input_sum

    adjusted_unit_id = None
    if diff != 0:
        special_positions = [
            i for i, uid in enumerate(ordered_ids) if merged[uid][1] is ShareKind.SPECIAL
        ]
        position = special_positions[-1] if special_positions else len(ordered_ids) - 1
        if units_list[position] + diff > 0:
            units_list[position] += diff
            adjusted_unit_id = ordered_ids[position]

    final_sum = sum(units_list)
    if abs(final_sum - target) > CLOSURE_TOLERANCE_UNITS:
        logger.warning(
            "weight_closure_mismatch",
            target=str(units_to_weight(target)),
            weight_sum=str(units_to_weight(final_sum)),
        )
        raise ClosureMismatch(
            f"Weights sum to {units_to_weight(final_sum)}, expected {units_to_weight(target)}"
        )

    shares = assign_display_groups(
        [
            WeightedShare(
                unit_id=uid,
                weight_units=units_list[i],
                kind=merged[uid][1],
                label=merged[uid][2],
            )
            for i, uid in enumerate(ordered_ids)
        ]
    )

    logger.info(
        "weights_closed",
        shares=len(shares),
        target=str(units_to_weight(target)),
        input_sum=str(units_to_weight(input_sum)),
        adjusted_unit_id=adjusted_unit_id,
    )
    return ClosureResult(
        shares=shares,
        target_units=target,
        input_sum_units=input_sum,
        adjusted_unit_id=adjusted_unit_id,
    )


def build_floor_final_grid(
    first_floor: int, last_floor: int, weights_by_final: Dict[int, MoneyLike]
) -> List[RawShare]:
    """
    Generate principal shares ``floor * 10 + final`` for every floor and final.

    Raises:
        ValueError: If the floor range is reversed or a final is not 0-9
        InvalidWeight: If a final's weight is not positive
    """
    if first_floor > last_floor:
        raise ValueError(f"First floor {first_floor} is above last floor {last_floor}")

    finals: List[Tuple[int, MoneyLike]] = []
    for final, weight in sorted(weights_by_final.items()):
        if not 0 <= final <= 9:
            raise ValueError(f"Final must be between 0 and 9, got {final}")
        if weight_to_units(weight) <= 0:
            raise InvalidWeight(f"Weight of final {final} must be greater than zero")
        finals.append((final, weight))

    return [
        RawShare(unit_id=str(floor * 10 + final).zfill(4), weight=weight, label=f"Final {final}")
        for floor in range(first_floor, last_floor + 1)
        for final, weight in finals
    ]


_UNIT_TOKEN = re.compile(r"(^|\D)(\d{1,4})(\D|$)")
_DECIMAL_TOKEN = re.compile(r"-?\d+[.,]\d+")
_NUMBER_TOKEN = re.compile(r"-?\d+(?:[.,]\d+)?")


def parse_share_list(text: str) -> List[RawShare]:
    """
    Parse pasted ``unit weight`` lines (``04-0,0081000``, ``104 1.5``).

    Lines without a unit id or a value are skipped, as are non-positive
    weights. A repeated unit keeps its first position and its last weight.
    """
    parsed: Dict[str, RawShare] = {}
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        unit_match = _UNIT_TOKEN.search(line)
        if not unit_match:
            continue
        unit_token = unit_match.group(2)
        after = line[unit_match.end(2):]
        # "04-0,0081000": the dash separates, it is not a sign
        if after.startswith("-"):
            after = after[1:]
        rest = line[:unit_match.start(2)] + " " + after
        value_match = _DECIMAL_TOKEN.search(rest) or _NUMBER_TOKEN.search(rest)
        if not value_match:
            continue

        units = weight_to_units(value_match.group(0))
        if units <= 0:
            continue
        unit_id = unit_token.zfill(4)
        parsed[unit_id] = RawShare(unit_id=unit_id, weight=units_to_weight(units))

    return list(parsed.values())
