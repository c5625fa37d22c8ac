"""
Allocation Engine - split a currency total into integer cents by weight.

This service handles:
- Largest-remainder (Hamilton) distribution with exact-cent closure
- The configurable zero-weight policy
- Splitting a project's cost table (land value and monthly costs) per unit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from fractions import Fraction
from typing import Dict, List, Optional, Sequence

from src.core.config import Config, ZERO_WEIGHT_POLICIES
from src.domain.errors import InvalidAmount, InvalidWeight
from src.domain.models import CostAllocationRequest, CostTable, WeightedShare
from src.domain.money import MoneyLike, ZERO, from_cents, to_cents
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


def _as_fraction(weight: object) -> Fraction:
    if isinstance(weight, bool):
        raise InvalidWeight(f"Unsupported weight: {weight!r}")
    if isinstance(weight, float):
        weight = Decimal(repr(weight))
    try:
        value = Fraction(weight)
    except (TypeError, ValueError) as exc:
        raise InvalidWeight(f"Unsupported weight: {weight!r}") from exc
    # negative weights carry no share
    return max(Fraction(0), value)


def allocate(
    total_amount: MoneyLike,
    weights: Sequence[object],
    zero_weight_policy: Optional[str] = None,
) -> List[int]:
    """
    Split ``total_amount`` into integer cents proportional to ``weights``.

    The result always sums to the total in cents. Floors are handed out first,
    then the leftover cents go one by one to the largest fractional
    remainders (ties by position), cycling if needed.

    Args:
        total_amount: Non-negative total (Decimal, int, float or money string)
        weights: One weight per share; negatives count as zero
        zero_weight_policy: "last_index" or "error"; defaults to config

    Returns:
        List of cents, one per weight.

    Raises:
        InvalidAmount: If the total is negative or unparseable
        InvalidWeight: If no weights are given, or every weight is zero
            under the "error" policy
        ValueError: If the zero-weight policy is unknown
    """
    if not weights:
        raise InvalidWeight("At least one weight is required")
    policy = zero_weight_policy or Config.ALLOCATION_ZERO_WEIGHT_POLICY
    if policy not in ZERO_WEIGHT_POLICIES:
        raise ValueError(f"Unknown zero-weight policy: {policy!r}")

    total_cents = to_cents(total_amount)
    if total_cents < 0:
        raise InvalidAmount(f"Total must not be negative, got {total_amount}")

    fractions = [_as_fraction(w) for w in weights]
    if total_cents == 0:
        return [0] * len(fractions)

    weight_sum = sum(fractions, Fraction(0))
    if weight_sum <= 0:
        if policy == "error":
            raise InvalidWeight("Sum of weights must be greater than zero")
        logger.warning(
            "allocation_zero_weights_fallback",
            total_cents=total_cents,
            share_count=len(fractions),
        )
        cents = [0] * len(fractions)
        cents[-1] = total_cents
        return cents

    raw = [total_cents * w / weight_sum for w in fractions]
    cents = [r.numerator // r.denominator for r in raw]
    remaining = total_cents - sum(cents)

    order = sorted(range(len(raw)), key=lambda i: (-(raw[i] - cents[i]), i))
    position = 0
    while remaining > 0:
        cents[order[position]] += 1
        remaining -= 1
        position = (position + 1) % len(order)

    return cents


def allocate_amounts(
    total_amount: MoneyLike, weights: Sequence[object], zero_weight_policy: Optional[str] = None
) -> List[Decimal]:
    """Same as allocate() but returns cent-quantized Decimals."""
    return [from_cents(c) for c in allocate(total_amount, weights, zero_weight_policy)]


def allocate_request(
    request: CostAllocationRequest, zero_weight_policy: Optional[str] = None
) -> List[Decimal]:
    """Split the request total across its shares, in share order."""
    weights = [share.weight_units for share in request.shares]
    return allocate_amounts(request.total_amount, weights, zero_weight_policy)


@dataclass
class UnitCostAllocation:
    """Costs attributed to one unit of a cost table."""

    unit_id: str
    weight: Decimal
    is_special: bool
    display_group: Optional[str]
    land: Decimal
    monthly: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def monthly_total(self) -> Decimal:
        return sum(self.monthly.values(), ZERO)

    @property
    def grand_total(self) -> Decimal:
        return self.land + self.monthly_total


def allocate_cost_table(table: CostTable) -> List[UnitCostAllocation]:
    """
    Split the land value and every monthly cost of ``table`` across its shares.

    Each column closes exactly on its own total.
    """
    shares: List[WeightedShare] = table.shares
    if not shares:
        return []

    land = allocate_request(CostAllocationRequest(table.land_value, shares))

    rows = [
        UnitCostAllocation(
            unit_id=share.unit_id,
            weight=share.weight,
            is_special=share.is_special,
            display_group=share.display_group,
            land=land[index],
        )
        for index, share in enumerate(shares)
    ]

    for cost in table.monthly_costs:
        split = allocate_request(CostAllocationRequest(cost.amount, shares))
        for index, row in enumerate(rows):
            row.monthly[cost.competency] = split[index]

    logger.info(
        "cost_table_allocated",
        project_id=table.project_id,
        version=table.version,
        units=len(rows),
        months=len(table.monthly_costs),
    )
    return rows
