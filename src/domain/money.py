"""
Currency and weight arithmetic.

Money is handled as ``Decimal`` quantized to cents (ROUND_HALF_UP). Share
weights carry 7 fractional digits and are kept internally as integers in
units of 1e-7 so closure never drifts.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from src.domain.errors import InvalidAmount, InvalidWeight

MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

WEIGHT_DECIMALS = 7
WEIGHT_SCALE = 10 ** WEIGHT_DECIMALS
WEIGHT_QUANTUM = Decimal(1).scaleb(-WEIGHT_DECIMALS)


def _to_decimal(value: MoneyLike) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation
    if isinstance(value, float):
        # repr round-trips the literal the caller typed
        return Decimal(repr(value))
    return Decimal(value)


def parse_brl(text: str) -> Decimal:
    """
    Parse a money string typed in Brazilian or plain notation.

    ``"1.234,56"`` and ``"1234.56"`` both yield ``Decimal("1234.56")``.

    Raises:
        InvalidAmount: If the text holds no number.
    """
    cleaned = re.sub(r"[^\d,.\-]", "", text or "")
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise InvalidAmount(f"Unparseable amount: {text!r}") from exc


def quantize_currency(value: MoneyLike) -> Decimal:
    """
    Round a monetary value to cents.

    Raises:
        InvalidAmount: If the value is not a finite number.
    """
    try:
        amount = parse_brl(value) if isinstance(value, str) else _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmount(f"Unparseable amount: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def positive_amount(value: MoneyLike) -> Decimal:
    """
    Quantize and require a strictly positive amount.

    Raises:
        InvalidAmount: If the amount is zero, negative or unparseable.
    """
    amount = quantize_currency(value)
    if amount <= ZERO:
        raise InvalidAmount(f"Amount must be greater than zero, got {amount}")
    return amount


def to_cents(value: MoneyLike) -> int:
    """Convert an amount to integer cents using half-up rounding."""
    return int(quantize_currency(value) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a cent-quantized Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_brl(value: MoneyLike) -> str:
    """Format an amount as ``R$ 1.234,56``."""
    amount = quantize_currency(value)
    sign = "-" if amount < 0 else ""
    whole, _, frac = f"{abs(amount):,.2f}".partition(".")
    return f"{sign}R$ {whole.replace(',', '.')},{frac}"


def weight_to_units(value: MoneyLike) -> int:
    """
    Convert a weight to integer units of 1e-7 (half-up at the 7th digit).

    Raises:
        InvalidWeight: If the value is not a finite number.
    """
    try:
        weight = parse_brl(value) if isinstance(value, str) else _to_decimal(value)
    except (InvalidAmount, InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidWeight(f"Unparseable weight: {value!r}") from exc
    if not weight.is_finite():
        raise InvalidWeight(f"Weight must be finite: {value!r}")
    return int(weight.quantize(WEIGHT_QUANTUM, rounding=ROUND_HALF_UP).scaleb(WEIGHT_DECIMALS))


def units_to_weight(units: int) -> Decimal:
    """Convert integer 1e-7 units back to a 7-decimal Decimal."""
    return Decimal(units).scaleb(-WEIGHT_DECIMALS).quantize(WEIGHT_QUANTUM)


def format_weight(units: int) -> str:
    """Format 1e-7 units with a comma and all 7 decimals (``0,0081000``)."""
    return f"{units_to_weight(units):.7f}".replace(".", ",")
