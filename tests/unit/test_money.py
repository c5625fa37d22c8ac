"""
Unit tests for currency and weight arithmetic.
"""

from decimal import Decimal

import pytest

from src.domain.errors import InvalidAmount, InvalidWeight
from src.domain.money import (
    format_brl,
    format_weight,
    from_cents,
    parse_brl,
    positive_amount,
    quantize_currency,
    to_cents,
    units_to_weight,
    weight_to_units,
)


class TestCurrency:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.234,56", Decimal("1234.56")),
            ("1234.56", Decimal("1234.56")),
            ("R$ 10,5", Decimal("10.5")),
            ("-3,00", Decimal("-3.00")),
        ],
    )
    def test_parse_brl(self, text: str, expected: Decimal) -> None:
        assert parse_brl(text) == expected

    def test_parse_brl_without_digits(self) -> None:
        with pytest.raises(InvalidAmount):
            parse_brl("abc")

    def test_quantize_rounds_half_up(self) -> None:
        assert quantize_currency("0.005") == Decimal("0.01")
        assert quantize_currency(Decimal("2.675")) == Decimal("2.68")
        assert quantize_currency(0.1) == Decimal("0.10")
        assert quantize_currency(7) == Decimal("7.00")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", True, None])
    def test_quantize_rejects_non_numbers(self, value) -> None:
        with pytest.raises(InvalidAmount):
            quantize_currency(value)

    @pytest.mark.parametrize("value", ["0", "0.004", "-1"])
    def test_positive_amount(self, value: str) -> None:
        with pytest.raises(InvalidAmount):
            positive_amount(value)

    def test_cents(self) -> None:
        assert to_cents("1.234,56") == 123456
        assert from_cents(5) == Decimal("0.05")

    def test_format_brl(self) -> None:
        assert format_brl(Decimal("1234567.8")) == "R$ 1.234.567,80"
        assert format_brl("-0,5") == "-R$ 0,50"


class TestWeights:
    def test_units(self) -> None:
        assert weight_to_units("0,0081") == 81_000
        assert weight_to_units(Decimal("0.00000005")) == 1
        assert weight_to_units(1) == 10_000_000
        assert units_to_weight(81_000) == Decimal("0.0081000")

    def test_format_weight(self) -> None:
        assert format_weight(81_000) == "0,0081000"

    def test_invalid_weight(self) -> None:
        with pytest.raises(InvalidWeight):
            weight_to_units("x")
