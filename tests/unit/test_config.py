"""
Unit tests for configuration validation.
"""

from decimal import Decimal

import pytest

from src.core import config
from src.core.config import Config


def test_defaults_are_valid() -> None:
    Config.validate()


@pytest.mark.parametrize(
    "attribute, value",
    [
        ("DB_PATH", ""),
        ("ALLOCATION_ZERO_WEIGHT_POLICY", "spread"),
        ("PAYMENT_PLAN_TOLERANCE", Decimal("-0.01")),
    ],
)
def test_invalid_settings(monkeypatch: pytest.MonkeyPatch, attribute: str, value) -> None:
    monkeypatch.setattr(Config, attribute, value)

    with pytest.raises(ValueError):
        Config.validate()


def test_env_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPORT_CACHE_ENABLED", "no")
    monkeypatch.setenv("PAYMENT_PLAN_TOLERANCE", "abc")

    assert config._bool_env("REPORT_CACHE_ENABLED", True) is False
    assert config._bool_env("UNSET_FLAG_FOR_TEST", True) is True
    assert config._decimal_env("PAYMENT_PLAN_TOLERANCE", "0.05") == Decimal("0.05")
