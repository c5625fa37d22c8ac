"""
Configuration management for the cost allocation and settlement engine.

This module handles loading and validating environment variables.
"""

import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


ZERO_WEIGHT_POLICIES = ("last_index", "error")


def _bool_env(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "y")


def _decimal_env(key: str, default: str) -> Decimal:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return Decimal(default)
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        return Decimal(default)


class Config:
    """Configuration class with environment variables."""

    # Keyed store
    DB_PATH: str = os.getenv("DB_PATH", "data/settlement.db")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Allocation: what to do when every weight is zero or negative
    ALLOCATION_ZERO_WEIGHT_POLICY: str = (
        os.getenv("ALLOCATION_ZERO_WEIGHT_POLICY", "last_index").strip().lower()
    )

    # Payment plan total vs. sale price
    PAYMENT_PLAN_TOLERANCE: Decimal = _decimal_env("PAYMENT_PLAN_TOLERANCE", "0.01")

    # Period report snapshots
    REPORT_CACHE_ENABLED: bool = _bool_env("REPORT_CACHE_ENABLED", True)

    @classmethod
    def validate(cls) -> None:
        """
        Validate that required configuration is present.

        Raises:
            ValueError: If required configuration is missing or malformed.
        """
        if not cls.DB_PATH:
            raise ValueError("DB_PATH must be configured")

        if cls.ALLOCATION_ZERO_WEIGHT_POLICY not in ZERO_WEIGHT_POLICIES:
            raise ValueError(
                "ALLOCATION_ZERO_WEIGHT_POLICY must be one of "
                + ", ".join(ZERO_WEIGHT_POLICIES)
            )

        if cls.PAYMENT_PLAN_TOLERANCE < 0:
            raise ValueError("PAYMENT_PLAN_TOLERANCE must not be negative")
