"""
Unit tests for date and competency helpers.
"""

from datetime import date, datetime

import pytest

from src.domain.errors import InvalidDate
from src.utils.datetime_helpers import (
    add_months_keep_day,
    competency_window,
    format_competency,
    format_date_br,
    normalize_competency,
    normalize_typed_date,
    parse_competency,
    parse_date,
    parse_utc_iso,
    utc_now_iso,
)


class TestParseDate:
    @pytest.mark.parametrize(
        "value",
        ["15/03/2025", "2025-03-15", " 15/03/2025 ", date(2025, 3, 15), datetime(2025, 3, 15, 10, 30)],
    )
    def test_accepted_forms(self, value) -> None:
        assert parse_date(value) == date(2025, 3, 15)

    @pytest.mark.parametrize(
        "value",
        ["31/02/2025", "2025/03/15", "15-03-2025", "", "01/01/1899", "01/01/2201", 20250315],
    )
    def test_rejected_forms(self, value) -> None:
        with pytest.raises(InvalidDate):
            parse_date(value)

    def test_format(self) -> None:
        assert format_date_br(date(2025, 3, 5)) == "05/03/2025"

    def test_typed_digits(self) -> None:
        assert normalize_typed_date("010125") == "01/01/2025"
        assert normalize_typed_date("15.03.2025") == "15/03/2025"
        assert normalize_typed_date("1503025") == "15/03/2025"
        assert normalize_typed_date("") == ""


class TestMonths:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (date(2025, 1, 31), 1, date(2025, 2, 28)),
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2025, 11, 15), 2, date(2026, 1, 15)),
            (date(2025, 3, 31), 12, date(2026, 3, 31)),
            (date(2025, 3, 15), -3, date(2024, 12, 15)),
        ],
    )
    def test_add_months_keep_day(self, start: date, months: int, expected: date) -> None:
        assert add_months_keep_day(start, months) == expected


class TestCompetency:
    @pytest.mark.parametrize(
        "raw, expected",
        [("1/26", "01/2026"), ("01/2026", "01/2026"), ("012026", "01/2026"), ("", "")],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_competency(raw) == expected

    def test_parse(self) -> None:
        assert parse_competency("3/25") == (3, 2025)
        assert parse_competency((12, 2024)) == (12, 2024)
        assert format_competency(3, 2025) == "03/2025"

    @pytest.mark.parametrize("raw", ["13/2025", "00/2025", (0, 2025), "abc"])
    def test_invalid(self, raw) -> None:
        with pytest.raises(InvalidDate):
            parse_competency(raw)

    def test_window_is_half_open(self) -> None:
        assert competency_window(12, 2024) == (date(2024, 12, 1), date(2025, 1, 1))
        assert competency_window(2, 2025) == (date(2025, 2, 1), date(2025, 3, 1))


class TestUtcTimestamps:
    def test_round_trip(self) -> None:
        stamp = utc_now_iso()

        assert stamp.endswith("Z")
        assert parse_utc_iso(stamp).tzinfo is not None
