"""
Date and time utilities for the settlement engine.

This module provides helper functions for consistent datetime handling:
- UTC timestamps for ledger createdAt values
- Event/due dates accepted as ``dd/mm/yyyy``, ISO ``yyyy-mm-dd`` or ``date``
- Competency (accounting month) parsing and windows
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timezone
from typing import Tuple, Union

from src.domain.errors import InvalidDate

DateLike = Union[date, str]

MIN_YEAR = 1900
MAX_YEAR = 2200

_BR_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_COMPETENCY = re.compile(r"^(\d{2})/(\d{4})$")


def utc_now_iso() -> str:
    """
    Return current UTC time as ISO8601 with Z suffix.

    Returns:
        Current UTC time in ISO8601 format with 'Z' suffix.
        Example: "2025-10-29T14:30:00.123456Z"
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_utc_iso(iso_string: str) -> datetime:
    """
    Parse ISO8601 string with Z suffix to datetime object.

    Args:
        iso_string: ISO8601 string with 'Z' suffix.

    Returns:
        Datetime object in UTC timezone.
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"

    return datetime.fromisoformat(iso_string)


def _only_digits(raw: str) -> str:
    return re.sub(r"\D", "", raw or "")


def _expand_year(raw: str) -> str:
    """Expand a short typed year: '5' -> 2005, '25' -> 2025, '025' -> 2025."""
    if len(raw) == 1:
        return "200" + raw
    if len(raw) == 2:
        return "20" + raw
    if len(raw) == 3:
        return "2" + raw
    return raw[:4]


def _check_year(year: int, raw: object) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidDate(f"Year out of range in {raw!r}")


def parse_date(value: DateLike) -> date:
    """
    Parse an event or due date.

    Accepts ``date`` objects, ``dd/mm/yyyy`` and ISO ``yyyy-mm-dd`` strings.

    Raises:
        InvalidDate: If the value cannot be parsed or is out of range.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        _check_year(value.year, value)
        return value
    if not isinstance(value, str):
        raise InvalidDate(f"Unsupported date value: {value!r}")

    text = value.strip()
    match = _BR_DATE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
    else:
        match = _ISO_DATE.match(text)
        if not match:
            raise InvalidDate(f"Unparseable date: {value!r}")
        year, month, day = (int(g) for g in match.groups())

    _check_year(year, value)
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDate(f"Invalid calendar date: {value!r}") from exc


def normalize_typed_date(raw: str) -> str:
    """
    Normalize loosely typed digits into ``dd/mm/yyyy``.

    ``010125`` becomes ``01/01/2025``; a missing month defaults to ``01``.
    Returns an empty string for empty input. The result is not validated.
    """
    digits = _only_digits(raw)[:8]
    if not digits:
        return ""

    day_raw, month_raw, year_raw = digits[:2], digits[2:4], digits[4:]
    day = f"0{day_raw}" if len(day_raw) == 1 else day_raw.ljust(2, "0")
    if not month_raw:
        month = "01"
    elif len(month_raw) == 1:
        month = f"0{month_raw}"
    else:
        month = month_raw
    year = _expand_year(year_raw) if year_raw else str(date.today().year)
    return f"{day}/{month}/{year}"


def format_date_br(value: date) -> str:
    """Format a date as ``dd/mm/yyyy``."""
    return value.strftime("%d/%m/%Y")


def add_months_keep_day(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def normalize_competency(raw: str) -> str:
    """
    Normalize a typed competency into ``mm/yyyy``.

    ``1/26`` becomes ``01/2026``. Returns an empty string for empty input.
    """
    text = (raw or "").strip()
    if "/" in text:
        month_part, _, year_part = text.partition("/")
        month_raw = _only_digits(month_part)[:2]
        year_raw = _only_digits(year_part)[:4]
    else:
        digits = _only_digits(text)[:6]
        month_raw, year_raw = digits[:2], digits[2:]
    if not month_raw:
        return ""

    month = f"0{month_raw}" if len(month_raw) == 1 else month_raw
    year = _expand_year(year_raw) if year_raw else str(date.today().year)
    return f"{month}/{year}"


def parse_competency(raw: Union[str, Tuple[int, int]]) -> Tuple[int, int]:
    """
    Parse a competency into ``(month, year)``.

    Accepts ``mm/yyyy`` strings (typed short forms are normalized first) or
    a ``(month, year)`` tuple.

    Raises:
        InvalidDate: If the month is not 1-12 or the year is out of range.
    """
    if isinstance(raw, tuple):
        month, year = raw
    else:
        match = _COMPETENCY.match(normalize_competency(raw))
        if not match:
            raise InvalidDate(f"Unparseable competency: {raw!r}")
        month, year = int(match.group(1)), int(match.group(2))

    try:
        month, year = int(month), int(year)
    except (TypeError, ValueError) as exc:
        raise InvalidDate(f"Unparseable competency: {raw!r}") from exc
    if not 1 <= month <= 12:
        raise InvalidDate(f"Competency month out of range: {raw!r}")
    _check_year(year, raw)
    return month, year


def format_competency(month: int, year: int) -> str:
    """Format a competency as ``mm/yyyy``."""
    return f"{month:02d}/{year:04d}"


def competency_window(month: int, year: int) -> Tuple[date, date]:
    """
    Return the half-open window ``[start, end)`` of a competency.

    Raises:
        InvalidDate: If month/year are out of range.
    """
    month, year = parse_competency((month, year))
    start = date(year, month, 1)
    end = add_months_keep_day(start, 1)
    return start, end
