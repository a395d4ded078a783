from __future__ import annotations

import re
from datetime import date


MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
MIN_YEAR = 1900
MAX_YEAR = 2100


class MonthKeyError(ValueError):
    pass


def parse_month_key(key: str) -> tuple[int, int]:
    if not isinstance(key, str):
        raise MonthKeyError(f"Month key must be text, got {type(key).__name__}.")
    match = MONTH_KEY_PATTERN.match(key)
    if match is None:
        raise MonthKeyError(f"Month key {key!r} must be in YYYY-MM format.")
    year = int(match.group(1))
    month = int(match.group(2))
    if year < MIN_YEAR or year > MAX_YEAR:
        raise MonthKeyError(f"Month key {key!r} year must be {MIN_YEAR}-{MAX_YEAR}.")
    if month < 1 or month > 12:
        raise MonthKeyError(f"Month key {key!r} month must be 01-12.")
    return year, month


def is_valid_month_key(key: str | None) -> bool:
    if key is None:
        return False
    try:
        parse_month_key(key)
    except MonthKeyError:
        return False
    return True


def format_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_key_to_date(key: str) -> date:
    year, month = parse_month_key(key)
    return date(year, month, 1)


def _month_index(key: str) -> int:
    year, month = parse_month_key(key)
    return year * 12 + (month - 1)


def _from_index(index: int) -> str:
    return format_month_key(index // 12, index % 12 + 1)


def shift_month_key(key: str, months: int) -> str:
    return _from_index(_month_index(key) + months)


def months_inclusive(start_month: str, end_month: str) -> int:
    """Number of months from start to end, both included; 0 when end precedes start."""
    span = _month_index(end_month) - _month_index(start_month) + 1
    return max(span, 0)


def generate_month_series(
    start_month: str,
    end_month: str,
    early_exit_month: str | None = None,
) -> list[str]:
    """Return the ordered, gap-free active month keys of a fund.

    The series runs from ``start_month`` to the effective end (the early exit
    month when present, otherwise ``end_month``), both inclusive. A start after
    the effective end yields an empty list. Malformed keys raise
    ``MonthKeyError``.
    """
    effective_end = early_exit_month if early_exit_month else end_month
    first = _month_index(start_month)
    last = _month_index(effective_end)
    if first > last:
        return []
    return [_from_index(index) for index in range(first, last + 1)]


def next_month_keys(after_key: str, count: int) -> list[str]:
    if count <= 0:
        return []
    base = _month_index(after_key)
    return [_from_index(base + step) for step in range(1, count + 1)]
