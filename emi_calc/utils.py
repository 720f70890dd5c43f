"""Utility functions for the EMI schedule planner.

This module provides helpers for parsing user input into ``Decimal`` values,
for reading amounts written with the usual shorthand (``500k``, ``5l``,
``1.2cr``) and for month arithmetic on ``datetime.date`` instances.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from typing import Tuple, Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

Number = Union[Decimal, int, float, str]

# Longest suffixes first so that "lakh" is not read as "l" + garbage.
AMOUNT_SUFFIXES = (
    ("crore", Decimal("10000000")),
    ("lakh", Decimal("100000")),
    ("cr", Decimal("10000000")),
    ("k", Decimal("1000")),
    ("l", Decimal("100000")),
    ("m", Decimal("1000000")),
)


def to_decimal(value: Number) -> Decimal:
    """Convert a number or numeric string into a ``Decimal``.

    Floats go through ``str`` so that ``7.5`` becomes exactly
    ``Decimal("7.5")``. Commas are stripped from strings, so both
    ``"1,000,000"`` and ``"10,00,000"`` are accepted. Raises ``ValueError``
    if conversion fails or the value is not finite.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value}")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip().replace(",", ""))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def parse_amount(value: str) -> Decimal:
    """Parse an amount with an optional magnitude suffix.

    Accepts plain numbers (``"500000"``) and shorthand with ``k`` (thousand),
    ``l``/``lakh`` (hundred thousand), ``cr``/``crore`` (ten million) and
    ``m`` (million) suffixes, e.g. ``"5l"`` meaning 500,000.
    """
    cleaned = value.strip().lower().replace(",", "").replace(" ", "")
    factor = Decimal("1")
    for suffix, multiplier in AMOUNT_SUFFIXES:
        if cleaned.endswith(suffix):
            factor = multiplier
            cleaned = cleaned[: -len(suffix)]
            break
    return to_decimal(cleaned) * factor


def parse_month_value(item: str) -> Tuple[int, str]:
    """Split a ``MONTH:VALUE`` string into a 1-based month and the raw value.

    Raises ``ValueError`` when the string is malformed or the month is not a
    positive integer.
    """
    parts = item.split(":")
    if len(parts) != 2:
        raise ValueError(f"Expected MONTH:VALUE format; got {item}")
    month_str, raw = parts
    try:
        month = int(month_str.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid month index: {month_str}") from exc
    if month < 1:
        raise ValueError(f"Month index must be 1 or greater; got {month}")
    return month, raw.strip()


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    parts = ym.strip().split("-")
    try:
        if len(parts) < 2:
            raise ValueError
        return date(int(parts[0]), int(parts[1]), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
