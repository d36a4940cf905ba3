"""Utility functions for the loan planner.

This module provides helpers for parsing user input into Python data types and
for handling calendar months: parsing ``YYYY-MM`` strings, adding months and
mapping a calendar month onto the repayment-month index the schedule
simulator iterates over. Month arithmetic is done on integers so no
locale-dependent date parsing is involved.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
import calendar
from typing import Optional, Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Parameters
    ----------
    ym: str
        A string in the form ``"YYYY-MM"``. The day component, if present,
        will be ignored.

    Returns
    -------
    date
        A date object representing the first day of the specified month.

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    parts = ym.strip().split("-")
    if len(parts) < 2:
        raise ValueError(f"Invalid year-month string: {ym}")
    try:
        return date(int(parts[0]), int(parts[1]), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def format_year_month(dt: date) -> str:
    return f"{dt.year:04d}-{dt.month:02d}"


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_index_of(
    calendar_month: Optional[date], loan_start: Optional[date], deferment_months: int
) -> int:
    """Map a calendar month onto a 1-based repayment-month index.

    The offset from ``loan_start`` counts deferment months too, so they are
    subtracted before converting to a 1-based index. Returns ``0`` when the
    month cannot be resolved (no start date) or falls before the first
    repayment month.
    """
    if loan_start is None or calendar_month is None:
        return 0
    offset = (calendar_month.year - loan_start.year) * 12 + (
        calendar_month.month - loan_start.month
    )
    index = offset - deferment_months + 1
    return index if index > 0 else 0


def parse_anchor(value: str) -> Union[date, int]:
    """Parse a prepayment anchor: ``YYYY-MM`` or a repayment-month number."""
    text = value.strip()
    if "-" in text:
        return parse_year_month(text)
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(
            f"Anchor must be YYYY-MM or a month number; got {value}"
        ) from exc


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails or the value is not
    finite (``NaN``, ``Infinity``).
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Numeric value must be finite: {value}")
    return result
