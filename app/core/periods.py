"""Billing period helpers. A period is a calendar month written as YYYY-MM."""

import calendar
import re
from datetime import date
from typing import Tuple

from app.core.exceptions import ValidationError

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
_PERIOD_RE = re.compile(PERIOD_PATTERN)


def parse_period(period: str) -> Tuple[int, int]:
    if not period or not _PERIOD_RE.fullmatch(period):
        raise ValidationError(f"Invalid billing period '{period}'. Expected YYYY-MM")
    year, month = period.split("-")
    return int(year), int(month)


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def period_of(day: date) -> str:
    return format_period(day.year, day.month)


def next_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 12:
        return format_period(year + 1, 1)
    return format_period(year, month + 1)


def previous_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 1:
        return format_period(year - 1, 12)
    return format_period(year, month - 1)


def period_bounds(period: str) -> Tuple[date, date]:
    """First and last calendar day of the period."""
    year, month = parse_period(period)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def due_date_for(period: str, day_of_month: int) -> date:
    year, month = parse_period(period)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))
