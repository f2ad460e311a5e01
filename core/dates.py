import calendar
from datetime import date, datetime
from typing import Optional, Tuple

from django.utils import timezone

from .exceptions import FutureDateError, InvalidInputError


def today() -> date:
    """Server-local current date."""
    return timezone.localdate()


def parse_date(value, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid date: {value!r}", field=field)


def validate_period(year: int, month: int) -> None:
    if not isinstance(year, int) or not isinstance(month, int):
        raise InvalidInputError("Year and month must be integers.")
    if month < 1 or month > 12:
        raise InvalidInputError("Month must be between 1 and 12.", field="month")
    if year < 1:
        raise InvalidInputError("Year must be positive.", field="year")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    validate_period(year, month)
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def ensure_not_future_date(value: date, what: str, current: Optional[date] = None) -> None:
    current = current or today()
    if value > current:
        raise FutureDateError(f"Cannot record {what} for future dates.", field="date")


def ensure_not_future_month(year: int, month: int, current: Optional[date] = None) -> None:
    current = current or today()
    if (year, month) > (current.year, current.month):
        raise FutureDateError("Cannot generate payroll for future months.", field="month")
