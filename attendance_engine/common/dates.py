"""Date-range validation and duration formatting shared by the engine services."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator, Optional

from attendance_engine.common.constants import ZERO_DURATION
from attendance_engine.common.exceptions import ValidationException


def validate_date_range(
    start_date: Optional[date],
    end_date: Optional[date],
    *,
    max_days: Optional[int] = None,
) -> None:
    """Ensure both bounds are present, ordered, and within ``max_days``."""

    errors: dict[str, list[str]] = {}
    if start_date is None:
        errors["start_date"] = ["start_date is required."]
    if end_date is None:
        errors["end_date"] = ["end_date is required."]
    if errors:
        raise ValidationException(errors)

    if start_date > end_date:
        raise ValidationException(
            {"date_range": ["start_date must be before or equal to end_date."]}
        )
    if max_days is not None and (end_date - start_date).days >= max_days:
        raise ValidationException(
            {"date_range": [f"Date range cannot exceed {max_days} days."]}
        )


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """Every calendar date in ``[start_date, end_date]``, ascending."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def hours_to_interval(hours: Decimal) -> timedelta:
    return timedelta(seconds=int((Decimal(hours) * 3600).to_integral_value()))


def format_duration(value: Optional[timedelta]) -> str:
    """Render an interval as ``HH:MM`` (hours may exceed 24)."""
    if not value:
        return ZERO_DURATION
    total_minutes = int(value.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"
