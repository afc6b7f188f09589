"""Calendar policy Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Upsert → request bodies (write)
  - *Response        → response bodies (read)
"""


import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from attendance_engine.common.constants import DurationCategory, ResolutionSource


# ═════════════════════════════════════════════════════════════════════
# Date status
# ═════════════════════════════════════════════════════════════════════


class DateStatusDetails(BaseModel):
    """Raw per-source flags behind a date classification."""

    is_weekend_holiday: bool = False
    is_holiday_event: bool = False
    is_special_working_day: bool = False
    is_half_day: bool = False
    source: ResolutionSource = ResolutionSource.default
    holiday_name: Optional[str] = None
    special_day_description: Optional[str] = None


class DateStatusResponse(BaseModel):
    """Single-date classification for UI display."""

    date: date
    is_holiday: bool
    details: DateStatusDetails


class CalculatedHolidayItem(BaseModel):
    date: date
    weight: float


class CalculatedHolidaysResponse(BaseModel):
    """Holiday weight per date (1 full day, 0.5 half day) across a range."""

    total: float
    items: list[CalculatedHolidayItem]


# ═════════════════════════════════════════════════════════════════════
# Weekend policies
# ═════════════════════════════════════════════════════════════════════


class WeekendPolicyUpsert(BaseModel):
    academic_year_id: uuid.UUID
    is_sunday_holiday: bool = True
    is_saturday_holiday: bool = True
    is_saturday_half_day: bool = False


class WeekendPolicyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    campus_id: uuid.UUID
    academic_year_id: uuid.UUID
    is_sunday_holiday: bool
    is_saturday_holiday: bool
    is_saturday_half_day: bool


# ═════════════════════════════════════════════════════════════════════
# Holiday events
# ═════════════════════════════════════════════════════════════════════


class HolidayEventCreate(BaseModel):
    holiday_name: str = Field(..., min_length=1, max_length=150)
    start_date: date
    end_date: Optional[date] = None
    duration_category: DurationCategory = DurationCategory.full_day
    holiday_type: str = Field(default="General", max_length=50)
    is_paid: bool = True
    academic_year_ids: list[uuid.UUID] = Field(
        default_factory=list,
        description="Empty list means the holiday applies to every academic year",
    )

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date is None:
            self.end_date = self.start_date
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class HolidayEventResponse(BaseModel):
    id: uuid.UUID
    campus_id: uuid.UUID
    holiday_name: str
    start_date: date
    end_date: date
    duration_category: DurationCategory
    holiday_type: str
    is_paid: bool
    academic_year_ids: list[uuid.UUID] = []


# ═════════════════════════════════════════════════════════════════════
# Special working days
# ═════════════════════════════════════════════════════════════════════


class SpecialWorkingDayCreate(BaseModel):
    work_date: date
    description: str = Field(default="", max_length=255)
    academic_year_ids: list[uuid.UUID] = Field(
        default_factory=list,
        description="Empty list means the day is working for every academic year",
    )


class SpecialWorkingDayResponse(BaseModel):
    ids: list[uuid.UUID]
    work_date: date
    description: str
    academic_year_ids: list[uuid.UUID] = []
