"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request / *Record → request bodies (write)
  - *Response / *Summary → response bodies (read)
"""


import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from attendance_engine.common.constants import AttendanceStatus, UserRole


# ═════════════════════════════════════════════════════════════════════
# Session (event) attendance
# ═════════════════════════════════════════════════════════════════════


class EventAttendanceRecord(BaseModel):
    """One register line: a user's status and hours at a session."""

    user_id: uuid.UUID
    attendance_status: AttendanceStatus
    actual_present_hours: Decimal = Field(default=Decimal("0"), ge=0)
    total_scheduled_hours: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("attendance_status", mode="before")
    @classmethod
    def _normalise_status(cls, value):
        # "present", "PRESENT" and "Present" all mean the same thing
        if isinstance(value, str):
            return value.strip().capitalize()
        return value

    @model_validator(mode="after")
    def _check_hours(self):
        if self.actual_present_hours > self.total_scheduled_hours:
            raise ValueError("actual_present_hours cannot exceed total_scheduled_hours")
        return self


class SaveEventAttendanceRequest(BaseModel):
    """A whole class register for one event; date and year default to the event's."""

    records: list[EventAttendanceRecord] = Field(..., min_length=1)
    attendance_date: Optional[date] = None
    academic_year_id: Optional[uuid.UUID] = None


class EventAttendanceResponse(BaseModel):
    event_id: uuid.UUID
    user_id: uuid.UUID
    username: str
    first_name: str
    last_name: str = ""
    attendance_date: date
    attendance_status: AttendanceStatus
    actual_present_hours: Decimal
    total_scheduled_hours: Decimal
    academic_year_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Daily summaries
# ═════════════════════════════════════════════════════════════════════


class DailySummary(BaseModel):
    """The recomputed daily row for one (user, date)."""

    username: str
    attendance_date: date
    status: AttendanceStatus
    present_hours: Decimal
    scheduled_hours: Decimal
    duration: str
    total_duration: str
    year_name: Optional[str] = None
    role: UserRole


class SaveEventAttendanceResponse(BaseModel):
    event_id: uuid.UUID
    attendance_date: date
    saved: int
    summaries: list[DailySummary] = []


class DeleteEventAttendanceResponse(BaseModel):
    event_id: uuid.UUID
    deleted: int
    summaries: list[DailySummary] = []


# ═════════════════════════════════════════════════════════════════════
# Range sync
# ═════════════════════════════════════════════════════════════════════


class SyncRangeRequest(BaseModel):
    start_date: date
    end_date: date
    academic_year_name: Optional[str] = None
    campus_id: Optional[uuid.UUID] = None


class SyncRangeResult(BaseModel):
    """Outcome of a range recompute; failed groups were logged and skipped."""

    synced: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.synced + self.failed
