"""Report Pydantic v2 schemas."""


import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from attendance_engine.common.constants import UserRole


class ReportRequest(BaseModel):
    roles: list[UserRole] = Field(..., min_length=1)
    start_date: date
    end_date: date
    academic_year_name: Optional[str] = None
    class_id: Optional[uuid.UUID] = None
    section_id: Optional[uuid.UUID] = None
    campus_id: Optional[uuid.UUID] = None


class ConsolidatedAttendanceRow(BaseModel):
    """One (user, date) line of the consolidated daily attendance report."""

    date: date
    user_id: uuid.UUID
    username: str
    first_name: str
    last_name: str = ""
    role: UserRole
    year_name: Optional[str] = None
    status: str
    duration: str
    total_duration: str
    login_time: Optional[str] = None
    logout_time: Optional[str] = None
    is_holiday: bool
    is_half_day: bool
    expected_hours: str
    leaves_pending: int = 0
    leaves_approved: int = 0


class ConsolidatedReportResponse(BaseModel):
    start_date: date
    end_date: date
    total: int
    rows: list[ConsolidatedAttendanceRow]
