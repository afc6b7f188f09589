"""Enums and constants for the attendance engine — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Directory / Roles ───────────────────────────────────────────────

class UserRole(str, enum.Enum):
    student = "Student"
    teacher = "Teacher"
    admin = "Admin"
    principal = "Principal"
    staff = "Staff"


class UserStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


# Roles whose calendar is scoped to academic-year contexts
CONTEXT_SCOPED_ROLES: frozenset[UserRole] = frozenset(
    {UserRole.student, UserRole.teacher}
)

# Roles whose daily summary is derived from session attendance
SESSION_DERIVED_ROLES: frozenset[UserRole] = frozenset({UserRole.student})


# ── Calendar policy ─────────────────────────────────────────────────

class DurationCategory(str, enum.Enum):
    full_day = "full_day"
    half_day = "half_day"


class DayType(str, enum.Enum):
    working = "working"
    half_day = "half_day"
    holiday = "holiday"


class ResolutionSource(str, enum.Enum):
    special_working_day = "special_working_day"
    holiday_event = "holiday_event"
    weekend_policy = "weekend_policy"
    default = "default"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "Present"
    absent = "Absent"


NO_ATTENDANCE = "No Attendance"
ZERO_DURATION = "00:00"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """``values_callable`` for ``sa.Enum`` so the stored value is the enum value."""
    return [member.value for member in enum_cls]


# ── Misc constants ──────────────────────────────────────────────────

SATURDAY = 5
SUNDAY = 6
